"""Unauthenticated public dashboard."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from stalerepos.config.database import get_db
from stalerepos.services.public_dashboard import get_public_dashboard

router = APIRouter(prefix="/api/public", tags=["public"])


@router.get("/{slug}")
async def public_dashboard(slug: str, db: Session = Depends(get_db)):
    dashboard = get_public_dashboard(db, slug)
    if dashboard is None:
        raise HTTPException(status_code=404, detail="Dashboard not found or not public")
    return dashboard

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from api.dependencies import get_today
from config import settings
from db.database import get_db
from db.models import User
from services.pain_service import BODY_PARTS, get_pain_status, record_pain_report, resolve_pain_report


router = APIRouter(tags=["pain"])


class PainReportCreate(BaseModel):
    body_part: str
    notes: Optional[str] = None


def _pain_status(db: Session, user_id: int, today: date) -> dict:
    return get_pain_status(
        db,
        user_id,
        today=today,
        active_window_days=settings.PAIN_ACTIVE_WINDOW_DAYS,
        emergency_window_days=settings.EMERGENCY_STOP_WINDOW_DAYS,
        emergency_min_reports=settings.EMERGENCY_STOP_MIN_REPORTS,
    )


@router.get("/pain/body-parts")
def list_body_parts():
    return {"body_parts": list(BODY_PARTS)}


@router.post("/users/{user_id}/pain", status_code=201)
def report_pain(
    user_id: int,
    payload: PainReportCreate,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    try:
        row = record_pain_report(db, user, body_part=payload.body_part, notes=payload.notes, today=today)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    db.commit()
    return {"id": row.id, "status": _pain_status(db, user_id, today)}


@router.post("/pain/{pain_id}/resolve")
def resolve_pain(
    pain_id: int,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    try:
        row = resolve_pain_report(db, pain_id=pain_id, today=today)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    db.commit()
    return {"id": row.id, "resolved_date": row.resolved_date.isoformat()}


@router.get("/users/{user_id}/pain/status")
def pain_status(
    user_id: int,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    return _pain_status(db, user_id, today)

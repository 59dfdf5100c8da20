from __future__ import annotations

from datetime import date, timedelta
from typing import Sequence

from sqlalchemy.orm import Session

from config import settings as app_settings
from db.models import PainReport, User
from services.workout_types import PainReportSpec


BODY_PART_TO_CONTRAINDICATIONS: dict[str, tuple[str, ...]] = {
    "Lower back": ("back-stress", "core-intensive"),
    "Knee": ("knee-stress", "high-impact"),
    "Shoulder": ("shoulder-stress", "upper-body-intensive"),
    "Neck": ("neck-strain",),
    "Hip": ("hip-stress", "high-impact"),
    "Ankle": ("high-impact", "ankle-stress"),
    "Wrist": ("wrist-stress", "upper-body-intensive"),
    "Elbow": ("elbow-stress", "upper-body-intensive"),
    "Abdomen": ("diastasis-risk", "core-intensive"),
}
BODY_PARTS: tuple[str, ...] = tuple(BODY_PART_TO_CONTRAINDICATIONS)

_BODY_PART_LOOKUP = {k.strip().lower(): v for k, v in BODY_PART_TO_CONTRAINDICATIONS.items()}
_CANONICAL_BODY_PARTS = {k.strip().lower(): k for k in BODY_PART_TO_CONTRAINDICATIONS}


def _body_part_key(body_part: str) -> str:
    return " ".join(str(body_part or "").strip().split()).lower()


def pain_report_spec(row: PainReport) -> PainReportSpec:
    return PainReportSpec(
        id=row.id,
        user_id=row.user_id,
        body_part=row.body_part,
        reported_date=row.reported_date,
        resolved_date=row.resolved_date,
        notes=row.notes,
    )


# ============================================================
# Pure helpers
# ============================================================

def filter_active_reports(
    reports: Sequence[PainReportSpec],
    today: date,
    window_days: int | None = None,
) -> list[PainReportSpec]:
    if window_days is None:
        window_days = app_settings.PAIN_ACTIVE_WINDOW_DAYS
    return [r for r in reports if r.is_active(today, window_days)]


def derive_contraindications(active_reports: Sequence[PainReportSpec]) -> frozenset[str]:
    """Union of the contraindication labels mapped from each reported body part."""
    labels: set[str] = set()
    for report in active_reports:
        labels.update(_BODY_PART_LOOKUP.get(_body_part_key(report.body_part), ()))
    return frozenset(labels)


def recovery_message(active_reports: Sequence[PainReportSpec]) -> str:
    if not active_reports:
        return ""
    seen: set[str] = set()
    parts: list[str] = []
    for report in active_reports:
        name = " ".join(str(report.body_part or "").strip().split())
        key = name.lower()
        if not name or key in seen:
            continue
        seen.add(key)
        parts.append(name)
    if not parts:
        return ""
    return f"Recovery mode: {', '.join(parts)}. Exercises stressing these areas are temporarily excluded."


def emergency_stop_recommended(
    reports: Sequence[PainReportSpec],
    today: date,
    window_days: int | None = None,
    min_reports: int | None = None,
) -> bool:
    """Advisory only. Counts every report in the window, resolved or not."""
    if window_days is None:
        window_days = app_settings.EMERGENCY_STOP_WINDOW_DAYS
    if min_reports is None:
        min_reports = app_settings.EMERGENCY_STOP_MIN_REPORTS
    threshold = today - timedelta(days=window_days)
    recent = [r for r in reports if r.reported_date >= threshold]
    return len(recent) >= min_reports


# ============================================================
# Persistence
# ============================================================

def record_pain_report(
    db: Session,
    user: User,
    *,
    body_part: str,
    today: date,
    notes: str | None = None,
) -> PainReport:
    key = _body_part_key(body_part)
    if not key:
        raise ValueError("body_part is required")
    name = _CANONICAL_BODY_PARTS.get(key)
    if name is None:
        raise ValueError(f"Unknown body part: {body_part!r}. Expected one of: {', '.join(BODY_PARTS)}")
    row = PainReport(
        user_id=user.id,
        body_part=name,
        reported_date=today,
        notes=(notes or "").strip() or None,
    )
    db.add(row)
    db.flush()
    return row


def resolve_pain_report(db: Session, *, pain_id: int, today: date) -> PainReport:
    row = db.query(PainReport).filter(PainReport.id == pain_id).first()
    if not row:
        raise ValueError("Pain report not found")
    if row.resolved_date is None:
        row.resolved_date = today
        db.flush()
    return row


def list_pain_reports_since(db: Session, user_id: int, since: date) -> list[PainReportSpec]:
    rows = (
        db.query(PainReport)
        .filter(PainReport.user_id == user_id, PainReport.reported_date >= since)
        .order_by(PainReport.reported_date.desc(), PainReport.id.desc())
        .all()
    )
    return [pain_report_spec(r) for r in rows]


def get_pain_status(
    db: Session,
    user_id: int,
    *,
    today: date,
    active_window_days: int | None = None,
    emergency_window_days: int | None = None,
    emergency_min_reports: int | None = None,
) -> dict:
    if active_window_days is None:
        active_window_days = app_settings.PAIN_ACTIVE_WINDOW_DAYS
    if emergency_window_days is None:
        emergency_window_days = app_settings.EMERGENCY_STOP_WINDOW_DAYS
    window = max(active_window_days, emergency_window_days)
    reports = list_pain_reports_since(db, user_id, today - timedelta(days=window))
    active = filter_active_reports(reports, today, active_window_days)
    return {
        "active": [
            {
                "id": r.id,
                "body_part": r.body_part,
                "reported_date": r.reported_date.isoformat(),
                "notes": r.notes,
            }
            for r in active
        ],
        "contraindications": sorted(derive_contraindications(active)),
        "recovery_message": recovery_message(active),
        "emergency_stop": emergency_stop_recommended(
            reports,
            today,
            window_days=emergency_window_days,
            min_reports=emergency_min_reports,
        ),
    }

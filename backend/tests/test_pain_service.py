from __future__ import annotations

import sys
from datetime import date, timedelta
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.database import Base  # noqa: E402
from db.models import User  # noqa: E402
from services import pain_service  # noqa: E402
from services.pain_service import (  # noqa: E402
    derive_contraindications,
    emergency_stop_recommended,
    filter_active_reports,
    get_pain_status,
    record_pain_report,
    recovery_message,
    resolve_pain_report,
)
from services.workout_types import PainReportSpec  # noqa: E402


TODAY = date(2026, 10, 19)


def _new_db():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _report(body_part: str, reported: date = TODAY, resolved: date | None = None) -> PainReportSpec:
    return PainReportSpec(user_id=1, body_part=body_part, reported_date=reported, resolved_date=resolved)


def test_abdomen_maps_to_diastasis_and_core():
    reports = [_report("Abdomen")]
    assert derive_contraindications(reports) == {"diastasis-risk", "core-intensive"}
    assert "Abdomen" in recovery_message(reports)


def test_contraindications_union_is_deduplicated():
    labels = derive_contraindications([_report("Knee"), _report("Ankle"), _report("Hip")])
    assert labels == {"knee-stress", "high-impact", "ankle-stress", "hip-stress"}


def test_unknown_body_part_adds_nothing():
    assert derive_contraindications([_report("Earlobe")]) == frozenset()


def test_body_part_lookup_ignores_case_and_spacing():
    assert derive_contraindications([_report("  lower   BACK ")]) == {"back-stress", "core-intensive"}


def test_recovery_message_keeps_input_order_without_duplicates():
    message = recovery_message([_report("Knee"), _report("Neck"), _report("Knee")])
    assert message == "Recovery mode: Knee, Neck. Exercises stressing these areas are temporarily excluded."


def test_recovery_message_empty_without_reports():
    assert recovery_message([]) == ""


def test_active_window_is_three_days_and_unresolved():
    reports = [
        _report("Knee", date(2026, 10, 16)),
        _report("Neck", date(2026, 10, 15)),
        _report("Wrist", date(2026, 10, 18), resolved=date(2026, 10, 19)),
    ]
    active = filter_active_reports(reports, TODAY)
    assert [r.body_part for r in active] == ["Knee"]


def test_emergency_stop_needs_three_reports_in_seven_days():
    two = [_report("Knee", date(2026, 10, 13)), _report("Knee", date(2026, 10, 18))]
    assert emergency_stop_recommended(two, TODAY) is False

    three = two + [_report("Hip", date(2026, 10, 12), resolved=date(2026, 10, 13))]
    assert emergency_stop_recommended(three, TODAY) is True

    old = two + [_report("Hip", date(2026, 10, 11))]
    assert emergency_stop_recommended(old, TODAY) is False


def test_record_resolve_and_status_roundtrip():
    db = _new_db()
    user = User(name="Pat", health_constraints="[]")
    db.add(user)
    db.commit()

    knee = record_pain_report(db, user, body_part="Knee", today=TODAY, notes="after run")
    record_pain_report(db, user, body_part="Abdomen", today=TODAY)
    db.commit()

    status = get_pain_status(db, user.id, today=TODAY)
    assert {r["body_part"] for r in status["active"]} == {"Knee", "Abdomen"}
    assert "knee-stress" in status["contraindications"]
    assert "diastasis-risk" in status["contraindications"]
    assert status["emergency_stop"] is False

    resolve_pain_report(db, pain_id=knee.id, today=TODAY)
    db.commit()
    status = get_pain_status(db, user.id, today=TODAY)
    assert [r["body_part"] for r in status["active"]] == ["Abdomen"]
    assert "knee-stress" not in status["contraindications"]


def test_record_requires_body_part():
    db = _new_db()
    user = User(name="Pat", health_constraints="[]")
    db.add(user)
    db.commit()
    with pytest.raises(ValueError):
        record_pain_report(db, user, body_part="   ", today=TODAY)


def test_resolve_unknown_report_raises():
    db = _new_db()
    with pytest.raises(ValueError):
        resolve_pain_report(db, pain_id=999, today=TODAY)


def test_default_windows_come_from_settings(monkeypatch):
    reports = [_report("Knee", reported=TODAY - timedelta(days=5))]
    assert filter_active_reports(reports, TODAY) == []

    monkeypatch.setattr(pain_service.app_settings, "PAIN_ACTIVE_WINDOW_DAYS", 7)
    assert filter_active_reports(reports, TODAY) == reports

    monkeypatch.setattr(pain_service.app_settings, "EMERGENCY_STOP_MIN_REPORTS", 1)
    assert emergency_stop_recommended(reports, TODAY) is True

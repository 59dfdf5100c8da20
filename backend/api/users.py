from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from db.database import get_db
from services.workout_service import create_user, set_user_constraints
from services.workout_store import WorkoutStore
from api.dependencies import get_store


router = APIRouter(prefix="/users", tags=["users"])


class UserCreate(BaseModel):
    name: str
    email: Optional[str] = None
    health_constraints: list[str] = Field(default_factory=list)


class ConstraintsUpdate(BaseModel):
    health_constraints: list[str] = Field(default_factory=list)


def _user_payload(store: WorkoutStore, user_id: int) -> dict:
    profile = store.fetch_user(user_id)
    return {
        "id": profile.id,
        "name": profile.name,
        "health_constraints": sorted(profile.health_constraints),
    }


@router.post("", status_code=201)
def create_user_endpoint(
    payload: UserCreate,
    db: Session = Depends(get_db),
    store: WorkoutStore = Depends(get_store),
):
    try:
        row = create_user(db, name=payload.name, email=payload.email, health_constraints=payload.health_constraints)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    db.commit()
    return _user_payload(store, row.id)


@router.get("/{user_id}")
def get_user(user_id: int, store: WorkoutStore = Depends(get_store)):
    try:
        return _user_payload(store, user_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.put("/{user_id}/constraints")
def update_constraints(
    user_id: int,
    payload: ConstraintsUpdate,
    db: Session = Depends(get_db),
    store: WorkoutStore = Depends(get_store),
):
    try:
        set_user_constraints(db, user_id, payload.health_constraints)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    db.commit()
    return _user_payload(store, user_id)

from datetime import datetime
from sqlalchemy import (
    Column, Integer, Text, Boolean, ForeignKey, Index, Date,
    DateTime, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from db.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    email = Column(Text, unique=True)
    health_constraints = Column(Text)  # JSON array of constraint labels
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    pain_reports = relationship("PainReport", back_populates="user", cascade="all, delete-orphan")
    workout_schedules = relationship("WorkoutSchedule", back_populates="user", cascade="all, delete-orphan")


class Exercise(Base):
    __tablename__ = "exercises"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False, unique=True)
    category = Column(Text, nullable=False)  # cardio | strength | flexibility | sport
    subcategory = Column(Text)
    duration_min = Column(Integer, nullable=False)
    intensity = Column(Text, nullable=False, default="moderate")  # low | moderate | high
    equipment = Column(Text)  # JSON array
    contraindications = Column(Text)  # JSON array of raw labels
    modifications = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)


class PainReport(Base):
    __tablename__ = "pain_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    body_part = Column(Text, nullable=False)
    reported_date = Column(Date, nullable=False)
    resolved_date = Column(Date, nullable=True)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="pain_reports")


class WorkoutSchedule(Base):
    __tablename__ = "workout_schedules"
    __table_args__ = (UniqueConstraint("user_id", "week_start_date", name="uq_workout_schedule_user_week"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    week_start_date = Column(Date, nullable=False)  # Monday
    status = Column(Text, nullable=False, default="draft")  # draft | active | archived
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="workout_schedules")
    workouts = relationship(
        "ScheduledWorkout",
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="ScheduledWorkout.day_index",
    )


class ScheduledWorkout(Base):
    __tablename__ = "scheduled_workouts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    schedule_id = Column(Integer, ForeignKey("workout_schedules.id"), nullable=False)
    date = Column(Date, nullable=False)
    day_index = Column(Integer, nullable=False)  # 0=Mon .. 6=Sun
    status = Column(Text, nullable=False, default="pending")  # pending | completed | skipped
    is_rest_day = Column(Boolean, nullable=False, default=False)
    rest_reason = Column(Text)
    # Snapshot taken at assignment time; not a live reference to the catalog row.
    exercise_id = Column(Integer)
    exercise_name = Column(Text)
    duration_min = Column(Integer)
    category = Column(Text)
    completed_at = Column(DateTime)
    completion_note = Column(Text)
    alternative_reason = Column(Text)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)

    schedule = relationship("WorkoutSchedule", back_populates="workouts")


class ExerciseAuditLog(Base):
    __tablename__ = "exercise_audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    user_id = Column(Integer, nullable=False)
    user_constraints = Column(Text, nullable=False)  # JSON array
    exercise_id = Column(Integer, nullable=False)
    exercise_name = Column(Text, nullable=False)
    exercise_contraindications = Column(Text, nullable=False)  # JSON array
    decision = Column(Text, nullable=False)  # APPROVED | REJECTED
    conflicts = Column(Text, nullable=False, default="[]")  # JSON array
    context = Column(Text)


Index("idx_exercises_category_name", Exercise.category, Exercise.name)
Index("idx_pain_history_user_date", PainReport.user_id, PainReport.reported_date)
Index("idx_scheduled_workouts_schedule_day", ScheduledWorkout.schedule_id, ScheduledWorkout.day_index, unique=True)
Index("idx_exercise_audit_user_created", ExerciseAuditLog.user_id, ExerciseAuditLog.created_at)

from pydantic_settings import BaseSettings
from pathlib import Path

from services.safety_policy import SafetyPolicy


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"  # development | test | staging | production
    APP_NAME: str = "Household Fitness Planner"
    DATABASE_URL: str = "sqlite:///data/fitness.db"
    DATA_DIR: Path = Path("data")
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:8050",
        "https://localhost:8050",
    ]
    SAFETY_MODE: str | None = None  # strict | permissive; derived from ENVIRONMENT when unset
    PAIN_ACTIVE_WINDOW_DAYS: int = 3
    EMERGENCY_STOP_WINDOW_DAYS: int = 7
    EMERGENCY_STOP_MIN_REPORTS: int = 3
    SCHEDULE_RANDOM_SEED: int | None = None
    SEED_DEFAULT_EXERCISES: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def is_production_like(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() in {"production", "prod", "staging"}

    @property
    def safety_policy(self) -> SafetyPolicy:
        mode = (self.SAFETY_MODE or "").strip().lower()
        if mode:
            return SafetyPolicy.from_value(mode)
        return SafetyPolicy.PERMISSIVE if self.is_production_like else SafetyPolicy.STRICT

    def validate_safety_configuration(self) -> None:
        errors: list[str] = []
        mode = (self.SAFETY_MODE or "").strip().lower()
        if mode and mode not in {p.value for p in SafetyPolicy}:
            errors.append(f"SAFETY_MODE must be one of strict, permissive (got {self.SAFETY_MODE!r})")
        if self.PAIN_ACTIVE_WINDOW_DAYS < 1:
            errors.append("PAIN_ACTIVE_WINDOW_DAYS must be at least 1")
        if self.EMERGENCY_STOP_WINDOW_DAYS < 1:
            errors.append("EMERGENCY_STOP_WINDOW_DAYS must be at least 1")
        if self.EMERGENCY_STOP_MIN_REPORTS < 1:
            errors.append("EMERGENCY_STOP_MIN_REPORTS must be at least 1")
        if errors:
            joined = "; ".join(errors)
            raise RuntimeError(f"Invalid configuration: {joined}")


settings = Settings()
settings.DATA_DIR.mkdir(parents=True, exist_ok=True)

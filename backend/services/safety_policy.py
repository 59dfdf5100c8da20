from __future__ import annotations

from enum import Enum


class SafetyPolicy(str, Enum):
    """How the safety asserter reacts to a contraindicated exercise.

    STRICT raises immediately (development and test pipelines).
    PERMISSIVE reports the violation to monitoring and records a REJECTED audit entry.
    """

    STRICT = "strict"
    PERMISSIVE = "permissive"

    @classmethod
    def from_value(cls, value: str | "SafetyPolicy") -> "SafetyPolicy":
        if isinstance(value, cls):
            return value
        norm = str(value or "").strip().lower()
        for policy in cls:
            if policy.value == norm:
                return policy
        raise ValueError(f"Unsupported safety policy: {value}")

from __future__ import annotations

from enum import Enum


class ControlPhase(str, Enum):
    EXISTING = "EXISTING"
    ADDITIONAL = "ADDITIONAL"


class ControlType(str, Enum):
    ENGINEERING = "ENGINEERING"
    ADMIN = "ADMIN"
    PPE = "PPE"
    TRAINING = "TRAINING"
    OTHER = "OTHER"


class ControlStatus(str, Enum):
    OPEN = "OPEN"
    IMPLEMENTED = "IMPLEMENTED"
    VERIFIED = "VERIFIED"


# VERIFIED implies the control was implemented first.
DONE_STATUSES = frozenset({ControlStatus.IMPLEMENTED, ControlStatus.VERIFIED})

SEVERITY_SCALE = (1, 2, 4, 6, 8, 10)
PROBABILITY_SCALE = (1, 2, 4, 6, 8, 10)

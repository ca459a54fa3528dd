from __future__ import annotations

from enum import Enum


class DotColor(str, Enum):
    GRAY = "gray"
    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    RED = "red"

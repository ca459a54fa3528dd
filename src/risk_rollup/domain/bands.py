from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Union


class RiskBand(str, Enum):
    VERY_LOW = "VERY_LOW"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    MEDIUM_PLUS = "MEDIUM_PLUS"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"


BAND_RANK: Dict[RiskBand, int] = {
    RiskBand.VERY_LOW: 1,
    RiskBand.LOW: 2,
    RiskBand.MEDIUM: 3,
    RiskBand.MEDIUM_PLUS: 4,
    RiskBand.HIGH: 5,
    RiskBand.VERY_HIGH: 6,
}

RANK_BAND: Dict[int, RiskBand] = {rank: band for band, rank in BAND_RANK.items()}

UNASSESSED_RANK = 0
MAX_RANK = 6

# HIGH and VERY_HIGH
HIGH_RISK_RANK = 5

BandLike = Union[RiskBand, str, None]


def rank_of(band: BandLike) -> int:
    """Rank of a band, 0 when the band is unset or not recognised."""
    if not band:
        return UNASSESSED_RANK
    if isinstance(band, RiskBand):
        return BAND_RANK[band]
    try:
        return BAND_RANK[RiskBand(str(band).strip().upper())]
    except ValueError:
        return UNASSESSED_RANK


def band_of(rank: int) -> Optional[RiskBand]:
    return RANK_BAND.get(int(rank))


def is_high_risk_rank(rank: int) -> bool:
    return rank >= HIGH_RISK_RANK

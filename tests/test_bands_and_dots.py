import pytest

from risk_rollup.core.errors import InvalidInputError
from risk_rollup.domain.bands import RiskBand, band_of, is_high_risk_rank, rank_of
from risk_rollup.domain.dots import DotColor
from risk_rollup.engine.classifier import classify, parse_dot


def test_rank_of_known_and_unknown_bands():
    assert rank_of(None) == 0
    assert rank_of("") == 0
    assert rank_of(RiskBand.VERY_LOW) == 1
    assert rank_of("MEDIUM_PLUS") == 4
    assert rank_of("high") == 5
    assert rank_of("CATASTROPHIC") == 0


def test_band_of_inverts_rank_of():
    for band in RiskBand:
        assert band_of(rank_of(band)) == band
    assert band_of(0) is None


def test_high_risk_starts_at_high():
    assert not is_high_risk_rank(4)
    assert is_high_risk_rank(5)
    assert is_high_risk_rank(6)


@pytest.mark.parametrize(
    "current,predicted,expected",
    [
        (0, 0, DotColor.GRAY),
        (0, 5, DotColor.GRAY),
        (1, 0, DotColor.GREEN),
        (2, 6, DotColor.YELLOW),
        (4, 0, DotColor.YELLOW),
        (5, 3, DotColor.ORANGE),
        (5, 1, DotColor.ORANGE),
        (5, 4, DotColor.RED),
        (5, 0, DotColor.RED),
        (6, 0, DotColor.RED),
        (6, 1, DotColor.ORANGE),
        (6, 3, DotColor.ORANGE),
        (6, 4, DotColor.RED),
        (6, 5, DotColor.RED),
        (6, 6, DotColor.RED),
    ],
)
def test_classify_thresholds(current, predicted, expected):
    assert classify(current, predicted) == expected


def test_classify_rejects_out_of_range_rank():
    with pytest.raises(InvalidInputError):
        classify(7, 0)
    with pytest.raises(InvalidInputError):
        classify(5, -1)


def test_parse_dot():
    assert parse_dot(None) is None
    assert parse_dot("  ") is None
    assert parse_dot("RED") == DotColor.RED
    with pytest.raises(InvalidInputError, match="Invalid dot filter"):
        parse_dot("purple")

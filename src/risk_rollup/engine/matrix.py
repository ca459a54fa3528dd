from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from risk_rollup.core.errors import InvalidMatrixCellError
from risk_rollup.domain.bands import RiskBand


UNILEVER_MATRIX_ID = "unilever-risk-matrix-1"
UNILEVER_MATRIX_NAME = "Unilever Risk Matrix 1"

# probability -> severity -> band
UNILEVER_BAND_TABLE: Dict[int, Dict[int, RiskBand]] = {
    10: {
        1: RiskBand.LOW,
        2: RiskBand.HIGH,
        4: RiskBand.VERY_HIGH,
        6: RiskBand.VERY_HIGH,
        8: RiskBand.VERY_HIGH,
        10: RiskBand.VERY_HIGH,
    },
    8: {
        1: RiskBand.LOW,
        2: RiskBand.MEDIUM_PLUS,
        4: RiskBand.HIGH,
        6: RiskBand.VERY_HIGH,
        8: RiskBand.VERY_HIGH,
        10: RiskBand.VERY_HIGH,
    },
    6: {
        1: RiskBand.LOW,
        2: RiskBand.MEDIUM,
        4: RiskBand.MEDIUM_PLUS,
        6: RiskBand.HIGH,
        8: RiskBand.VERY_HIGH,
        10: RiskBand.VERY_HIGH,
    },
    4: {
        1: RiskBand.VERY_LOW,
        2: RiskBand.LOW,
        4: RiskBand.MEDIUM,
        6: RiskBand.MEDIUM_PLUS,
        8: RiskBand.HIGH,
        10: RiskBand.VERY_HIGH,
    },
    2: {
        1: RiskBand.VERY_LOW,
        2: RiskBand.VERY_LOW,
        4: RiskBand.LOW,
        6: RiskBand.MEDIUM,
        8: RiskBand.HIGH,
        10: RiskBand.HIGH,
    },
    1: {
        1: RiskBand.VERY_LOW,
        2: RiskBand.VERY_LOW,
        4: RiskBand.LOW,
        6: RiskBand.LOW,
        8: RiskBand.MEDIUM_PLUS,
        10: RiskBand.HIGH,
    },
}


@dataclass(frozen=True)
class MatrixCell:
    rating: int
    band: RiskBand


@dataclass(frozen=True)
class RiskMatrix:
    matrix_id: str
    name: str
    version: int = 1
    is_active: bool = False
    cells: Mapping[Tuple[int, int], MatrixCell] = field(default_factory=dict)

    def cell(self, severity: int, probability: int) -> Optional[MatrixCell]:
        return self.cells.get((int(severity), int(probability)))


def matrix_from_band_table(
    matrix_id: str,
    name: str,
    band_table: Mapping[Any, Mapping[Any, Any]],
    version: int = 1,
    is_active: bool = False,
) -> RiskMatrix:
    """
    Build a matrix from a probability -> severity -> band table.

    Ratings are severity * probability; they order cells, the band is the
    value the rest of the system consumes.
    """
    cells: Dict[Tuple[int, int], MatrixCell] = {}
    for probability, row in band_table.items():
        p = int(probability)
        for severity, band in row.items():
            s = int(severity)
            cells[(s, p)] = MatrixCell(rating=s * p, band=RiskBand(band))

    return RiskMatrix(
        matrix_id=matrix_id,
        name=name,
        version=int(version),
        is_active=bool(is_active),
        cells=cells,
    )


def unilever_matrix(is_active: bool = True) -> RiskMatrix:
    return matrix_from_band_table(
        matrix_id=UNILEVER_MATRIX_ID,
        name=UNILEVER_MATRIX_NAME,
        band_table=UNILEVER_BAND_TABLE,
        is_active=is_active,
    )


class MatrixResolver:
    """Looks up (rating, band) for a severity/probability pair in a named matrix."""

    def __init__(self, matrices: Iterable[RiskMatrix]):
        self._matrices: Dict[str, RiskMatrix] = {m.matrix_id: m for m in matrices}

    def resolve(self, matrix_id: str, severity: int, probability: int) -> MatrixCell:
        matrix = self._matrices.get(matrix_id)
        cell = matrix.cell(severity, probability) if matrix is not None else None
        if cell is None:
            raise InvalidMatrixCellError(matrix_id, severity, probability)
        return cell

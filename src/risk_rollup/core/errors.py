from __future__ import annotations


class RiskRollupError(Exception):
    """Base class for failures raised by the rollup engine."""


class NotFoundError(RiskRollupError, LookupError):
    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class InvalidInputError(RiskRollupError, ValueError):
    pass


class InvalidMatrixCellError(RiskRollupError, ValueError):
    def __init__(self, matrix_id: str, severity: int, probability: int):
        self.matrix_id = matrix_id
        self.severity = severity
        self.probability = probability
        super().__init__(
            f"Invalid risk matrix cell: matrix={matrix_id} "
            f"severity={severity} probability={probability}"
        )

"""
Statistics record models and value kinds
"""
import json
from enum import Enum
from typing import Union

from pydantic import BaseModel


class CountRecord(BaseModel):
    """One bucket of an integer count series"""

    bucket: str
    value: int

    def to_ndjson(self) -> str:
        """Serialize as a single-key JSON object line"""
        return json.dumps({self.bucket: self.value}) + "\n"


class AmountRecord(BaseModel):
    """One bucket of a monetary amount series"""

    bucket: str
    value: float

    def to_ndjson(self) -> str:
        """Serialize as a single-key JSON object line"""
        return json.dumps({self.bucket: self.value}) + "\n"


Record = Union[CountRecord, AmountRecord]


class ValueKind(str, Enum):
    """
    Numeric kind of a series

    Fixed per query type and never inferred from data, so an empty amount
    bucket is 0.0 rather than 0.
    """

    COUNT = "count"
    AMOUNT = "amount"

    @property
    def zero(self) -> Union[int, float]:
        return 0 if self == ValueKind.COUNT else 0.0

    def coerce(self, value) -> Union[int, float]:
        """
        Convert a raw store value to this kind

        Raises:
            ValueError: If the value is not a number of this kind
        """
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        if self == ValueKind.COUNT:
            return int(value)
        return float(value)

    @property
    def record_model(self):
        return CountRecord if self == ValueKind.COUNT else AmountRecord


class Metric(str, Enum):
    """Underlying event streams"""

    TRANSITS = "transits"
    PURCHASES = "purchases"

    @property
    def value_kind(self) -> ValueKind:
        return ValueKind.COUNT if self == Metric.TRANSITS else ValueKind.AMOUNT

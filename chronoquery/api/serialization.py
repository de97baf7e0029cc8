"""
JSON-safe conversion of store documents for HTTP responses.
"""
from __future__ import annotations

import datetime
import decimal
from typing import Any

from bson import Decimal128, ObjectId


def serialise_value(val: Any) -> Any:
    """Convert store / driver types to JSON-serialisable Python types."""
    if isinstance(val, ObjectId):
        return str(val)
    if isinstance(val, Decimal128):
        return float(val.to_decimal())
    if isinstance(val, decimal.Decimal):
        return float(val)
    if isinstance(val, (datetime.date, datetime.datetime)):
        return val.isoformat()
    if isinstance(val, dict):
        return {k: serialise_value(v) for k, v in val.items()}
    if isinstance(val, (list, tuple)):
        return [serialise_value(v) for v in val]
    return val


def serialise_documents(docs: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [serialise_value(d) for d in docs]

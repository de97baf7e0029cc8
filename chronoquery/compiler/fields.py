"""
Typed field references and operator keys for pipeline stages.

User-supplied field names never reach a stage through string concatenation.
Every path is checked here first, and every ``$``-prefixed reference or
operator key is produced by this module:

  1. No empty names or empty path segments ("a..b", ".a", "a.")
  2. No leading ``$`` on any segment (operator / variable injection)
  3. No NUL characters
  4. Non-string names are rejected outright
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from chronoquery.core.errors import InvalidFieldName

_MAX_PATH_LENGTH = 256

_OPERATOR_RE = re.compile(r"^[a-zA-Z]+$")

# Group-stage keys may not contain dots.
_ALIAS_SEPARATOR = "__"


@dataclass(frozen=True)
class FieldPath:
    """A validated (possibly dotted) document field path."""

    path: str

    @classmethod
    def parse(cls, raw: object) -> FieldPath:
        if not isinstance(raw, str):
            raise InvalidFieldName(raw, "field names must be strings")
        if not raw:
            raise InvalidFieldName(raw, "field name is empty")
        if len(raw) > _MAX_PATH_LENGTH:
            raise InvalidFieldName(raw, f"field name exceeds {_MAX_PATH_LENGTH} characters")
        if "\x00" in raw:
            raise InvalidFieldName(raw, "field name contains a NUL character")
        for segment in raw.split("."):
            if not segment:
                raise InvalidFieldName(raw, "field path has an empty segment")
            if segment.startswith("$"):
                raise InvalidFieldName(raw, "field path segments may not start with '$'")
        return cls(raw)

    @property
    def ref(self) -> str:
        """Expression reference to this field's value, e.g. ``$region``."""
        return "$" + self.path

    @property
    def alias(self) -> str:
        """Dot-free key used for this field inside ``$group`` output."""
        return self.path.replace(".", _ALIAS_SEPARATOR)

    def __str__(self) -> str:
        return self.path


def operator_key(op: str | Enum) -> str:
    """Return the ``$``-prefixed key for an enumerated operator name."""
    name = op.value if isinstance(op, Enum) else op
    if not isinstance(name, str) or not _OPERATOR_RE.match(name):
        raise ValueError(f"Not a valid operator name: {name!r}")
    return "$" + name

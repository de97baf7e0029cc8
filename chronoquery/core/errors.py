"""
Error kinds raised by the compiler.

Everything except StoreError is detected before the store is touched.
"""
from __future__ import annotations


class CompilerError(Exception):
    """Base class for every chronoquery error."""


class NamespaceNotAllowed(CompilerError):
    def __init__(self, namespace: str):
        super().__init__(f"Namespace '{namespace}' is not in the allowed namespaces list.")
        self.namespace = namespace


class UnknownRangePreset(CompilerError):
    def __init__(self, key: str, available: list[str] | None = None):
        msg = f"Unknown range preset '{key}'."
        if available:
            msg += f" Allowed: {', '.join(available)}"
        super().__init__(msg)
        self.key = key


class TimestampParseError(CompilerError):
    def __init__(self, field: str, value: object):
        super().__init__(f"Cannot parse timestamp field '{field}': {value!r}")
        self.field = field
        self.value = value


class InvalidFieldName(CompilerError):
    def __init__(self, field: object, reason: str):
        super().__init__(f"Invalid field name {field!r}: {reason}")
        self.field = field
        self.reason = reason


class StoreError(CompilerError):
    """Wraps a failure from the document store's insert / aggregate / find."""

"""
Namespace allow-list shared by the query, insert and scan paths.

An empty allow-list is *open mode*: every namespace is permitted.  Shared
deployments should set ``ALLOWED_NAMESPACES``.
"""
from __future__ import annotations

from collections.abc import Collection

from chronoquery.core.errors import NamespaceNotAllowed
from chronoquery.core.logging import get_logger

logger = get_logger(__name__)


def is_namespace_allowed(namespace: str, allowed: Collection[str]) -> bool:
    if not allowed:
        return True  # open mode
    return namespace in allowed


def check_namespace(namespace: str, allowed: Collection[str]) -> None:
    """Raise NamespaceNotAllowed unless *namespace* may be read or written."""
    if not is_namespace_allowed(namespace, allowed):
        logger.warning("Rejected namespace=%s (allowed: %s)", namespace, ", ".join(allowed))
        raise NamespaceNotAllowed(namespace)

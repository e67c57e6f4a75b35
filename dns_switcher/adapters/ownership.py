"""Decide who owns a lease or option from its comment."""

from __future__ import annotations

from enum import Enum


class Ownership(str, Enum):
    UNMANAGED = "unmanaged"
    MANAGED_BY_US = "managed_by_us"
    MANAGED_BY_OTHER = "managed_by_other"


def classify(comment: str | None, marker: str) -> Ownership:
    """Classify a record comment against our ownership marker.

    Empty or missing comment -> UNMANAGED, the marker itself -> MANAGED_BY_US,
    anything else -> MANAGED_BY_OTHER.
    """
    if not comment:
        return Ownership.UNMANAGED
    if comment == marker:
        return Ownership.MANAGED_BY_US
    return Ownership.MANAGED_BY_OTHER

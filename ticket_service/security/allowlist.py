"""Column allow-lists guarding ticket filters and partial updates.

Keys coming from clients are never interpolated into queries directly: list
filters and update payloads are intersected with the fixed sets below before
they reach the repository. Unknown keys are dropped silently.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

logger = logging.getLogger(__name__)

LIST_FILTER_COLUMNS: frozenset[str] = frozenset({"client_id", "operator_id", "status", "region"})

UPDATABLE_COLUMNS: frozenset[str] = frozenset({"subject", "notes", "status", "priority", "region"})


def _intersect(payload: Mapping[str, Any] | None, allowed: frozenset[str]) -> tuple[dict[str, Any], list[str]]:
    kept: dict[str, Any] = {}
    dropped: list[str] = []
    for key, value in (payload or {}).items():
        if key in allowed:
            kept[key] = value
        else:
            dropped.append(str(key))
    return kept, dropped


def filter_list_predicates(filters: Mapping[str, Any] | None) -> dict[str, str]:
    """Return the equality predicates that may be applied to a ticket listing.

    Empty and ``None`` values mean "no filter" and are removed as well.
    """

    kept, dropped = _intersect(filters, LIST_FILTER_COLUMNS)
    if dropped:
        logger.debug("Ignoring list filters outside the allow-list: %s", ", ".join(sorted(dropped)))
    return {key: str(value) for key, value in kept.items() if value is not None and str(value) != ""}


def filter_update_changes(changes: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return only the changes whose keys are updatable ticket columns."""

    kept, dropped = _intersect(changes, UPDATABLE_COLUMNS)
    if dropped:
        logger.info("Dropping non-updatable ticket fields: %s", ", ".join(sorted(dropped)))
    return kept

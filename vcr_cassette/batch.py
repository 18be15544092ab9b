"""Helpers shared by the batch maintenance operations."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TypeVar

import structlog

from vcr_cassette.models import ActionFailure, BatchResult

logger = structlog.get_logger()

T = TypeVar("T")


def should_execute(dry_run: bool, force: bool, confirm: Callable[[], bool] | None) -> bool:
    """Destructive work runs only when not a dry run and forced or confirmed."""
    if dry_run:
        return False
    if force:
        return True
    return confirm is not None and confirm()


def run_batch(
    items: Iterable[T],
    apply: Callable[[T], Path],
    path_of: Callable[[T], Path],
    operation: str,
) -> BatchResult:
    """Apply each item independently; one failure never stops the rest."""
    result = BatchResult()
    for item in items:
        try:
            applied = apply(item)
        except OSError as exc:
            logger.warning(
                "batch_item_failed", operation=operation, path=str(path_of(item)), error=str(exc)
            )
            result.failed.append(ActionFailure(path=path_of(item), error=str(exc)))
        else:
            result.applied.append(applied)
    return result

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Sequence

from .chunking import take
from .config import EngineSettings
from .errors import LoopExceededError, ValidationError
from .protocols import BulkExecutor, Item, Key

logger = logging.getLogger(__name__)


class RetryingReader:
    """Bulk-read a key list in size-capped chunks, re-queueing keys the store leaves unprocessed.

    Unprocessed keys go to the back of the queue, so every original chunk is
    attempted once before any retry. Keys the store has no record of are simply
    missing from the result.
    """

    def __init__(self, executor: BulkExecutor, *, settings: EngineSettings | None = None) -> None:
        self._executor = executor
        self._settings = settings or EngineSettings()

    def read_all(self, target: str, keys: Sequence[Key]) -> list[Item]:
        if not target:
            raise ValidationError("target is required")

        max_calls = self._settings.max_read_calls
        pending: deque[Key] = deque(keys)
        out: list[Item] = []
        calls = 0

        while pending:
            if max_calls is not None and calls >= max_calls:
                raise LoopExceededError(operation="read_all", limit=max_calls, pending=len(pending))

            chunk = take(pending, self._settings.max_read_batch)
            logger.debug("read_all: reading %d key(s) from %s (%d queued)", len(chunk), target, len(pending))
            result = self._executor.read(target, chunk)
            calls += 1
            out.extend(result.items)

            if result.unprocessed_keys:
                logger.warning(
                    "read_all: %s left %d key(s) unprocessed; re-queueing",
                    target,
                    len(result.unprocessed_keys),
                )
                pending.extend(result.unprocessed_keys)

        logger.info("read_all: resolved %d item(s) from %s in %d call(s)", len(out), target, calls)
        return out

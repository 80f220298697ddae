from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from .chunking import chunked
from .config import EngineSettings
from .errors import ValidationError
from .protocols import BulkExecutor, DeleteRequest, Item, Key, MutationBatch, MutationOp, PutRequest

logger = logging.getLogger(__name__)


class ChunkedWriter:
    """Submit arbitrarily long put/delete lists as sequential, size-capped bulk mutations.

    Chunks are not transactional as a group: when a chunk fails, the remaining
    chunks are skipped and the error propagates, while chunks already submitted
    stay applied.
    """

    def __init__(self, executor: BulkExecutor, *, settings: EngineSettings | None = None) -> None:
        self._executor = executor
        self._settings = settings or EngineSettings()

    def write_all(self, target: str, items: Sequence[Item]) -> None:
        self._submit("write_all", target, items, PutRequest)

    def delete_all(self, target: str, keys: Sequence[Key]) -> None:
        self._submit("delete_all", target, keys, DeleteRequest)

    def _submit[E](
        self,
        operation: str,
        target: str,
        elements: Sequence[E],
        tag: Callable[[E], MutationOp],
    ) -> None:
        if not target:
            raise ValidationError("target is required")

        calls = 0
        for chunk in chunked(elements, self._settings.max_mutation_batch):
            batch = MutationBatch(target=target, operations=tuple(tag(e) for e in chunk))
            logger.debug("%s: submitting chunk %d to %s (%d ops)", operation, calls + 1, target, len(batch))
            self._executor.mutate(batch)
            calls += 1

        logger.info("%s: applied %d op(s) to %s in %d chunk(s)", operation, len(elements), target, calls)

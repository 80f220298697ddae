from __future__ import annotations

import logging
from typing import Any

from .config import EngineSettings
from .errors import LoopExceededError, ValidationError
from .protocols import QueryExecutor
from .query import AccumulatedResult, Page, QueryDescriptor

logger = logging.getLogger(__name__)


class Paginator:
    """Drain a paged query into one result by following cursors until the store returns none."""

    def __init__(self, executor: QueryExecutor, *, settings: EngineSettings | None = None) -> None:
        self._executor = executor
        self._settings = settings or EngineSettings()

    def fetch_all(self, descriptor: QueryDescriptor, page_size: int | None = None) -> AccumulatedResult[Any]:
        limit = self._settings.default_page_size if page_size is None else page_size
        if limit <= 0:
            raise ValidationError("page_size must be > 0")

        max_pages = self._settings.max_pages
        items: list[Any] = []
        cursor: str | None = None
        pages = 0

        while True:
            if max_pages is not None and pages >= max_pages:
                raise LoopExceededError(operation="fetch_all", limit=max_pages)

            logger.debug("fetch_all: requesting page %d (limit=%d, cursor=%s)", pages + 1, limit, cursor is not None)
            page: Page[Any] = self._executor.run(descriptor, descriptor.paged_variables(limit=limit, cursor=cursor))
            pages += 1
            items.extend(page.items)

            # Short pages may still carry a cursor; only its absence ends the run.
            cursor = page.next_cursor
            if cursor is None:
                break

        logger.info("fetch_all: collected %d item(s) over %d page(s)", len(items), pages)
        return AccumulatedResult(items=items, metadata=dict(page.metadata), pages=pages)

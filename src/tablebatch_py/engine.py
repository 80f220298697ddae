from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from typing import Any

import httpx

from .config import GRAPHQL_URL_ENV, EngineSettings, resolve_region, resolve_table_name
from .errors import ConfigurationError
from .paginator import Paginator
from .protocols import BulkExecutor, Item, Key, QueryExecutor
from .query import AccumulatedResult, QueryDescriptor
from .reader import RetryingReader
from .writer import ChunkedWriter

logger = logging.getLogger(__name__)


class BatchEngine:
    """Facade over one query executor and one bulk executor.

    Each operation is stateless and sequential; separate calls share nothing
    beyond the executors and settings passed in here.
    """

    def __init__(
        self,
        *,
        query_executor: QueryExecutor | None = None,
        bulk_executor: BulkExecutor | None = None,
        settings: EngineSettings | None = None,
        environ: Mapping[str, str] = os.environ,
    ) -> None:
        self._settings = settings or EngineSettings()
        self._environ = environ
        self._executors: tuple[object, ...] = tuple(e for e in (query_executor, bulk_executor) if e is not None)
        self._paginator = Paginator(query_executor, settings=self._settings) if query_executor is not None else None
        self._writer = ChunkedWriter(bulk_executor, settings=self._settings) if bulk_executor is not None else None
        self._reader = RetryingReader(bulk_executor, settings=self._settings) if bulk_executor is not None else None

    @classmethod
    def from_environment(
        cls,
        environ: Mapping[str, str] = os.environ,
        *,
        client: Any | None = None,
        http_client: httpx.Client | None = None,
    ) -> BatchEngine:
        from .dynamodb import DynamoDBBulkExecutor, DynamoDBQueryExecutor
        from .graphql import GraphQLQueryExecutor
        from .runtime import get_dynamodb_client

        settings = EngineSettings.from_env(environ)
        ddb = client or get_dynamodb_client(region=resolve_region(environ), environ=environ)

        graphql_url = (environ.get(GRAPHQL_URL_ENV) or "").strip()
        query_executor: QueryExecutor
        if graphql_url:
            logger.info("using graphql query executor at %s", graphql_url)
            query_executor = GraphQLQueryExecutor(graphql_url, client=http_client)
        else:
            query_executor = DynamoDBQueryExecutor(client=ddb)

        return cls(
            query_executor=query_executor,
            bulk_executor=DynamoDBBulkExecutor(client=ddb),
            settings=settings,
            environ=environ,
        )

    def close(self) -> None:
        """Close every executor that holds a closable resource."""
        for executor in self._executors:
            close = getattr(executor, "close", None)
            if callable(close):
                close()

    def __enter__(self) -> BatchEngine:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    def table(self, name: str) -> str:
        return resolve_table_name(name, self._environ)

    def fetch_all(self, descriptor: QueryDescriptor, page_size: int | None = None) -> AccumulatedResult[Any]:
        if self._paginator is None:
            raise ConfigurationError("no query executor configured")
        return self._paginator.fetch_all(descriptor, page_size)

    def write_all(self, target: str, items: Sequence[Item]) -> None:
        if self._writer is None:
            raise ConfigurationError("no bulk executor configured")
        self._writer.write_all(target, items)

    def delete_all(self, target: str, keys: Sequence[Key]) -> None:
        if self._writer is None:
            raise ConfigurationError("no bulk executor configured")
        self._writer.delete_all(target, keys)

    def read_all(self, target: str, keys: Sequence[Key]) -> list[Item]:
        if self._reader is None:
            raise ConfigurationError("no bulk executor configured")
        return self._reader.read_all(target, keys)

from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .chunking import DEFAULT_PAGE_SIZE, MAX_MUTATION_BATCH, MAX_READ_BATCH, chunked
from .config import EngineSettings, resolve_table_name
from .errors import (
    AwsError,
    ConfigurationError,
    GraphQLError,
    LoopExceededError,
    NotFoundError,
    RequestRejectedError,
    TablebatchError,
    ThrottledError,
    TransportError,
    UnprocessedItemsError,
    ValidationError,
)
from .paginator import Paginator
from .protocols import (
    BulkExecutor,
    BulkReadResult,
    DeleteRequest,
    MutationBatch,
    PutRequest,
    QueryExecutor,
)
from .query import AccumulatedResult, Page, QueryDescriptor
from .reader import RetryingReader
from .writer import ChunkedWriter

if TYPE_CHECKING:
    from .dynamodb import DynamoDBBulkExecutor, DynamoDBQueryExecutor
    from .engine import BatchEngine
    from .graphql import GraphQLQueryExecutor
    from .runtime import CallMetric, get_dynamodb_client, instrument_client, is_lambda_environment


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except Exception:
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name == "BatchEngine":
        from .engine import BatchEngine

        return BatchEngine
    if name in {"DynamoDBBulkExecutor", "DynamoDBQueryExecutor"}:
        from . import dynamodb

        return getattr(dynamodb, name)
    if name == "GraphQLQueryExecutor":
        from .graphql import GraphQLQueryExecutor

        return GraphQLQueryExecutor
    if name in {"CallMetric", "get_dynamodb_client", "instrument_client", "is_lambda_environment"}:
        from . import runtime

        return getattr(runtime, name)
    raise AttributeError(name)


__all__ = [
    "AccumulatedResult",
    "AwsError",
    "BatchEngine",
    "BulkExecutor",
    "BulkReadResult",
    "CallMetric",
    "ChunkedWriter",
    "ConfigurationError",
    "DEFAULT_PAGE_SIZE",
    "DeleteRequest",
    "DynamoDBBulkExecutor",
    "DynamoDBQueryExecutor",
    "EngineSettings",
    "GraphQLError",
    "GraphQLQueryExecutor",
    "LoopExceededError",
    "MAX_MUTATION_BATCH",
    "MAX_READ_BATCH",
    "MutationBatch",
    "NotFoundError",
    "Page",
    "Paginator",
    "PutRequest",
    "QueryDescriptor",
    "QueryExecutor",
    "RequestRejectedError",
    "RetryingReader",
    "TablebatchError",
    "ThrottledError",
    "TransportError",
    "UnprocessedItemsError",
    "ValidationError",
    "__repo_version__",
    "__version__",
    "chunked",
    "get_dynamodb_client",
    "instrument_client",
    "is_lambda_environment",
    "resolve_table_name",
]

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields

from .chunking import DEFAULT_PAGE_SIZE, MAX_MUTATION_BATCH, MAX_READ_BATCH
from .errors import ConfigurationError

API_ID_ENV = "TABLEBATCH_API_ID"
STAGE_ENV = "TABLEBATCH_ENV"
GRAPHQL_URL_ENV = "TABLEBATCH_GRAPHQL_URL"
REGION_ENV = "TABLEBATCH_REGION"

_SETTINGS_ENV = {
    "default_page_size": "TABLEBATCH_PAGE_SIZE",
    "max_mutation_batch": "TABLEBATCH_MAX_MUTATION_BATCH",
    "max_read_batch": "TABLEBATCH_MAX_READ_BATCH",
    "max_pages": "TABLEBATCH_MAX_PAGES",
    "max_read_calls": "TABLEBATCH_MAX_READ_CALLS",
}


def _env_int(environ: Mapping[str, str], name: str) -> int | None:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as err:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from err


@dataclass(frozen=True)
class EngineSettings:
    """Batch sizes and loop limits shared by the paginator, writer and reader.

    ``max_pages`` and ``max_read_calls`` default to ``None``, which keeps the
    loops unbounded: pagination runs until the store stops returning a cursor and
    bulk reads run until no key is left unprocessed.
    """

    default_page_size: int = DEFAULT_PAGE_SIZE
    max_mutation_batch: int = MAX_MUTATION_BATCH
    max_read_batch: int = MAX_READ_BATCH
    max_pages: int | None = None
    max_read_calls: int | None = None

    def __post_init__(self) -> None:
        if self.default_page_size <= 0:
            raise ConfigurationError("default_page_size must be > 0")
        if not 0 < self.max_mutation_batch <= MAX_MUTATION_BATCH:
            raise ConfigurationError(f"max_mutation_batch must be in 1..{MAX_MUTATION_BATCH}")
        if not 0 < self.max_read_batch <= MAX_READ_BATCH:
            raise ConfigurationError(f"max_read_batch must be in 1..{MAX_READ_BATCH}")
        if self.max_pages is not None and self.max_pages <= 0:
            raise ConfigurationError("max_pages must be > 0")
        if self.max_read_calls is not None and self.max_read_calls <= 0:
            raise ConfigurationError("max_read_calls must be > 0")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> EngineSettings:
        overrides: dict[str, int] = {}
        for f in fields(cls):
            value = _env_int(environ, _SETTINGS_ENV[f.name])
            if value is not None:
                overrides[f.name] = value
        return cls(**overrides)


def resolve_table_name(name: str, environ: Mapping[str, str] = os.environ) -> str:
    """Expand a logical table name to ``<name>-<api id>-<env>``.

    Tables generated behind a GraphQL API carry the API id and the deployment
    stage as suffixes; the stage suffix is dropped when it is not configured.
    """
    if not name:
        raise ConfigurationError("table name is required")

    api_id = (environ.get(API_ID_ENV) or "").strip()
    if not api_id:
        raise ConfigurationError(f"environment variable {API_ID_ENV} does not exist")

    stage = (environ.get(STAGE_ENV) or "").strip()
    return f"{name}-{api_id}-{stage}" if stage else f"{name}-{api_id}"


def resolve_region(environ: Mapping[str, str] = os.environ) -> str | None:
    return (environ.get(REGION_ENV) or environ.get("AWS_REGION") or "").strip() or None

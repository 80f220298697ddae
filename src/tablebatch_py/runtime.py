from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, cast

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallMetric:
    service: str
    operation: str
    seconds: float
    ok: bool


def is_lambda_environment(environ: Mapping[str, str] = os.environ) -> bool:
    return bool(
        environ.get("AWS_LAMBDA_FUNCTION_NAME") or "AWS_Lambda" in (environ.get("AWS_EXECUTION_ENV") or "")
    )


def create_boto3_config(
    *,
    connect_timeout: float = 1.0,
    read_timeout: float = 3.0,
    environ: Mapping[str, str] = os.environ,
) -> Config | None:
    # botocore's own retry handler stays in "standard" mode; the batch loops add none.
    if not is_lambda_environment(environ):
        return None
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"mode": "standard"},
    )


class _InstrumentedClient:
    def __init__(self, client: Any, service: str, on_call: Callable[[CallMetric], None]) -> None:
        self._client = client
        self._service = service
        self._on_call = on_call

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._client, name)
        if name.startswith("_") or not callable(attr):
            return attr

        def wrapped(*args: Any, **kwargs: Any) -> Any:
            start = time.monotonic()
            ok = False
            try:
                out = attr(*args, **kwargs)
                ok = True
                return out
            finally:
                metric = CallMetric(
                    service=self._service,
                    operation=name,
                    seconds=time.monotonic() - start,
                    ok=ok,
                )
                logger.debug("%s.%s took %.3fs (ok=%s)", metric.service, metric.operation, metric.seconds, ok)
                self._on_call(metric)

        return wrapped


def instrument_client(client: Any, *, service: str, on_call: Callable[[CallMetric], None]) -> Any:
    return _InstrumentedClient(client, service, on_call)


_dynamodb_clients: dict[tuple[str | None, Any, Any], Any] = {}


def get_dynamodb_client(
    *,
    region: str | None = None,
    session: Any | None = None,
    environ: Mapping[str, str] = os.environ,
    metrics: Callable[[CallMetric], None] | None = None,
) -> Any:
    """Return a DynamoDB client, built once per region, session and metrics hook."""
    cache_key = (region, session, metrics)
    existing = _dynamodb_clients.get(cache_key)
    if existing is not None:
        return existing

    sess = session or boto3.session.Session(region_name=region)
    client = cast(Any, sess).client("dynamodb", region_name=region, config=create_boto3_config(environ=environ))
    if metrics is not None:
        client = instrument_client(client, service="dynamodb", on_call=metrics)

    _dynamodb_clients[cache_key] = client
    return client


def _reset_clients_for_tests() -> None:
    _dynamodb_clients.clear()

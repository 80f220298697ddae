from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from .errors import GraphQLError, ValidationError
from .query import Page, QueryDescriptor

logger = logging.getLogger(__name__)


class GraphQLQueryExecutor:
    """Query executor for a GraphQL endpoint exposing ``items``/``nextToken`` connections.

    The response's first root field is treated as the connection. Request signing
    and headers belong to the injected ``httpx.Client``.
    """

    def __init__(
        self,
        url: str,
        *,
        client: httpx.Client | None = None,
        timeout: float = 10.0,
        cursor_variable: str = "nextToken",
    ) -> None:
        if not url:
            raise ValidationError("url is required")
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)
        self._cursor_variable = cursor_variable

    def close(self) -> None:
        """Close the HTTP client if this executor created it."""
        if self._owns_client:
            self._client.close()

    def run(self, descriptor: QueryDescriptor, variables: Mapping[str, Any]) -> Page[Any]:
        wire_variables = {k: v for k, v in variables.items() if k != "cursor"}
        wire_variables[self._cursor_variable] = variables.get("cursor")

        try:
            response = self._client.post(
                self._url,
                json={"query": descriptor.query, "variables": wire_variables},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as err:
            raise GraphQLError(f"graphql endpoint returned HTTP {err.response.status_code}") from err
        except httpx.HTTPError as err:
            raise GraphQLError(f"graphql request failed: {err}") from err
        except ValueError as err:
            raise GraphQLError("graphql response is not JSON") from err

        if not isinstance(body, Mapping):
            raise GraphQLError("graphql response must be an object")

        errors = body.get("errors") or []
        if errors:
            messages = tuple(str(e.get("message", e)) if isinstance(e, Mapping) else str(e) for e in errors)
            raise GraphQLError(f"graphql errors: {'; '.join(messages)}", errors=messages)

        data = body.get("data")
        if not isinstance(data, Mapping) or not data:
            raise GraphQLError("graphql response has no data")

        root_field = next(iter(data))
        connection = data[root_field]
        if not isinstance(connection, Mapping) or not isinstance(connection.get("items"), list):
            raise GraphQLError(f"graphql field {root_field!r} is not an items connection")

        next_token = connection.get("nextToken")
        logger.debug("graphql %s: %d item(s), more=%s", root_field, len(connection["items"]), next_token is not None)
        return Page(
            items=list(connection["items"]),
            next_cursor=next_token if next_token else None,
            metadata={"root_field": root_field, **{k: v for k, v in connection.items() if k != "items"}},
        )

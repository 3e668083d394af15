from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

import boto3
from botocore.exceptions import ClientError

from . import schema
from .attributes import Attributes
from .aws_errors import map_client_error as _map_client_error
from .errors import BatchRetryExceededError, ValidationError
from .model import TableDefinition
from .pagination import decode_items, fetch_page, iter_items
from .query import Page, decode_cursor
from .requests import (
    QueryBuilder,
    Request,
    ScanBuilder,
    build_batch_get_requests,
    build_delete_request,
    build_get_request,
    build_put_request,
    unprocessed_batch_request,
)
from .update_builder import UpdateBuilder

logger = logging.getLogger(__name__)

type Cursor = Attributes | str | None


def batch_backoff_seconds(attempt: int) -> float:
    seconds = 0.05 * (2.0 ** (attempt - 1))
    if seconds > 1.0:
        return 1.0
    return seconds


class BaseTable[T]:
    """Client-agnostic half of a table: builders in, decoded values out.

    Subclasses supply the I/O. Everything here is shared so that the blocking and
    non-blocking tables agree on every request they send and every value they return.
    """

    def __init__(self, definition: TableDefinition[T], client: Any) -> None:
        self._definition = definition
        self._client = client

    @property
    def definition(self) -> TableDefinition[T]:
        return self._definition

    @property
    def client(self) -> Any:
        return self._client

    def _query_builder(self, configure: Callable[[QueryBuilder[T]], Any]) -> QueryBuilder[T]:
        builder = QueryBuilder(self._definition)
        configure(builder)
        builder.build()
        return builder

    def _scan_builder(self, configure: Callable[[ScanBuilder[T]], Any] | None) -> ScanBuilder[T]:
        builder = ScanBuilder(self._definition)
        if configure is not None:
            configure(builder)
        builder.build()
        return builder

    def _update_request(self, configure: Callable[[UpdateBuilder[T]], Any]) -> Request:
        builder = UpdateBuilder(self._definition)
        configure(builder)
        return builder.build()

    def _resolve_cursor(self, cursor: Cursor) -> Attributes | None:
        if cursor is None:
            return None
        if not isinstance(cursor, str):
            return cursor
        if not cursor.strip():
            return None

        try:
            decoded = decode_cursor(cursor)
        except ValueError as err:
            raise ValidationError("invalid cursor") from err
        if decoded.table is not None and decoded.table != self._definition.name:
            raise ValidationError(f"cursor belongs to table {decoded.table}, not {self._definition.name}")
        return decoded.last_key

    def _decode_one(self, item: Attributes | None) -> T | None:
        if not item:
            return None
        decoded = decode_items([item], self._definition.from_item, table_name=self._definition.name)
        return decoded[0] if decoded else None

    def _read_get(self, response: Mapping[str, Any]) -> T | None:
        return self._decode_one(response.get("Item"))

    def _read_update(self, response: Mapping[str, Any]) -> T | None:
        return self._decode_one(response.get("Attributes"))

    def _read_batch(self, response: Mapping[str, Any]) -> list[T]:
        found = (response.get("Responses") or {}).get(self._definition.name) or []
        return decode_items(found, self._definition.from_item, table_name=self._definition.name)

    def _next_batch_round(
        self, response: Mapping[str, Any], rounds: int, max_unprocessed_rounds: int
    ) -> Request | None:
        pending = unprocessed_batch_request(self._definition, response)
        if pending is None:
            return None

        count = len(pending.params["RequestItems"][self._definition.name]["Keys"])
        if rounds >= max_unprocessed_rounds:
            raise BatchRetryExceededError(operation="batch_get", unprocessed_count=count)
        logger.debug("batch_get on %s: %d unprocessed keys, round %d", self._definition.name, count, rounds + 1)
        return pending


class Table[T](BaseTable[T]):
    def __init__(self, definition: TableDefinition[T], *, client: Any | None = None) -> None:
        super().__init__(definition, client or boto3.client("dynamodb"))

    def query(self, configure: Callable[[QueryBuilder[T]], Any]) -> Iterator[T]:
        return iter_items(self._query_builder(configure), self._send)

    def scan(self, configure: Callable[[ScanBuilder[T]], Any] | None = None) -> Iterator[T]:
        return iter_items(self._scan_builder(configure), self._send)

    def query_page(self, configure: Callable[[QueryBuilder[T]], Any], cursor: Cursor = None) -> Page[T]:
        return fetch_page(self._query_builder(configure), self._send, self._resolve_cursor(cursor))

    def scan_page(
        self, configure: Callable[[ScanBuilder[T]], Any] | None = None, cursor: Cursor = None
    ) -> Page[T]:
        return fetch_page(self._scan_builder(configure), self._send, self._resolve_cursor(cursor))

    def put(self, value: T) -> None:
        self._send(build_put_request(self._definition, value))

    def get(self, key: T, *, consistent_read: bool = False) -> T | None:
        request = build_get_request(self._definition, key, consistent_read=consistent_read)
        return self._read_get(self._send(request))

    def batch_get(
        self,
        keys: Iterable[T],
        *,
        consistent_read: bool = False,
        max_unprocessed_rounds: int = 5,
        sleep: Callable[[float], None] | None = time.sleep,
    ) -> list[T]:
        if max_unprocessed_rounds < 0:
            raise ValidationError("max_unprocessed_rounds must be >= 0")

        out: list[T] = []
        for request in build_batch_get_requests(self._definition, keys, consistent_read=consistent_read):
            rounds = 0
            pending: Request | None = request
            while pending is not None:
                response = self._send(pending)
                out.extend(self._read_batch(response))
                pending = self._next_batch_round(response, rounds, max_unprocessed_rounds)
                if pending is not None:
                    rounds += 1
                    if sleep is not None:
                        sleep(batch_backoff_seconds(rounds))
        return out

    def update(self, configure: Callable[[UpdateBuilder[T]], Any]) -> T | None:
        return self._read_update(self._send(self._update_request(configure)))

    def delete(self, key: T) -> None:
        self._send(build_delete_request(self._definition, key))

    def create_table(self, **kwargs: Any) -> None:
        schema.create_table(self._definition, client=self._client, **kwargs)

    def delete_table(self, **kwargs: Any) -> None:
        schema.delete_table(self._definition, client=self._client, **kwargs)

    def recreate_table(self, *, sleep: Callable[[float], None] = time.sleep, **kwargs: Any) -> None:
        self.delete_table(ignore_missing=True, sleep=sleep)
        self.create_table(sleep=sleep, **kwargs)

    def _send(self, request: Request) -> Mapping[str, Any]:
        try:
            return getattr(self._client, request.operation)(**request.kwargs())
        except ClientError as err:
            raise _map_client_error(err) from err

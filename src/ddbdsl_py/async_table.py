from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Mapping
from typing import Any

from botocore.exceptions import ClientError

from . import schema
from .aws_errors import map_client_error as _map_client_error
from .errors import ValidationError
from .model import TableDefinition
from .pagination import afetch_page, aiter_items
from .query import Page
from .requests import (
    QueryBuilder,
    Request,
    ScanBuilder,
    build_batch_get_requests,
    build_delete_request,
    build_get_request,
    build_put_request,
)
from .runtime import ThreadedClient
from .table import BaseTable, Cursor, batch_backoff_seconds
from .update_builder import UpdateBuilder


class AsyncTable[T](BaseTable[T]):
    """Non-blocking counterpart of :class:`~ddbdsl_py.table.Table`.

    ``client`` must expose awaitable DynamoDB methods, e.g. an entered aiobotocore
    client. Use :meth:`from_blocking_client` to drive a boto3 client from a worker
    thread instead.
    """

    def __init__(self, definition: TableDefinition[T], *, client: Any) -> None:
        super().__init__(definition, client)

    @classmethod
    def from_blocking_client(cls, definition: TableDefinition[T], client: Any) -> AsyncTable[T]:
        return cls(definition, client=ThreadedClient(client))

    def query(self, configure: Callable[[QueryBuilder[T]], Any]) -> AsyncIterator[T]:
        return aiter_items(self._query_builder(configure), self._send)

    def scan(self, configure: Callable[[ScanBuilder[T]], Any] | None = None) -> AsyncIterator[T]:
        return aiter_items(self._scan_builder(configure), self._send)

    async def query_page(self, configure: Callable[[QueryBuilder[T]], Any], cursor: Cursor = None) -> Page[T]:
        return await afetch_page(self._query_builder(configure), self._send, self._resolve_cursor(cursor))

    async def scan_page(
        self, configure: Callable[[ScanBuilder[T]], Any] | None = None, cursor: Cursor = None
    ) -> Page[T]:
        return await afetch_page(self._scan_builder(configure), self._send, self._resolve_cursor(cursor))

    async def put(self, value: T) -> None:
        await self._send(build_put_request(self._definition, value))

    async def get(self, key: T, *, consistent_read: bool = False) -> T | None:
        request = build_get_request(self._definition, key, consistent_read=consistent_read)
        return self._read_get(await self._send(request))

    async def batch_get(
        self,
        keys: Iterable[T],
        *,
        consistent_read: bool = False,
        max_unprocessed_rounds: int = 5,
        sleep: Callable[[float], Awaitable[None]] | None = asyncio.sleep,
    ) -> list[T]:
        if max_unprocessed_rounds < 0:
            raise ValidationError("max_unprocessed_rounds must be >= 0")

        out: list[T] = []
        for request in build_batch_get_requests(self._definition, keys, consistent_read=consistent_read):
            rounds = 0
            pending: Request | None = request
            while pending is not None:
                response = await self._send(pending)
                out.extend(self._read_batch(response))
                pending = self._next_batch_round(response, rounds, max_unprocessed_rounds)
                if pending is not None:
                    rounds += 1
                    if sleep is not None:
                        await sleep(batch_backoff_seconds(rounds))
        return out

    async def update(self, configure: Callable[[UpdateBuilder[T]], Any]) -> T | None:
        return self._read_update(await self._send(self._update_request(configure)))

    async def delete(self, key: T) -> None:
        await self._send(build_delete_request(self._definition, key))

    async def create_table(self, **kwargs: Any) -> None:
        await schema.async_create_table(self._definition, client=self._client, **kwargs)

    async def delete_table(self, **kwargs: Any) -> None:
        await schema.async_delete_table(self._definition, client=self._client, **kwargs)

    async def recreate_table(
        self, *, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep, **kwargs: Any
    ) -> None:
        await self.delete_table(ignore_missing=True, sleep=sleep)
        await self.create_table(sleep=sleep, **kwargs)

    async def _send(self, request: Request) -> Mapping[str, Any]:
        try:
            return await getattr(self._client, request.operation)(**request.kwargs())
        except ClientError as err:
            raise _map_client_error(err) from err

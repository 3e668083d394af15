"""Cursor-driven pagination shared by the blocking and non-blocking tables.

:class:`Paginator` holds the whole algorithm and performs no I/O: it hands out the
request for the current cursor and folds each response back into its state. The
drivers below only differ in how they call ``send``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Iterator, Mapping
from typing import Any, Protocol

from .attributes import Attributes
from .errors import ItemDecodeError
from .model import TableDefinition
from .query import Page, encode_cursor
from .requests import Request

logger = logging.getLogger(__name__)

type Send = Callable[[Request], Mapping[str, Any]]
type AsyncSend = Callable[[Request], Awaitable[Mapping[str, Any]]]


class PageBuilder[T](Protocol):
    @property
    def definition(self) -> TableDefinition[Any]: ...

    @property
    def mapper(self) -> Callable[[Attributes], T | None]: ...

    @property
    def strict(self) -> bool: ...

    def build(self, cursor: Attributes | None = None) -> Request: ...


def decode_items[T](
    items: Iterable[Attributes],
    mapper: Callable[[Attributes], T | None],
    *,
    strict: bool = False,
    table_name: str,
) -> list[T]:
    """Run ``mapper`` over raw items, dropping the ones it cannot decode.

    An item is undecodable when the mapper raises or returns ``None``. With
    ``strict`` set the first such item raises :class:`ItemDecodeError` instead.
    """
    out: list[T] = []
    for index, raw in enumerate(items):
        try:
            value = mapper(raw)
        except Exception as err:
            if strict:
                raise ItemDecodeError(table_name=table_name, reason=str(err) or type(err).__name__) from err
            logger.debug("dropped item %d from %s: %s", index, table_name, type(err).__name__)
            continue

        if value is None:
            if strict:
                raise ItemDecodeError(table_name=table_name, reason="mapper returned None")
            logger.debug("dropped item %d from %s: mapper returned None", index, table_name)
            continue
        out.append(value)
    return out


class Paginator[T]:
    def __init__(self, builder: PageBuilder[T], *, cursor: Attributes | None = None) -> None:
        self._builder = builder
        self._cursor: dict[str, Any] = dict(cursor or {})
        self._exhausted = False
        self._pages_fetched = 0

    @property
    def cursor(self) -> dict[str, Any]:
        return dict(self._cursor)

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def pages_fetched(self) -> int:
        return self._pages_fetched

    def next_request(self) -> Request | None:
        if self._exhausted:
            return None
        return self._builder.build(self._cursor or None)

    def receive(self, response: Mapping[str, Any]) -> Page[T]:
        if self._exhausted:
            raise RuntimeError("paginator is exhausted")

        table_name = self._builder.definition.name
        raw_items = response.get("Items") or []
        items = decode_items(raw_items, self._builder.mapper, strict=self._builder.strict, table_name=table_name)
        last_key = dict(response.get("LastEvaluatedKey") or {})

        self._pages_fetched += 1
        self._cursor = last_key
        self._exhausted = not last_key
        logger.debug(
            "page %d from %s: %d items (%d decoded), more=%s",
            self._pages_fetched,
            table_name,
            len(raw_items),
            len(items),
            bool(last_key),
        )

        return Page(
            items=items,
            last_evaluated_key=last_key,
            next_cursor=encode_cursor(last_key, table=table_name) or None,
        )


def iter_items[T](builder: PageBuilder[T], send: Send, *, cursor: Attributes | None = None) -> Iterator[T]:
    paginator = Paginator(builder, cursor=cursor)
    while (request := paginator.next_request()) is not None:
        yield from paginator.receive(send(request)).items


async def aiter_items[T](
    builder: PageBuilder[T], send: AsyncSend, *, cursor: Attributes | None = None
) -> AsyncIterator[T]:
    paginator = Paginator(builder, cursor=cursor)
    while (request := paginator.next_request()) is not None:
        page = paginator.receive(await send(request))
        for item in page.items:
            yield item


def fetch_page[T](builder: PageBuilder[T], send: Send, cursor: Attributes | None = None) -> Page[T]:
    paginator = Paginator(builder, cursor=cursor)
    request = paginator.next_request()
    assert request is not None
    return paginator.receive(send(request))


async def afetch_page[T](
    builder: PageBuilder[T], send: AsyncSend, cursor: Attributes | None = None
) -> Page[T]:
    paginator = Paginator(builder, cursor=cursor)
    request = paginator.next_request()
    assert request is not None
    return paginator.receive(await send(request))

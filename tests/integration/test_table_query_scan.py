from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pytest

from ddbdsl_py import (
    FilterCondition,
    FilterGroup,
    SortKeyCondition,
    Table,
    TableDefinition,
    ValidationError,
    table_field,
)


@dataclass(frozen=True)
class Reading:
    sensor: str = table_field(roles=["pk"])
    ts: int = table_field(roles=["sk"])
    value: int = table_field(default=0)
    status: str = table_field(default="ok")


def _seed(table: Table[Reading]) -> None:
    for ts in range(25):
        table.put(Reading("s1", ts, ts * 10, "bad" if ts % 5 == 0 else "ok"))
    table.put(Reading("s2", 0, 1))


def test_query_paginates_and_filters(dynamodb_client: Any, table_name: str, provisioned: Any) -> None:
    definition = provisioned(TableDefinition.from_dataclass(Reading, name=table_name))
    table: Table[Reading] = Table(definition, client=dynamodb_client)
    _seed(table)

    def s1(q):
        return q.where(lambda k: k.eq("sensor", "s1")).with_consistent_read()

    all_s1 = list(table.query(lambda q: s1(q).limit(4)))
    assert [r.ts for r in all_s1] == list(range(25))

    newest = list(table.query(lambda q: s1(q).descending().sort(SortKeyCondition.between(10, 12))))
    assert [r.ts for r in newest] == [12, 11, 10]

    bad = list(table.query(lambda q: s1(q).limit(3).filter(FilterCondition.eq("status", "bad"))))
    assert [r.ts for r in bad] == [0, 5, 10, 15, 20]

    either = FilterGroup.or_(FilterCondition.lt("value", 20), FilterCondition.gte("value", 230))
    assert [r.ts for r in table.query(lambda q: s1(q).filter(either))] == [0, 1, 23, 24]


def test_page_tokens_resume_query_and_scan(dynamodb_client: Any, table_name: str, provisioned: Any) -> None:
    definition = provisioned(TableDefinition.from_dataclass(Reading, name=table_name))
    table: Table[Reading] = Table(definition, client=dynamodb_client)
    _seed(table)

    def s1(q):
        return q.where(lambda k: k.eq("sensor", "s1")).limit(10)

    seen: list[int] = []
    page = table.query_page(s1)
    seen.extend(r.ts for r in page.items)
    while page.next_cursor:
        page = table.query_page(s1, cursor=page.next_cursor)
        seen.extend(r.ts for r in page.items)
    assert seen == list(range(25))

    scanned = 0
    page = table.scan_page(lambda s: s.limit(7).with_consistent_read())
    scanned += len(page.items)
    while page.next_cursor:
        page = table.scan_page(lambda s: s.limit(7).with_consistent_read(), cursor=page.next_cursor)
        scanned += len(page.items)
    assert scanned == 26


def test_parallel_scan_segments_cover_table(dynamodb_client: Any, table_name: str, provisioned: Any) -> None:
    definition = provisioned(TableDefinition.from_dataclass(Reading, name=table_name))
    table: Table[Reading] = Table(definition, client=dynamodb_client)
    _seed(table)

    total = 0
    for i in range(3):
        total += len(list(table.scan(lambda s, i=i: s.segment(i, 3).with_consistent_read())))
    assert total == 26


def test_raw_key_condition(dynamodb_client: Any, table_name: str, provisioned: Any) -> None:
    definition = provisioned(TableDefinition.from_dataclass(Reading, name=table_name))
    table: Table[Reading] = Table(definition, client=dynamodb_client)
    _seed(table)

    got = table.query(
        lambda q: q.key_condition(
            "#s = :s AND #t >= :t", names={"#s": "sensor", "#t": "ts"}, values={":s": "s1", ":t": 22}
        )
    )
    assert [r.ts for r in got] == [22, 23, 24]


def test_query_on_hash_only_table_rejects_sort_condition(dynamodb_client: Any, table_name: str) -> None:
    table = Table(TableDefinition.of_dicts(table_name, "id"), client=dynamodb_client)
    with pytest.raises(ValidationError, match="does not define a sort key"):
        table.query(lambda q: q.where(lambda k: k.eq("id", "x")).sort(SortKeyCondition.eq("y")))

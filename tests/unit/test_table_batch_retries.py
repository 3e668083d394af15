from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pytest

from ddbdsl_py import BatchRetryExceededError, Table, TableDefinition, ValidationError, table_field
from ddbdsl_py.table import batch_backoff_seconds
from ddbdsl_py.testkit import no_sleep


@dataclass(frozen=True)
class Note:
    pk: str = table_field(roles=["pk"])
    sk: str = table_field(roles=["sk"])
    value: int = table_field(default=0)


NOTES = TableDefinition.from_dataclass(Note, name="tbl")


class _StubBatchClient:
    def __init__(self, *, items: list[Note], unprocessed_rounds: int = 1) -> None:
        self._items = items
        self._unprocessed_rounds = unprocessed_rounds
        self.batch_get_calls = 0
        self.requested: list[list[dict[str, Any]]] = []

    def batch_get_item(self, *, RequestItems):  # noqa: N803
        self.batch_get_calls += 1
        keys = RequestItems["tbl"]["Keys"]
        self.requested.append(keys)
        if self.batch_get_calls <= self._unprocessed_rounds:
            return {"Responses": {"tbl": []}, "UnprocessedKeys": RequestItems}

        found = [NOTES.to_item(i) for i in self._items if NOTES.key_of(i) in keys]
        return {"Responses": {"tbl": found}, "UnprocessedKeys": {}}


class _AlwaysUnprocessedClient:
    def __init__(self) -> None:
        self.batch_get_calls = 0

    def batch_get_item(self, *, RequestItems):  # noqa: N803
        self.batch_get_calls += 1
        return {"Responses": {"tbl": []}, "UnprocessedKeys": RequestItems}


def test_batch_get_retries_unprocessed_keys() -> None:
    expected = [Note(pk="A", sk="1", value=1), Note(pk="B", sk="2", value=2)]
    stub = _StubBatchClient(items=expected)
    table: Table[Note] = Table(NOTES, client=stub)

    got = table.batch_get([Note("A", "1"), Note("B", "2")], sleep=no_sleep)
    assert set(got) == set(expected)
    assert stub.batch_get_calls == 2
    assert stub.requested[0] == stub.requested[1]


def test_batch_get_omits_missing_keys() -> None:
    stub = _StubBatchClient(items=[Note("A", "1", 1)], unprocessed_rounds=0)
    table: Table[Note] = Table(NOTES, client=stub)

    assert table.batch_get([Note("A", "1"), Note("Z", "9")], sleep=no_sleep) == [Note("A", "1", 1)]


def test_batch_get_deduplicates_keys() -> None:
    stub = _StubBatchClient(items=[Note("A", "1", 1)], unprocessed_rounds=0)
    table: Table[Note] = Table(NOTES, client=stub)

    assert table.batch_get([Note("A", "1"), Note("A", "1", 5)], sleep=no_sleep) == [Note("A", "1", 1)]
    assert len(stub.requested[0]) == 1


def test_batch_get_empty_keys_sends_nothing() -> None:
    stub = _StubBatchClient(items=[])
    table: Table[Note] = Table(NOTES, client=stub)

    assert table.batch_get([]) == []
    assert stub.batch_get_calls == 0


def test_batch_get_chunks_large_key_sets() -> None:
    notes = [Note("A", str(i), i) for i in range(130)]
    stub = _StubBatchClient(items=notes, unprocessed_rounds=0)
    table: Table[Note] = Table(NOTES, client=stub)

    got = table.batch_get(notes, sleep=no_sleep)
    assert sorted(n.value for n in got) == list(range(130))
    assert [len(keys) for keys in stub.requested] == [100, 30]


def test_batch_get_retry_limit_exceeded() -> None:
    stub = _AlwaysUnprocessedClient()
    table: Table[Note] = Table(NOTES, client=stub)

    with pytest.raises(BatchRetryExceededError) as exc:
        table.batch_get([Note("A", "1")], max_unprocessed_rounds=2, sleep=no_sleep)
    assert exc.value.operation == "batch_get"
    assert exc.value.unprocessed_count == 1
    assert stub.batch_get_calls == 3


def test_batch_get_zero_rounds_fails_on_first_unprocessed_response() -> None:
    stub = _AlwaysUnprocessedClient()
    table: Table[Note] = Table(NOTES, client=stub)

    with pytest.raises(BatchRetryExceededError):
        table.batch_get([Note("A", "1")], max_unprocessed_rounds=0, sleep=no_sleep)
    assert stub.batch_get_calls == 1


def test_batch_get_rejects_negative_rounds() -> None:
    table: Table[Note] = Table(NOTES, client=_AlwaysUnprocessedClient())
    with pytest.raises(ValidationError, match="max_unprocessed_rounds"):
        table.batch_get([Note("A", "1")], max_unprocessed_rounds=-1)


def test_batch_get_sleeps_with_capped_backoff() -> None:
    slept: list[float] = []
    table: Table[Note] = Table(NOTES, client=_StubBatchClient(items=[], unprocessed_rounds=3))

    table.batch_get([Note("A", "1")], sleep=slept.append)
    assert slept == [0.05, 0.1, 0.2]
    assert batch_backoff_seconds(10) == 1.0

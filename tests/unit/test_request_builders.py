from __future__ import annotations

import pytest

from ddbdsl_py import QueryBuilder, Request, ScanBuilder, TableDefinition, ValidationError
from ddbdsl_py.query import FilterCondition
from ddbdsl_py.requests import (
    build_batch_get_requests,
    build_delete_request,
    build_get_request,
    build_put_request,
    unprocessed_batch_request,
)

USERS = TableDefinition.of_dicts("users", "userId")
SCORES = TableDefinition.of_dicts("scores", "userId", "game")


def test_query_build_compiles_key_condition() -> None:
    request = QueryBuilder(SCORES).where(lambda k: k.eq("userId", "a").eq("game", "chess")).build()

    assert request.operation == "query"
    assert dict(request.params) == {
        "TableName": "scores",
        "KeyConditionExpression": "#k0 = :k0 AND #k1 = :k1",
        "ExpressionAttributeNames": {"#k0": "userId", "#k1": "game"},
        "ExpressionAttributeValues": {":k0": {"S": "a"}, ":k1": {"S": "chess"}},
        "ScanIndexForward": True,
        "ConsistentRead": False,
    }


def test_query_where_uses_last_value_for_repeated_attribute() -> None:
    request = QueryBuilder(USERS).where(lambda k: k.eq("userId", "a").eq("userId", "b")).build()
    assert request.params["KeyConditionExpression"] == "#k0 = :k0"
    assert request.params["ExpressionAttributeValues"] == {":k0": {"S": "b"}}


def test_build_is_pure_and_repeatable() -> None:
    builder = QueryBuilder(USERS).where(lambda k: k.eq("userId", "a")).limit(10)
    cursor = {"userId": {"S": "a"}, "ts": {"N": "5"}}

    assert builder.build(cursor) == builder.build(cursor)
    assert builder.build() == builder.build()
    assert "ExclusiveStartKey" not in builder.build().params
    assert builder.build(cursor).params["ExclusiveStartKey"] == cursor


def test_empty_cursor_is_treated_as_absent() -> None:
    builder = ScanBuilder(USERS)
    assert builder.build({}) == builder.build()
    assert "ExclusiveStartKey" not in builder.build({}).params


def test_request_params_are_frozen_copies() -> None:
    cursor = {"userId": {"S": "a"}}
    request = ScanBuilder(USERS).build(cursor)
    cursor["userId"]["S"] = "mutated"

    assert request.params["ExclusiveStartKey"] == {"userId": {"S": "a"}}
    with pytest.raises(TypeError):
        request.params["TableName"] = "other"  # type: ignore[index]

    kwargs = request.kwargs()
    kwargs["ExclusiveStartKey"]["userId"]["S"] = "changed"
    assert request.kwargs()["ExclusiveStartKey"] == {"userId": {"S": "a"}}


def test_request_equality_and_repr() -> None:
    assert Request("scan", {"TableName": "t"}) == Request("scan", {"TableName": "t"})
    assert Request("scan", {"TableName": "t"}) != Request("query", {"TableName": "t"})
    assert Request("scan", {}) != "scan"
    assert "scan" in repr(Request("scan", {}))


def test_query_options() -> None:
    request = (
        QueryBuilder(USERS)
        .where(lambda k: k.eq("userId", "a"))
        .with_consistent_read()
        .descending()
        .limit(25)
        .build()
    )
    assert request.params["ConsistentRead"] is True
    assert request.params["ScanIndexForward"] is False
    assert request.params["Limit"] == 25


def test_query_without_key_condition_is_rejected() -> None:
    with pytest.raises(ValidationError, match="requires a key condition"):
        QueryBuilder(USERS).build()


def test_query_raw_key_condition() -> None:
    request = (
        QueryBuilder(SCORES)
        .key_condition(
            "#u = :u AND begins_with(#g, :g)",
            values={":u": "a", ":g": "ch"},
            names={"#u": "userId", "#g": "game"},
        )
        .build()
    )
    assert request.params["KeyConditionExpression"] == "#u = :u AND begins_with(#g, :g)"
    assert request.params["ExpressionAttributeNames"] == {"#u": "userId", "#g": "game"}
    assert request.params["ExpressionAttributeValues"] == {":u": {"S": "a"}, ":g": {"S": "ch"}}


def test_query_raw_key_condition_cannot_mix_with_where() -> None:
    builder = QueryBuilder(USERS).where(lambda k: k.eq("userId", "a")).key_condition("#u = :u")
    with pytest.raises(ValidationError, match="cannot be combined"):
        builder.build()


def test_limit_must_be_positive() -> None:
    with pytest.raises(ValidationError, match="limit must be > 0"):
        ScanBuilder(USERS).limit(0)


def test_scan_build_defaults_and_segment() -> None:
    assert dict(ScanBuilder(USERS).build().params) == {"TableName": "users", "ConsistentRead": False}

    request = ScanBuilder(USERS).segment(1, 4).filter(FilterCondition.exists("score")).build()
    assert request.params["Segment"] == 1
    assert request.params["TotalSegments"] == 4
    assert request.params["FilterExpression"] == "attribute_exists(#f1)"
    assert "ExpressionAttributeValues" not in request.params


@pytest.mark.parametrize(("segment", "total"), [(-1, 2), (2, 2), (0, 0)])
def test_scan_segment_validation(segment: int, total: int) -> None:
    with pytest.raises(ValidationError, match="invalid segment"):
        ScanBuilder(USERS).segment(segment, total)


def test_builder_exposes_mapper_and_strict_flag() -> None:
    builder = ScanBuilder(USERS)
    assert builder.definition is USERS
    assert builder.mapper == USERS.from_item
    assert builder.strict is False

    def mapper(item: object) -> str:
        return "x"

    builder.mapping_items(mapper).strict_decoding()
    assert builder.mapper is mapper
    assert builder.strict is True


def test_get_put_delete_requests() -> None:
    value = {"userId": "a", "game": "chess", "score": 10}

    assert build_get_request(SCORES, value) == Request(
        "get_item",
        {"TableName": "scores", "Key": {"userId": {"S": "a"}, "game": {"S": "chess"}}, "ConsistentRead": False},
    )
    assert build_get_request(SCORES, value, consistent_read=True).params["ConsistentRead"] is True
    assert build_put_request(SCORES, value).params["Item"] == {
        "userId": {"S": "a"},
        "game": {"S": "chess"},
        "score": {"N": "10"},
    }
    assert build_delete_request(SCORES, value) == Request(
        "delete_item", {"TableName": "scores", "Key": {"userId": {"S": "a"}, "game": {"S": "chess"}}}
    )


def test_put_request_requires_key_attributes() -> None:
    with pytest.raises(ValidationError, match="missing key attribute: game"):
        build_put_request(SCORES, {"userId": "a"})


def test_batch_get_requests_deduplicate_and_chunk() -> None:
    keys = [{"userId": f"u{i}", "extra": i} for i in range(150)]
    keys += [{"userId": "u0", "extra": "ignored"}]

    requests = build_batch_get_requests(USERS, keys)

    assert [r.operation for r in requests] == ["batch_get_item", "batch_get_item"]
    first = requests[0].params["RequestItems"]["users"]
    second = requests[1].params["RequestItems"]["users"]
    assert len(first["Keys"]) == 100
    assert len(second["Keys"]) == 50
    assert first["Keys"][0] == {"userId": {"S": "u0"}}
    assert first["ConsistentRead"] is False


def test_batch_get_requests_empty_keys() -> None:
    assert build_batch_get_requests(USERS, []) == []


def test_unprocessed_batch_request() -> None:
    pending = {"Keys": [{"userId": {"S": "b"}}], "ConsistentRead": True}

    request = unprocessed_batch_request(USERS, {"UnprocessedKeys": {"users": pending}})
    assert request == Request("batch_get_item", {"RequestItems": {"users": pending}})

    assert unprocessed_batch_request(USERS, {}) is None
    assert unprocessed_batch_request(USERS, {"UnprocessedKeys": {"users": {"Keys": []}}}) is None

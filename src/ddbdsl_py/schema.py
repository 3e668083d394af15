from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import boto3
from botocore.exceptions import ClientError

from .aws_errors import error_code
from .aws_errors import map_client_error as _map_client_error
from .errors import ValidationError
from .model import TableDefinition

logger = logging.getLogger(__name__)

type BillingMode = str  # "PAY_PER_REQUEST" | "PROVISIONED"


def build_create_table_request(
    definition: TableDefinition[Any],
    *,
    billing_mode: BillingMode = "PAY_PER_REQUEST",
    provisioned_throughput: dict[str, int] | None = None,
) -> dict[str, Any]:
    billing_mode = (billing_mode or "PAY_PER_REQUEST").strip() or "PAY_PER_REQUEST"
    if billing_mode not in {"PAY_PER_REQUEST", "PROVISIONED"}:
        raise ValidationError(f"unsupported billing_mode: {billing_mode}")
    if billing_mode == "PROVISIONED" and provisioned_throughput is None:
        raise ValidationError("provisioned_throughput is required when billing_mode=PROVISIONED")

    key_schema = [
        {"AttributeName": key.name, "KeyType": key_type}
        for key, key_type in zip(definition.key_attributes, ("HASH", "RANGE"), strict=False)
    ]
    attribute_definitions = [
        {"AttributeName": key.name, "AttributeType": str(key.type)} for key in definition.key_attributes
    ]

    req: dict[str, Any] = {
        "TableName": definition.name,
        "BillingMode": billing_mode,
        "KeySchema": key_schema,
        "AttributeDefinitions": attribute_definitions,
    }
    if billing_mode == "PROVISIONED" and provisioned_throughput is not None:
        req["ProvisionedThroughput"] = dict(provisioned_throughput)
    return req


def create_table(
    definition: TableDefinition[Any],
    *,
    client: Any | None = None,
    billing_mode: BillingMode = "PAY_PER_REQUEST",
    provisioned_throughput: dict[str, int] | None = None,
    wait_for_active: bool = True,
    wait_timeout_seconds: float = 300.0,
    poll_interval_seconds: float = 0.25,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    if client is None:
        client = boto3.client("dynamodb")

    req = build_create_table_request(
        definition, billing_mode=billing_mode, provisioned_throughput=provisioned_throughput
    )

    try:
        client.create_table(**req)
    except ClientError as err:
        if error_code(err) != "ResourceInUseException":
            raise _map_client_error(err) from err
        logger.debug("table %s already exists", definition.name)

    if wait_for_active:
        _wait_for_table_active(
            client,
            definition.name,
            timeout_seconds=wait_timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
            sleep=sleep,
        )


def ensure_table(
    definition: TableDefinition[Any],
    *,
    client: Any | None = None,
    billing_mode: BillingMode = "PAY_PER_REQUEST",
    provisioned_throughput: dict[str, int] | None = None,
    wait_timeout_seconds: float = 300.0,
    poll_interval_seconds: float = 0.25,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    if client is None:
        client = boto3.client("dynamodb")

    try:
        client.describe_table(TableName=definition.name)
    except ClientError as err:
        if error_code(err) != "ResourceNotFoundException":
            raise _map_client_error(err) from err
        create_table(
            definition,
            client=client,
            billing_mode=billing_mode,
            provisioned_throughput=provisioned_throughput,
            wait_timeout_seconds=wait_timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
            sleep=sleep,
        )
        return

    _wait_for_table_active(
        client,
        definition.name,
        timeout_seconds=wait_timeout_seconds,
        poll_interval_seconds=poll_interval_seconds,
        sleep=sleep,
    )


def delete_table(
    definition: TableDefinition[Any],
    *,
    client: Any | None = None,
    wait_for_delete: bool = True,
    wait_timeout_seconds: float = 300.0,
    poll_interval_seconds: float = 0.25,
    ignore_missing: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    if client is None:
        client = boto3.client("dynamodb")

    try:
        client.delete_table(TableName=definition.name)
    except ClientError as err:
        if ignore_missing and error_code(err) == "ResourceNotFoundException":
            return
        raise _map_client_error(err) from err

    if wait_for_delete:
        _wait_for_table_deleted(
            client,
            definition.name,
            timeout_seconds=wait_timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
            sleep=sleep,
        )


def describe_table(definition: TableDefinition[Any], *, client: Any | None = None) -> dict[str, Any]:
    if client is None:
        client = boto3.client("dynamodb")

    try:
        return dict(client.describe_table(TableName=definition.name))
    except ClientError as err:
        raise _map_client_error(err) from err


def _table_status(resp: Any) -> str:
    return str((resp or {}).get("Table", {}).get("TableStatus", ""))


def _wait_for_table_active(
    client: Any,
    table_name: str,
    *,
    timeout_seconds: float,
    poll_interval_seconds: float,
    sleep: Callable[[float], None],
) -> None:
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        try:
            resp = client.describe_table(TableName=table_name)
        except ClientError as err:
            if error_code(err) != "ResourceNotFoundException":
                raise _map_client_error(err) from err
            resp = {}

        if _table_status(resp) == "ACTIVE":
            return
        sleep(poll_interval_seconds)

    raise ValidationError(f"timed out waiting for table ACTIVE: {table_name}")


def _wait_for_table_deleted(
    client: Any,
    table_name: str,
    *,
    timeout_seconds: float,
    poll_interval_seconds: float,
    sleep: Callable[[float], None],
) -> None:
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        try:
            client.describe_table(TableName=table_name)
        except ClientError as err:
            if error_code(err) == "ResourceNotFoundException":
                return
            raise _map_client_error(err) from err
        sleep(poll_interval_seconds)

    raise ValidationError(f"timed out waiting for table deletion: {table_name}")


async def async_create_table(
    definition: TableDefinition[Any],
    *,
    client: Any,
    billing_mode: BillingMode = "PAY_PER_REQUEST",
    provisioned_throughput: dict[str, int] | None = None,
    wait_for_active: bool = True,
    wait_timeout_seconds: float = 300.0,
    poll_interval_seconds: float = 0.25,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    req = build_create_table_request(
        definition, billing_mode=billing_mode, provisioned_throughput=provisioned_throughput
    )

    try:
        await client.create_table(**req)
    except ClientError as err:
        if error_code(err) != "ResourceInUseException":
            raise _map_client_error(err) from err
        logger.debug("table %s already exists", definition.name)

    if not wait_for_active:
        return

    deadline = time.monotonic() + wait_timeout_seconds
    while time.monotonic() < deadline:
        try:
            resp = await client.describe_table(TableName=definition.name)
        except ClientError as err:
            if error_code(err) != "ResourceNotFoundException":
                raise _map_client_error(err) from err
            resp = {}

        if _table_status(resp) == "ACTIVE":
            return
        await sleep(poll_interval_seconds)

    raise ValidationError(f"timed out waiting for table ACTIVE: {definition.name}")


async def async_delete_table(
    definition: TableDefinition[Any],
    *,
    client: Any,
    wait_for_delete: bool = True,
    wait_timeout_seconds: float = 300.0,
    poll_interval_seconds: float = 0.25,
    ignore_missing: bool = False,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    try:
        await client.delete_table(TableName=definition.name)
    except ClientError as err:
        if ignore_missing and error_code(err) == "ResourceNotFoundException":
            return
        raise _map_client_error(err) from err

    if not wait_for_delete:
        return

    deadline = time.monotonic() + wait_timeout_seconds
    while time.monotonic() < deadline:
        try:
            await client.describe_table(TableName=definition.name)
        except ClientError as err:
            if error_code(err) == "ResourceNotFoundException":
                return
            raise _map_client_error(err) from err
        await sleep(poll_interval_seconds)

    raise ValidationError(f"timed out waiting for table deletion: {definition.name}")

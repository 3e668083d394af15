from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .attributes import AttributeType, from_attribute_value, from_item, to_attribute_value, to_item
from .errors import (
    AwsError,
    BatchRetryExceededError,
    ConditionFailedError,
    DdbdslPyError,
    ItemDecodeError,
    NotFoundError,
    ValidationError,
)
from .key_condition import KeyCondition
from .model import (
    AttributeConverter,
    KeyAttribute,
    TableDefinition,
    TableDefinitionError,
    table_field,
)
from .query import FilterCondition, FilterGroup, Page, SortKeyCondition, decode_cursor, encode_cursor
from .requests import QueryBuilder, Request, ScanBuilder
from .update_builder import UpdateBuilder

if TYPE_CHECKING:
    from .async_table import AsyncTable
    from .pagination import Paginator, afetch_page, aiter_items, fetch_page, iter_items
    from .runtime import (
        ClientSettings,
        ThreadedClient,
        create_async_dynamodb_client,
        create_boto3_config,
        create_dynamodb_client,
    )
    from .schema import build_create_table_request, create_table, delete_table, describe_table, ensure_table
    from .table import Table


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except Exception:
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name == "Table":
        from .table import Table

        return Table
    if name == "AsyncTable":
        from .async_table import AsyncTable

        return AsyncTable
    if name in {"Paginator", "afetch_page", "aiter_items", "fetch_page", "iter_items"}:
        from . import pagination

        return getattr(pagination, name)
    if name in {
        "build_create_table_request",
        "create_table",
        "delete_table",
        "describe_table",
        "ensure_table",
    }:
        from . import schema

        return getattr(schema, name)
    if name in {
        "ClientSettings",
        "ThreadedClient",
        "create_async_dynamodb_client",
        "create_boto3_config",
        "create_dynamodb_client",
    }:
        from . import runtime

        return getattr(runtime, name)
    raise AttributeError(name)


__all__ = [
    "AsyncTable",
    "AttributeConverter",
    "AttributeType",
    "AwsError",
    "BatchRetryExceededError",
    "ClientSettings",
    "ConditionFailedError",
    "DdbdslPyError",
    "FilterCondition",
    "FilterGroup",
    "ItemDecodeError",
    "KeyAttribute",
    "KeyCondition",
    "NotFoundError",
    "Page",
    "Paginator",
    "QueryBuilder",
    "Request",
    "ScanBuilder",
    "SortKeyCondition",
    "Table",
    "TableDefinition",
    "TableDefinitionError",
    "ThreadedClient",
    "UpdateBuilder",
    "ValidationError",
    "__repo_version__",
    "__version__",
    "afetch_page",
    "aiter_items",
    "build_create_table_request",
    "create_async_dynamodb_client",
    "create_boto3_config",
    "create_dynamodb_client",
    "create_table",
    "decode_cursor",
    "delete_table",
    "describe_table",
    "encode_cursor",
    "ensure_table",
    "fetch_page",
    "from_attribute_value",
    "from_item",
    "iter_items",
    "table_field",
    "to_attribute_value",
    "to_item",
]

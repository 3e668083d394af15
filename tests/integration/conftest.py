from __future__ import annotations

import os
import uuid
from collections.abc import Iterator
from typing import Any

import boto3
import pytest

from ddbdsl_py import ClientSettings, create_dynamodb_client
from ddbdsl_py.schema import create_table, delete_table


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if os.environ.get("DYNAMODB_ENDPOINT"):
        return
    skip = pytest.mark.skip(reason="DYNAMODB_ENDPOINT is not set")
    here = os.path.dirname(__file__)
    for item in items:
        if str(item.path).startswith(here):
            item.add_marker(skip)


def _local_settings() -> ClientSettings:
    return ClientSettings(
        region=os.environ.get("AWS_REGION", "us-east-1"),
        endpoint_url=os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000"),
    )


@pytest.fixture()
def dynamodb_client() -> Any:
    session = boto3.session.Session(
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
    )
    return create_dynamodb_client(_local_settings(), session=session)


@pytest.fixture()
def table_name() -> str:
    return f"ddbdsl_py_{uuid.uuid4().hex[:12]}"


@pytest.fixture()
def provisioned(dynamodb_client: Any) -> Iterator[Any]:
    created: list[Any] = []

    def provision(definition: Any) -> Any:
        create_table(definition, client=dynamodb_client)
        created.append(definition)
        return definition

    yield provision

    for definition in created:
        delete_table(definition, client=dynamodb_client, ignore_missing=True)


@pytest.fixture()
def local_settings() -> ClientSettings:
    return _local_settings()

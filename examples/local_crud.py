from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass

import boto3

from ddbdsl_py import (
    ClientSettings,
    SortKeyCondition,
    Table,
    TableDefinition,
    create_dynamodb_client,
    table_field,
)


@dataclass(frozen=True)
class Note:
    pk: str = table_field(roles=["pk"])
    sk: str = table_field(roles=["sk"])
    value: int = table_field(default=0)


def _client():
    session = boto3.session.Session(
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    )
    settings = ClientSettings.from_env()
    if settings.endpoint_url is None:
        settings = ClientSettings(region=settings.region or "us-east-1", endpoint_url="http://localhost:8000")
    return create_dynamodb_client(settings, session=session)


def main() -> None:
    logging.basicConfig(level=logging.DEBUG if os.environ.get("DEBUG") else logging.INFO)
    logging.getLogger("botocore").setLevel(logging.WARNING)

    definition = TableDefinition.from_dataclass(Note, name=f"ddbdsl_py_example_{uuid.uuid4().hex[:12]}")
    table: Table[Note] = Table(definition, client=_client())
    table.create_table()

    try:
        table.put(Note(pk="A", sk="001", value=1))
        table.put(Note(pk="A", sk="010", value=10))
        table.put(Note(pk="A", sk="100", value=100))

        print("get:", table.get(Note(pk="A", sk="010")))

        prefix = SortKeyCondition.begins_with("0")
        notes = table.query(lambda q: q.where(lambda k: k.eq("pk", "A")).sort(prefix))
        print("query begins_with('0'):", list(notes))

        table.update(lambda u: u.where(lambda k: k.eq("pk", "A").eq("sk", "001")).add("value", 5))
        print("after update:", table.get(Note(pk="A", sk="001"), consistent_read=True))

        print("batch_get:", table.batch_get([Note(pk="A", sk="001"), Note(pk="A", sk="999")]))
    finally:
        table.delete_table(ignore_missing=True)


if __name__ == "__main__":
    main()

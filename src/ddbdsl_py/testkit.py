from __future__ import annotations

from botocore.exceptions import ClientError

from .mocks import ANY, FakeAsyncDynamoDBClient, FakeDynamoDBClient


def no_sleep(_: float) -> None:
    return None


async def async_no_sleep(_: float) -> None:
    return None


def client_error(code: str, message: str = "", *, operation: str = "DynamoDB") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


__all__ = [
    "ANY",
    "FakeAsyncDynamoDBClient",
    "FakeDynamoDBClient",
    "async_no_sleep",
    "client_error",
    "no_sleep",
]

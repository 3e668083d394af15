from __future__ import annotations

import asyncio
import functools
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, cast

import boto3
from aiobotocore.session import get_session
from botocore.config import Config


def create_boto3_config(
    *,
    connect_timeout: float = 1.0,
    read_timeout: float = 3.0,
    max_attempts: int = 3,
) -> Config:
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": max_attempts, "mode": "adaptive"},
    )


@dataclass(frozen=True)
class ClientSettings:
    region: str | None = None
    endpoint_url: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> ClientSettings:
        region = environ.get("AWS_REGION") or environ.get("AWS_DEFAULT_REGION") or None
        endpoint = (environ.get("DYNAMODB_ENDPOINT") or "").strip() or None
        return cls(region=region, endpoint_url=endpoint)

    def client_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if self.region:
            kwargs["region_name"] = self.region
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        return kwargs


def create_dynamodb_client(
    settings: ClientSettings | None = None,
    *,
    config: Config | None = None,
    session: Any | None = None,
) -> Any:
    settings = settings or ClientSettings.from_env()
    sess = session or boto3.session.Session(region_name=settings.region)
    return cast(Any, sess).client("dynamodb", config=config or create_boto3_config(), **settings.client_kwargs())


def create_async_dynamodb_client(
    settings: ClientSettings | None = None,
    *,
    config: Config | None = None,
    session: Any | None = None,
) -> Any:
    """Return an aiobotocore client context manager; enter it with ``async with``."""
    settings = settings or ClientSettings.from_env()
    sess = session or get_session()
    return sess.create_client("dynamodb", config=config or create_boto3_config(), **settings.client_kwargs())


class ThreadedClient:
    """Awaitable view of a blocking client; each call runs on a worker thread."""

    def __init__(self, client: Any) -> None:
        self._client = client

    @property
    def wrapped(self) -> Any:
        return self._client

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._client, name)
        if name.startswith("_") or not callable(attr):
            return attr

        async def wrapped(*args: Any, **kwargs: Any) -> Any:
            return await asyncio.to_thread(functools.partial(attr, *args, **kwargs))

        return wrapped

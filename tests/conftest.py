"""
Shared fixtures for otp_dispatch tests.
"""

from dataclasses import replace
from typing import Any, Dict, List, Optional

import pytest

from otp_dispatch.config import DispatchConfig, ProxyConfig, RequestSettings
from otp_dispatch.models import Failure, FailureReason, Success


class ScriptedTransport:
    """
    Stand-in for ProxyTransport returning queued results.

    The last queued result repeats once the queue is drained.
    """

    def __init__(self, *results):
        self.results = list(results)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def send(
        self,
        method: str,
        url: str,
        *,
        settings: RequestSettings,
        request_id: str,
        content: Optional[str] = None,
        json: Any = None,
    ):
        self.calls.append({
            "method": method,
            "url": url,
            "settings": settings,
            "request_id": request_id,
            "content": content,
            "json": json,
        })
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return replace(result, request_id=request_id)

    async def probe(self, url: str, *, settings: RequestSettings, request_id: str):
        return await self.send("GET", url, settings=settings, request_id=request_id)

    async def aclose(self) -> None:
        self.closed = True


def ok(status: int = 200, body: str = '{"status": "sent"}', content_type: str = "application/json") -> Success:
    return Success(status=status, body=body, duration_ms=5.0, request_id="", content_type=content_type)


def timed_out() -> Failure:
    return Failure(
        reason=FailureReason.TIMEOUT,
        duration_ms=30000.0,
        request_id="",
        message="No response within 30000ms",
        code="ReadTimeout",
    )


@pytest.fixture
def config() -> DispatchConfig:
    return DispatchConfig(proxy=ProxyConfig(host="proxy.internal", port=3128), timeout_ms=5000)


@pytest.fixture
def make_transport():
    return ScriptedTransport


@pytest.fixture
def success_result():
    return ok


@pytest.fixture
def timeout_result():
    return timed_out

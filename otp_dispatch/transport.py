"""
Proxy-Aware Transport
=====================
Single request/response exchange through a forward proxy with a hard
deadline.

Features:
- One pooled httpx.AsyncClient per route (proxy + TLS policy), safe for
  concurrent use by in-flight requests.
- TLS trust toggle and version pinning.
- Redirects are never followed; a 3xx surfaces as a normal response.
- Routing comes from settings only; proxy environment variables are ignored.
- Transport-level failures are returned as ``Failure``, never raised.
"""

import asyncio
import ssl
import time
from typing import Any, Dict, Optional, Tuple

import httpx
import structlog

from .config import RequestSettings, TlsPolicy
from .models import DispatchResult, Failure, FailureReason, Success

logger = structlog.get_logger(__name__)

DEFAULT_LIMITS = httpx.Limits(
    max_connections=10,
    max_keepalive_connections=5,
    keepalive_expiry=5.0,
)

_TLS_VERSION_MAP = {
    "TLSv1": ssl.TLSVersion.TLSv1,
    "TLSv1.1": ssl.TLSVersion.TLSv1_1,
    "TLSv1.2": ssl.TLSVersion.TLSv1_2,
    "TLSv1.3": ssl.TLSVersion.TLSv1_3,
}

RouteKey = Tuple[Optional[str], bool, Optional[str], Optional[str]]


def build_ssl_context(policy: TlsPolicy) -> ssl.SSLContext:
    """Create an SSL context honouring the trust toggle and version pins."""
    context = ssl.create_default_context()
    if not policy.reject_unauthorized:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    if policy.min_version:
        context.minimum_version = _TLS_VERSION_MAP[policy.min_version]
    if policy.max_version:
        context.maximum_version = _TLS_VERSION_MAP[policy.max_version]
    return context


class ProxyTransport:
    """
    Async HTTP transport bound to a forward proxy.

    Example:
        async with ProxyTransport() as transport:
            result = await transport.send("POST", url, json=payload,
                                          settings=settings, request_id=rid)
    """

    def __init__(
        self,
        limits: Optional[httpx.Limits] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            limits: Connection pool sizing, shared by every route
            transport: Custom httpx transport (e.g. ``httpx.MockTransport``).
                When set, requests go to it directly and proxy routing is skipped.
        """
        self._limits = limits or DEFAULT_LIMITS
        self._transport = transport
        self._clients: Dict[RouteKey, httpx.AsyncClient] = {}

    async def __aenter__(self) -> "ProxyTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close every pooled client."""
        clients, self._clients = list(self._clients.values()), {}
        for client in clients:
            await client.aclose()

    @staticmethod
    def _route_key(settings: RequestSettings) -> RouteKey:
        tls = settings.tls
        proxy_url = settings.proxy.url if settings.proxy else None
        return (proxy_url, tls.reject_unauthorized, tls.min_version, tls.max_version)

    def _client_for(self, settings: RequestSettings) -> httpx.AsyncClient:
        key = self._route_key(settings)
        client = self._clients.get(key)
        if client is not None:
            return client

        if not settings.tls.reject_unauthorized:
            logger.warning(
                "tls.verification_disabled",
                proxy=key[0],
                detail="certificate validation is off for this route",
            )

        kwargs: Dict[str, Any] = {
            "limits": self._limits,
            "follow_redirects": False,
            "trust_env": False,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        else:
            kwargs["verify"] = build_ssl_context(settings.tls)
            if settings.proxy is not None:
                kwargs["proxy"] = settings.proxy.url

        client = httpx.AsyncClient(**kwargs)
        self._clients[key] = client
        return client

    async def send(
        self,
        method: str,
        url: str,
        *,
        settings: RequestSettings,
        request_id: str,
        content: Optional[str] = None,
        json: Any = None,
    ) -> DispatchResult:
        """
        Perform one exchange.

        Returns:
            ``Success`` for any HTTP response, ``Failure`` for timeouts and
            network, proxy or TLS errors.
        """
        client = self._client_for(settings)
        route = settings.proxy.url if settings.proxy else "direct"

        logger.info(
            "gateway.request",
            method=method,
            url=url,
            route=route,
            timeout_ms=settings.timeout_ms,
            request_id=request_id,
        )

        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                client.request(
                    method,
                    url,
                    content=content,
                    json=json,
                    headers=settings.headers,
                    timeout=httpx.Timeout(settings.timeout_seconds),
                ),
                timeout=settings.timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            return self._failure(
                FailureReason.TIMEOUT,
                f"No response within {settings.timeout_ms}ms",
                e,
                start,
                request_id,
            )
        except (httpx.HTTPError, OSError) as e:
            return self._failure(
                FailureReason.TRANSPORT_ERROR,
                f"Request failed: {e}",
                e,
                start,
                request_id,
            )

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "gateway.response",
            status=response.status_code,
            duration_ms=round(duration_ms, 1),
            content_type=response.headers.get("content-type"),
            request_id=request_id,
        )
        return Success(
            status=response.status_code,
            body=response.text,
            duration_ms=duration_ms,
            request_id=request_id,
            content_type=response.headers.get("content-type", ""),
        )

    async def probe(self, url: str, *, settings: RequestSettings, request_id: str) -> DispatchResult:
        """Issue a GET through the configured route to check connectivity."""
        return await self.send("GET", url, settings=settings, request_id=request_id)

    @staticmethod
    def _failure(
        reason: FailureReason,
        message: str,
        exc: BaseException,
        start: float,
        request_id: str,
    ) -> Failure:
        duration_ms = (time.perf_counter() - start) * 1000
        logger.warning(
            "gateway.transport_failed",
            reason=reason.value,
            error=type(exc).__name__,
            duration_ms=round(duration_ms, 1),
            request_id=request_id,
        )
        return Failure(
            reason=reason,
            duration_ms=duration_ms,
            request_id=request_id,
            message=message,
            code=type(exc).__name__,
        )

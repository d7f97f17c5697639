"""
JSON OTP Gateway
================
Posts ``{"mobile_no": ..., "otp": ...}`` to a generic HTTP endpoint.
"""

import json
import os
from typing import Any, Dict, Mapping, Optional

import structlog

from ..config import DEFAULT_JSON_GATEWAY_URL, TlsPolicy
from ..exceptions import ResponseParseError
from ..masking import mask_mobile
from ..models import DispatchResult, Success
from ..transport import ProxyTransport
from .base import BaseGateway, DispatchRequest

logger = structlog.get_logger(__name__)


class JsonGateway(BaseGateway):
    """
    JSON gateway adapter.

    Any 2xx is accepted. JSON responses are decoded; other bodies are
    returned as text.
    """

    name = "json"
    code_length = 6

    def __init__(self, url: str = DEFAULT_JSON_GATEWAY_URL, tls: Optional[TlsPolicy] = None):
        """
        Args:
            url: Gateway endpoint
            tls: TLS policy override (e.g. ``TlsPolicy(min_version="TLSv1.2")``)
        """
        self._url = url
        self._tls = tls

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "JsonGateway":
        env = os.environ if environ is None else environ
        return cls(url=env.get("OTP_GATEWAY_URL", DEFAULT_JSON_GATEWAY_URL))

    @property
    def url(self) -> str:
        return self._url

    @property
    def tls(self) -> Optional[TlsPolicy]:
        return self._tls

    @property
    def headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    async def deliver(self, request: DispatchRequest, transport: ProxyTransport) -> DispatchResult:
        logger.debug(
            "json.otp.prepared",
            mobile=mask_mobile(request.mobile_number),
            url=self._url,
            request_id=request.request_id,
        )
        result = await transport.send(
            "POST",
            self._url,
            json={"mobile_no": request.mobile_number, "otp": request.otp},
            settings=request.settings,
            request_id=request.request_id,
        )
        return self._tag(result)

    def decode(self, result: Success) -> Any:
        if not result.body:
            return None
        if "json" not in result.content_type.lower():
            return result.body
        try:
            return json.loads(result.body)
        except ValueError as e:
            raise ResponseParseError(
                "Gateway returned malformed JSON",
                status_code=result.status,
                details=str(e),
            ) from e

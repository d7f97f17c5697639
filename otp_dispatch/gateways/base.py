"""
Gateway Base
============
Capability interface for "deliver one OTP to one phone number".

New gateways are added by subclassing ``BaseGateway``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from ..config import RequestSettings, TlsPolicy
from ..models import DispatchResult, Success
from ..transport import ProxyTransport


@dataclass(frozen=True)
class DispatchRequest:
    """One OTP delivery, fully resolved and validated."""
    mobile_number: str
    otp: str
    settings: RequestSettings
    request_id: str


class BaseGateway(ABC):
    """
    Abstract base class for OTP gateways.

    Subclasses build the outbound request and hand it to the transport.
    The transport's result is returned unchanged apart from ``gateway``.
    """

    name: str = "base"
    code_length: int = 6

    @property
    def url(self) -> str:
        """Endpoint OTPs are posted to."""
        raise NotImplementedError

    @property
    def tls(self) -> Optional[TlsPolicy]:
        """Gateway-specific TLS policy, or None for the dispatcher default."""
        return None

    @property
    def headers(self) -> Dict[str, str]:
        """Headers the gateway requires; caller headers override them."""
        return {}

    @abstractmethod
    async def deliver(self, request: DispatchRequest, transport: ProxyTransport) -> DispatchResult:
        """Send the OTP and return the transport result."""
        ...

    def is_accepted(self, status: int) -> bool:
        """Whether ``status`` means the gateway took the message."""
        return 200 <= status < 300

    def decode(self, result: Success) -> Any:
        """Decode the response payload. Opaque text by default."""
        return result.body

    def _tag(self, result: DispatchResult) -> DispatchResult:
        return replace(result, gateway=self.name)

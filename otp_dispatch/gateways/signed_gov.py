"""
Signed Government SMS Gateway
=============================
Adapter for the legacy government SMS API (DLT OTP service).

Each request carries a SHA-1 hash of the account password and a SHA-512
signing hash over username, sender id, message and secure key. The body is
form encoded.
"""

import hashlib
from typing import Dict, Optional
from urllib.parse import urlencode

import structlog

from ..config import GovGatewayConfig, TlsPolicy
from ..masking import mask_mobile
from ..models import DispatchResult
from ..transport import ProxyTransport
from .base import BaseGateway, DispatchRequest

logger = structlog.get_logger(__name__)

SMS_SERVICE_TYPE = "otpmsg"


def compose_message(otp: str, prefix: str, suffix: str) -> str:
    """Build the human readable SMS text, e.g. "Your OTP is 1234 - Org"."""
    return f"{prefix} {otp} {suffix}"


def encrypt_password(password: str) -> str:
    """
    SHA-1 hex digest of the password encoded as ISO-8859-1.

    Characters outside ISO-8859-1 are hashed as ``?``, as the gateway does.
    """
    return hashlib.sha1(password.encode("iso-8859-1", errors="replace")).hexdigest()


def compute_signing_hash(username: str, sender_id: str, message: str, secure_key: str) -> str:
    """SHA-512 hex digest over the trimmed, concatenated request fields."""
    payload = f"{username.strip()}{sender_id.strip()}{message.strip()}{secure_key.strip()}"
    return hashlib.sha512(payload.encode("utf-8")).hexdigest()


def build_form(mobile_number: str, message: str, config: GovGatewayConfig) -> Dict[str, str]:
    """Request fields in the order the gateway documents them."""
    return {
        "mobileno": mobile_number,
        "senderid": config.sender_id,
        "content": message,
        "smsservicetype": SMS_SERVICE_TYPE,
        "username": config.username,
        "password": encrypt_password(config.password),
        "key": compute_signing_hash(config.username, config.sender_id, message, config.secure_key),
        "templateid": config.template_id,
    }


class SignedGovGateway(BaseGateway):
    """
    Government SMS gateway adapter.

    Only HTTP 200 is accepted; the payload is opaque text. TLS is pinned
    and certificate validation follows ``GovGatewayConfig.tls``.
    """

    name = "gov_sms"
    code_length = 4

    def __init__(self, config: Optional[GovGatewayConfig] = None):
        self.config = config or GovGatewayConfig.from_env()

    @property
    def url(self) -> str:
        return self.config.api_url

    @property
    def tls(self) -> Optional[TlsPolicy]:
        return self.config.tls

    @property
    def headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/x-www-form-urlencoded"}

    async def deliver(self, request: DispatchRequest, transport: ProxyTransport) -> DispatchResult:
        message = compose_message(request.otp, self.config.message_prefix, self.config.message_suffix)
        form = build_form(request.mobile_number, message, self.config)

        logger.debug(
            "gov_sms.request.signed",
            mobile=mask_mobile(request.mobile_number),
            sender_id=self.config.sender_id,
            template_id=self.config.template_id,
            request_id=request.request_id,
        )

        result = await transport.send(
            "POST",
            self.config.api_url,
            content=urlencode(form),
            settings=request.settings,
            request_id=request.request_id,
        )
        return self._tag(result)

    def is_accepted(self, status: int) -> bool:
        return status == 200

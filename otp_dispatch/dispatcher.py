"""
OTP Dispatcher
==============
Validates input, delivers the OTP through a gateway and normalizes the
outcome.

Per-call state machine:
    VALIDATING -> SENDING -> COMPLETED
    VALIDATING -> REJECTED
    SENDING    -> FAILED

``dispatch`` never raises; every failure becomes a ``DispatchResponse``
with ``success=False``.
"""

import time
from typing import Any, Mapping, Optional, Union

import structlog

from .codec import generate_code, generate_correlation_id
from .config import DispatchConfig, DispatchOptions
from .exceptions import (
    DispatchTimeoutError,
    GatewayError,
    InvalidInputError,
    OtpDispatchError,
    TransportError,
)
from .gateways.base import BaseGateway, DispatchRequest
from .masking import mask_code, mask_mobile
from .models import DispatchResponse, DispatchState, FailureReason
from .observability import bound_correlation
from .transport import ProxyTransport

logger = structlog.get_logger(__name__)

MIN_MOBILE_LENGTH = 10

Options = Union[DispatchOptions, Mapping[str, Any], None]


def validate_mobile_number(mobile_number: Any) -> str:
    """
    Check a mobile number before any network call.

    Raises:
        InvalidInputError: If missing or shorter than 10 characters
    """
    if not mobile_number or not isinstance(mobile_number, str):
        raise InvalidInputError("Invalid mobile number: a mobile number is required")
    if len(mobile_number) < MIN_MOBILE_LENGTH:
        raise InvalidInputError(
            f"Invalid mobile number: expected at least {MIN_MOBILE_LENGTH} characters"
        )
    return mobile_number


class OtpDispatcher:
    """
    Dispatch orchestrator for one gateway.

    Example:
        async with OtpDispatcher(JsonGateway(), DispatchConfig.from_env()) as dispatcher:
            response = await dispatcher.dispatch("9876543210")
            if response.success:
                ...
    """

    def __init__(
        self,
        gateway: BaseGateway,
        config: Optional[DispatchConfig] = None,
        transport: Optional[ProxyTransport] = None,
    ):
        self.gateway = gateway
        self.config = config or DispatchConfig.from_env()
        self._owns_transport = transport is None
        self.transport = transport or ProxyTransport()

    async def __aenter__(self) -> "OtpDispatcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_transport:
            await self.transport.aclose()

    def _transition(self, state: DispatchState, request_id: str) -> DispatchState:
        logger.debug("otp.dispatch.state", state=state.value, request_id=request_id)
        return state

    async def dispatch(
        self,
        mobile_number: str,
        otp: Optional[str] = None,
        options: Options = None,
    ) -> DispatchResponse:
        """
        Deliver one OTP.

        Args:
            mobile_number: Recipient, at least 10 characters
            otp: Code to send; generated with the gateway's length when omitted
            options: ``DispatchOptions`` or a mapping of its field names

        Returns:
            Normalized response; ``success`` is True only when the gateway
            accepted the message
        """
        request_id = generate_correlation_id("otp")
        with bound_correlation(request_id=request_id):
            return await self._dispatch(mobile_number, otp, options, request_id)

    async def _dispatch(
        self,
        mobile_number: str,
        otp: Optional[str],
        options: Options,
        request_id: str,
    ) -> DispatchResponse:
        masked_mobile = mask_mobile(mobile_number) if isinstance(mobile_number, str) else "invalid"
        self._transition(DispatchState.VALIDATING, request_id)
        logger.info("otp.dispatch.started", mobile=masked_mobile, gateway=self.gateway.name)

        try:
            validate_mobile_number(mobile_number)
            settings = self.config.resolve(
                DispatchOptions.coerce(options),
                tls=self.gateway.tls,
                headers=self.gateway.headers,
            )
            code = otp or generate_code(self.gateway.code_length)
        except (OtpDispatchError, TypeError, ValueError) as e:
            self._transition(DispatchState.REJECTED, request_id)
            message = e.message if isinstance(e, OtpDispatchError) else f"Invalid options: {e}"
            logger.warning("otp.dispatch.rejected", mobile=masked_mobile, error=message)
            return DispatchResponse(
                success=False,
                message=f"Failed to send OTP: {message}",
                request_id=request_id,
                otp=otp,
                reason=FailureReason.INVALID_INPUT,
                gateway=self.gateway.name,
            )

        logger.debug(
            "otp.dispatch.prepared",
            otp=mask_code(code, reveal=self.config.log_full_code),
            route=settings.proxy.url if settings.proxy else "direct",
            timeout_ms=settings.timeout_ms,
        )

        self._transition(DispatchState.SENDING, request_id)
        request = DispatchRequest(
            mobile_number=mobile_number,
            otp=code,
            settings=settings,
            request_id=request_id,
        )

        start = time.perf_counter()
        status_code = None
        try:
            result = await self.gateway.deliver(request, self.transport)
            if not result.is_success:
                if result.reason is FailureReason.TIMEOUT:
                    raise DispatchTimeoutError(result.message, details=result.code)
                raise TransportError(result.message, reason=result.reason, details=result.code)

            status_code = result.status
            if not self.gateway.is_accepted(result.status):
                raise GatewayError(
                    f"Gateway returned non-success status code {result.status}",
                    status_code=result.status,
                )
            data = self.gateway.decode(result)
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            return self._failed(e, code, masked_mobile, status_code, duration_ms, request_id)

        duration_ms = (time.perf_counter() - start) * 1000
        self._transition(DispatchState.COMPLETED, request_id)
        logger.info(
            "otp.dispatch.completed",
            mobile=masked_mobile,
            otp=mask_code(code, reveal=self.config.log_full_code),
            status=status_code,
            duration_ms=round(duration_ms, 1),
            gateway=self.gateway.name,
        )
        return DispatchResponse(
            success=True,
            message="OTP sent successfully",
            request_id=request_id,
            otp=code,
            status_code=status_code,
            duration_ms=duration_ms,
            gateway=self.gateway.name,
            data=data,
        )

    def _failed(
        self,
        error: Exception,
        code: str,
        masked_mobile: str,
        status_code: Optional[int],
        duration_ms: float,
        request_id: str,
    ) -> DispatchResponse:
        self._transition(DispatchState.FAILED, request_id)
        if isinstance(error, OtpDispatchError):
            reason, message = error.reason, error.message
            logger.warning(
                "otp.dispatch.failed",
                mobile=masked_mobile,
                otp=mask_code(code, reveal=self.config.log_full_code),
                reason=reason.value,
                status=status_code,
                error=message,
                error_type=type(error).__name__,
                duration_ms=round(duration_ms, 1),
                gateway=self.gateway.name,
            )
        else:
            reason, message = FailureReason.TRANSPORT_ERROR, f"Unexpected error: {type(error).__name__}"
            logger.exception(
                "otp.dispatch.failed",
                mobile=masked_mobile,
                reason=reason.value,
                duration_ms=round(duration_ms, 1),
                gateway=self.gateway.name,
            )

        return DispatchResponse(
            success=False,
            message=f"Failed to send OTP: {message}",
            request_id=request_id,
            otp=code,
            reason=reason,
            status_code=status_code,
            duration_ms=duration_ms,
            gateway=self.gateway.name,
        )

    async def check_connectivity(self, url: Optional[str] = None, options: Options = None) -> DispatchResponse:
        """
        Probe the gateway endpoint through the configured route.

        Any HTTP answer counts as reachable, since the endpoint may reject
        a bare GET.
        """
        request_id = generate_correlation_id("probe")
        target = url or self.gateway.url
        settings = self.config.resolve(DispatchOptions.coerce(options), tls=self.gateway.tls)

        with bound_correlation(request_id=request_id):
            result = await self.transport.probe(target, settings=settings, request_id=request_id)

        if result.is_success:
            logger.info("gateway.probe.reachable", url=target, status=result.status)
            return DispatchResponse(
                success=True,
                message=f"Gateway reachable (HTTP {result.status})",
                request_id=request_id,
                status_code=result.status,
                duration_ms=result.duration_ms,
                gateway=self.gateway.name,
            )

        logger.warning("gateway.probe.unreachable", url=target, reason=result.reason.value)
        return DispatchResponse(
            success=False,
            message=f"Gateway unreachable: {result.message}",
            request_id=request_id,
            reason=result.reason,
            duration_ms=result.duration_ms,
            gateway=self.gateway.name,
        )

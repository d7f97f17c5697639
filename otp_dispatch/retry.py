"""
Retry Controller
================
Bounded exponential backoff with jitter around the dispatcher.

Delay before attempt ``k > 1`` is ``2^(k-2) * base_delay + uniform[0, jitter)``,
so with the defaults attempt 2 waits 1.0-1.5s and attempt 3 waits 2.0-2.5s.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    wait_exponential_jitter,
)

from .codec import generate_correlation_id
from .config import DispatchOptions
from .dispatcher import OtpDispatcher
from .masking import mask_mobile
from .models import DispatchResponse, FailureReason, RetryOutcome
from .observability import bound_correlation

logger = structlog.get_logger(__name__)

Options = Union[DispatchOptions, Mapping[str, Any], None]


def _should_retry(response: Optional[DispatchResponse]) -> bool:
    return response is None or (not response.success and response.retryable)


def _with_retry_headers(options: Options, headers: Dict[str, str]) -> Options:
    if isinstance(options, DispatchOptions):
        return options.with_headers(headers)
    merged = dict(options or {})
    merged["headers"] = {**(merged.get("headers") or {}), **headers}
    return merged


class RetryController:
    """
    Retries failed dispatches with exponential backoff.

    ``InvalidInput`` rejections are never retried. Every attempt gets a
    fresh correlation id and ``X-Retry-*`` headers.

    Example:
        controller = RetryController(dispatcher, max_attempts=3)
        outcome = await controller.retry_dispatch("9876543210")
    """

    def __init__(
        self,
        dispatcher: OtpDispatcher,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        jitter: float = 0.5,
        max_delay: float = 60.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            dispatcher: Orchestrator performing each attempt
            max_attempts: Default attempt budget per session
            base_delay: Delay in seconds before the second attempt
            jitter: Upper bound in seconds of the random delay added to each wait
            max_delay: Cap on a single wait in seconds
            sleep: Awaitable used for backoff waits
        """
        self.dispatcher = dispatcher
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.jitter = jitter
        self.max_delay = max_delay
        self._sleep = sleep

    async def retry_dispatch(
        self,
        mobile_number: str,
        options: Options = None,
        max_attempts: Optional[int] = None,
    ) -> RetryOutcome:
        """
        Dispatch an OTP, retrying transport and gateway failures.

        Returns:
            ``RetryOutcome`` with the last response; ``succeeded`` is False
            once the attempt budget is exhausted or input was rejected. A
            budget below 1 is rejected without any attempt.
        """
        budget = self.max_attempts if max_attempts is None else max_attempts
        retry_id = generate_correlation_id("retry")
        if not isinstance(budget, int) or budget < 1:
            return self._rejected_budget(budget, retry_id)

        masked_mobile = mask_mobile(mobile_number) if isinstance(mobile_number, str) else "invalid"
        backoff_ms: List[float] = []
        attempts = 0
        response: Optional[DispatchResponse] = None

        def before_sleep(retry_state: RetryCallState) -> None:
            delay = retry_state.next_action.sleep
            backoff_ms.append(delay * 1000)
            logger.info(
                "otp.retry.backoff",
                attempt=retry_state.attempt_number,
                next_attempt=retry_state.attempt_number + 1,
                delay_ms=round(delay * 1000),
                error=response.message if response else None,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(budget),
            wait=wait_exponential_jitter(
                initial=self.base_delay,
                exp_base=2,
                jitter=self.jitter,
                max=self.max_delay,
            ),
            retry=retry_if_result(_should_retry),
            before_sleep=before_sleep,
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
            sleep=self._sleep,
        )

        start = time.perf_counter()
        with bound_correlation(retry_id=retry_id):
            logger.info("otp.retry.started", mobile=masked_mobile, max_attempts=budget)

            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    logger.info("otp.retry.attempt", attempt=attempts, max_attempts=budget)
                    response = await self.dispatcher.dispatch(
                        mobile_number,
                        None,
                        _with_retry_headers(options, {
                            "X-Retry-Attempt": str(attempts),
                            "X-Retry-Max": str(budget),
                            "X-Retry-ID": f"{retry_id}.{attempts}",
                        }),
                    )
                if not attempt.retry_state.outcome.failed:
                    attempt.retry_state.set_result(response)

            total_ms = (time.perf_counter() - start) * 1000
            outcome = RetryOutcome(
                succeeded=bool(response and response.success),
                attempts=attempts,
                total_duration_ms=total_ms,
                last_result=response,
                retry_id=retry_id,
                backoff_ms=tuple(backoff_ms),
            )

            if outcome.succeeded:
                logger.info("otp.retry.succeeded", attempt=attempts, total_duration_ms=round(total_ms, 1))
            elif not response.retryable:
                logger.warning("otp.retry.aborted", attempt=attempts, reason=response.reason.value)
            else:
                logger.error(
                    "otp.retry.exhausted",
                    mobile=masked_mobile,
                    attempts=attempts,
                    total_duration_ms=round(total_ms, 1),
                    last_error=response.message,
                )

        return outcome

    def _rejected_budget(self, budget: Any, retry_id: str) -> RetryOutcome:
        message = f"max_attempts must be a positive integer, got {budget!r}"
        logger.warning("otp.retry.rejected", retry_id=retry_id, error=message)
        return RetryOutcome(
            succeeded=False,
            attempts=0,
            total_duration_ms=0.0,
            last_result=DispatchResponse(
                success=False,
                message=f"Failed to send OTP: {message}",
                request_id=retry_id,
                reason=FailureReason.INVALID_INPUT,
                gateway=self.dispatcher.gateway.name,
            ),
            retry_id=retry_id,
        )

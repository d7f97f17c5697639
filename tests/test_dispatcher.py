"""
Tests for the dispatch orchestrator
===================================
Validation, option merging and outcome normalization.
"""

import pytest


def json_dispatcher(transport, config):
    from otp_dispatch.dispatcher import OtpDispatcher
    from otp_dispatch.gateways import JsonGateway

    return OtpDispatcher(JsonGateway(url="https://gateway.test/api/sendotp"), config, transport)


class TestValidation:
    """Rejected input never reaches the network."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mobile", ["123", "", None, "987654321"])
    async def test_short_or_missing_number_rejected(self, mobile, config, make_transport, success_result):
        from otp_dispatch.models import FailureReason

        transport = make_transport(success_result())
        response = await json_dispatcher(transport, config).dispatch(mobile)

        assert response.success is False
        assert response.reason == FailureReason.INVALID_INPUT
        assert response.retryable is False
        assert "Invalid mobile number" in response.message
        assert transport.call_count == 0

    @pytest.mark.asyncio
    async def test_ten_digit_number_accepted(self, config, make_transport, success_result):
        transport = make_transport(success_result())
        response = await json_dispatcher(transport, config).dispatch("9876543210")

        assert response.success is True
        assert transport.call_count == 1

    @pytest.mark.asyncio
    async def test_unknown_option_rejected(self, config, make_transport, success_result):
        from otp_dispatch.models import FailureReason

        transport = make_transport(success_result())
        response = await json_dispatcher(transport, config).dispatch("9876543210", options={"proxyHost": "x"})

        assert response.reason == FailureReason.INVALID_INPUT
        assert transport.call_count == 0


class TestDispatch:
    """Tests for successful and failed deliveries."""

    @pytest.mark.asyncio
    async def test_success_generates_code(self, config, make_transport, success_result):
        transport = make_transport(success_result(body='{"status": "sent"}'))
        response = await json_dispatcher(transport, config).dispatch("9876543210")

        sent = transport.calls[0]
        assert response.success is True
        assert response.message == "OTP sent successfully"
        assert len(response.otp) == 6 and response.otp.isdigit()
        assert sent["json"] == {"mobile_no": "9876543210", "otp": response.otp}
        assert response.status_code == 200
        assert response.data == {"status": "sent"}
        assert response.gateway == "json"
        assert response.request_id.startswith("otp-")
        assert response.request_id == sent["request_id"]
        assert response.reason is None

    @pytest.mark.asyncio
    async def test_supplied_code_is_used(self, config, make_transport, success_result):
        transport = make_transport(success_result())
        response = await json_dispatcher(transport, config).dispatch("9876543210", "000111")

        assert response.otp == "000111"
        assert transport.calls[0]["json"]["otp"] == "000111"

    @pytest.mark.asyncio
    async def test_gov_gateway_uses_four_digits(self, config, make_transport, success_result):
        from otp_dispatch.config import GovGatewayConfig
        from otp_dispatch.dispatcher import OtpDispatcher
        from otp_dispatch.gateways import SignedGovGateway

        transport = make_transport(success_result(body="402,MsgID = 1", content_type="text/html"))
        dispatcher = OtpDispatcher(SignedGovGateway(GovGatewayConfig(username="U")), config, transport)

        response = await dispatcher.dispatch("9876543210")

        assert response.success is True
        assert len(response.otp) == 4
        assert response.data == "402,MsgID = 1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [302, 400, 500, 503])
    async def test_non_accepted_status_is_gateway_error(self, status, config, make_transport, success_result):
        from otp_dispatch.models import FailureReason

        transport = make_transport(success_result(status=status, body="", content_type=""))
        response = await json_dispatcher(transport, config).dispatch("9876543210")

        assert response.success is False
        assert response.reason == FailureReason.GATEWAY_ERROR
        assert response.status_code == status
        assert response.retryable is True
        assert str(status) in response.message

    @pytest.mark.asyncio
    async def test_timeout_failure(self, config, make_transport, timeout_result):
        from otp_dispatch.models import FailureReason

        transport = make_transport(timeout_result())
        response = await json_dispatcher(transport, config).dispatch("9876543210")

        assert response.success is False
        assert response.reason == FailureReason.TIMEOUT
        assert response.retryable is True
        assert response.otp is not None

    @pytest.mark.asyncio
    async def test_timeout_raised_as_dispatch_timeout(self, config, make_transport, timeout_result):
        from structlog.testing import capture_logs

        transport = make_transport(timeout_result())
        with capture_logs() as logs:
            response = await json_dispatcher(transport, config).dispatch("9876543210")

        failed = [entry for entry in logs if entry["event"] == "otp.dispatch.failed"]
        assert failed[0]["error_type"] == "DispatchTimeoutError"
        assert failed[0]["reason"] == "timeout"
        assert response.message == "Failed to send OTP: No response within 30000ms"

    @pytest.mark.asyncio
    async def test_transport_error_type_logged(self, config, make_transport):
        from structlog.testing import capture_logs
        from otp_dispatch.models import Failure, FailureReason

        refused = Failure(
            reason=FailureReason.TRANSPORT_ERROR,
            duration_ms=1.0,
            request_id="",
            message="Request failed: connection refused",
            code="ConnectError",
        )
        transport = make_transport(refused)
        with capture_logs() as logs:
            response = await json_dispatcher(transport, config).dispatch("9876543210")

        failed = [entry for entry in logs if entry["event"] == "otp.dispatch.failed"]
        assert failed[0]["error_type"] == "TransportError"
        assert response.reason == FailureReason.TRANSPORT_ERROR

    @pytest.mark.asyncio
    async def test_malformed_json_is_parse_error(self, config, make_transport, success_result):
        from otp_dispatch.models import FailureReason

        transport = make_transport(success_result(body="{truncated"))
        response = await json_dispatcher(transport, config).dispatch("9876543210")

        assert response.success is False
        assert response.reason == FailureReason.RESPONSE_PARSE_ERROR
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_escape(self, config, make_transport):
        from otp_dispatch.models import FailureReason

        transport = make_transport(RuntimeError("socket exploded"))
        response = await json_dispatcher(transport, config).dispatch("9876543210")

        assert response.success is False
        assert response.reason == FailureReason.TRANSPORT_ERROR
        assert "RuntimeError" in response.message


class TestOptions:
    """Tests for per-call option merging."""

    @pytest.mark.asyncio
    async def test_defaults_applied(self, config, make_transport, success_result):
        transport = make_transport(success_result())
        await json_dispatcher(transport, config).dispatch("9876543210")

        settings = transport.calls[0]["settings"]
        assert settings.proxy.url == "http://proxy.internal:3128"
        assert settings.timeout_ms == 5000
        assert settings.tls.reject_unauthorized is True
        assert settings.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_caller_overrides(self, config, make_transport, success_result):
        from otp_dispatch.config import DispatchOptions

        transport = make_transport(success_result())
        await json_dispatcher(transport, config).dispatch(
            "9876543210",
            options=DispatchOptions(
                proxy_host="10.0.0.9",
                proxy_port=8081,
                timeout_ms=1200,
                reject_unauthorized=False,
                headers={"Content-Type": "application/vnd.otp+json", "X-Client": "web"},
            ),
        )

        settings = transport.calls[0]["settings"]
        assert settings.proxy.url == "http://10.0.0.9:8081"
        assert settings.timeout_ms == 1200
        assert settings.tls.reject_unauthorized is False
        assert settings.headers == {"Content-Type": "application/vnd.otp+json", "X-Client": "web"}

    @pytest.mark.asyncio
    async def test_mapping_options(self, config, make_transport, success_result):
        transport = make_transport(success_result())
        await json_dispatcher(transport, config).dispatch("9876543210", options={"timeout_ms": 750})

        assert transport.calls[0]["settings"].timeout_ms == 750


class TestLogging:
    """Tests for lifecycle log events."""

    @pytest.mark.asyncio
    async def test_code_masked_in_logs(self, config, make_transport, success_result):
        from structlog.testing import capture_logs

        transport = make_transport(success_result())
        with capture_logs() as logs:
            response = await json_dispatcher(transport, config).dispatch("9876543210", "123456")

        completed = [entry for entry in logs if entry["event"] == "otp.dispatch.completed"]
        assert len(completed) == 1
        assert completed[0]["otp"] == "******"
        assert completed[0]["mobile"] == "9876****10"
        assert response.success is True
        assert not any("9876543210" in str(entry.values()) for entry in logs)

    @pytest.mark.asyncio
    async def test_code_revealed_in_development(self, make_transport, success_result):
        from structlog.testing import capture_logs
        from otp_dispatch.config import DispatchConfig

        transport = make_transport(success_result())
        with capture_logs() as logs:
            await json_dispatcher(transport, DispatchConfig(log_full_code=True)).dispatch("9876543210", "123456")

        completed = [entry for entry in logs if entry["event"] == "otp.dispatch.completed"]
        assert completed[0]["otp"] == "123456"

    @pytest.mark.asyncio
    async def test_state_transitions(self, config, make_transport, timeout_result):
        from structlog.testing import capture_logs

        transport = make_transport(timeout_result())
        with capture_logs() as logs:
            await json_dispatcher(transport, config).dispatch("9876543210")
            await json_dispatcher(transport, config).dispatch("123")

        states = [entry["state"] for entry in logs if entry["event"] == "otp.dispatch.state"]
        assert states == ["validating", "sending", "failed", "validating", "rejected"]

    @pytest.mark.asyncio
    async def test_gov_credentials_never_logged(self, config, make_transport, success_result):
        from structlog.testing import capture_logs
        from otp_dispatch.config import GovGatewayConfig
        from otp_dispatch.dispatcher import OtpDispatcher
        from otp_dispatch.gateways import SignedGovGateway, encrypt_password

        gov = GovGatewayConfig(username="U", password="hunter22", secure_key="sk-0008031b")
        transport = make_transport(success_result(body="ok", content_type="text/plain"))

        with capture_logs() as logs:
            await OtpDispatcher(SignedGovGateway(gov), config, transport).dispatch("9876543210")

        dumped = repr(logs)
        assert "hunter22" not in dumped
        assert encrypt_password("hunter22") not in dumped
        assert "sk-0008031b" not in dumped


class TestResponse:
    """Tests for the normalized response object."""

    @pytest.mark.asyncio
    async def test_to_dict(self, config, make_transport, timeout_result):
        transport = make_transport(timeout_result())
        response = await json_dispatcher(transport, config).dispatch("9876543210", "123456")

        payload = response.to_dict()
        assert payload["success"] is False
        assert payload["reason"] == "timeout"
        assert payload["otp"] == "123456"
        assert "duration_ms" in payload

    @pytest.mark.asyncio
    async def test_concurrent_dispatches_are_independent(self, config, make_transport, success_result):
        import asyncio

        transport = make_transport(success_result())
        dispatcher = json_dispatcher(transport, config)

        responses = await asyncio.gather(*[
            dispatcher.dispatch(f"98765432{i:02d}") for i in range(10)
        ])

        assert len({response.request_id for response in responses}) == 10
        assert all(response.success for response in responses)


class TestConnectivity:
    """Tests for the gateway probe."""

    @pytest.mark.asyncio
    async def test_reachable(self, config, make_transport, success_result):
        transport = make_transport(success_result(status=405, body="", content_type=""))
        response = await json_dispatcher(transport, config).check_connectivity()

        assert response.success is True
        assert response.status_code == 405
        assert transport.calls[0]["method"] == "GET"
        assert transport.calls[0]["url"] == "https://gateway.test/api/sendotp"

    @pytest.mark.asyncio
    async def test_unreachable(self, config, make_transport, timeout_result):
        from otp_dispatch.models import FailureReason

        transport = make_transport(timeout_result())
        response = await json_dispatcher(transport, config).check_connectivity("https://httpbin.test/ip")

        assert response.success is False
        assert response.reason == FailureReason.TIMEOUT
        assert transport.calls[0]["url"] == "https://httpbin.test/ip"


class TestLifecycle:
    """Tests for transport ownership."""

    @pytest.mark.asyncio
    async def test_injected_transport_not_closed(self, config, make_transport, success_result):
        transport = make_transport(success_result())
        async with json_dispatcher(transport, config):
            pass

        assert transport.closed is False

    @pytest.mark.asyncio
    async def test_owned_transport_closed(self, config):
        from otp_dispatch.dispatcher import OtpDispatcher
        from otp_dispatch.gateways import JsonGateway

        async with OtpDispatcher(JsonGateway(), config) as dispatcher:
            dispatcher.transport._client_for(config.resolve())
            assert len(dispatcher.transport._clients) == 1

        assert dispatcher.transport._clients == {}

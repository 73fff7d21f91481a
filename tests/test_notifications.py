"""
Tests for SMS dispatch

The HTTP gateway is exercised against a mocked requests session; the
notification service is run synchronously so failures can be asserted.
"""

import pytest
from unittest.mock import MagicMock

import requests

from somiti.storage import InMemoryStorage
from somiti.audit import AuditTrail, AuditEventType
from somiti.config import SomitiConfig
from somiti.errors import NotificationFailure
from somiti.notifications import (
    HttpSmsProvider, LogSmsProvider, NotificationService, SmsProvider, SmsResult,
    create_sms_provider, render_message
)


def gateway_session(payload=None, exc=None):
    session = MagicMock(spec=requests.Session)
    if exc is not None:
        session.get.side_effect = exc
    else:
        response = MagicMock()
        response.json.return_value = payload
        session.get.return_value = response
    return session


class FailingProvider(SmsProvider):
    def send(self, phone, message):
        raise NotificationFailure("gateway down")


class TestHttpSmsProvider:

    def test_send_success(self):
        session = gateway_session({"success": True, "data": {"messages": [1]}})
        provider = HttpSmsProvider("https://sms.example/send.php", "KEY", session=session)

        result = provider.send("01711000001", "hello")

        assert result.success
        args, kwargs = session.get.call_args
        assert args[0] == "https://sms.example/send.php"
        assert kwargs["params"]["key"] == "KEY"
        assert kwargs["params"]["number"] == "01711000001"
        assert kwargs["params"]["message"] == "hello"
        assert kwargs["params"]["type"] == "sms"
        assert kwargs["timeout"] == 10.0

    @pytest.mark.parametrize("payload", [
        {"success": False, "error": {"message": "Invalid key"}},
        {"success": False, "error": "Invalid key"},
        {"success": False},
    ])
    def test_gateway_rejection(self, payload):
        provider = HttpSmsProvider("https://sms.example", "KEY", session=gateway_session(payload))
        with pytest.raises(NotificationFailure):
            provider.send("01711000001", "hello")

    def test_network_error(self):
        session = gateway_session(exc=requests.ConnectionError("unreachable"))
        provider = HttpSmsProvider("https://sms.example", "KEY", session=session)
        with pytest.raises(NotificationFailure):
            provider.send("01711000001", "hello")

    def test_invalid_json(self):
        session = gateway_session()
        session.get.return_value.json.side_effect = ValueError("no json")
        provider = HttpSmsProvider("https://sms.example", "KEY", session=session)
        with pytest.raises(NotificationFailure):
            provider.send("01711000001", "hello")


class TestNotificationService:

    def test_failure_is_logged_and_audited_not_raised(self):
        audit_trail = AuditTrail(InMemoryStorage())
        service = NotificationService(FailingProvider(), audit_trail=audit_trail, async_dispatch=False)

        service.notify("01711000001", "hello", context={"entity_type": "loan", "entity_id": "L1"})

        events = audit_trail.get_events_for_entity("loan", "L1")
        assert [e.event_type for e in events] == [AuditEventType.SMS_FAILED]
        assert events[0].metadata["error"] == "gateway down"

    def test_missing_phone_skipped(self):
        provider = MagicMock(spec=SmsProvider)
        service = NotificationService(provider, async_dispatch=False)

        assert service.notify("", "hello") is None
        provider.send.assert_not_called()

    def test_async_dispatch_returns_future(self):
        provider = MagicMock(spec=SmsProvider)
        provider.send.return_value = SmsResult(success=True)
        service = NotificationService(provider, async_dispatch=True)
        try:
            future = service.notify("01711000001", "hello")
            assert future.result(timeout=5).success
        finally:
            service.shutdown()
        provider.send.assert_called_once_with("01711000001", "hello")

    def test_send_now_reports_failure(self):
        service = NotificationService(FailingProvider(), async_dispatch=False)
        result = service.send_now("01711000001", "hello")

        assert not result.success
        assert result.error == "gateway down"


class TestProviderSelection:

    def test_log_provider_when_disabled(self):
        config = SomitiConfig(sms_enabled=False)
        assert isinstance(create_sms_provider(config), LogSmsProvider)

    def test_log_provider_without_key(self):
        config = SomitiConfig(sms_enabled=True, sms_api_key="")
        assert isinstance(create_sms_provider(config), LogSmsProvider)

    def test_http_provider_when_keyed(self):
        config = SomitiConfig(sms_enabled=True, sms_api_key="KEY")
        provider = create_sms_provider(config)
        assert isinstance(provider, HttpSmsProvider)
        assert provider.api_key == "KEY"


def test_render_message():
    message = render_message("loan_collection", name="Rahima", amount="110.00")
    assert "Rahima" in message
    assert "110.00" in message

"""
Notification Gateway Module

Outbound SMS to members. Dispatch is best effort: messages are handed to a
small worker pool after the ledger write has been saved, and a gateway
failure is logged and audited but never fails the write that triggered it.
"""

from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import logging

import requests

from .audit import AuditTrail, AuditEventType
from .errors import NotificationFailure


logger = logging.getLogger("somiti.notifications")


# Message bodies sent to members, in Bengali
TEMPLATES = {
    "loan_issued": "প্রিয় {name}, আপনি আজ {amount} টাকা লোন গ্রহণ করেছেন। ধন্যবাদ আমাদের সেবা গ্রহণের জন্য।",
    "loan_collection": "প্রিয় {name}, আপনি আজ {amount} টাকা জমা দিয়েছেন। ধন্যবাদ আমাদের সেবা গ্রহণের জন্য।",
    "dps_collection": "প্রিয় {name}, আপনার DPS স্কীম \"{scheme_name}\" এ {amount} টাকা জমা হয়েছে। ধন্যবাদ আমাদের সাথে থাকার জন্য।",
}


def render_message(template: str, **values: Any) -> str:
    return TEMPLATES[template].format(**values)


@dataclass
class SmsResult:
    """Outcome of a single SMS send"""
    success: bool
    response: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


class SmsProvider(ABC):
    """Abstract base class for SMS gateways"""

    @abstractmethod
    def send(self, phone: str, message: str) -> SmsResult:
        """Send one message. Raises NotificationFailure when the gateway rejects it."""
        pass


class HttpSmsProvider(SmsProvider):
    """SMS gateway reached with a single GET request carrying the API key"""

    def __init__(self, api_url: str, api_key: str, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, phone: str, message: str) -> SmsResult:
        params = {
            "key": self.api_key,
            "number": phone,
            "message": message,
            "option": 2,
            "type": "sms",
            "useRandomDevice": 1,
            "prioritize": 0,
        }
        try:
            response = self.session.get(self.api_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise NotificationFailure(f"SMS gateway request failed: {e}") from e
        except ValueError as e:
            raise NotificationFailure(f"SMS gateway returned invalid JSON: {e}") from e

        if not payload.get("success"):
            error = payload.get("error")
            if isinstance(error, dict):
                error = error.get("message")
            error = error or "Unknown error"
            raise NotificationFailure(f"SMS gateway rejected message: {error}")

        return SmsResult(success=True, response=payload)


class LogSmsProvider(SmsProvider):
    """Logs messages instead of sending them; used when no gateway is configured"""

    def send(self, phone: str, message: str) -> SmsResult:
        logger.info("SMS (not sent) to %s: %s", phone, message)
        return SmsResult(success=True, response={"logged": True})


class NotificationService:
    """
    Fire-and-forget SMS dispatch

    ``notify`` never raises: gateway failures are logged, recorded in the
    audit trail and swallowed so the ledger write that triggered them stands.
    """

    def __init__(self, provider: SmsProvider, audit_trail: Optional[AuditTrail] = None,
                 async_dispatch: bool = True, max_workers: int = 2):
        self.provider = provider
        self.audit_trail = audit_trail
        self.async_dispatch = async_dispatch
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="somiti-sms"
        ) if async_dispatch else None

    def notify(self, phone: Optional[str], message: str,
               context: Optional[Dict[str, Any]] = None) -> Optional[Future]:
        """
        Queue an SMS for delivery

        Returns:
            The pending Future when dispatching asynchronously, else None
        """
        if not phone:
            logger.debug("Skipping SMS without a phone number")
            return None

        if self._executor is not None:
            return self._executor.submit(self._deliver, phone, message, context or {})

        self._deliver(phone, message, context or {})
        return None

    def send_now(self, phone: str, message: str) -> SmsResult:
        """Send synchronously and report the outcome instead of raising"""
        try:
            return self.provider.send(phone, message)
        except NotificationFailure as e:
            logger.warning("SMS to %s failed: %s", phone, e)
            return SmsResult(success=False, error=str(e))

    def _deliver(self, phone: str, message: str, context: Dict[str, Any]) -> SmsResult:
        try:
            result = self.provider.send(phone, message)
            logger.info("SMS sent to %s", phone, extra={"action": "sms_sent", "extra": context})
            return result
        except Exception as e:
            logger.error("SMS to %s failed: %s", phone, e,
                         extra={"action": "sms_failed", "extra": context})
            self._record_failure(phone, str(e), context)
            return SmsResult(success=False, error=str(e))

    def _record_failure(self, phone: str, error: str, context: Dict[str, Any]) -> None:
        if not self.audit_trail:
            return
        try:
            self.audit_trail.log_event(
                event_type=AuditEventType.SMS_FAILED,
                entity_type=context.get("entity_type", "sms"),
                entity_id=context.get("entity_id", phone),
                metadata={"phone": phone, "error": error}
            )
        except Exception:
            logger.exception("Could not audit SMS failure")

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)


def create_sms_provider(config) -> SmsProvider:
    """Pick the HTTP gateway when SMS is enabled and keyed, else the log provider"""
    if config.sms_enabled and config.sms_api_key:
        return HttpSmsProvider(config.sms_api_url, config.sms_api_key, timeout=config.sms_timeout)
    return LogSmsProvider()

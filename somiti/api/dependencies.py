"""
System container and request dependencies
"""

from typing import Optional

from fastapi import HTTPException

from ..storage import StorageInterface, create_storage
from ..audit import AuditTrail
from ..arrears import PaymentMatching
from ..members import MemberManager
from ..loans import LoanManager
from ..deposits import DpsManager
from ..reporting import ReportingEngine
from ..notifications import NotificationService, create_sms_provider
from ..errors import NotFoundError, SomitiError
from ..config import SomitiConfig, get_config
from ..logging_config import get_logger, log_action


logger = get_logger("somiti.api")


class SomitiSystem:
    """Ledger components wired together over one record store"""

    def __init__(self, storage: Optional[StorageInterface] = None,
                 config: Optional[SomitiConfig] = None,
                 notifier: Optional[NotificationService] = None):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config.database_url)

        self.audit_trail = AuditTrail(self.storage, enabled=self.config.enable_audit_logging)
        self.notifier = notifier or NotificationService(
            create_sms_provider(self.config),
            audit_trail=self.audit_trail,
            async_dispatch=self.config.sms_async,
            max_workers=self.config.sms_workers
        )
        self.member_manager = MemberManager(self.storage, self.audit_trail)
        self.loan_manager = LoanManager(
            self.storage, self.member_manager, self.audit_trail,
            notifier=self.notifier,
            matching=PaymentMatching(self.config.payment_matching)
        )
        self.dps_manager = DpsManager(
            self.storage, self.member_manager, self.audit_trail, notifier=self.notifier
        )
        self.reporting_engine = ReportingEngine(
            self.member_manager, self.loan_manager, self.dps_manager
        )

    def close(self) -> None:
        self.notifier.shutdown(wait=True)
        self.storage.close()


_system: Optional[SomitiSystem] = None


def get_somiti_system() -> SomitiSystem:
    """Dependency returning the process-wide system, built on first use"""
    global _system
    if _system is None:
        _system = SomitiSystem()
        log_action(logger, "info", "Ledger system initialized", action="startup",
                   extra={"database_url": _system.config.database_url})
    return _system


def shutdown_somiti_system() -> None:
    global _system
    if _system is not None:
        _system.close()
        _system = None


def http_error(error: SomitiError) -> HTTPException:
    """Map a ledger error to an HTTP error response"""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))

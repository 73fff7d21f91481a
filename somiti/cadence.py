"""
Cadence Table

Maps an installment-type label to the fixed number of days between
installments. A monthly cadence is a flat 30 days, not a calendar month, so
due dates drift against the calendar over long loans.
"""

from enum import Enum
from typing import Optional

from .errors import InvalidCadenceError


class InstallmentType(Enum):
    """Installment cadences offered by the cooperative"""
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    SEMIANNUAL = "semiannual"

    @property
    def interval_days(self) -> int:
        return INTERVAL_DAYS[self]

    @classmethod
    def parse(cls, label) -> Optional['InstallmentType']:
        """Resolve an English or Bengali label; None when unrecognized"""
        if isinstance(label, cls):
            return label
        if not isinstance(label, str):
            return None
        return _LABELS.get(label.strip().lower())


INTERVAL_DAYS = {
    InstallmentType.DAILY: 1,
    InstallmentType.WEEKLY: 7,
    InstallmentType.BIWEEKLY: 15,
    InstallmentType.MONTHLY: 30,
    InstallmentType.SEMIANNUAL: 180,
}

# Labels as entered at the counter; the Bengali forms come from existing records
_LABELS = {
    "daily": InstallmentType.DAILY,
    "দৈনিক": InstallmentType.DAILY,
    "weekly": InstallmentType.WEEKLY,
    "সাপ্তাহিক": InstallmentType.WEEKLY,
    "biweekly": InstallmentType.BIWEEKLY,
    "bi-weekly": InstallmentType.BIWEEKLY,
    "fortnightly": InstallmentType.BIWEEKLY,
    "পাক্ষিক": InstallmentType.BIWEEKLY,
    "monthly": InstallmentType.MONTHLY,
    "মাসিক": InstallmentType.MONTHLY,
    "semiannual": InstallmentType.SEMIANNUAL,
    "semi-annual": InstallmentType.SEMIANNUAL,
    "৬-মাসিক": InstallmentType.SEMIANNUAL,
}


def interval_days(installment_type) -> int:
    """Days between installments, or 0 when the label is not in the table"""
    parsed = InstallmentType.parse(installment_type)
    return parsed.interval_days if parsed else 0


def require_installment_type(installment_type) -> InstallmentType:
    """Like InstallmentType.parse but raises InvalidCadenceError"""
    parsed = InstallmentType.parse(installment_type)
    if parsed is None:
        raise InvalidCadenceError(installment_type)
    return parsed

"""
DPS (Recurring Deposit) Module

DPS schemes fix a monthly contribution, a duration and an optional profit
rate. A member enrolled in a scheme holds a DPS setting that records each
monthly collection. Unlike loans, DPS installments follow calendar months:
a setting started on the 31st falls due on the last day of shorter months.
"""

from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime, timezone, date
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
import logging
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .dates import DateLike, add_months, months_between, parse_date
from .errors import NotFoundError, ValidationError
from .members import MemberManager
from .money import ZERO, format_amount, round_money, to_decimal, total
from .notifications import NotificationService, render_message


logger = logging.getLogger("somiti.deposits")


class DpsType(Enum):
    PROFIT = "profit"
    NON_PROFIT = "non_profit"

    @classmethod
    def parse(cls, value) -> 'DpsType':
        if isinstance(value, cls):
            return value
        aliases = {"profit": cls.PROFIT, "লাভ": cls.PROFIT,
                   "non_profit": cls.NON_PROFIT, "non-profit": cls.NON_PROFIT,
                   "লাভ বিহীন": cls.NON_PROFIT}
        parsed = aliases.get(str(value).strip().lower()) if value is not None else None
        if parsed is None:
            raise ValidationError(f"Unknown DPS type: {value!r}")
        return parsed


class DpsStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass
class DpsScheme(StorageRecord):
    """A recurring deposit product"""
    scheme_name: str
    duration_months: int
    monthly_amount: Decimal
    dps_type: DpsType
    interest_rate: Decimal
    target_amount: Decimal
    status: DpsStatus = DpsStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['dps_type'] = self.dps_type.value
        result['status'] = self.status.value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DpsScheme':
        data = cls.parse_timestamps(data)
        data['dps_type'] = DpsType(data['dps_type'])
        data['status'] = DpsStatus(data['status'])
        for key in ('monthly_amount', 'interest_rate', 'target_amount'):
            data[key] = Decimal(data[key])
        return cls(**data)


@dataclass
class DpsCollection:
    collection_date: date
    collected_amount: Decimal
    balance: Decimal
    description: Optional[str] = None
    sms_sent: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'collection_date': self.collection_date.isoformat(),
            'collected_amount': str(self.collected_amount),
            'balance': str(self.balance),
            'description': self.description,
            'sms_sent': self.sms_sent,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DpsCollection':
        return cls(
            collection_date=date.fromisoformat(data['collection_date']),
            collected_amount=Decimal(data['collected_amount']),
            balance=Decimal(data['balance']),
            description=data.get('description'),
            sms_sent=data.get('sms_sent', False),
        )


@dataclass
class DpsSetting(StorageRecord):
    """A member's enrollment in a DPS scheme, with its collections"""
    member_id: str
    scheme_id: str
    start_date: date
    duration_months: int
    monthly_amount: Decimal
    interest_rate: Decimal
    target_amount: Decimal
    description: Optional[str] = None
    status: DpsStatus = DpsStatus.ACTIVE
    collections: List[DpsCollection] = field(default_factory=list)

    @property
    def total_collected(self) -> Decimal:
        return total(c.collected_amount for c in self.collections)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['start_date'] = self.start_date.isoformat()
        result['status'] = self.status.value
        result['collections'] = [c.to_dict() for c in self.collections]
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DpsSetting':
        data = cls.parse_timestamps(data)
        data['start_date'] = date.fromisoformat(data['start_date'])
        data['status'] = DpsStatus(data['status'])
        data['collections'] = [DpsCollection.from_dict(c) for c in data.get('collections', [])]
        for key in ('monthly_amount', 'interest_rate', 'target_amount'):
            data[key] = Decimal(data[key])
        return cls(**data)


def calculate_target_amount(duration_months: int, monthly_amount: Decimal,
                            dps_type: DpsType, interest_rate: Decimal) -> Decimal:
    """Contributions over the term plus profit, rounded to whole taka"""
    base = monthly_amount * duration_months
    if dps_type is DpsType.PROFIT and interest_rate > ZERO:
        base = base + base * interest_rate / Decimal("100")
    return round_money(base).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def default_scheme_name(duration_months: int, monthly_amount: Decimal,
                        dps_type: DpsType, interest_rate: Decimal) -> str:
    if duration_months >= 12 and duration_months % 12 == 0:
        term = f"{duration_months // 12} year"
    else:
        term = f"{duration_months} month"
    profit = "profit" if dps_type is DpsType.PROFIT else "non-profit"
    return f"{term} scheme - monthly {format_amount(monthly_amount)} - {profit} - {interest_rate}%"


def generate_dps_schedule(start_date: date, duration_months: int) -> List[date]:
    """Monthly due dates from the start date, one per month of the term"""
    return [add_months(start_date, i) for i in range(max(duration_months, 0))]


def dps_due_on(setting: DpsSetting, as_of_date: date) -> bool:
    """True when one of the setting's monthly installments falls due on as_of_date"""
    months = months_between(setting.start_date, as_of_date)
    if months < 0 or months >= setting.duration_months:
        return False
    return add_months(setting.start_date, months) == as_of_date


class DpsManager:
    """Creates DPS schemes, enrolls members and records monthly collections"""

    def __init__(
        self,
        storage: StorageInterface,
        member_manager: MemberManager,
        audit_trail: AuditTrail,
        notifier: Optional[NotificationService] = None
    ):
        self.storage = storage
        self.member_manager = member_manager
        self.audit_trail = audit_trail
        self.notifier = notifier

        self.schemes_table = "dps_schemes"
        self.settings_table = "dps_settings"

    def create_scheme(
        self,
        duration_months,
        monthly_amount,
        dps_type,
        interest_rate=0,
        scheme_name: Optional[str] = None
    ) -> DpsScheme:
        """
        Create a DPS scheme

        Non-profit schemes always carry a zero rate. The target amount is
        computed here, never taken from the caller.
        """
        duration = to_decimal(duration_months, "duration_months")
        if duration <= 0 or duration != duration.to_integral_value():
            raise ValidationError("duration_months must be a positive whole number")
        duration = int(duration)
        monthly = round_money(to_decimal(monthly_amount, "monthly_amount"))
        if monthly <= ZERO:
            raise ValidationError("monthly_amount must be positive")
        kind = DpsType.parse(dps_type)
        rate = ZERO if kind is DpsType.NON_PROFIT else to_decimal(interest_rate or 0, "interest_rate")
        if rate < ZERO:
            raise ValidationError("interest_rate cannot be negative")

        now = datetime.now(timezone.utc)
        scheme = DpsScheme(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            scheme_name=scheme_name or default_scheme_name(duration, monthly, kind, rate),
            duration_months=duration,
            monthly_amount=monthly,
            dps_type=kind,
            interest_rate=rate,
            target_amount=calculate_target_amount(duration, monthly, kind, rate),
        )
        self.storage.save(self.schemes_table, scheme.id, scheme.to_dict())
        self.audit_trail.log_event(
            event_type=AuditEventType.DPS_SCHEME_CREATED,
            entity_type="dps_scheme",
            entity_id=scheme.id,
            metadata={"scheme_name": scheme.scheme_name, "target_amount": scheme.target_amount}
        )
        return scheme

    def get_scheme(self, scheme_id: str) -> DpsScheme:
        data = self.storage.load(self.schemes_table, scheme_id)
        if not data:
            raise NotFoundError("DPS scheme", scheme_id)
        return DpsScheme.from_dict(data)

    def list_schemes(self, active_only: bool = False) -> List[DpsScheme]:
        schemes = [DpsScheme.from_dict(d) for d in self.storage.load_all(self.schemes_table)]
        if active_only:
            schemes = [s for s in schemes if s.status is DpsStatus.ACTIVE]
        return schemes

    def enroll_member(
        self,
        member_id: str,
        scheme_id: str,
        start_date: Optional[DateLike] = None,
        description: Optional[str] = None
    ) -> DpsSetting:
        """Enroll a member in a scheme, copying the scheme's terms"""
        member = self.member_manager.get_member(member_id)
        scheme = self.get_scheme(scheme_id)

        now = datetime.now(timezone.utc)
        setting = DpsSetting(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            member_id=member.member_id,
            scheme_id=scheme.id,
            start_date=parse_date(start_date),
            duration_months=scheme.duration_months,
            monthly_amount=scheme.monthly_amount,
            interest_rate=scheme.interest_rate,
            target_amount=scheme.target_amount,
            description=description,
        )
        self._save_setting(setting)
        self.audit_trail.log_event(
            event_type=AuditEventType.DPS_MEMBER_ENROLLED,
            entity_type="dps_setting",
            entity_id=setting.id,
            metadata={"member_id": member.member_id, "scheme_id": scheme.id,
                      "start_date": setting.start_date}
        )
        return setting

    def get_setting(self, setting_id: str) -> DpsSetting:
        data = self.storage.load(self.settings_table, setting_id)
        if not data:
            raise NotFoundError("DPS setting", setting_id)
        return DpsSetting.from_dict(data)

    def get_member_settings(self, member_id: str, active_only: bool = True) -> List[DpsSetting]:
        settings = [
            DpsSetting.from_dict(d)
            for d in self.storage.find(self.settings_table, {"member_id": member_id})
        ]
        if active_only:
            settings = [s for s in settings if s.status is DpsStatus.ACTIVE]
        return settings

    def list_settings(self, active_only: bool = False) -> List[DpsSetting]:
        settings = [DpsSetting.from_dict(d) for d in self.storage.load_all(self.settings_table)]
        if active_only:
            settings = [s for s in settings if s.status is DpsStatus.ACTIVE]
        return settings

    def record_collection(
        self,
        member_id: str,
        scheme_id: str,
        amount,
        collection_date: Optional[DateLike] = None,
        description: Optional[str] = None,
        send_sms: bool = False
    ) -> DpsSetting:
        """
        Append a monthly collection to a member's DPS setting

        The stored balance is the running total of collections including
        this one.
        """
        member = self.member_manager.get_member(member_id)
        found = self.storage.find(self.settings_table, {"member_id": member_id, "scheme_id": scheme_id})
        if not found:
            raise NotFoundError("DPS setting", f"{member_id}/{scheme_id}")
        setting = DpsSetting.from_dict(found[0])

        collected = round_money(to_decimal(amount, "collected_amount"))
        if collected <= ZERO:
            raise ValidationError("Collected amount must be positive")

        setting.collections.append(DpsCollection(
            collection_date=parse_date(collection_date),
            collected_amount=collected,
            balance=setting.total_collected + collected,
            description=description,
            sms_sent=send_sms,
        ))
        setting.updated_at = datetime.now(timezone.utc)
        self._save_setting(setting)

        self.audit_trail.log_event(
            event_type=AuditEventType.DPS_COLLECTION_RECORDED,
            entity_type="dps_setting",
            entity_id=setting.id,
            metadata={"amount": collected, "balance": setting.collections[-1].balance}
        )

        if send_sms and self.notifier:
            scheme = self.get_scheme(scheme_id)
            message = render_message("dps_collection", name=member.name,
                                     scheme_name=scheme.scheme_name,
                                     amount=format_amount(collected))
            self.notifier.notify(member.mobile_number, message,
                                 context={"entity_type": "dps_setting", "entity_id": setting.id})
        return setting

    def get_todays_dps(self, as_of_date: Optional[DateLike] = None) -> List[Dict[str, Any]]:
        """Active DPS settings with a monthly installment due on as_of_date"""
        as_of = parse_date(as_of_date)
        schemes = {s.id: s for s in self.list_schemes()}
        rows = []
        for setting in self.list_settings(active_only=True):
            if not dps_due_on(setting, as_of):
                continue
            member = self.member_manager.find_member(setting.member_id)
            if member is None:
                logger.warning("DPS setting %s references unknown member %s",
                               setting.id, setting.member_id)
                continue
            scheme = schemes.get(setting.scheme_id)
            rows.append({
                "setting_id": setting.id,
                "member_id": member.member_id,
                "member_name": member.name,
                "mobile_number": member.mobile_number,
                "scheme_name": scheme.scheme_name if scheme else None,
                "monthly_amount": format_amount(setting.monthly_amount),
                "start_date": setting.start_date.isoformat(),
                "due_date": as_of.isoformat(),
            })
        return rows

    def _save_setting(self, setting: DpsSetting) -> None:
        self.storage.save(self.settings_table, setting.id, setting.to_dict())

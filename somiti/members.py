"""
Member Registry Module

Members and field agents of the cooperative. The ledger needs a member's
name for loan records and their mobile number for SMS. Photos and agent
access lists are handled elsewhere.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum
import logging
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .errors import NotFoundError, ValidationError


logger = logging.getLogger("somiti.members")


class MemberRole(Enum):
    MEMBER = "member"
    AGENT = "agent"


class MemberStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass
class Member(StorageRecord):
    """A registered member or agent"""
    member_id: str
    name: str
    mobile_number: str
    role: MemberRole = MemberRole.MEMBER
    status: MemberStatus = MemberStatus.ACTIVE
    address: Optional[str] = None
    nid_number: Optional[str] = None
    father_or_husband: Optional[str] = None
    mother_name: Optional[str] = None
    nominee_name: Optional[str] = None
    nominee_relation: Optional[str] = None
    nominee_mobile: Optional[str] = None
    guarantor_name: Optional[str] = None
    guarantor_mobile: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['role'] = self.role.value
        result['status'] = self.status.value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Member':
        data = cls.parse_timestamps(data)
        data['role'] = MemberRole(data['role'])
        data['status'] = MemberStatus(data['status'])
        return cls(**data)


class MemberManager:
    """Registers and looks up members by their cooperative member ID"""

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.members_table = "members"

    def register_member(
        self,
        member_id: str,
        name: str,
        mobile_number: str,
        role: MemberRole = MemberRole.MEMBER,
        **profile: Optional[str]
    ) -> Member:
        """
        Register a new member or agent

        Raises:
            ValidationError: when a required field is blank or the member ID
                is already taken
        """
        member_id = (member_id or "").strip()
        if not member_id or not (name or "").strip() or not (mobile_number or "").strip():
            raise ValidationError("member_id, name and mobile_number are required")
        if self._find_data(member_id):
            raise ValidationError(f"Member ID {member_id} is already registered")

        if isinstance(role, str):
            try:
                role = MemberRole(role)
            except ValueError:
                raise ValidationError(f"Unknown member role: {role}")

        unknown = set(profile) - _PROFILE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown member fields: {', '.join(sorted(unknown))}")

        now = datetime.now(timezone.utc)
        member = Member(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            member_id=member_id,
            name=name.strip(),
            mobile_number=mobile_number.strip(),
            role=role,
            **profile
        )
        self.storage.save(self.members_table, member.id, member.to_dict())

        self.audit_trail.log_event(
            event_type=AuditEventType.MEMBER_REGISTERED,
            entity_type="member",
            entity_id=member.member_id,
            metadata={"role": member.role.value, "name": member.name}
        )
        logger.info("Registered %s %s", member.role.value, member.member_id)
        return member

    def update_member(self, member_id: str, **changes: Any) -> Member:
        """
        Change a member's name, mobile number, role, status or profile

        The cooperative member ID itself cannot be changed; loans and DPS
        settings refer to it.

        Raises:
            NotFoundError: member does not exist
            ValidationError: unknown field, blank name or mobile number, or
                an unrecognized role or status
        """
        data = self._find_data(member_id)
        if data is None:
            raise NotFoundError("member", member_id)

        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown member fields: {', '.join(sorted(unknown))}")

        for key in ("name", "mobile_number"):
            if key in changes:
                value = (changes[key] or "").strip()
                if not value:
                    raise ValidationError(f"{key} cannot be blank")
                changes[key] = value
        try:
            if "role" in changes:
                changes["role"] = MemberRole(changes["role"])
            if "status" in changes:
                changes["status"] = MemberStatus(changes["status"])
        except ValueError as e:
            raise ValidationError(str(e))

        member = Member.from_dict(data)
        for key, value in changes.items():
            setattr(member, key, value)
        member.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.members_table, member.id, member.to_dict())

        self.audit_trail.log_event(
            event_type=AuditEventType.MEMBER_UPDATED,
            entity_type="member",
            entity_id=member.member_id,
            metadata={"fields": sorted(changes)}
        )
        logger.info("Updated member %s (%s)", member.member_id, ", ".join(sorted(changes)))
        return member

    def _find_data(self, member_id: str) -> Optional[Dict[str, Any]]:
        found = self.storage.find(self.members_table, {"member_id": member_id})
        return found[0] if found else None

    def find_member(self, member_id: str) -> Optional[Member]:
        data = self._find_data(member_id)
        return Member.from_dict(data) if data else None

    def get_member(self, member_id: str) -> Member:
        """Get a member by cooperative member ID, raising NotFoundError"""
        member = self.find_member(member_id)
        if member is None:
            raise NotFoundError("member", member_id)
        return member

    def list_members(self, role: Optional[MemberRole] = None) -> List[Member]:
        members = [Member.from_dict(data) for data in self.storage.load_all(self.members_table)]
        if role is not None:
            members = [m for m in members if m.role == role]
        return members


_PROFILE_FIELDS = {
    "address", "nid_number", "father_or_husband", "mother_name",
    "nominee_name", "nominee_relation", "nominee_mobile",
    "guarantor_name", "guarantor_mobile",
}

_EDITABLE_FIELDS = _PROFILE_FIELDS | {"name", "mobile_number", "role", "status"}

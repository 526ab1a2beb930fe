"""
Bank Detail Module

Staff-owned banking/merchant account entries with a frozen-balance field.
Staff read and write only their own rows; administrators read all of them.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional

from .logging_config import get_logger, log_action
from .profiles import PROFILES_TABLE, Profile
from .storage import Embed, TableStore

BANK_DETAILS_TABLE = "bank_details"
OWNER_EMBED = Embed(alias="profiles", table=PROFILES_TABLE, foreign_key="staff_id")

logger = get_logger("banking_panel.bank_details")


class Merchant(Enum):
    """Merchant platforms an account is attached to"""
    GOOGLEPAY = "googlepay"
    BHARATPE = "bharatpe"
    PINELAB = "pinelab"
    AXIS = "axis"

    @property
    def display_name(self) -> str:
        return MERCHANT_DISPLAY_NAMES[self.value]


MERCHANT_DISPLAY_NAMES = {
    "googlepay": "Google Pay",
    "bharatpe": "BharatPe",
    "pinelab": "Pine Labs",
    "axis": "Axis",
}


def merchant_display(merchant: str) -> str:
    """Human readable merchant name, unknown values shown as given"""
    return MERCHANT_DISPLAY_NAMES.get(merchant, merchant)


class AccountStatus(Enum):
    """Bank detail status; inactive accounts carry a frozen balance"""
    ACTIVE = "active"
    INACTIVE = "inactive"


REQUIRED_TEXT_FIELDS = ("ac_holder_name", "bank_name", "acc_number", "mobile_number")
EDITABLE_FIELDS = REQUIRED_TEXT_FIELDS + ("merchant_name", "status", "freeze_reason", "freeze_balance")


@dataclass
class BankDetail:
    """A single bank-account record owned by a staff profile"""
    id: str
    staff_id: str
    ac_holder_name: str
    bank_name: str
    acc_number: str
    mobile_number: str
    merchant_name: Merchant
    status: AccountStatus
    freeze_balance: Decimal
    created_at: datetime
    freeze_reason: Optional[str] = None
    updated_at: Optional[datetime] = None
    owner: Optional[Profile] = None

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE

    def to_dict(self, include_owner: bool = False) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "staff_id": self.staff_id,
            "ac_holder_name": self.ac_holder_name,
            "bank_name": self.bank_name,
            "acc_number": self.acc_number,
            "mobile_number": self.mobile_number,
            "merchant_name": self.merchant_name.value,
            "merchant_display": self.merchant_name.display_name,
            "status": self.status.value,
            "freeze_reason": self.freeze_reason,
            "freeze_balance": str(self.freeze_balance),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_owner:
            result["profiles"] = self.owner.to_dict() if self.owner else None
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BankDetail':
        owner_data = data.get(OWNER_EMBED.alias)
        return cls(
            id=data["id"],
            staff_id=data["staff_id"],
            ac_holder_name=data["ac_holder_name"],
            bank_name=data["bank_name"],
            acc_number=data["acc_number"],
            mobile_number=data["mobile_number"],
            merchant_name=Merchant(data["merchant_name"]),
            status=AccountStatus(data.get("status") or AccountStatus.ACTIVE.value),
            freeze_balance=Decimal(str(data.get("freeze_balance") or "0")),
            created_at=_parse_timestamp(data.get("created_at")) or datetime.now(timezone.utc),
            freeze_reason=data.get("freeze_reason"),
            updated_at=_parse_timestamp(data.get("updated_at")),
            owner=Profile.from_dict(owner_data) if owner_data else None,
        )


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _clean_text(name: str, value: Any) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValueError(f"{name} is required")
    return text


def _clean_balance(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value if value is not None else "0"))
    except InvalidOperation:
        raise ValueError(f"Invalid freeze balance: {value}")
    if not amount.is_finite():
        raise ValueError(f"Invalid freeze balance: {value}")
    if amount < Decimal("0"):
        raise ValueError("Freeze balance cannot be negative")
    return amount


def _clean_merchant(value: Any) -> Merchant:
    try:
        return value if isinstance(value, Merchant) else Merchant(value)
    except ValueError:
        allowed = ", ".join(m.value for m in Merchant)
        raise ValueError(f"Invalid merchant: {value} (expected one of {allowed})")


def _clean_status(value: Any) -> AccountStatus:
    try:
        return value if isinstance(value, AccountStatus) else AccountStatus(value)
    except ValueError:
        raise ValueError(f"Invalid status: {value}")


def _reconcile_freeze_reason(status: AccountStatus, reason: Optional[str]) -> Optional[str]:
    """A freeze reason only applies to inactive accounts"""
    if status == AccountStatus.ACTIVE:
        return None
    reason = (reason or "").strip()
    return reason or None


class BankDetailManager:
    """
    CRUD over the bank_details collection with ownership checks
    """

    def __init__(self, store: TableStore):
        self.store = store

    def create_detail(self, staff_id: str, ac_holder_name: str, bank_name: str,
                      acc_number: str, mobile_number: str, merchant_name: Any,
                      status: Any = AccountStatus.ACTIVE,
                      freeze_reason: Optional[str] = None,
                      freeze_balance: Any = Decimal("0")) -> BankDetail:
        """Create a bank detail owned by a staff profile"""
        if not staff_id:
            raise ValueError("Bank detail requires an owning staff profile")

        status = _clean_status(status)
        row = {
            "staff_id": staff_id,
            "ac_holder_name": _clean_text("ac_holder_name", ac_holder_name),
            "bank_name": _clean_text("bank_name", bank_name),
            "acc_number": _clean_text("acc_number", acc_number),
            "mobile_number": _clean_text("mobile_number", mobile_number),
            "merchant_name": _clean_merchant(merchant_name).value,
            "status": status.value,
            "freeze_reason": _reconcile_freeze_reason(status, freeze_reason),
            "freeze_balance": str(_clean_balance(freeze_balance)),
        }
        detail = BankDetail.from_dict(self.store.insert(BANK_DETAILS_TABLE, row))

        log_action(logger, "info", "Bank detail created", user_id=staff_id,
                   action="create_bank_detail", resource=f"bank_detail:{detail.id}")
        return detail

    def get_detail(self, detail_id: str) -> Optional[BankDetail]:
        """Get a bank detail by id"""
        row = self.store.select_one(BANK_DETAILS_TABLE, {"id": detail_id})
        return BankDetail.from_dict(row) if row else None

    def list_for_staff(self, staff_id: str) -> List[BankDetail]:
        """A staff member's own bank details, newest first"""
        rows = self.store.select(BANK_DETAILS_TABLE, {"staff_id": staff_id},
                                 order_by="created_at", descending=True)
        return [BankDetail.from_dict(row) for row in rows]

    def list_all(self, staff_id: Optional[str] = None) -> List[BankDetail]:
        """All bank details with their owner embedded, newest first

        ``staff_id`` of None or "all" means no filter.
        """
        filters = {"staff_id": staff_id} if staff_id and staff_id != "all" else None
        rows = self.store.select(BANK_DETAILS_TABLE, filters, order_by="created_at",
                                 descending=True, embed=OWNER_EMBED)
        return [BankDetail.from_dict(row) for row in rows]

    def update_detail(self, detail_id: str, staff_id: str, **changes) -> Optional[BankDetail]:
        """Partially update a detail owned by ``staff_id``

        Returns None when the detail does not exist or belongs to someone else.
        """
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        current = self.get_detail(detail_id)
        if not current or current.staff_id != staff_id:
            return None

        update = {}
        for name in REQUIRED_TEXT_FIELDS:
            if name in changes:
                update[name] = _clean_text(name, changes[name])
        if "merchant_name" in changes:
            update["merchant_name"] = _clean_merchant(changes["merchant_name"]).value
        if "freeze_balance" in changes:
            update["freeze_balance"] = str(_clean_balance(changes["freeze_balance"]))

        status = _clean_status(changes["status"]) if "status" in changes else current.status
        reason = changes["freeze_reason"] if "freeze_reason" in changes else current.freeze_reason
        update["status"] = status.value
        update["freeze_reason"] = _reconcile_freeze_reason(status, reason)
        update["updated_at"] = datetime.now(timezone.utc).isoformat()

        rows = self.store.update(BANK_DETAILS_TABLE, {"id": detail_id, "staff_id": staff_id}, update)
        if not rows:
            return None

        log_action(logger, "info", "Bank detail updated", user_id=staff_id,
                   action="update_bank_detail", resource=f"bank_detail:{detail_id}",
                   extra={"fields": sorted(changes)})
        return BankDetail.from_dict(rows[0])

    def delete_detail(self, detail_id: str, staff_id: str) -> bool:
        """Delete a detail owned by ``staff_id``; False if not found or not owned"""
        removed = self.store.delete(BANK_DETAILS_TABLE, {"id": detail_id, "staff_id": staff_id})
        if removed:
            log_action(logger, "info", "Bank detail deleted", user_id=staff_id,
                       action="delete_bank_detail", resource=f"bank_detail:{detail_id}")
        return removed > 0

"""
Balance Reporting Module

Aggregates over a loaded list of bank details: frozen balance totals split
by status and account counts, overall and per staff member.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List

from .bank_details import AccountStatus, BankDetail


@dataclass
class BalanceSummary:
    """Totals over a set of bank details"""
    total_balance: Decimal = Decimal("0")
    active_balance: Decimal = Decimal("0")
    active_count: int = 0
    inactive_count: int = 0

    @property
    def inactive_balance(self) -> Decimal:
        return self.total_balance - self.active_balance

    @property
    def total_count(self) -> int:
        return self.active_count + self.inactive_count

    def add(self, detail: BankDetail) -> None:
        self.total_balance += detail.freeze_balance
        if detail.status == AccountStatus.ACTIVE:
            self.active_balance += detail.freeze_balance
            self.active_count += 1
        else:
            self.inactive_count += 1

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_balance": str(self.total_balance),
            "active_balance": str(self.active_balance),
            "inactive_balance": str(self.inactive_balance),
            "active_count": self.active_count,
            "inactive_count": self.inactive_count,
            "total_count": self.total_count,
        }


def summarize_balances(details: Iterable[BankDetail]) -> BalanceSummary:
    """Single pass over the details"""
    summary = BalanceSummary()
    for detail in details:
        summary.add(detail)
    return summary


@dataclass
class StaffBalanceSummary:
    """Summary for the details owned by one staff member"""
    staff_id: str
    full_name: str
    summary: BalanceSummary

    def to_dict(self) -> Dict[str, object]:
        return {"staff_id": self.staff_id, "full_name": self.full_name, **self.summary.to_dict()}


def summarize_by_staff(details: Iterable[BankDetail]) -> List[StaffBalanceSummary]:
    """One summary per owning staff member, largest total balance first"""
    by_staff: Dict[str, StaffBalanceSummary] = {}
    for detail in details:
        entry = by_staff.get(detail.staff_id)
        if entry is None:
            full_name = detail.owner.full_name if detail.owner else ""
            entry = StaffBalanceSummary(detail.staff_id, full_name, BalanceSummary())
            by_staff[detail.staff_id] = entry
        entry.summary.add(detail)

    return sorted(by_staff.values(), key=lambda s: (-s.summary.total_balance, s.full_name))

"""
Dashboard Module

Role-based view selection and the data behind each dashboard. Every call
re-reads the backend; nothing is cached between requests.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .bank_details import BankDetail, BankDetailManager
from .profiles import Profile, ProfileManager, Role
from .reporting import BalanceSummary, StaffBalanceSummary, summarize_balances, summarize_by_staff

ADMIN_VIEW = "admin"
STAFF_VIEW = "staff"


def select_view(profile: Optional[Profile]) -> str:
    """Admins get the admin dashboard; everyone else the staff dashboard"""
    if profile is not None and profile.role == Role.ADMIN:
        return ADMIN_VIEW
    return STAFF_VIEW


@dataclass
class AdminDashboard:
    """Staff list, all bank details and their aggregates"""
    profile: Profile
    staff: List[Profile]
    bank_details: List[BankDetail]
    summary: BalanceSummary
    by_staff: List[StaffBalanceSummary] = field(default_factory=list)
    staff_filter: str = "all"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "view": ADMIN_VIEW,
            "profile": self.profile.to_dict(),
            "staff_filter": self.staff_filter,
            "staff": [p.to_dict() for p in self.staff],
            "bank_details": [d.to_dict(include_owner=True) for d in self.bank_details],
            "summary": self.summary.to_dict(),
            "by_staff": [s.to_dict() for s in self.by_staff],
        }


@dataclass
class StaffDashboard:
    """The caller's own bank details"""
    profile: Profile
    bank_details: List[BankDetail]
    summary: BalanceSummary

    def to_dict(self) -> Dict[str, Any]:
        return {
            "view": STAFF_VIEW,
            "profile": self.profile.to_dict(),
            "bank_details": [d.to_dict() for d in self.bank_details],
            "summary": self.summary.to_dict(),
        }


class DashboardService:
    """Builds dashboards for the signed-in profile"""

    def __init__(self, profile_manager: ProfileManager, bank_detail_manager: BankDetailManager):
        self.profile_manager = profile_manager
        self.bank_detail_manager = bank_detail_manager

    def admin_dashboard(self, profile: Profile, staff_id: Optional[str] = None) -> AdminDashboard:
        details = self.bank_detail_manager.list_all(staff_id)
        return AdminDashboard(
            profile=profile,
            staff=self.profile_manager.list_staff(),
            bank_details=details,
            summary=summarize_balances(details),
            by_staff=summarize_by_staff(details),
            staff_filter=staff_id or "all",
        )

    def staff_dashboard(self, profile: Profile) -> StaffDashboard:
        details = self.bank_detail_manager.list_for_staff(profile.id)
        return StaffDashboard(profile=profile, bank_details=details,
                              summary=summarize_balances(details))

    def dashboard_for(self, profile: Profile, staff_id: Optional[str] = None):
        """Dashboard matching the profile's role"""
        if select_view(profile) == ADMIN_VIEW:
            return self.admin_dashboard(profile, staff_id)
        return self.staff_dashboard(profile)

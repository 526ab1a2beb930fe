"""
Staff Provisioning Module

Creates a staff member as one logical unit out of two backend resources
that share no transaction: a credentialed identity and its linked profile.

    1. validate email, password and full name
    2. create the identity, pre-confirmed, tagged role=staff
    3. insert the profile row (or, when a backend trigger owns that insert,
       wait briefly for it)
    4. read the profile back; if that fails or finds nothing, delete any
       profile row and then the identity so no credential is left behind

Only the profile phase is compensated. An identity failure leaves nothing
behind, and the two phases are never atomic: a reader between steps 2 and 4
can observe an identity that has no profile yet.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .identity import IdentityAdmin, IdentityError
from .logging_config import get_logger, log_action
from .profiles import Profile, ProfileManager, ProfileStatus, Role
from .storage import BackendError

logger = get_logger("banking_panel.provisioning")


class ProvisioningError(Exception):
    """Provisioning failed; ``status_code`` is the HTTP status to report"""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ProvisioningValidationError(ProvisioningError):
    """Required input missing; nothing was created"""

    def __init__(self, message: str = "Email, password, and full name are required"):
        super().__init__(message, status_code=400)


@dataclass
class ProvisioningResult:
    """Outcome of a successful provisioning run"""
    user_id: str
    profile: Profile
    message: str = "Staff member created successfully"

    def to_dict(self) -> Dict[str, Any]:
        return {"success": True, "message": self.message, "userId": self.user_id}


class StaffProvisioner:
    """
    Create-identity-then-profile workflow with compensating identity delete
    """

    def __init__(self, identity_admin: IdentityAdmin, profile_manager: ProfileManager,
                 trigger_enabled: bool = False, trigger_delay_ms: int = 100,
                 sleep: Callable[[float], None] = time.sleep):
        self.identity_admin = identity_admin
        self.profile_manager = profile_manager
        self.trigger_enabled = trigger_enabled
        self.trigger_delay_ms = trigger_delay_ms
        self._sleep = sleep

    def provision_staff(self, email: Optional[str], password: Optional[str],
                        full_name: Optional[str], requested_by: Optional[str] = None) -> ProvisioningResult:
        """Create a staff identity and its profile, or neither"""
        email = (email or "").strip()
        full_name = (full_name or "").strip()
        if not email or not password or not full_name:
            raise ProvisioningValidationError()

        # Phase 1: identity. Nothing to undo if this fails.
        try:
            identity = self.identity_admin.create_user(
                email=email,
                password=password,
                email_confirm=True,
                user_metadata={"full_name": full_name, "role": Role.STAFF.value},
            )
        except IdentityError as e:
            log_action(logger, "warning", f"Identity creation failed: {e.message}",
                       user_id=requested_by, action="provision_staff", resource="identity",
                       extra={"email": email})
            raise ProvisioningError(e.message, status_code=400) from e

        user_id = identity.id
        if not user_id:
            log_action(logger, "error", "Identity service returned no user id",
                       user_id=requested_by, action="provision_staff", resource="identity",
                       extra={"email": email})
            raise ProvisioningError("User creation failed: no userId returned")

        log_action(logger, "info", "Identity created", user_id=user_id,
                   action="provision_staff", resource="identity",
                   extra={"email": email, "requested_by": requested_by})

        # Phase 2: profile, compensated by deleting the profile row and the identity
        try:
            profile = self._create_profile(user_id, full_name)
        except Exception as e:
            log_action(logger, "error", f"Profile creation failed: {e}", user_id=user_id,
                       action="provision_staff", resource="profile", exc_info=True)
            profile = None

        if profile is None:
            self._rollback(user_id)
            raise ProvisioningError("Profile creation failed")

        log_action(logger, "info", "Staff member provisioned", user_id=user_id,
                   action="provision_staff", resource=f"profile:{profile.id}",
                   extra={"requested_by": requested_by})
        return ProvisioningResult(user_id=user_id, profile=profile)

    def _create_profile(self, user_id: str, full_name: str) -> Optional[Profile]:
        """Insert or await the profile row, then confirm it exists"""
        if self.trigger_enabled:
            self._sleep(self.trigger_delay_ms / 1000.0)
        else:
            self.profile_manager.create_profile(
                user_id, full_name, role=Role.STAFF, status=ProfileStatus.ACTIVE
            )
        profile = self.profile_manager.get_by_user_id(user_id)

        if profile is None:
            log_action(logger, "error", "Profile not found after creation", user_id=user_id,
                       action="provision_staff", resource="profile")
        return profile

    def _rollback(self, user_id: str) -> None:
        """Remove any profile row for the identity, then the identity itself"""
        try:
            removed = self.profile_manager.delete_by_user_id(user_id)
        except BackendError as e:
            log_action(logger, "error", f"Rollback could not remove profile row: {e.message}",
                       user_id=user_id, action="provision_staff_rollback", resource="profile")
        else:
            if removed:
                log_action(logger, "warning", "Profile row deleted after verification failure",
                           user_id=user_id, action="provision_staff_rollback", resource="profile")

        try:
            self.identity_admin.delete_user(user_id)
        except IdentityError as e:
            log_action(logger, "error", f"Rollback failed, identity left without profile: {e.message}",
                       user_id=user_id, action="provision_staff_rollback", resource="identity")
            return
        log_action(logger, "warning", "Identity deleted after profile failure", user_id=user_id,
                   action="provision_staff_rollback", resource="identity")

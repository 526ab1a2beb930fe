"""
Panel system wiring and authentication/authorization dependencies
"""

from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..bank_details import BankDetailManager
from ..config import PanelConfig, get_config
from ..dashboard import DashboardService
from ..identity import (
    GoTrueIdentityAdmin, Identity, IdentityAdmin, IdentityError,
    InMemoryIdentityAdmin, verify_access_token
)
from ..logging_config import get_logger, log_action
from ..profiles import Profile, ProfileManager, ProfileStatus, Role
from ..provisioning import StaffProvisioner
from ..storage import BackendError, InMemoryTableStore, RestTableStore, TableStore

logger = get_logger("banking_panel.api")


class PanelSystem:
    """Backend collaborators and managers, initialized once per process"""

    def __init__(self, config: Optional[PanelConfig] = None,
                 store: Optional[TableStore] = None,
                 identity_admin: Optional[IdentityAdmin] = None):
        self.config = config or get_config()
        seed_local_admin = False

        if store is None and identity_admin is None:
            if self.config.backend_mode == "memory":
                store = InMemoryTableStore()
                identity_admin = InMemoryIdentityAdmin(
                    jwt_secret=self.config.jwt_secret,
                    jwt_algorithm=self.config.jwt_algorithm,
                    jwt_expiry_hours=self.config.jwt_expiry_hours,
                )
                seed_local_admin = True
            elif self.config.backend_mode == "rest":
                if not self.config.backend_url or not self.config.backend_service_key:
                    raise ValueError("backend_url and backend_service_key are required in rest mode")
                store = RestTableStore(
                    self.config.backend_url, self.config.backend_service_key, self.config.backend_timeout
                )
                identity_admin = GoTrueIdentityAdmin(
                    self.config.backend_url, self.config.backend_service_key, self.config.backend_timeout
                )
            else:
                raise ValueError(f"Unknown backend mode: {self.config.backend_mode}")
        elif store is None or identity_admin is None:
            raise ValueError("store and identity_admin must be supplied together")

        self.store = store
        self.identity_admin = identity_admin

        self.profile_manager = ProfileManager(self.store)
        self.bank_detail_manager = BankDetailManager(self.store)
        self.dashboard_service = DashboardService(self.profile_manager, self.bank_detail_manager)
        self.provisioner = StaffProvisioner(
            self.identity_admin, self.profile_manager,
            trigger_enabled=self.config.profile_trigger_enabled,
            trigger_delay_ms=self.config.profile_trigger_delay_ms,
        )

        if isinstance(self.identity_admin, InMemoryIdentityAdmin) and self.config.profile_trigger_enabled:
            self.identity_admin.on_user_created.append(self._profile_trigger)
        if seed_local_admin:
            self._seed_admin()

    def _profile_trigger(self, identity: Identity) -> None:
        """Stand-in for the backend trigger that creates a profile per new identity"""
        metadata = identity.user_metadata or {}
        self.profile_manager.create_profile(
            identity.id,
            metadata.get("full_name") or identity.email,
            role=Role.parse(metadata.get("role")),
        )

    def _seed_admin(self) -> None:
        identity = self.identity_admin.create_user(
            email=self.config.bootstrap_admin_email,
            password=self.config.bootstrap_admin_password,
            email_confirm=True,
            user_metadata={"full_name": self.config.bootstrap_admin_name, "role": Role.ADMIN.value},
        )
        if self.profile_manager.get_by_user_id(identity.id) is None:
            self.profile_manager.create_profile(identity.id, self.config.bootstrap_admin_name, role=Role.ADMIN)
        log_action(logger, "info", "Local administrator seeded", user_id=identity.id,
                   action="seed_admin", resource="profile")

    def close(self) -> None:
        self.store.close()
        self.identity_admin.close()


_panel_system: Optional[PanelSystem] = None


# Dependency to get the panel system
def get_panel_system() -> PanelSystem:
    global _panel_system
    if _panel_system is None:
        _panel_system = PanelSystem()
    return _panel_system


def close_panel_system() -> None:
    global _panel_system
    if _panel_system is not None:
        _panel_system.close()
        _panel_system = None


security = HTTPBearer(auto_error=False)


def get_current_profile(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
                        system: PanelSystem = Depends(get_panel_system)) -> Profile:
    """Dependency that validates the bearer token and returns the caller's profile"""
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        user_id = verify_access_token(
            credentials.credentials, system.config.jwt_secret, system.config.jwt_algorithm
        )
    except IdentityError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    try:
        profile = system.profile_manager.get_by_user_id(user_id)
    except BackendError as e:
        raise HTTPException(status_code=500, detail=e.message)
    if not profile:
        raise HTTPException(status_code=401, detail="Profile not found")
    if profile.status != ProfileStatus.ACTIVE:
        raise HTTPException(status_code=403, detail="Account is inactive")
    return profile


def require_admin(profile: Profile = Depends(get_current_profile)) -> Profile:
    """Only administrators pass"""
    if profile.role != Role.ADMIN:
        raise HTTPException(status_code=403, detail="Administrator access required")
    return profile


def require_staff(profile: Profile = Depends(get_current_profile)) -> Profile:
    """Only staff members pass; bank details are staff-owned"""
    if profile.role != Role.STAFF:
        raise HTTPException(status_code=403, detail="Staff access required")
    return profile


def provisioning_caller(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
                        system: PanelSystem = Depends(get_panel_system)) -> Optional[Profile]:
    """Admin profile calling the provisioning endpoint, unless that check is disabled"""
    if not system.config.require_admin_for_provisioning:
        return None
    return require_admin(get_current_profile(credentials, system))

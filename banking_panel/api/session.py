"""
Sign-in endpoints
"""

from fastapi import APIRouter, Depends, HTTPException

from .auth import PanelSystem, get_current_profile, get_panel_system
from .schemas import LoginRequest
from ..dashboard import select_view
from ..identity import IdentityError
from ..logging_config import get_logger, log_action
from ..profiles import Profile, ProfileStatus
from ..storage import BackendError


router = APIRouter()
logger = get_logger("banking_panel.api.session")


@router.post("/login")
async def login(
    request: LoginRequest,
    system: PanelSystem = Depends(get_panel_system)
):
    """Authenticate with email and password and return an access token"""
    try:
        session = system.identity_admin.sign_in(request.email, request.password)
        profile = system.profile_manager.get_by_user_id(session.user.id)
    except IdentityError as e:
        log_action(logger, "warning", f"Authentication failed: {e.message}",
                   action="login_failed", resource="auth", extra={"email": request.email})
        raise HTTPException(status_code=401, detail=e.message)
    except BackendError as e:
        raise HTTPException(status_code=500, detail=e.message)

    if not profile:
        log_action(logger, "warning", "Authenticated identity has no profile",
                   user_id=session.user.id, action="login_failed", resource="auth")
        raise HTTPException(status_code=403, detail="Profile not found")
    if profile.status != ProfileStatus.ACTIVE:
        raise HTTPException(status_code=403, detail="Account is inactive")

    log_action(logger, "info", "User authenticated successfully",
               user_id=session.user.id, action="login", resource="auth")

    return {
        "access_token": session.access_token,
        "token_type": session.token_type,
        "expires_at": session.expires_at.isoformat(),
        "user_id": session.user.id,
        "profile": profile.to_dict(),
        "view": select_view(profile),
    }


@router.get("/me")
async def get_me(profile: Profile = Depends(get_current_profile)):
    """Current user's profile and dashboard view"""
    return {"profile": profile.to_dict(), "view": select_view(profile)}

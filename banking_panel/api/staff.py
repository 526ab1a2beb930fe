"""
Staff provisioning endpoint
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from .auth import PanelSystem, get_panel_system, provisioning_caller
from .schemas import CreateStaffRequest
from ..logging_config import get_logger, log_action
from ..profiles import Profile
from ..provisioning import ProvisioningError


router = APIRouter()
logger = get_logger("banking_panel.api.staff")


@router.post("/create-staff")
async def create_staff(
    request: CreateStaffRequest,
    caller: Optional[Profile] = Depends(provisioning_caller),
    system: PanelSystem = Depends(get_panel_system)
):
    """Create a staff identity and profile, rolling back the identity on failure"""
    requested_by = caller.user_id if caller else None
    try:
        result = system.provisioner.provision_staff(
            email=request.email,
            password=request.password,
            full_name=request.full_name,
            requested_by=requested_by,
        )
    except ProvisioningError as e:
        return JSONResponse(status_code=e.status_code, content={"error": e.message})
    except Exception as e:
        log_action(logger, "error", f"Error in create-staff: {e}", user_id=requested_by,
                   action="provision_staff", resource="identity", exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(e)})

    return result.to_dict()


@router.api_route("/create-staff", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def create_staff_method_not_allowed():
    return JSONResponse(status_code=405, content={"error": "Method not allowed"}, headers={"Allow": "POST"})

"""
Role-selected dashboard endpoint
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from .auth import PanelSystem, get_current_profile, get_panel_system
from ..profiles import Profile
from ..storage import BackendError


router = APIRouter()


@router.get("")
async def get_dashboard(
    staff_id: Optional[str] = Query(None, description="Admin view only: staff profile id, or 'all'"),
    profile: Profile = Depends(get_current_profile),
    system: PanelSystem = Depends(get_panel_system)
):
    """Admin dashboard for administrators, staff dashboard for everyone else"""
    try:
        dashboard = system.dashboard_service.dashboard_for(profile, staff_id)
    except BackendError as e:
        raise HTTPException(status_code=500, detail=e.message)
    return dashboard.to_dict()

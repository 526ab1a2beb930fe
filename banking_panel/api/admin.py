"""
Administrator endpoints: staff list and cross-staff bank details
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from .auth import PanelSystem, get_panel_system, require_admin
from ..profiles import Profile
from ..reporting import summarize_balances, summarize_by_staff
from ..storage import BackendError


router = APIRouter()


@router.get("/staff")
async def list_staff(
    profile: Profile = Depends(require_admin),
    system: PanelSystem = Depends(get_panel_system)
):
    """Staff profiles, newest first"""
    try:
        staff = system.profile_manager.list_staff()
    except BackendError as e:
        raise HTTPException(status_code=500, detail=e.message)
    return {"staff": [p.to_dict() for p in staff]}


@router.get("/bank-details")
async def list_all_bank_details(
    staff_id: Optional[str] = Query(None, description="Staff profile id, or 'all'"),
    profile: Profile = Depends(require_admin),
    system: PanelSystem = Depends(get_panel_system)
):
    """Bank details across staff with the owner embedded"""
    try:
        details = system.bank_detail_manager.list_all(staff_id)
    except BackendError as e:
        raise HTTPException(status_code=500, detail=e.message)

    return {
        "staff_filter": staff_id or "all",
        "bank_details": [d.to_dict(include_owner=True) for d in details],
        "summary": summarize_balances(details).to_dict(),
    }


@router.get("/summary")
async def get_summary(
    staff_id: Optional[str] = Query(None, description="Staff profile id, or 'all'"),
    profile: Profile = Depends(require_admin),
    system: PanelSystem = Depends(get_panel_system)
):
    """Balance and count aggregates, overall and per staff member"""
    try:
        details = system.bank_detail_manager.list_all(staff_id)
    except BackendError as e:
        raise HTTPException(status_code=500, detail=e.message)

    return {
        "staff_filter": staff_id or "all",
        "summary": summarize_balances(details).to_dict(),
        "by_staff": [s.to_dict() for s in summarize_by_staff(details)],
    }

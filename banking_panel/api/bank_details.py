"""
Staff bank detail endpoints

Mutations answer with the owner's refreshed list so clients re-render from
the backend state.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from .auth import PanelSystem, get_panel_system, require_staff
from .schemas import CreateBankDetailRequest, UpdateBankDetailRequest
from ..profiles import Profile
from ..reporting import summarize_balances
from ..storage import BackendError


router = APIRouter()


def _listing(system: PanelSystem, profile: Profile) -> dict:
    details = system.bank_detail_manager.list_for_staff(profile.id)
    return {
        "bank_details": [d.to_dict() for d in details],
        "summary": summarize_balances(details).to_dict(),
    }


@router.get("")
async def list_bank_details(
    profile: Profile = Depends(require_staff),
    system: PanelSystem = Depends(get_panel_system)
):
    """The caller's own bank details, newest first"""
    try:
        return _listing(system, profile)
    except BackendError as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_bank_detail(
    request: CreateBankDetailRequest,
    profile: Profile = Depends(require_staff),
    system: PanelSystem = Depends(get_panel_system)
):
    """Add a bank detail owned by the caller"""
    try:
        detail = system.bank_detail_manager.create_detail(
            staff_id=profile.id,
            ac_holder_name=request.ac_holder_name,
            bank_name=request.bank_name,
            acc_number=request.acc_number,
            mobile_number=request.mobile_number,
            merchant_name=request.merchant_name,
            status=request.status,
            freeze_reason=request.freeze_reason,
            freeze_balance=request.freeze_balance,
        )
        return {
            "message": "Bank details added successfully",
            "bank_detail": detail.to_dict(),
            **_listing(system, profile),
        }
    except (ValueError, BackendError) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{detail_id}")
async def get_bank_detail(
    detail_id: str,
    profile: Profile = Depends(require_staff),
    system: PanelSystem = Depends(get_panel_system)
):
    """Get one of the caller's bank details"""
    detail = system.bank_detail_manager.get_detail(detail_id)
    if not detail or detail.staff_id != profile.id:
        raise HTTPException(status_code=404, detail="Bank detail not found")
    return detail.to_dict()


@router.put("/{detail_id}")
async def update_bank_detail(
    detail_id: str,
    request: UpdateBankDetailRequest,
    profile: Profile = Depends(require_staff),
    system: PanelSystem = Depends(get_panel_system)
):
    """Update one of the caller's bank details"""
    try:
        detail = system.bank_detail_manager.update_detail(
            detail_id, profile.id, **request.model_dump(exclude_unset=True)
        )
    except (ValueError, BackendError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not detail:
        raise HTTPException(status_code=404, detail="Bank detail not found")

    return {
        "message": "Bank details updated successfully",
        "bank_detail": detail.to_dict(),
        **_listing(system, profile),
    }


@router.delete("/{detail_id}")
async def delete_bank_detail(
    detail_id: str,
    confirm: bool = Query(False, description="Must be true to delete"),
    profile: Profile = Depends(require_staff),
    system: PanelSystem = Depends(get_panel_system)
):
    """Delete one of the caller's bank details"""
    if not confirm:
        raise HTTPException(status_code=400, detail="Deletion must be confirmed")

    try:
        deleted = system.bank_detail_manager.delete_detail(detail_id, profile.id)
    except BackendError as e:
        raise HTTPException(status_code=400, detail=e.message)

    if not deleted:
        raise HTTPException(status_code=404, detail="Bank detail not found")

    return {"message": "Bank detail deleted successfully", **_listing(system, profile)}

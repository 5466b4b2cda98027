from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stampcard.db import get_db
from stampcard.schemas.crm import MemberOut, MembersOut, MembersQuery
from stampcard.services.business_service import require_business
from stampcard.services.crm_service import list_members


router = APIRouter(prefix="/api/v1/users", tags=["crm"])


@router.post("", response_model=MembersOut)
def list_users(payload: MembersQuery, db: Session = Depends(get_db)):
    require_business(db, payload.businessId)

    rows = list_members(
        db,
        payload.businessId,
        page=payload.page,
        limit=payload.limit,
        min_stamp=payload.minStamp,
        has_coupon=payload.hasCoupon,
        has_visited=payload.hasVisited,
        sort_by=payload.sortBy,
        sort_order=payload.sortOrder,
    )
    return MembersOut(message="Users retrieved successfully", data=[MemberOut(**row) for row in rows])

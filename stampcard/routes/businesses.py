from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from stampcard.db import get_db
from stampcard.schemas.business import BusinessOut, BusinessProvision, CapacityOut
from stampcard.services.business_service import get_capacity, provision_business, require_business


router = APIRouter(prefix="/api/v1/businesses", tags=["businesses"])


@router.post("", response_model=BusinessOut)
def provision(payload: BusinessProvision, response: Response, db: Session = Depends(get_db)):
    business, created = provision_business(
        db,
        business_id=payload.id,
        brand_id=payload.brandId,
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        address=payload.address,
    )
    db.commit()
    db.refresh(business)
    response.status_code = 201 if created else 200
    return BusinessOut.from_business(business)


@router.get("/{business_id}", response_model=BusinessOut)
def get_business(business_id: str, db: Session = Depends(get_db)):
    return BusinessOut.from_business(require_business(db, business_id))


@router.get("/{business_id}/capacity", response_model=CapacityOut)
def capacity(business_id: str, db: Session = Depends(get_db)):
    return CapacityOut(**get_capacity(require_business(db, business_id)))

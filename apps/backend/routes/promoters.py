from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from apps.backend.routes.deps import get_promoter_service
from apps.backend.services.promoter_service import PromoterService
from apps.backend.utils.envelope import ok

router = APIRouter(prefix="/promoters", tags=["promoters"])


# ===== Pydantic models =====
class LookupIn(BaseModel):
    phone: str

class RegistrationIn(BaseModel):
    full_name: str
    whatsapp_number: str
    aadhar_number: str
    dob: str
    anniversary_date: Optional[str] = None
    avatar_base64: str

class ProfileIn(BaseModel):
    full_name: Optional[str] = None
    dob: Optional[str] = None
    anniversary_date: Optional[str] = None
    avatar_base64: Optional[str] = None


# ===== Endpoints =====
@router.post("/lookup")
async def lookup(inb: LookupIn, service: PromoterService = Depends(get_promoter_service)):
    return ok(data=await service.lookup(inb.phone))


@router.post("/register")
async def register(inb: RegistrationIn, service: PromoterService = Depends(get_promoter_service)):
    promoter = await service.register(**inb.dict())
    return ok(data={"promoter": promoter, "state": "pending"}, status=201)


@router.get("/{promoter_id}/dashboard")
async def dashboard(promoter_id: str, service: PromoterService = Depends(get_promoter_service)):
    return ok(data=await service.dashboard(promoter_id))


@router.patch("/{promoter_id}/profile")
async def update_profile(
    promoter_id: str,
    inb: ProfileIn,
    service: PromoterService = Depends(get_promoter_service),
):
    return ok(data=await service.update_profile(promoter_id, **inb.dict()))

from datetime import date
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from apps.backend.routes.deps import get_admin_service, get_referral_service, require_admin
from apps.backend.services.admin.admin_service import AdminService
from apps.backend.services.referral_service import ReferralService
from apps.backend.utils.envelope import ok

# every route requires a Supabase admin session
router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


class PromoterEditIn(BaseModel):
    full_name: Optional[str] = None
    whatsapp_number: Optional[str] = None
    aadhar_number: Optional[str] = None
    dob: Optional[date] = None
    is_approved: Optional[bool] = None
    total_points: Optional[int] = Field(default=None, ge=0)

class CourseIn(BaseModel):
    name: str
    description: Optional[str] = ""
    course_type: str = "free"
    price: float = 0
    is_active: bool = True
    points: Optional[int] = Field(default=None, ge=0)

class CourseUpdateIn(CourseIn):
    # full replacement, so the type must be restated
    course_type: str


@router.get("/me")
async def whoami(admin: Dict[str, str] = Depends(require_admin)):
    return ok(data=admin)


@router.get("/overview")
async def overview(q: Optional[str] = Query(default=None), service: AdminService = Depends(get_admin_service)):
    return ok(data=await service.overview(q))


@router.get("/analytics/monthly")
async def monthly(service: AdminService = Depends(get_admin_service)):
    return ok(data={"months": await service.monthly()})


# ===== Promoters =====
@router.post("/promoters/{promoter_id}/approve")
async def approve_promoter(promoter_id: str, service: AdminService = Depends(get_admin_service)):
    return ok(data=await service.approve_promoter(promoter_id))


@router.patch("/promoters/{promoter_id}")
async def edit_promoter(promoter_id: str, inb: PromoterEditIn, service: AdminService = Depends(get_admin_service)):
    fields = inb.dict(exclude_unset=True, exclude_none=True)
    if isinstance(fields.get("dob"), date):
        fields["dob"] = fields["dob"].isoformat()
    return ok(data=await service.edit_promoter(promoter_id, fields))


@router.delete("/promoters/{promoter_id}")
async def delete_promoter(promoter_id: str, service: AdminService = Depends(get_admin_service)):
    return ok(data=await service.delete_promoter(promoter_id))


# ===== Referrals =====
@router.post("/referrals/{referral_id}/verify")
async def verify_referral(referral_id: str, service: ReferralService = Depends(get_referral_service)):
    return ok(data=await service.verify(referral_id))


# ===== Courses =====
@router.post("/courses")
async def create_course(inb: CourseIn, service: AdminService = Depends(get_admin_service)):
    return ok(data=await service.create_course(**inb.dict()), status=201)


@router.put("/courses/{course_id}")
async def update_course(course_id: str, inb: CourseUpdateIn, service: AdminService = Depends(get_admin_service)):
    return ok(data=await service.update_course(course_id, **inb.dict()))


@router.delete("/courses/{course_id}")
async def delete_course(course_id: str, service: AdminService = Depends(get_admin_service)):
    return ok(data=await service.delete_course(course_id))

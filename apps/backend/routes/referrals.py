from fastapi import APIRouter, Depends
from pydantic import BaseModel

from apps.backend.routes.deps import get_referral_service
from apps.backend.services.referral_service import ReferralService
from apps.backend.utils.envelope import ok

router = APIRouter(tags=["referrals"])


class ReferralIn(BaseModel):
    promoter_id: str
    course_id: str
    student_name: str
    student_contact: str
    student_aadhar: str


@router.get("/courses")
async def active_courses(service: ReferralService = Depends(get_referral_service)):
    return ok(data={"courses": await service.active_courses()})


@router.post("/referrals")
async def submit_referral(inb: ReferralIn, service: ReferralService = Depends(get_referral_service)):
    referral = await service.submit(**inb.dict())
    return ok(
        data={
            "referral": referral,
            "message": "Referral will be reviewed by admin before points are credited",
        },
        status=201,
    )

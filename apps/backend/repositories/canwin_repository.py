"""
CanWin Repository (Supabase/Postgres Adapter)
=============================================

Purpose:
- DB-facing adapter for promoters, referrals, courses, avatar storage and
  admin auth sessions.
- Services receive an instance through their constructor; nothing imports a
  module-level client.

Expected tables:
1) public.public_users
   - id uuid primary key
   - custom_id text null (assigned by the database)
   - full_name text, whatsapp_number text unique, aadhar_number text unique
   - dob date, anniversary_date date null, avatar_url text
   - is_approved bool default false
   - total_points int default 0, paid_referrals int default 0, free_referrals int default 0
   - current_level text
   - created_at timestamptz default now()

2) public.referrals
   - id uuid primary key
   - referrer_id uuid references public_users(id)
   - course_id uuid references courses(id)
   - student_name text, student_contact text, student_aadhar text
   - status text ('pending' | 'approved')
   - points_earned int null
   - created_at timestamptz default now()

3) public.courses
   - id uuid primary key
   - name text, description text, course_type text ('paid' | 'free')
   - points int, price numeric, is_active bool
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from supabase import Client, PostgrestAPIError

from apps.backend.services import supabase_admin

log = logging.getLogger("canwin.repository")

UNIQUE_VIOLATION = "23505"

REFERRAL_WITH_COURSE = "*, courses:course_id (name, course_type, points)"
REFERRAL_WITH_PROMOTER_AND_COURSE = (
    "*, public_users:referrer_id (id, full_name, custom_id), "
    "courses:course_id (name, course_type, points)"
)


class DuplicateRecordError(Exception):
    def __init__(self, table: str, detail: str):
        self.table = table
        self.detail = detail
        super().__init__(f"duplicate row in {table}: {detail}")


class CanWinRepository:
    def __init__(
        self,
        supabase_client: Client,
        *,
        avatar_bucket: str = "avatars",
        table_users: str = "public_users",
        table_referrals: str = "referrals",
        table_courses: str = "courses",
    ) -> None:
        self.sb = supabase_client
        self.avatar_bucket = avatar_bucket
        self.table_users = table_users
        self.table_referrals = table_referrals
        self.table_courses = table_courses

    # -----------------------------
    # Promoters
    # -----------------------------
    async def get_promoter(self, promoter_id: str) -> Optional[Dict[str, Any]]:
        r = self.sb.table(self.table_users).select("*").eq("id", promoter_id).limit(1).execute()
        return _first(r)

    async def get_promoter_by_phone(self, phone: str) -> Optional[Dict[str, Any]]:
        r = self.sb.table(self.table_users).select("*").eq("whatsapp_number", phone).limit(1).execute()
        return _first(r)

    async def insert_promoter(self, row: Dict[str, Any]) -> Dict[str, Any]:
        try:
            r = self.sb.table(self.table_users).insert(row).execute()
        except PostgrestAPIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateRecordError(self.table_users, e.message or "") from e
            raise
        return _first(r) or row

    async def update_promoter(self, promoter_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            r = self.sb.table(self.table_users).update(patch).eq("id", promoter_id).execute()
        except PostgrestAPIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateRecordError(self.table_users, e.message or "") from e
            raise
        return _first(r)

    async def delete_promoter(self, promoter_id: str) -> None:
        self.sb.table(self.table_users).delete().eq("id", promoter_id).execute()

    async def list_promoters(self, *, approved: Optional[bool] = None) -> List[Dict[str, Any]]:
        """
        Pending promoters come newest first; everything else by points, highest first.
        """
        q = self.sb.table(self.table_users).select("*")
        if approved is False:
            q = q.eq("is_approved", False).order("created_at", desc=True)
        elif approved is True:
            q = q.eq("is_approved", True).order("total_points", desc=True)
        else:
            q = q.order("total_points", desc=True)
        return _rows(q.execute())

    # -----------------------------
    # Referrals
    # -----------------------------
    async def insert_referral(self, row: Dict[str, Any]) -> Dict[str, Any]:
        r = self.sb.table(self.table_referrals).insert(row).execute()
        return _first(r) or row

    async def get_referral(self, referral_id: str) -> Optional[Dict[str, Any]]:
        r = self.sb.table(self.table_referrals).select("*").eq("id", referral_id).limit(1).execute()
        return _first(r)

    async def update_referral(self, referral_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        r = self.sb.table(self.table_referrals).update(patch).eq("id", referral_id).execute()
        return _first(r)

    async def claim_pending_referral(self, referral_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Update only while the row is still pending. None means another caller
        already moved it on.
        """
        r = (
            self.sb.table(self.table_referrals)
            .update(patch)
            .eq("id", referral_id)
            .eq("status", "pending")
            .execute()
        )
        return _first(r)

    async def delete_referrals_for_promoter(self, promoter_id: str) -> None:
        self.sb.table(self.table_referrals).delete().eq("referrer_id", promoter_id).execute()

    async def list_referrals_for_promoter(self, promoter_id: str) -> List[Dict[str, Any]]:
        r = (
            self.sb.table(self.table_referrals)
            .select(REFERRAL_WITH_COURSE)
            .eq("referrer_id", promoter_id)
            .order("created_at", desc=True)
            .execute()
        )
        return _rows(r)

    async def list_pending_referrals(self) -> List[Dict[str, Any]]:
        r = (
            self.sb.table(self.table_referrals)
            .select(REFERRAL_WITH_PROMOTER_AND_COURSE)
            .eq("status", "pending")
            .order("created_at", desc=True)
            .execute()
        )
        return _rows(r)

    async def list_approved_referrals_between(self, start_iso: str, end_iso: str) -> List[Dict[str, Any]]:
        r = (
            self.sb.table(self.table_referrals)
            .select("points_earned, created_at, courses:course_id (course_type)")
            .eq("status", "approved")
            .gte("created_at", start_iso)
            .lt("created_at", end_iso)
            .execute()
        )
        return _rows(r)

    # -----------------------------
    # Courses
    # -----------------------------
    async def get_course(self, course_id: str) -> Optional[Dict[str, Any]]:
        r = self.sb.table(self.table_courses).select("*").eq("id", course_id).limit(1).execute()
        return _first(r)

    async def list_courses(self, *, active_only: bool = False) -> List[Dict[str, Any]]:
        q = self.sb.table(self.table_courses).select("*")
        if active_only:
            q = q.eq("is_active", True)
        return _rows(q.order("name").execute())

    async def insert_course(self, row: Dict[str, Any]) -> Dict[str, Any]:
        r = self.sb.table(self.table_courses).insert(row).execute()
        return _first(r) or row

    async def update_course(self, course_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        r = self.sb.table(self.table_courses).update(patch).eq("id", course_id).execute()
        return _first(r)

    async def delete_course(self, course_id: str) -> None:
        self.sb.table(self.table_courses).delete().eq("id", course_id).execute()

    # -----------------------------
    # Storage
    # -----------------------------
    async def upload_avatar(self, file_name: str, content: bytes, content_type: str) -> str:
        return supabase_admin.upload_object(
            self.avatar_bucket,
            file_name,
            content,
            content_type,
            cache_control="3600",
            upsert=False,
        )

    async def remove_avatar(self, file_name: str) -> None:
        supabase_admin.delete_object(self.avatar_bucket, file_name)

    # -----------------------------
    # Auth
    # -----------------------------
    async def get_auth_user(self, token: str) -> Optional[Dict[str, str]]:
        res = self.sb.auth.get_user(token)
        user = getattr(res, "user", None)
        if not user:
            return None
        return {"id": user.id, "email": user.email}

    # -----------------------------
    # Health
    # -----------------------------
    async def ping_tables(self, tables: Iterable[str]) -> Dict[str, bool]:
        checks: Dict[str, bool] = {}
        for table in tables:
            try:
                self.sb.table(table).select("id").limit(1).execute()
                checks[table] = True
            except Exception as e:
                log.warning("Health check failed for %s: %s", table, e)
                checks[table] = False
        return checks


# ---------------------------------------
# Row helpers
# ---------------------------------------
def _rows(response: Any) -> List[Dict[str, Any]]:
    data = getattr(response, "data", None) or []
    return [row for row in data if isinstance(row, dict)]


def _first(response: Any) -> Optional[Dict[str, Any]]:
    rows = _rows(response)
    return rows[0] if rows else None

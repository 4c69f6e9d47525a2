"""Pytest configuration and fixtures"""
import copy
import io
import os
import uuid
from typing import Any, Dict, Iterable, List

import pytest
from PIL import Image

# Set test environment variables before the app reads them
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test_key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("KEEPALIVE_ENABLED", "false")

from apps.backend.repositories.canwin_repository import DuplicateRecordError  # noqa: E402


class FakeRepository:
    """In-memory stand-in for CanWinRepository."""

    def __init__(self) -> None:
        self.users: Dict[str, Dict[str, Any]] = {}
        self.referrals: Dict[str, Dict[str, Any]] = {}
        self.courses: Dict[str, Dict[str, Any]] = {}
        self.uploads: Dict[str, bytes] = {}
        self.removed_uploads: List[str] = []
        self.auth_tokens: Dict[str, Dict[str, str]] = {}
        self.broken_tables: set = set()
        self.fail_course_delete = False
        self._clock = 0

    def _stamp(self) -> str:
        self._clock += 1
        return f"2025-01-01T00:00:{self._clock:02d}+00:00"

    # promoters
    async def get_promoter(self, promoter_id):
        return copy.deepcopy(self.users.get(promoter_id))

    async def get_promoter_by_phone(self, phone):
        for u in self.users.values():
            if u.get("whatsapp_number") == phone:
                return copy.deepcopy(u)
        return None

    def _check_unique(self, row, skip_id=None):
        for u in self.users.values():
            if u["id"] == skip_id:
                continue
            if row.get("aadhar_number") and u.get("aadhar_number") == row.get("aadhar_number"):
                raise DuplicateRecordError("public_users", "public_users_aadhar_number_key")
            if row.get("whatsapp_number") and u.get("whatsapp_number") == row.get("whatsapp_number"):
                raise DuplicateRecordError("public_users", "public_users_whatsapp_number_key")

    async def insert_promoter(self, row):
        self._check_unique(row)
        new = {"id": str(uuid.uuid4()), "custom_id": None, "created_at": self._stamp(), **row}
        self.users[new["id"]] = new
        return copy.deepcopy(new)

    async def update_promoter(self, promoter_id, patch):
        if promoter_id not in self.users:
            return None
        self._check_unique(patch, skip_id=promoter_id)
        self.users[promoter_id].update(patch)
        return copy.deepcopy(self.users[promoter_id])

    async def delete_promoter(self, promoter_id):
        self.users.pop(promoter_id, None)

    async def list_promoters(self, *, approved=None):
        rows = list(self.users.values())
        if approved is False:
            rows = [u for u in rows if not u.get("is_approved")]
            rows.sort(key=lambda u: u["created_at"], reverse=True)
        else:
            if approved is True:
                rows = [u for u in rows if u.get("is_approved")]
            rows.sort(key=lambda u: u.get("total_points") or 0, reverse=True)
        return copy.deepcopy(rows)

    # referrals
    def _with_course(self, r):
        c = self.courses.get(r["course_id"]) or {}
        return {**r, "courses": {k: c.get(k) for k in ("name", "course_type", "points")}}

    async def insert_referral(self, row):
        new = {"id": str(uuid.uuid4()), "created_at": self._stamp(), "points_earned": None, **row}
        self.referrals[new["id"]] = new
        return copy.deepcopy(new)

    async def get_referral(self, referral_id):
        return copy.deepcopy(self.referrals.get(referral_id))

    async def update_referral(self, referral_id, patch):
        if referral_id not in self.referrals:
            return None
        self.referrals[referral_id].update(patch)
        return copy.deepcopy(self.referrals[referral_id])

    async def claim_pending_referral(self, referral_id, patch):
        row = self.referrals.get(referral_id)
        if not row or row["status"] != "pending":
            return None
        row.update(patch)
        return copy.deepcopy(row)

    async def delete_referrals_for_promoter(self, promoter_id):
        for rid in [k for k, r in self.referrals.items() if r["referrer_id"] == promoter_id]:
            del self.referrals[rid]

    async def list_referrals_for_promoter(self, promoter_id):
        rows = [self._with_course(r) for r in self.referrals.values() if r["referrer_id"] == promoter_id]
        return sorted(rows, key=lambda r: r["created_at"], reverse=True)

    async def list_pending_referrals(self):
        rows = []
        for r in self.referrals.values():
            if r["status"] != "pending":
                continue
            u = self.users.get(r["referrer_id"]) or {}
            rows.append(
                {
                    **self._with_course(r),
                    "public_users": {k: u.get(k) for k in ("id", "full_name", "custom_id")},
                }
            )
        return sorted(rows, key=lambda r: r["created_at"], reverse=True)

    async def list_approved_referrals_between(self, start_iso, end_iso):
        self.last_window = (start_iso, end_iso)
        return [
            {
                "points_earned": r.get("points_earned"),
                "created_at": r["created_at"],
                "courses": {"course_type": (self.courses.get(r["course_id"]) or {}).get("course_type")},
            }
            for r in self.referrals.values()
            if r["status"] == "approved"
        ]

    # courses
    async def get_course(self, course_id):
        return copy.deepcopy(self.courses.get(course_id))

    async def list_courses(self, *, active_only=False):
        rows = [c for c in self.courses.values() if c.get("is_active") or not active_only]
        return copy.deepcopy(sorted(rows, key=lambda c: c["name"]))

    async def insert_course(self, row):
        new = {"id": str(uuid.uuid4()), **row}
        self.courses[new["id"]] = new
        return copy.deepcopy(new)

    async def update_course(self, course_id, patch):
        if course_id not in self.courses:
            return None
        self.courses[course_id].update(patch)
        return copy.deepcopy(self.courses[course_id])

    async def delete_course(self, course_id):
        if self.fail_course_delete:
            raise RuntimeError("violates foreign key constraint")
        self.courses.pop(course_id, None)

    # storage
    async def upload_avatar(self, file_name, content, content_type):
        self.uploads[file_name] = content
        return f"https://test.supabase.co/storage/v1/object/public/avatars/{file_name}"

    async def remove_avatar(self, file_name):
        self.removed_uploads.append(file_name)
        self.uploads.pop(file_name, None)

    # auth
    async def get_auth_user(self, token):
        if token not in self.auth_tokens:
            raise RuntimeError("invalid JWT")
        return self.auth_tokens[token]

    # health
    async def ping_tables(self, tables: Iterable[str]):
        return {t: t not in self.broken_tables for t in tables}


# ---------------------------------------
# Fixtures
# ---------------------------------------
@pytest.fixture
def repo():
    return FakeRepository()


@pytest.fixture
def png_base64():
    import base64

    buf = io.BytesIO()
    Image.new("RGB", (64, 48), (200, 120, 40)).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode()


@pytest.fixture
def sample_course():
    return {"name": "Spoken English", "description": "", "course_type": "paid", "points": 10, "price": 4999.0, "is_active": True}


async def _seed_promoter(repo: FakeRepository, **overrides) -> Dict[str, Any]:
    row = {
        "full_name": "Asha Menon",
        "whatsapp_number": "9876543210",
        "aadhar_number": "123412341234",
        "dob": "1990-05-17",
        "anniversary_date": None,
        "avatar_url": "https://test.supabase.co/storage/v1/object/public/avatars/a.jpg",
        "is_approved": True,
        "total_points": 0,
        "paid_referrals": 0,
        "free_referrals": 0,
        "current_level": "Bronze",
    }
    row.update(overrides)
    return await repo.insert_promoter(row)


@pytest.fixture
def seed_promoter():
    return _seed_promoter


@pytest.fixture
def client(repo):
    from fastapi.testclient import TestClient

    from apps.backend.main import app
    from apps.backend.routes.deps import get_optional_repo

    app.dependency_overrides[get_optional_repo] = lambda: repo
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(repo):
    repo.auth_tokens["admin-token"] = {"id": "admin-1", "email": "admin@canwin.test"}
    return {"Authorization": "Bearer admin-token"}
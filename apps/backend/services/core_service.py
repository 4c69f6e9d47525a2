from typing import Any, Dict, List, Optional


class CoreError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise CoreError("Missing or invalid Authorization header", 401)
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise CoreError("Missing or invalid Authorization header", 401)
    return token


async def get_admin(repo: Any, authorization: Optional[str], admin_emails: List[str]) -> Dict[str, str]:
    """
    Resolve the admin behind a Supabase auth session token.
    An empty allowlist admits any authenticated user.
    """
    token = bearer_token(authorization)

    try:
        user = await repo.get_auth_user(token)
    except Exception:
        raise CoreError("Invalid or expired token", 401)

    if not user or not user.get("id") or not user.get("email"):
        raise CoreError("Unable to resolve user identity", 401)

    if admin_emails and user["email"].lower() not in admin_emails:
        raise CoreError("Not an admin account", 403)

    return {"id": user["id"], "email": user["email"]}


async def health_core(repo: Any) -> Dict[str, Any]:
    checks = await repo.ping_tables(("public_users", "referrals", "courses"))
    return {
        "ok": all(checks.values()),
        "checks": checks,
    }

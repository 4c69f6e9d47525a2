import logging
from typing import Dict, Optional

import requests

from apps.backend.config.settings import Settings, get_settings

log = logging.getLogger("canwin.storage")


class SupabaseAdminError(Exception):
    pass


def _headers(settings: Settings) -> Dict[str, str]:
    if not settings.supabase_configured:
        raise SupabaseAdminError("Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY in backend env.")
    return {
        "apikey": settings.SUPABASE_KEY,
        "Authorization": f"Bearer {settings.SUPABASE_KEY}",
    }


def _object_url(settings: Settings, bucket: str, name: str) -> str:
    return f"{settings.SUPABASE_URL}/storage/v1/object/{bucket}/{name}"


def public_url(bucket: str, name: str, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    return f"{settings.SUPABASE_URL}/storage/v1/object/public/{bucket}/{name}"


def upload_object(
    bucket: str,
    name: str,
    content: bytes,
    content_type: str,
    *,
    cache_control: str = "3600",
    upsert: bool = False,
    settings: Optional[Settings] = None,
) -> str:
    """
    Upload one object via the Storage REST API and return its public URL.
    """
    settings = settings or get_settings()
    h = _headers(settings)
    h["Content-Type"] = content_type
    h["cache-control"] = f"max-age={cache_control}"
    h["x-upsert"] = "true" if upsert else "false"

    r = requests.post(_object_url(settings, bucket, name), headers=h, data=content, timeout=30)
    if r.status_code not in (200, 201):
        raise SupabaseAdminError(f"Supabase upload failed ({bucket}/{name}): {r.status_code} {r.text}")

    log.info("Uploaded %s/%s (%d bytes)", bucket, name, len(content))
    return public_url(bucket, name, settings)


def delete_object(bucket: str, name: str, settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    r = requests.delete(_object_url(settings, bucket, name), headers=_headers(settings), timeout=30)
    if r.status_code not in (200, 204):
        raise SupabaseAdminError(f"Supabase delete failed ({bucket}/{name}): {r.status_code} {r.text}")

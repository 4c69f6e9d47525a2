import os

def enabled(name: str, default: str = "false") -> bool:
    return (os.getenv(name, default) or "").strip().lower() == "true"

def csv_list(name: str, default: str = "") -> list:
    raw = os.getenv(name, default) or ""
    return [x.strip() for x in raw.split(",") if x.strip()]

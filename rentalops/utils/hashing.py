import hashlib
import json


def payload_hash(payload: dict) -> str:
    """Stable SHA-256 of a mapping; Decimals, dates and enums hash by their text."""
    s = json.dumps(payload, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(s.encode()).hexdigest()


def cache_key(prefix: str, payload: dict) -> str:
    return f"{prefix}:{payload_hash(payload)}"

import base64
import hashlib
import hmac
import json
from datetime import datetime, timedelta, timezone

from .config import AUTH_SECRET


ACCESS_TOKEN_TTL = timedelta(hours=1)


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(raw: str) -> bytes:
    pad = "=" * ((4 - len(raw) % 4) % 4)
    return base64.urlsafe_b64decode((raw + pad).encode("ascii"))


def _sign(raw: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw.encode("utf-8"), hashlib.sha256).digest()
    return _b64url_encode(digest)


def create_access_token(
    *,
    uid: str,
    email: str | None = None,
    now: datetime | None = None,
    ttl: timedelta = ACCESS_TOKEN_TTL,
    secret: str = AUTH_SECRET,
) -> tuple[str, datetime]:
    """Sign an identity token. Real deployments receive these from the identity provider."""
    issued_at = now or datetime.now(timezone.utc)
    expires_at = issued_at + ttl
    payload = {
        "uid": uid.strip(),
        "email": (email or "").strip().lower(),
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    payload_raw = _b64url_encode(json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    return f"{payload_raw}.{_sign(payload_raw, secret)}", expires_at


def decode_access_token(token: str, secret: str = AUTH_SECRET) -> dict:
    if not token or "." not in token:
        raise ValueError("Invalid token")
    payload_raw, signature = token.split(".", 1)
    if not hmac.compare_digest(signature, _sign(payload_raw, secret)):
        raise ValueError("Invalid token signature")
    try:
        payload = json.loads(_b64url_decode(payload_raw).decode("utf-8"))
    except Exception as exc:
        raise ValueError("Invalid token payload") from exc
    exp = int(payload.get("exp", 0) or 0)
    if exp <= int(datetime.now(timezone.utc).timestamp()):
        raise ValueError("Token expired")
    if not str(payload.get("uid", "")).strip():
        raise ValueError("Invalid token")
    return payload

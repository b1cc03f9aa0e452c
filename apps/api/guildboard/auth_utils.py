from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, Header, HTTPException

from .auth_tokens import decode_access_token
from .deps import get_store
from .store import USERS_COLLECTION, DocumentStore


DEFAULT_ROLE = "user"


@dataclass(frozen=True)
class CurrentUser:
    uid: str
    email: str
    role: str = DEFAULT_ROLE
    player_id: str | None = None


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    value = authorization.strip()
    if not value.lower().startswith("bearer "):
        return None
    token = value[7:].strip()
    return token or None


def resolve_user(payload: dict, store: DocumentStore) -> CurrentUser:
    uid = str(payload.get("uid", "")).strip()
    email = str(payload.get("email", "") or "")
    matches = store.where(USERS_COLLECTION, "uid", uid)
    if matches:
        player_id, data = next(iter(matches.items()))
    else:
        data = store.get(USERS_COLLECTION, uid)
        player_id = uid if data is not None else None
    role = str((data or {}).get("role") or DEFAULT_ROLE)
    return CurrentUser(uid=uid, email=email, role=role, player_id=player_id)


def current_user(
    authorization: str | None = Header(default=None),
    store: DocumentStore = Depends(get_store),
) -> CurrentUser:
    token = extract_bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Missing or invalid authorization header")
    try:
        payload = decode_access_token(token)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    return resolve_user(payload, store)


def require_role(role: str) -> Callable[..., CurrentUser]:
    def _dependency(user: CurrentUser = Depends(current_user)) -> CurrentUser:
        if user.role != role:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return _dependency

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALG, JWT_SECRET

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def _encode(payload: dict[str, Any], ttl: timedelta) -> str:
    # datetime timezone-aware per evitare offset/bug su timestamp
    now = datetime.now(timezone.utc)
    payload = {**payload, "iat": int(now.timestamp()), "exp": int((now + ttl).timestamp())}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def create_access_token(subject: str, extra: dict[str, Any] | None = None) -> str:
    """subject: user_id."""
    payload: dict[str, Any] = {"sub": subject, "typ": "access"}
    if extra:
        payload.update(extra)
    return _encode(payload, timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))


def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])


def get_subject(token: str) -> str | None:
    try:
        payload = decode_token(token)
    except JWTError:
        return None
    if payload.get("typ") != "access":
        return None
    return payload.get("sub")


def create_file_token(bucket: str, path: str, ttl_seconds: int) -> str:
    """Token firmato che autorizza la lettura di un singolo oggetto fino alla scadenza."""
    return _encode({"typ": "file", "bucket": bucket, "path": path}, timedelta(seconds=ttl_seconds))


def verify_file_token(token: str, bucket: str, path: str) -> bool:
    try:
        payload = decode_token(token)
    except JWTError:
        return False
    return payload.get("typ") == "file" and payload.get("bucket") == bucket and payload.get("path") == path

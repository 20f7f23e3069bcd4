"""Identity resolution: one bearer-token mechanism backed by server-side sessions."""
import logging
import time
import uuid
from typing import NamedTuple, Optional

import jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import config, models
from .errors import Unauthorized

log = logging.getLogger(__name__)

# Use pbkdf2_sha256 as default to avoid bcrypt 72-byte limitation in some envs
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

ALGORITHM = "HS256"


class Identity(NamedTuple):
    user_id: int
    is_vendor: bool
    is_admin: bool
    session_id: str


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_access_token(user_id: int, session_id: str, expires_delta: Optional[int] = None) -> str:
    now = int(time.time())
    exp = now + (expires_delta or config.state.token_ttl_seconds)
    payload = {"sub": str(user_id), "sid": session_id, "iat": now, "exp": exp}
    return jwt.encode(payload, config.state.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.state.jwt_secret, algorithms=[ALGORITHM])


def login(db: Session, username: str, password: str) -> str:
    user = db.query(models.User).filter(models.User.username == username).first()
    if not user or not verify_password(password, user.password_hash):
        raise Unauthorized("invalid credentials")
    session = models.AuthSession(id=uuid.uuid4().hex, user=user)
    db.add(session)
    db.commit()
    log.info("user %s logged in (session %s)", user.id, session.id)
    return create_access_token(user.id, session.id)


def logout(db: Session, identity: Identity) -> None:
    session = db.get(models.AuthSession, identity.session_id)
    if session and session.active:
        session.revoked_at = models.utcnow()
        db.commit()
    log.info("user %s logged out (session %s)", identity.user_id, identity.session_id)


def revoke_other_sessions(db: Session, user_id: int, keep_session_id: str) -> int:
    sessions = (
        db.query(models.AuthSession)
        .filter(
            models.AuthSession.user_id == user_id,
            models.AuthSession.id != keep_session_id,
            models.AuthSession.revoked_at.is_(None),
        )
        .all()
    )
    now = models.utcnow()
    for s in sessions:
        s.revoked_at = now
    return len(sessions)


def resolve_identity(db: Session, authorization: Optional[str]) -> Identity:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise Unauthorized("missing bearer token")
    token = authorization.split(None, 1)[1]
    try:
        payload = decode_access_token(token)
        user_id = int(payload["sub"])
        session_id = str(payload["sid"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise Unauthorized("invalid token")

    session = db.get(models.AuthSession, session_id)
    if not session or not session.active or session.user_id != user_id:
        raise Unauthorized("session expired or logged out")
    user = db.get(models.User, user_id)
    if not user:
        raise Unauthorized("user no longer exists")
    return Identity(user.id, bool(user.is_vendor), bool(user.is_admin), session_id)

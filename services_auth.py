# services_auth.py - credentials, JWT helpers, route guard
import functools
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional, Union

import bcrypt
import jwt
from flask import current_app, g, request
from werkzeug.security import check_password_hash, generate_password_hash

from errors import AuthError, ForbiddenError

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")
WERKZEUG_PREFIXES = ("scrypt:", "pbkdf2:")


class Hashed(NamedTuple):
    hash: str


class Legacy(NamedTuple):
    plaintext: str


Credential = Union[Hashed, Legacy]


def parse_credential(stored: Optional[str]) -> Optional[Credential]:
    """What is in the password column: a real hash, or plaintext from before hashing existed."""
    if not stored:
        return None
    if stored.startswith(BCRYPT_PREFIXES) or (stored.startswith(WERKZEUG_PREFIXES) and "$" in stored):
        return Hashed(stored)
    return Legacy(stored)


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify(credential: Optional[Credential], password: str) -> bool:
    if credential is None or not password:
        return False
    if isinstance(credential, Legacy):
        return credential.plaintext == password
    h = credential.hash
    if h.startswith(BCRYPT_PREFIXES):
        try:
            return bcrypt.checkpw(password.encode("utf-8"), h.encode("utf-8"))
        except ValueError:
            return False
    return check_password_hash(h, password)


def check_and_migrate(holder, attr: str, password: str) -> bool:
    """
    Verifies `password` against holder.<attr>. A legacy plaintext match is
    replaced with a hash on the holder before returning; the caller commits.
    """
    cred = parse_credential(getattr(holder, attr))
    if not verify(cred, password):
        return False
    if isinstance(cred, Legacy):
        setattr(holder, attr, hash_password(password))
    return True


# ---------- JWT ----------
def _settings():
    return current_app.extensions["portal.settings"]


def make_token(role: str, subject_id: str, **claims) -> str:
    s = _settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": f"{role}:{subject_id}",
        "role": role,
        "uid": subject_id,
        "iat": now,
        "exp": now + timedelta(minutes=s.jwt_ttl_minutes),
        "iss": "student-portal",
        **claims,
    }
    return jwt.encode(payload, s.secret_key, algorithm="HS256")


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, _settings().secret_key, algorithms=["HS256"],
                          options={"require": ["exp", "iat", "sub"]}, issuer="student-portal")
    except jwt.ExpiredSignatureError:
        raise AuthError("token expired")
    except jwt.InvalidTokenError as e:
        raise AuthError(f"invalid token: {e}")


def _bearer() -> str:
    auth = request.headers.get("Authorization") or ""
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("missing bearer token")
    return token.strip()


def token_required(*roles):
    """Requires a valid token; with `roles`, its role must be one of them. Claims land in g.claims."""
    def deco(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            claims = decode_token(_bearer())
            if roles and claims.get("role") not in roles:
                raise ForbiddenError("insufficient role")
            g.claims = claims
            return fn(*args, **kwargs)
        return wrapper
    return deco


def ensure_owner_or_admin(student_id: str):
    """Students may only read their own records."""
    claims = g.get("claims") or {}
    if claims.get("role") == "admin":
        return
    if claims.get("role") == "student" and claims.get("uid") == student_id:
        return
    raise ForbiddenError("not allowed to access another student's records")

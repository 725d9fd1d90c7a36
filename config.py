# config.py - settings built once at startup and handed to each component
import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

BASE_DIR = Path(__file__).resolve().parent
DEFAULT_DB = f"sqlite:///{(BASE_DIR / 'portal.db').as_posix()}"

MB = 1024 * 1024
ONE_YEAR = 31_536_000


def normalize_database_url(raw: Optional[str]) -> str:
    """postgres:// -> postgresql+psycopg2:// with sslmode=require, as hosted providers hand them out."""
    if not raw:
        return DEFAULT_DB
    if raw.startswith("postgres://"):
        raw = raw.replace("postgres://", "postgresql+psycopg2://", 1)
    elif raw.startswith("postgresql://"):
        raw = raw.replace("postgresql://", "postgresql+psycopg2://", 1)
    if "sslmode=" not in raw and "+psycopg2://" in raw:
        raw += ("&" if "?" in raw else "?") + "sslmode=require"
    return raw


def _flag(v: Optional[str], default: bool) -> bool:
    if v is None or v.strip() == "":
        return default
    return v.strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    database_url: str = DEFAULT_DB
    secret_key: str = "portal-dev-secret"
    jwt_ttl_minutes: int = Field(default=120, ge=1)
    environment: str = "development"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_dir: Optional[str] = None

    # blob store (any S3-compatible endpoint: AWS, MinIO, Supabase storage)
    storage_bucket: str = "clipstech"
    storage_endpoint_url: Optional[str] = None
    storage_region: str = "us-east-1"
    storage_access_key: Optional[str] = None
    storage_secret_key: Optional[str] = None
    storage_public_base_url: Optional[str] = None
    signed_urls: bool = True
    signed_url_ttl: int = Field(default=ONE_YEAR, gt=0)

    max_form_upload_bytes: int = Field(default=10 * MB, gt=0)
    max_binary_upload_bytes: int = Field(default=50 * MB, gt=0)

    exam_card_requires_clearance: bool = False

    @property
    def production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def max_request_bytes(self) -> int:
        # werkzeug's hard ceiling; per-mode ceilings are enforced by the registrar
        return max(self.max_form_upload_bytes, self.max_binary_upload_bytes) + MB

    @classmethod
    def from_env(cls, env=None) -> "Settings":
        env = os.environ if env is None else env
        origins = [o.strip() for o in (env.get("CORS_ORIGINS") or "*").split(",") if o.strip()]
        values = dict(
            database_url=normalize_database_url(env.get("DATABASE_URL")),
            secret_key=env.get("SECRET_KEY") or "portal-dev-secret",
            jwt_ttl_minutes=int(env.get("JWT_TTL_MIN", "120")),
            environment=env.get("APP_ENV") or env.get("FLASK_ENV") or "development",
            cors_origins=origins or ["*"],
            log_dir=env.get("LOG_DIR") or None,
            storage_bucket=env.get("STORAGE_BUCKET") or env.get("S3_BUCKET") or "clipstech",
            storage_endpoint_url=env.get("STORAGE_ENDPOINT_URL") or None,
            storage_region=env.get("STORAGE_REGION") or env.get("AWS_REGION") or "us-east-1",
            storage_access_key=env.get("STORAGE_ACCESS_KEY") or env.get("AWS_ACCESS_KEY_ID") or None,
            storage_secret_key=env.get("STORAGE_SECRET_KEY") or env.get("AWS_SECRET_ACCESS_KEY") or None,
            storage_public_base_url=env.get("STORAGE_PUBLIC_BASE_URL") or None,
            signed_urls=_flag(env.get("STORAGE_SIGNED_URLS"), True),
            signed_url_ttl=int(env.get("STORAGE_SIGNED_URL_TTL", str(ONE_YEAR))),
            max_form_upload_bytes=int(env.get("MAX_FORM_UPLOAD_BYTES", str(10 * MB))),
            max_binary_upload_bytes=int(env.get("MAX_BINARY_UPLOAD_BYTES", str(50 * MB))),
            exam_card_requires_clearance=_flag(env.get("EXAM_CARD_REQUIRES_CLEARANCE"), False),
        )
        return cls(**values)

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_DATA_DIR = Path(__file__).parent / "data"


def _float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value else default


def _int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value else default


@dataclass
class Settings:
    # proxy
    auth_key_secret: str = ""
    cors_allow_origin: str = "*"

    # object store
    store_backend: str = "file"
    store_key: str = "comments.json"
    store_bucket: str = ""
    store_endpoint_url: str | None = None
    store_region: str = "auto"
    store_access_key_id: str | None = None
    store_secret_access_key: str | None = None
    store_data_dir: Path = DEFAULT_DATA_DIR
    store_timeout: float = 5.0
    write_attempts: int = 5

    # page handler
    proxy_url: str = "http://127.0.0.1:8000/store/comments.json"
    public_read_url: str | None = None
    proxy_timeout: float = 5.0

    # challenge verifier
    turnstile_secret_key: str = ""
    turnstile_site_key: str = ""
    turnstile_verify_url: str = "https://challenges.cloudflare.com/turnstile/v0/siteverify"
    verify_timeout: float = 5.0

    session_secret: str = ""
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        load_dotenv()
        env = os.environ.get
        return cls(
            auth_key_secret=env("AUTH_KEY_SECRET", ""),
            cors_allow_origin=env("CORS_ALLOW_ORIGIN", "*"),
            store_backend=env("STORE_BACKEND", "file").lower(),
            store_key=env("STORE_KEY", "comments.json"),
            store_bucket=env("STORE_BUCKET", ""),
            store_endpoint_url=env("STORE_ENDPOINT_URL") or None,
            store_region=env("STORE_REGION", "auto"),
            store_access_key_id=env("STORE_ACCESS_KEY_ID") or None,
            store_secret_access_key=env("STORE_SECRET_ACCESS_KEY") or None,
            store_data_dir=Path(env("STORE_DATA_DIR") or DEFAULT_DATA_DIR),
            store_timeout=_float("STORE_TIMEOUT", 5.0),
            write_attempts=_int("WRITE_ATTEMPTS", 5),
            proxy_url=env("PROXY_URL", cls.proxy_url),
            public_read_url=env("PUBLIC_READ_URL") or None,
            proxy_timeout=_float("PROXY_TIMEOUT", 5.0),
            turnstile_secret_key=env("TURNSTILE_SECRET_KEY", ""),
            turnstile_site_key=env("TURNSTILE_SITE_KEY", ""),
            turnstile_verify_url=env("TURNSTILE_VERIFY_URL", cls.turnstile_verify_url),
            verify_timeout=_float("VERIFY_TIMEOUT", 5.0),
            session_secret=env("SESSION_SECRET", ""),
            log_level=env("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()

"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    DATABASE_URL: str
    MAX_UPLOAD_BYTES: int
    UPLOAD_DIR: Path
    DEFAULT_SEARCH_RADIUS_MILES: float
    ADMIN_USERNAMES: frozenset
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    CONTACT_RATE_LIMIT_PER_MIN: int
    CONTACT_RATE_LIMIT_WINDOW_SECONDS: int

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'toyshare.db'}")
        self.MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))  # 5 MB default
        self.UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(BASE / "public" / "uploads"))).expanduser()
        self.DEFAULT_SEARCH_RADIUS_MILES = float(os.getenv("DEFAULT_SEARCH_RADIUS_MILES", "10"))
        self.ADMIN_USERNAMES = frozenset(
            u.strip().lower() for u in os.getenv("ADMIN_USERNAMES", "").split(",") if u.strip()
        )
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.CONTACT_RATE_LIMIT_PER_MIN = int(os.getenv("CONTACT_RATE_LIMIT_PER_MIN", "5"))
        self.CONTACT_RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("CONTACT_RATE_LIMIT_WINDOW_SECONDS", "60"))
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.DEFAULT_SEARCH_RADIUS_MILES <= 0:
            raise RuntimeError("DEFAULT_SEARCH_RADIUS_MILES must be positive")
        if self.MAX_UPLOAD_BYTES <= 0:
            raise RuntimeError("MAX_UPLOAD_BYTES must be positive")


settings = Settings()

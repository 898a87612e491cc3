"""Runtime configuration read from the environment.

``load_dotenv()`` picks up a local ``.env`` file during development.  A
:class:`Settings` instance is built once by :func:`app.main.create_app` and
stored on ``app.state.settings``; nothing else reads the environment.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

DEFAULT_DEV_ORIGINS = "http://localhost:3000,http://localhost:5173"
DEFAULT_PROD_ORIGIN = "https://wikigaialab.vercel.app"


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "y", "on")


@dataclass
class Settings:
    """Service configuration."""

    database_url: Optional[str] = None
    sqlalchemy_echo: bool = False
    environment: str = "development"
    allowed_origins: list[str] = field(default_factory=list)
    jwt_secret: str = "wgl-dev-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    rate_limit_per_minute: int = 100
    max_request_size_mb: int = 1
    trusted_proxy_count: int = 1

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()

        environment = os.getenv("ENVIRONMENT", "development").strip().lower()
        default_origins = (
            DEFAULT_PROD_ORIGIN if environment == "production" else DEFAULT_DEV_ORIGINS
        )
        origins = [
            origin.strip()
            for origin in os.getenv("ALLOWED_ORIGINS", default_origins).split(",")
            if origin.strip()
        ]
        if environment == "production":
            # Production: strict HTTPS origins only
            origins = [
                o
                for o in origins
                if o.startswith("https://") and "localhost" not in o
            ] or [DEFAULT_PROD_ORIGIN]

        return cls(
            database_url=os.getenv("DATABASE_URL"),
            sqlalchemy_echo=_env_bool("SQLALCHEMY_ECHO"),
            environment=environment,
            allowed_origins=origins,
            jwt_secret=os.getenv("JWT_SECRET", cls.jwt_secret),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", cls.jwt_algorithm),
            rate_limit_per_minute=int(os.getenv("RATE_LIMIT_PER_MINUTE", "100")),
            max_request_size_mb=int(os.getenv("MAX_REQUEST_SIZE_MB", "1")),
            trusted_proxy_count=int(os.getenv("TRUSTED_PROXY_COUNT", "1")),
        )

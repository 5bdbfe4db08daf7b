"""
Editor service settings, read from ERD_CANVAS_* environment variables.
"""
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"]


@dataclass
class Settings:
    host: str = "127.0.0.1"
    port: int = 8765
    persistence_url: str = "http://127.0.0.1:3001"
    persistence_timeout: float = 30.0
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    log_level: str = "INFO"
    user: str = "Unknown"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from the environment; unset variables keep their defaults."""
        env = os.environ if environ is None else environ
        defaults = cls()

        origins = env.get("ERD_CANVAS_CORS_ORIGINS")
        if origins is not None:
            cors_origins = [o.strip() for o in origins.split(",") if o.strip()]
        else:
            cors_origins = defaults.cors_origins

        try:
            port = int(env.get("ERD_CANVAS_PORT", defaults.port))
            timeout = float(env.get("ERD_CANVAS_PERSISTENCE_TIMEOUT", defaults.persistence_timeout))
        except ValueError as e:
            raise ValueError(f"Invalid ERD_CANVAS setting: {e}") from e

        return cls(
            host=env.get("ERD_CANVAS_HOST", defaults.host),
            port=port,
            persistence_url=env.get("ERD_CANVAS_PERSISTENCE_URL", defaults.persistence_url).rstrip("/"),
            persistence_timeout=timeout,
            cors_origins=cors_origins,
            log_level=env.get("ERD_CANVAS_LOG_LEVEL", defaults.log_level).upper(),
            user=env.get("ERD_CANVAS_USER", defaults.user),
        )

"""
Service configuration.

Values come from the environment, optionally seeded from a ``.env`` file.
"""
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

from token_service.capabilities import DEFAULT_POLICY, POLICIES
from token_service.schemas import DEFAULT_TOKEN_TTL_MS

DEFAULT_PORT = 3002


class Settings(BaseModel):
    ably_api_key: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    capability_policy: str = DEFAULT_POLICY
    token_ttl_ms: int = DEFAULT_TOKEN_TTL_MS
    log_level: str = "INFO"

    @field_validator("capability_policy")
    @classmethod
    def known_policy(cls, v):
        v = v.lower()
        if v not in POLICIES:
            raise ValueError(f"capability_policy must be one of {sorted(POLICIES)}")
        return v

    @field_validator("token_ttl_ms")
    @classmethod
    def positive_ttl(cls, v):
        if v <= 0:
            raise ValueError("token_ttl_ms must be positive")
        return v


def load_settings() -> Settings:
    """Reads settings from the environment after loading any .env file."""
    load_dotenv()
    return Settings(
        ably_api_key=os.getenv("ABLY_API_KEY") or None,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", DEFAULT_PORT)),
        capability_policy=os.getenv("CAPABILITY_POLICY", DEFAULT_POLICY),
        token_ttl_ms=int(os.getenv("TOKEN_TTL_MS", DEFAULT_TOKEN_TTL_MS)),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )

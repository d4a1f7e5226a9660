from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional, Union

# --- Defaults ---
DEFAULT_DISPLAY_NAME = "Unknown_User"
DEFAULT_TOKEN_TTL_MS = 60 * 60 * 1000  # 1 hour

# Operations Ably accepts in a capability grant
CAPABILITY_OPERATIONS = (
    "publish",
    "subscribe",
    "history",
    "presence",
    "object-publish",
    "object-subscribe",
)

# Channel pattern -> sorted, duplicate-free operation list
CapabilityMap = Dict[str, List[str]]


# --- Identity Claims ---
class HeaderClaim(BaseModel):
    """Identity sent directly by a client in the X-User-* headers."""
    kind: Literal["header"] = "header"
    user_id: str
    display_name: Optional[str] = None


class CombinedClaim(BaseModel):
    """Identity sent by the Ably SDK's authUrl flow as `<name>.<userId>`."""
    kind: Literal["combined"] = "combined"
    client_id: str


IdentityClaim = Union[HeaderClaim, CombinedClaim]


class Identity(BaseModel):
    """A resolved user identity."""
    user_id: str = Field(..., min_length=1)
    display_name: str = DEFAULT_DISPLAY_NAME
    # Client id the Ably SDK presented; tokens are issued for it unchanged
    client_id: Optional[str] = None


# --- Token Issuance ---
class TokenRequest(BaseModel):
    """Parameters handed to the issuing authority."""
    client_id: str
    capability: str  # CapabilityMap serialized as JSON text
    ttl: int = DEFAULT_TOKEN_TTL_MS


class TokenEnvelope(BaseModel):
    """Token details returned to the caller, using Ably's field names."""
    token: str
    keyName: Optional[str] = None
    issued: Optional[int] = None
    expires: Optional[int] = None
    capability: str
    clientId: str


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None

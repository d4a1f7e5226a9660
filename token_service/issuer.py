"""
Token issuance.

The issuing authority (Ably, in production) signs the token; this module only
builds the request, hands it over and shapes the result. Authorities are
injected so tests can substitute a fake one.
"""
import json
import logging
from typing import Any, Dict, Optional, Protocol

from ably import AblyRest

from token_service.capabilities import CapabilityPolicy, serialize_capability, standard_policy
from token_service.exceptions import ConfigurationError, IssuanceFailed
from token_service.identity import derive_client_id
from token_service.schemas import DEFAULT_TOKEN_TTL_MS, Identity, TokenEnvelope, TokenRequest

logger = logging.getLogger(__name__)


class IssuingAuthority(Protocol):
    """Anything that can sign a token request."""

    async def request_token(self, request: TokenRequest) -> Dict[str, Any]:
        """Returns the signed token details (token, keyName, issued, expires, ...)."""
        ...

    async def close(self) -> None:
        ...


class AblyTokenAuthority:
    """Issuing authority backed by the Ably REST client."""

    def __init__(self, api_key: Optional[str] = None, client: Optional[AblyRest] = None):
        if client is None:
            if not api_key:
                raise ConfigurationError("ABLY_API_KEY is required to issue Ably tokens")
            client = AblyRest(api_key)
        self.client = client
        self.key_name = api_key.split(":", 1)[0] if api_key else None

    async def request_token(self, request: TokenRequest) -> Dict[str, Any]:
        token_details = await self.client.auth.request_token(
            token_params={
                "client_id": request.client_id,
                "capability": json.loads(request.capability),
                "ttl": request.ttl,
            }
        )
        return {
            "token": token_details.token,
            "keyName": self.key_name,
            "issued": token_details.issued,
            "expires": token_details.expires,
            "capability": request.capability,
            "clientId": token_details.client_id,
        }

    async def close(self) -> None:
        await self.client.close()


def build_token_request(
    identity: Identity,
    policy: CapabilityPolicy = standard_policy,
    ttl: int = DEFAULT_TOKEN_TTL_MS,
) -> TokenRequest:
    """Derives the client id and capability for an identity.

    An SDK-presented client id is kept as-is; otherwise one is derived from
    the display name and user id.
    """
    client_id = identity.client_id or derive_client_id(identity.user_id, identity.display_name)
    return TokenRequest(
        client_id=client_id,
        capability=serialize_capability(policy(identity.user_id)),
        ttl=ttl,
    )


async def issue_token(
    identity: Identity,
    authority: IssuingAuthority,
    policy: CapabilityPolicy = standard_policy,
    ttl: int = DEFAULT_TOKEN_TTL_MS,
) -> TokenEnvelope:
    """
    Requests a signed token for an identity.

    The authority's response is returned as-is except for clientId and
    capability, which always echo what was requested.

    Raises:
        IssuanceFailed: If the authority fails for any reason. Only the
            failure's message is kept.
    """
    request = build_token_request(identity, policy=policy, ttl=ttl)
    logger.info(f"Creating token for user: {identity.display_name} ({identity.user_id})")

    try:
        details = await authority.request_token(request)
    except Exception as e:
        logger.error(f"Error creating token: {e}")
        raise IssuanceFailed(str(e)) from e

    details = dict(details)
    returned_client_id = details.get("clientId")
    if returned_client_id and returned_client_id != request.client_id:
        logger.warning(
            f"Authority returned clientId {returned_client_id}, expected {request.client_id}"
        )
    details["clientId"] = request.client_id
    details["capability"] = request.capability

    try:
        envelope = TokenEnvelope(**details)
    except Exception as e:
        logger.error(f"Unexpected token details from authority: {e}")
        raise IssuanceFailed(f"Malformed token details: {e}") from e

    logger.info(f"Token created for {envelope.clientId}")
    return envelope

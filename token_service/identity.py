"""
Identity resolution for token requests.

A request names its user in one of two ways:

- directly, with an ``X-User-Id`` header and an optional display name in
  ``X-User-Name`` or ``X-User-Full-Name``;
- through the Ably SDK's authUrl flow, which sends the combined client id
  (``<displayName>.<userId>``) as a ``clientId`` query parameter or body field.

The claim is read once from the request and then resolved to an Identity.
"""
import logging
import re
from typing import Any, Mapping, Optional

from token_service.exceptions import IdentityMissing
from token_service.schemas import (
    DEFAULT_DISPLAY_NAME,
    CombinedClaim,
    HeaderClaim,
    Identity,
    IdentityClaim,
)

logger = logging.getLogger(__name__)

USER_ID_HEADER = "x-user-id"
DISPLAY_NAME_HEADERS = ("x-user-name", "x-user-full-name")
CLIENT_ID_FIELD = "clientId"

_WHITESPACE = re.compile(r"\s+")


def derive_client_id(user_id: str, display_name: Optional[str] = None) -> str:
    """Builds the Ably client id for a user.

    Whitespace runs in the display name collapse to a single underscore so the
    result never contains whitespace.

    Args:
        user_id: The user's identifier.
        display_name: Human readable name. Empty or missing names fall back to
            the default display name.

    Returns:
        ``<display_name>.<user_id>``
    """
    name = display_name or DEFAULT_DISPLAY_NAME
    return f"{_WHITESPACE.sub('_', name)}.{user_id}"


def split_client_id(client_id: str) -> Identity:
    """Recovers an Identity from a combined client id.

    The user id is everything after the last dot; the rest, dots included, is
    the display name. The combined id itself is kept on the Identity so the
    token is issued for exactly the id the SDK will present.
    """
    display_name, _, user_id = client_id.rpartition(".")
    check_user_id(user_id)
    return Identity(
        user_id=user_id,
        display_name=display_name or DEFAULT_DISPLAY_NAME,
        client_id=client_id,
    )


def check_user_id(user_id: Optional[str]) -> None:
    """Rejects missing user ids and ids containing whitespace."""
    if not user_id:
        raise IdentityMissing()
    if _WHITESPACE.search(user_id):
        raise IdentityMissing("User ID required: user id must not contain whitespace")


def _first_value(source: Optional[Mapping[str, Any]], key: str) -> Optional[str]:
    if not source:
        return None
    value = source.get(key)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    return str(value)


def read_claim(
    headers: Mapping[str, str],
    query: Optional[Mapping[str, Any]] = None,
    body: Optional[Mapping[str, Any]] = None,
) -> Optional[IdentityClaim]:
    """Picks the identity claim a request carries, if any.

    Headers win over a combined client id; the query string wins over the body.
    """
    user_id = headers.get(USER_ID_HEADER)
    if user_id:
        display_name = None
        for header in DISPLAY_NAME_HEADERS:
            if headers.get(header):
                display_name = headers[header]
                break
        return HeaderClaim(user_id=user_id, display_name=display_name)

    client_id = _first_value(query, CLIENT_ID_FIELD) or _first_value(body, CLIENT_ID_FIELD)
    if client_id:
        return CombinedClaim(client_id=client_id)

    return None


def resolve_identity(claim: Optional[IdentityClaim]) -> Identity:
    """Turns a claim into an Identity, raising IdentityMissing if there is none."""
    if claim is None:
        raise IdentityMissing()

    if isinstance(claim, HeaderClaim):
        check_user_id(claim.user_id)
        identity = Identity(
            user_id=claim.user_id,
            display_name=claim.display_name or DEFAULT_DISPLAY_NAME,
        )
        logger.info(f"Request via headers from user: {identity.display_name} ({identity.user_id})")
        return identity

    identity = split_client_id(claim.client_id)
    logger.info(f"Request via authUrl from SDK for user: {identity.display_name} ({identity.user_id})")
    return identity

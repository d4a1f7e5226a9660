"""
Capability policies.

A policy maps a user id to the channel grants embedded in that user's token.
Anything a policy leaves out is denied by Ably when the token is used, so
the maps here are pure allow-lists.
"""
import json
from typing import Callable, Dict

from token_service.schemas import CAPABILITY_OPERATIONS, CapabilityMap

CapabilityPolicy = Callable[[str], CapabilityMap]

DEFAULT_POLICY = "standard"

ROOMSLIST_OPERATIONS = ("publish", "subscribe", "history", "object-subscribe", "object-publish")
PRESENCE_OPERATIONS = ("publish", "subscribe", "presence")


def _ops(*operations: str) -> list:
    """Normalizes operations to a sorted list without duplicates."""
    unknown = set(operations) - set(CAPABILITY_OPERATIONS)
    if unknown:
        raise ValueError(f"Unknown capability operations: {sorted(unknown)}")
    return sorted(set(operations))


def standard_policy(user_id: str) -> CapabilityMap:
    """Full policy: own lists and profile, any profile readable, chat rooms
    keyed by the user's id on either side, shared presence, read-only elsewhere."""
    return {
        f"roomslist:{user_id}": _ops(*ROOMSLIST_OPERATIONS),
        f"profile:{user_id}": _ops("publish", "subscribe", "history"),
        "profile:*": _ops("subscribe"),
        f"{user_id}:*": _ops("publish", "subscribe", "history", "presence"),
        f"*:{user_id}": _ops("publish", "subscribe", "history", "presence"),
        "presence": _ops(*PRESENCE_OPERATIONS),
        "*": _ops("subscribe"),
    }


def minimal_policy(user_id: str) -> CapabilityMap:
    """Legacy policy: only the user's rooms list and the shared presence channel."""
    return {
        f"roomslist:{user_id}": _ops(*ROOMSLIST_OPERATIONS),
        "presence": _ops(*PRESENCE_OPERATIONS),
    }


POLICIES: Dict[str, CapabilityPolicy] = {
    "standard": standard_policy,
    "minimal": minimal_policy,
}


def get_policy(name: str) -> CapabilityPolicy:
    try:
        return POLICIES[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown capability policy '{name}'. Choose one of: {', '.join(sorted(POLICIES))}"
        ) from None


def serialize_capability(capability: CapabilityMap) -> str:
    """JSON text in the form Ably's token request expects."""
    return json.dumps(capability, sort_keys=True)

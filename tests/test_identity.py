# tests/test_identity.py

import pytest

from token_service.exceptions import IdentityMissing
from token_service.identity import derive_client_id, read_claim, resolve_identity, split_client_id
from token_service.schemas import DEFAULT_DISPLAY_NAME, CombinedClaim, HeaderClaim


# --- derive_client_id ---
def test_client_id_joins_name_and_user_id():
    assert derive_client_id("u1", "Jane") == "Jane.u1"


def test_client_id_collapses_whitespace_runs():
    assert derive_client_id("test_user_123", "John Doe Smith") == "John_Doe_Smith.test_user_123"
    assert derive_client_id("u1", "Jane \t  Doe\n") == "Jane_Doe_.u1"


@pytest.mark.parametrize("name", [None, ""])
def test_client_id_defaults_display_name(name):
    assert derive_client_id("test_user_123", name) == "Unknown_User.test_user_123"


@pytest.mark.parametrize("name", ["A  B", " lead", "tab\there", "x\r\ny"])
def test_client_id_never_contains_whitespace(name):
    client_id = derive_client_id("user_1", name)
    assert not any(ch.isspace() for ch in client_id)


# --- split_client_id ---
def test_split_uses_last_dot():
    identity = split_client_id("Dr.Jane.Doe.u42")
    assert identity.user_id == "u42"
    assert identity.display_name == "Dr.Jane.Doe"


def test_split_round_trips_derived_client_id():
    client_id = derive_client_id("test_user_123", "John Doe Smith")
    identity = split_client_id(client_id)
    assert identity.user_id == "test_user_123"
    assert derive_client_id(identity.user_id, identity.display_name) == client_id


def test_split_without_dot_uses_default_name():
    identity = split_client_id("u99")
    assert identity.user_id == "u99"
    assert identity.display_name == DEFAULT_DISPLAY_NAME
    assert identity.client_id == "u99"


def test_split_with_trailing_dot_has_no_user():
    with pytest.raises(IdentityMissing):
        split_client_id("Jane.")


# --- read_claim / resolve_identity ---
def test_header_claim_prefers_user_name_over_full_name():
    claim = read_claim({"x-user-id": "u1", "x-user-name": "Jane", "x-user-full-name": "Jane Doe"})
    assert claim == HeaderClaim(user_id="u1", display_name="Jane")


def test_header_claim_falls_back_to_full_name():
    claim = read_claim({"x-user-id": "u1", "x-user-full-name": "Jane Doe"})
    assert claim.display_name == "Jane Doe"


def test_headers_win_over_client_id():
    claim = read_claim({"x-user-id": "u1"}, query={"clientId": "Other.u2"})
    assert isinstance(claim, HeaderClaim)
    assert claim.user_id == "u1"


def test_query_wins_over_body():
    claim = read_claim({}, query={"clientId": "Q.u1"}, body={"clientId": ["B.u2"]})
    assert claim == CombinedClaim(client_id="Q.u1")


def test_body_list_values_are_accepted():
    claim = read_claim({}, body={"clientId": ["Jane_Doe.u1"]})
    assert claim == CombinedClaim(client_id="Jane_Doe.u1")


def test_no_identity_reads_as_none():
    assert read_claim({"x-user-name": "Jane"}, query={}, body={}) is None
    assert read_claim({"x-user-id": ""}) is None


def test_resolve_header_claim_defaults_name():
    identity = resolve_identity(HeaderClaim(user_id="u1"))
    assert identity.display_name == DEFAULT_DISPLAY_NAME


def test_resolve_combined_claim():
    identity = resolve_identity(CombinedClaim(client_id="Jane_Doe.u1"))
    assert (identity.user_id, identity.display_name) == ("u1", "Jane_Doe")


def test_resolve_missing_claim_raises():
    with pytest.raises(IdentityMissing) as excinfo:
        resolve_identity(None)
    assert "User ID required" in excinfo.value.message
    assert excinfo.value.status_code == 400


def test_split_keeps_presented_client_id():
    identity = split_client_id("Jane Doe.u1")
    assert identity.user_id == "u1"
    assert identity.display_name == "Jane Doe"
    assert identity.client_id == "Jane Doe.u1"


@pytest.mark.parametrize("user_id", ["a b", "u\t1", " u1"])
def test_header_user_id_with_whitespace_is_rejected(user_id):
    with pytest.raises(IdentityMissing) as excinfo:
        resolve_identity(HeaderClaim(user_id=user_id, display_name="Jane"))
    assert "User ID" in excinfo.value.message


def test_combined_user_id_with_whitespace_is_rejected():
    with pytest.raises(IdentityMissing):
        split_client_id("Jane.a b")

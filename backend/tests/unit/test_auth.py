"""
Unit tests for the authentication adapter: token verification and
principal -> user id resolution.
"""

import time

import jwt
import pytest
from fastapi import HTTPException

from authcore.auth import (
    ClaimsPrincipalResolver,
    DatabasePrincipalResolver,
    decode_token,
    extract_bearer_token,
    get_principal_resolver,
    verify_token,
)


@pytest.mark.unit
class TestVerifyToken:
    def test_valid_token(self, make_token):
        claims = verify_token(make_token(7, sub="alice"))

        assert claims["sub"] == "alice"
        assert claims["user_id"] == 7

    def test_expired_token(self, settings):
        token = jwt.encode({"sub": "alice", "exp": int(time.time()) - 60}, settings.secret_key, algorithm="HS256")

        with pytest.raises(HTTPException) as exc_info:
            verify_token(token)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token has expired"

    def test_wrong_signature(self):
        token = jwt.encode({"sub": "alice"}, "another-secret-key-that-is-long-enough-xx", algorithm="HS256")

        with pytest.raises(HTTPException) as exc_info:
            verify_token(token)

        assert exc_info.value.status_code == 401

    def test_audience_checked_when_configured(self, settings, make_token):
        strict = settings.model_copy(update={"jwt_audience": "authcore"})

        with pytest.raises(HTTPException):
            verify_token(make_token(1, aud="someone-else"), strict)
        assert verify_token(make_token(1, aud="authcore"), strict)["user_id"] == 1

    def test_decode_token_swallows_failures(self):
        assert decode_token(None) is None
        assert decode_token("not.a.jwt") is None


@pytest.mark.unit
class TestExtractBearerToken:
    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Bearer abc", "abc"),
            ("bearer  abc ", "abc"),
            ("Basic abc", None),
            ("Bearer", None),
            ("", None),
            (None, None),
        ],
    )
    def test_extract(self, header, expected):
        assert extract_bearer_token(header) == expected


@pytest.mark.unit
class TestClaimsPrincipalResolver:
    @pytest.mark.parametrize(
        "principal,expected",
        [
            ({"sub": "alice", "user_id": 7}, 7),
            ({"sub": "alice", "id": "8"}, 8),
            ({"sub": "9"}, 9),
            ({"sub": "alice"}, None),
            ({"sub": "alice", "user_id": True}, None),
            ({}, None),
            (None, None),
        ],
    )
    def test_resolution(self, principal, expected):
        assert ClaimsPrincipalResolver().user_id(principal) == expected


@pytest.mark.unit
class TestDatabasePrincipalResolver:
    def test_looks_up_username(self, graph, db_session):
        alice = graph.user("alice")

        assert DatabasePrincipalResolver(db_session).user_id({"sub": "alice"}) == alice.id

    def test_claims_take_precedence(self, graph, db_session):
        graph.user("alice")

        assert DatabasePrincipalResolver(db_session).user_id({"sub": "alice", "user_id": 55}) == 55

    def test_unknown_username(self, db_session):
        assert DatabasePrincipalResolver(db_session).user_id({"sub": "nobody"}) is None

    def test_factory_honours_setting(self, db_session, settings):
        assert isinstance(get_principal_resolver(db_session, settings), ClaimsPrincipalResolver)

        by_name = settings.model_copy(update={"resolve_username_principals": True})
        assert isinstance(get_principal_resolver(db_session, by_name), DatabasePrincipalResolver)

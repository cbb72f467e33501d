import base64
import json
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlsplit

import pytest

from aadappcheck.auth import (
    SessionToken,
    TokenStore,
    build_authorization_url,
    check_state,
    create_state,
    decode_jwt_payload,
    exchange_code,
    parse_redirect_url,
)
from aadappcheck.errors import NotLoggedInError, StateMismatchError, TokenAcquisitionError


def _jwt(claims: dict) -> str:
    def seg(obj):
        return base64.urlsafe_b64encode(json.dumps(obj).encode()).rstrip(b"=").decode()

    return f"{seg({'alg': 'none'})}.{seg(claims)}.sig"


class TestState:
    def test_state_is_url_safe_and_random(self):
        a, b = create_state(), create_state()
        assert a != b
        assert len(a) == 64
        assert "+" not in a and "/" not in a

    def test_check_state_accepts_match(self):
        check_state("abc", "abc")

    @pytest.mark.parametrize("received", ["abd", "é", "abc\u00e9", "", None])
    def test_check_state_rejects_mismatch(self, received):
        with pytest.raises(StateMismatchError):
            check_state("abc", received)


class TestAuthorizationUrl:
    def test_basic_url(self):
        url = build_authorization_url(
            "client-1",
            "http://localhost/appcheck",
            authority="https://login.microsoftonline.com/common",
            scopes=["https://graph.windows.net/.default"],
            state="s1",
        )
        parts = urlsplit(url)
        assert parts.netloc == "login.microsoftonline.com"
        assert parts.path == "/common/oauth2/v2.0/authorize"
        query = parse_qs(parts.query)
        assert query["response_type"] == ["code"]
        assert query["client_id"] == ["client-1"]
        assert query["redirect_uri"] == ["http://localhost/appcheck"]
        assert query["scope"] == ["https://graph.windows.net/.default"]
        assert query["state"] == ["s1"]

    def test_without_state_and_with_extras(self):
        url = build_authorization_url("c", "http://r", extra={"prompt": "admin_consent"})
        query = parse_qs(urlsplit(url).query)
        assert "state" not in query
        assert query["prompt"] == ["admin_consent"]


class TestRedirectUrl:
    def test_extracts_code_and_state(self):
        query = parse_redirect_url("http://localhost/appcheck?code=abc&state=s1&session_state=x\n")
        assert query["code"] == "abc"
        assert query["state"] == "s1"

    def test_error_in_redirect(self):
        with pytest.raises(TokenAcquisitionError, match="access_denied"):
            parse_redirect_url("http://localhost/appcheck?error=access_denied&error_description=nope")

    def test_missing_code(self):
        with pytest.raises(TokenAcquisitionError):
            parse_redirect_url("http://localhost/appcheck?state=s1")


class TestExchangeCode:
    @patch("aadappcheck.auth.msal.PublicClientApplication")
    def test_public_client_exchange(self, MockApp):
        app = MagicMock()
        app.acquire_token_by_authorization_code.return_value = {"access_token": "tok"}
        MockApp.return_value = app

        result = exchange_code("code-1", client_id="c", redirect_uri="http://r", scopes=["s/.default"])

        assert result == {"access_token": "tok"}
        kwargs = app.acquire_token_by_authorization_code.call_args[1]
        assert kwargs["code"] == "code-1"
        assert kwargs["scopes"] == ["s/.default"]
        assert kwargs["redirect_uri"] == "http://r"

    @patch("aadappcheck.auth.msal.ConfidentialClientApplication")
    def test_secret_uses_confidential_client(self, MockApp):
        app = MagicMock()
        app.acquire_token_by_authorization_code.return_value = {"access_token": "tok"}
        MockApp.return_value = app

        exchange_code("code-1", client_id="c", redirect_uri="http://r", secret="shh")

        assert MockApp.call_args[1]["client_credential"] == "shh"

    @patch("aadappcheck.auth.msal.PublicClientApplication")
    def test_error_response_raises(self, MockApp):
        app = MagicMock()
        app.acquire_token_by_authorization_code.return_value = {
            "error": "invalid_grant",
            "error_description": "AADSTS70008: code expired",
        }
        MockApp.return_value = app

        with pytest.raises(TokenAcquisitionError, match="AADSTS70008"):
            exchange_code("old", client_id="c", redirect_uri="http://r")


class TestDecodeJwt:
    def test_decodes_payload(self):
        assert decode_jwt_payload(_jwt({"aud": "https://graph.windows.net", "scp": "User.Read"})) == {
            "aud": "https://graph.windows.net",
            "scp": "User.Read",
        }

    @pytest.mark.parametrize("token", ["not-a-jwt", "a.!!!.c", "a.bm90IGpzb24.c"])
    def test_malformed(self, token):
        with pytest.raises(ValueError):
            decode_jwt_payload(token)


class TestTokenStore:
    def test_save_load_clear(self, tmp_path):
        store = TokenStore(tmp_path / "token.json")
        assert not store.exists()

        store.save({
            "access_token": "abc",
            "id_token_claims": {"tid": "t1", "oid": "u1"},
            "refresh_token": "r",
        })
        token = store.load()
        assert token.tenant_id == "t1"
        assert token.user_id == "u1"
        assert token.authorization == "Bearer abc"
        assert store.load_raw()["refresh_token"] == "r"

        assert store.clear() is True
        assert store.clear() is False

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(NotLoggedInError):
            TokenStore(tmp_path / "nope.json").load()

    def test_session_token_keeps_extra_fields(self):
        token = SessionToken(access_token="abc", expires_in=3600)
        assert token.tenant_id is None
        assert token.model_dump()["expires_in"] == 3600

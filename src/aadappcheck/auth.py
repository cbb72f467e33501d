"""Login helpers: authorization URLs, code exchange and the stored session token."""

import base64
import json
import logging
import os
import secrets
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit

import msal
from pydantic import BaseModel, ConfigDict

from aadappcheck.config import config
from aadappcheck.errors import NotLoggedInError, StateMismatchError, TokenAcquisitionError

logger = logging.getLogger(__name__)


def create_state() -> str:
    """Random nonce for the authorization request (48 bytes, URL-safe base64)."""
    return secrets.token_urlsafe(48)


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    *,
    authority: str | None = None,
    scopes: list[str] | None = None,
    state: str | None = None,
    extra: dict[str, str] | None = None,
) -> str:
    """Authorization-code request URL. Built locally, no discovery round-trip."""
    query = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": " ".join(scopes or config.SCOPES),
    }
    if state is not None:
        query["state"] = state
    query.update(extra or {})
    base = (authority or config.AUTHORITY).rstrip("/")
    return f"{base}/oauth2/v2.0/authorize?{urlencode(query)}"


def parse_redirect_url(url: str) -> dict[str, str]:
    """Query parameters of the URL the browser was redirected to."""
    query = dict(parse_qsl(urlsplit(url.strip()).query))
    if "error" in query:
        raise TokenAcquisitionError(f"{query['error']}: {query.get('error_description', '')}".strip())
    if "code" not in query:
        raise TokenAcquisitionError("No authorization code found in the URL")
    return query


def check_state(expected: str, received: str | None) -> None:
    if not received or not secrets.compare_digest(expected.encode("utf-8"), received.encode("utf-8")):
        raise StateMismatchError("State did not match")


def exchange_code(
    code: str,
    *,
    client_id: str,
    redirect_uri: str,
    authority: str | None = None,
    scopes: list[str] | None = None,
    secret: str | None = None,
) -> dict[str, Any]:
    """Redeem an authorization code with msal. Returns the raw token response."""
    authority = authority or config.AUTHORITY
    if secret:
        app = msal.ConfidentialClientApplication(
            client_id=client_id,
            authority=authority,
            client_credential=secret,
        )
    else:
        app = msal.PublicClientApplication(client_id=client_id, authority=authority)

    result = app.acquire_token_by_authorization_code(
        code=code,
        scopes=scopes or config.SCOPES,
        redirect_uri=redirect_uri,
    )
    if not result or "error" in result or "access_token" not in result:
        result = result or {}
        error = result.get("error_description", result.get("error", "Unknown error"))
        raise TokenAcquisitionError(f"Failed to acquire token: {error}")
    logger.debug("Token acquired for client %s", client_id)
    return result


def decode_jwt_payload(token: str) -> dict[str, Any]:
    """Claims of a JWT. The signature is NOT verified; this is for display only."""
    parts = token.split(".")
    if len(parts) != 3:
        raise ValueError("Not a JWT: expected three dot-separated segments")
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        return json.loads(base64.urlsafe_b64decode(payload))
    except ValueError as e:
        raise ValueError(f"Cannot decode JWT payload: {e}") from e


class SessionToken(BaseModel):
    """The stored token response, kept whole."""

    model_config = ConfigDict(extra="allow")

    access_token: str
    id_token_claims: dict[str, Any] = {}

    @property
    def tenant_id(self) -> str | None:
        return self.id_token_claims.get("tid")

    @property
    def user_id(self) -> str | None:
        return self.id_token_claims.get("oid")

    @property
    def authorization(self) -> str:
        return f"Bearer {self.access_token}"


class TokenStore:
    """A single JSON token file. Read at command start, written only on login."""

    def __init__(self, path: str | os.PathLike | None = None):
        self.path = os.fspath(path or config.TOKEN_FILE)

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def load_raw(self) -> dict[str, Any]:
        if not self.exists():
            raise NotLoggedInError(f"No token file at {self.path}")
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def load(self) -> SessionToken:
        return SessionToken(**self.load_raw())

    def save(self, token_response: dict[str, Any]) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(token_response, f, indent=2)
        logger.debug("Token saved to %s", self.path)

    def clear(self) -> bool:
        """Delete the token file. False if there was nothing to delete."""
        if not self.exists():
            return False
        os.remove(self.path)
        return True

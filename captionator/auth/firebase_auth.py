"""
Purpose:
- Thin wrapper over the Firebase Identity Toolkit REST API (email/password + Google sign-in).
- Every successful call updates an AuthSession so subscribers see the signed-in user.

Notes:
- Requires settings.firebase_api_key (or FIREBASE_API_KEY in env).
- Provider error codes (EMAIL_EXISTS, INVALID_PASSWORD, ...) are turned into readable AuthError messages.
"""

from __future__ import annotations
import logging
import os
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import httpx

from ..core.errors import AuthError
from ..core.settings import settings
from .session import AuthSession, User, UserCallback

logger = logging.getLogger(__name__)

ERROR_MESSAGES: Dict[str, str] = {
    "EMAIL_EXISTS": "An account with this email already exists.",
    "EMAIL_NOT_FOUND": "No account found for this email.",
    "INVALID_PASSWORD": "Incorrect password.",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password.",
    "INVALID_EMAIL": "The email address is badly formatted.",
    "USER_DISABLED": "This account has been disabled.",
    "INVALID_IDP_RESPONSE": "Google sign-in was rejected.",
}


def _provider_message(body: Any) -> str:
    try:
        code = body["error"]["message"]
    except (KeyError, TypeError):
        return "Authentication failed"
    # e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
    head, _, detail = code.partition(" : ")
    return ERROR_MESSAGES.get(head) or detail or head.replace("_", " ").capitalize()


def _user_from(body: Dict[str, Any], provider: str) -> User:
    return User(
        uid=body.get("localId", ""),
        email=body.get("email"),
        display_name=body.get("displayName") or None,
        provider=provider,
        id_token=body.get("idToken"),
        refresh_token=body.get("refreshToken"),
    )


class FirebaseAuth:
    def __init__(
        self,
        api_key: Optional[str] = None,
        session: Optional[AuthSession] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key or settings.firebase_api_key or os.getenv("FIREBASE_API_KEY")
        self.session = session or AuthSession()
        self._client = client or httpx.AsyncClient(timeout=settings.auth_timeout_s)

    async def _call(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise AuthError("Authentication is not configured")
        url = f"{settings.firebase_auth_endpoint.rstrip('/')}/accounts:{method}"
        try:
            r = await self._client.post(url, params={"key": self.api_key}, json=payload)
        except httpx.HTTPError as e:
            logger.warning("identity provider unreachable: %r", e)
            raise AuthError("Authentication service unavailable") from e
        try:
            body = r.json()
        except ValueError:
            body = {}
        if r.status_code >= 400:
            raise AuthError(_provider_message(body))
        return body

    async def register(self, email: str, password: str) -> User:
        body = await self._call("signUp", {"email": email, "password": password, "returnSecureToken": True})
        user = _user_from(body, "password")
        self.session.set_user(user)
        return user

    async def login(self, email: str, password: str) -> User:
        body = await self._call(
            "signInWithPassword", {"email": email, "password": password, "returnSecureToken": True}
        )
        user = _user_from(body, "password")
        self.session.set_user(user)
        return user

    async def login_with_google(self, google_id_token: str, request_uri: str = "http://localhost") -> User:
        body = await self._call("signInWithIdp", {
            "postBody": urlencode({"id_token": google_id_token, "providerId": "google.com"}),
            "requestUri": request_uri,
            "returnSecureToken": True,
            "returnIdpCredential": True,
        })
        user = _user_from(body, "google.com")
        self.session.set_user(user)
        return user

    def logout(self) -> None:
        self.session.set_user(None)

    def on_user_state_change(self, callback: UserCallback) -> Callable[[], None]:
        return self.session.subscribe(callback)

    async def aclose(self) -> None:
        await self._client.aclose()

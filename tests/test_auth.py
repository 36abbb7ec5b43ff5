"""Identity-provider wrapper and the observable session."""

import json

import httpx
import pytest

from captionator.auth.firebase_auth import FirebaseAuth
from captionator.auth.session import AuthSession, User
from captionator.core.errors import AuthError


def _provider(routes: dict):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        method = request.url.path.rsplit(":", 1)[-1]
        status, body = routes[method]
        return httpx.Response(status, json=body)

    return handler, seen


def _auth(handler) -> FirebaseAuth:
    return FirebaseAuth(api_key="fb-key", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


SIGNED_IN = {"localId": "uid-1", "email": "ada@example.com", "idToken": "tok", "refreshToken": "ref"}


class TestAuthSession:

    def test_subscribers_see_current_value_then_changes(self):
        session = AuthSession()
        seen = []
        unsubscribe = session.subscribe(seen.append)
        user = User(uid="u", email="e@example.com")

        session.set_user(user)
        session.set_user(user)  # no change, no callback
        session.set_user(None)
        unsubscribe()
        session.set_user(user)

        assert seen == [None, user, None]


class TestFirebaseAuth:

    async def test_login_updates_session(self):
        handler, seen = _provider({"signInWithPassword": (200, SIGNED_IN)})
        auth = _auth(handler)
        events = []
        auth.on_user_state_change(events.append)

        user = await auth.login("ada@example.com", "hunter22")

        assert user.uid == "uid-1"
        assert auth.session.current_user == user
        assert events == [None, user]
        body = json.loads(seen[0].content)
        assert body["returnSecureToken"] is True
        assert seen[0].url.params["key"] == "fb-key"

        auth.logout()
        assert auth.session.current_user is None

    async def test_google_sign_in_posts_id_token(self):
        handler, seen = _provider({"signInWithIdp": (200, {**SIGNED_IN, "displayName": "Ada"})})
        user = await _auth(handler).login_with_google("google-id-token")
        assert user.provider == "google.com"
        assert user.display_name == "Ada"
        assert "id_token=google-id-token" in json.loads(seen[0].content)["postBody"]

    @pytest.mark.parametrize("code,message", [
        ("EMAIL_EXISTS", "An account with this email already exists."),
        ("WEAK_PASSWORD : Password should be at least 6 characters", "Password should be at least 6 characters"),
        ("TOO_MANY_ATTEMPTS_TRY_LATER", "Too many attempts try later"),
    ])
    async def test_provider_errors_are_readable(self, code, message):
        handler, _ = _provider({"signUp": (400, {"error": {"code": 400, "message": code}})})
        auth = _auth(handler)
        with pytest.raises(AuthError) as exc:
            await auth.register("ada@example.com", "pw")
        assert exc.value.message == message
        assert auth.session.current_user is None

    async def test_missing_api_key(self):
        auth = FirebaseAuth(client=httpx.AsyncClient())
        auth.api_key = None
        with pytest.raises(AuthError):
            await auth.login("ada@example.com", "hunter22")

"""
Purpose:
- Email/password and Google sign-in, proxied to the identity provider.
- Tokens are returned to the caller; no server-side session is kept between requests.
"""

from dataclasses import asdict
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..auth.firebase_auth import FirebaseAuth
from ..auth.session import User

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

class Credentials(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)


class GoogleSignIn(BaseModel):
    id_token: str = Field(..., alias="idToken", min_length=1)
    request_uri: str = Field("http://localhost", alias="requestUri")


class UserOut(BaseModel):
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = Field(None, serialization_alias="displayName")
    provider: str
    id_token: Optional[str] = Field(None, serialization_alias="idToken")
    refresh_token: Optional[str] = Field(None, serialization_alias="refreshToken")

    @classmethod
    def of(cls, user: User) -> "UserOut":
        return cls(**asdict(user))


async def get_auth() -> AsyncIterator[FirebaseAuth]:
    auth = FirebaseAuth()
    try:
        yield auth
    finally:
        await auth.aclose()


@router.post("/register", response_model=UserOut, response_model_by_alias=True)
async def register(payload: Credentials, auth: FirebaseAuth = Depends(get_auth)):
    return UserOut.of(await auth.register(payload.email, payload.password))


@router.post("/login", response_model=UserOut, response_model_by_alias=True)
async def login(payload: Credentials, auth: FirebaseAuth = Depends(get_auth)):
    return UserOut.of(await auth.login(payload.email, payload.password))


@router.post("/google", response_model=UserOut, response_model_by_alias=True)
async def google(payload: GoogleSignIn, auth: FirebaseAuth = Depends(get_auth)):
    return UserOut.of(await auth.login_with_google(payload.id_token, payload.request_uri))


@router.post("/logout")
async def logout():
    # tokens live on the client; dropping them there is the whole sign-out
    return {"ok": True, "user": None}

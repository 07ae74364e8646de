from __future__ import annotations

import aiosqlite

import db.crud as crud
from db.models import AuthSession, User
from utils.errors import AuthenticationError, ValidationError, remote_call
from utils.logger import get_logger

_logger = get_logger(__name__)


async def login_user(email: str, password: str) -> AuthSession:
    """
    Sign in, then attach the user's profile.

    A failed profile lookup still logs the user in, just without admin rights.
    """
    email = (email or "").strip()
    if not email or not password:
        raise ValidationError("Email or password cannot be empty!")

    async with remote_call("log in"):
        session = await crud.sign_in(email, password)

    try:
        profile = await crud.get_profile(session.user.id)
    except aiosqlite.Error as e:
        _logger.error(f"Error fetching profile for {session.user.id}: {e}")
        return session

    return AuthSession(
        access_token=session.access_token,
        user=User(id=session.user.id, email=session.user.email, profile=profile),
    )


async def register_user(email: str, password: str) -> User:
    """Create an account (and its profile). The caller logs in separately."""
    email = (email or "").strip()
    if not email or not password:
        raise ValidationError("Make sure all inputs are filled.")
    async with remote_call("register"):
        return await crud.sign_up(email, password)


async def grant_admin(email: str, is_admin: bool = True) -> None:
    """Operator action: make an existing account an administrator (or revoke it)."""
    email = (email or "").strip()
    if not email:
        raise ValidationError("An email address is required.")
    async with remote_call("update the account"):
        updated = await crud.set_admin(email, is_admin)
    if not updated:
        raise ValidationError(f"No account registered with {email}.")


async def complete_external_sign_in(access_token: str) -> AuthSession:
    """
    Finish a redirect-based sign-in: resolve the access token handed back by
    the external provider into a full session.
    """
    if not access_token:
        raise AuthenticationError("Missing access token.", title="Login Failed")
    async with remote_call("complete authentication"):
        user = await crud.get_session_user(access_token)
    if user is None:
        raise AuthenticationError(
            "The sign-in link is invalid or has expired.", title="Login Failed"
        )
    return AuthSession(access_token=access_token, user=user)

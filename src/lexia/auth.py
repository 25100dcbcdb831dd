"""Concrete implementations for authentication managers."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .errors import AuthenticationError

logger = logging.getLogger(__name__)


class Auth(ABC):
    """Interface for signing users in and identifying the current user.

    A signed-in user is represented by a session payload, a plain dict with at
    least ``user_id`` and ``email`` that the browser keeps for the tab's
    lifetime.
    """

    @abstractmethod
    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        """Authenticates a user and returns their session payload.

        Raises
        ------
        AuthenticationError
            If the credentials are rejected.
        """
        pass

    @abstractmethod
    def sign_up(self, email: str, password: str) -> None:
        """Registers a new account."""
        pass

    @abstractmethod
    def sign_out(self, session: Optional[Dict[str, Any]]) -> None:
        """Ends the given session."""
        pass

    @abstractmethod
    def get_current_user_id(self, **kwargs) -> Optional[str]:
        """Returns the ID of the current user, or None if nobody is signed in."""
        pass


class SingleUser(Auth):
    """A simple auth manager for single-user installs.

    Every sign-in succeeds as the same user, so the user is always known.
    """

    def __init__(self, user_id: str = "lexia"):
        """Initialize with a user ID.

        Parameters
        ----------
        user_id : str, default="lexia"
            User identifier. Non-string values will be converted to strings.
        """
        self._user_id = str(user_id)

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        return {"user_id": self._user_id, "email": email}

    def sign_up(self, email: str, password: str) -> None:
        pass

    def sign_out(self, session: Optional[Dict[str, Any]]) -> None:
        pass

    def get_current_user_id(self, **kwargs) -> Optional[str]:
        return self._user_id


class Supabase(Auth):
    """Email/password accounts managed by Supabase Auth.

    The client given here is used for auth calls only. Signing in on a
    supabase-py client rewrites that client's database ``Authorization``
    header, so it must not be the client the message store queries with.

    The browser keeps the session payload, so the user id in it is never
    trusted: every lookup verifies ``access_token`` with Supabase and takes
    the id from the verified user.

    Parameters
    ----------
    url : str, optional
        Supabase project URL. Ignored when ``client`` is given.
    key : str, optional
        Supabase API key. Ignored when ``client`` is given.
    client : supabase.Client, optional
        A client dedicated to auth calls.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        if client is None:
            from supabase import create_client

            client = create_client(url, key)
        self.client = client

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        from supabase import AuthError

        try:
            response = self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except AuthError as e:
            logger.info("Sign-in rejected for %s: %s", email, e)
            raise AuthenticationError(str(e)) from e
        if response.user is None or response.session is None:
            raise AuthenticationError("Credenciales inválidas")
        return {
            "user_id": response.user.id,
            "email": response.user.email,
            "access_token": response.session.access_token,
        }

    def sign_up(self, email: str, password: str) -> None:
        from supabase import AuthError

        try:
            self.client.auth.sign_up({"email": email, "password": password})
        except AuthError as e:
            logger.info("Sign-up rejected for %s: %s", email, e)
            raise AuthenticationError(str(e)) from e

    def sign_out(self, session: Optional[Dict[str, Any]]) -> None:
        """Revokes the session's own token; other users' sessions are untouched."""
        from supabase import AuthError

        token = (session or {}).get("access_token")
        if not token:
            return
        try:
            self.client.auth.admin.sign_out(token)
        except AuthError as e:
            logger.warning("Sign-out failed: %s", e)

    def get_current_user_id(self, **kwargs) -> Optional[str]:
        """Returns the id of the user owning ``session["access_token"]``.

        A missing, expired or forged token gives None.
        """
        from supabase import AuthError

        session = kwargs.get("session") or {}
        token = session.get("access_token")
        if not token:
            return None
        try:
            response = self.client.auth.get_user(token)
        except AuthError as e:
            logger.warning("Session token rejected: %s", e)
            return None
        if response is None or response.user is None:
            return None
        user_id = response.user.id
        if session.get("user_id") != user_id:
            logger.warning("Session user_id does not match its access token")
        return user_id

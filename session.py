import asyncio
import logging
from enum import Enum
from typing import Dict, Optional

import httpx
from jose import JWTError, jwt

from conn import ADMIN_LOGOUT_REDIRECT, ADMIN_TOKEN_KEY, USER_TOKEN_KEY
from fetcher import ApiError, bearer, fetcher

lg = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"
ADMIN_LOGIN_PATH = "/admin"


# Token storage backends
class MemoryStorage:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str):
        self.data[key] = value

    def remove(self, key: str):
        self.data.pop(key, None)


class CookieStorage(MemoryStorage):
    """
    Browser cookies as token storage. Reads come from the incoming request,
    writes are collected and copied onto the outgoing response by apply().
    """

    def __init__(self, cookies: Dict[str, str]):
        super().__init__(cookies)
        self.changes: Dict[str, Optional[str]] = {}

    def set(self, key: str, value: str):
        super().set(key, value)
        self.changes[key] = value

    def remove(self, key: str):
        super().remove(key)
        self.changes[key] = None

    def apply(self, response):
        for key, value in self.changes.items():
            if value is None:
                response.delete_cookie(key)
            else:
                response.set_cookie(key, value, httponly=True, samesite="lax")
        return response


# Token utilities
def decode_claims(token: Optional[str]) -> Optional[dict]:
    if not token:
        return None
    try:
        return jwt.get_unverified_claims(token)
    except JWTError as e:
        lg.warning("Failed to decode token: %s", e)
        return None


def decode_subject(token: Optional[str]) -> Optional[int]:
    claims = decode_claims(token)
    if not claims:
        return None
    subject = claims.get("userId") or claims.get("id")
    try:
        return int(subject) if subject is not None else None
    except (TypeError, ValueError):
        return None


class SessionState(Enum):
    ANONYMOUS = "anonymous"
    PENDING = "pending"
    AUTHENTICATED = "authenticated"
    INVALID = "invalid"


class AuthContext:
    """
    The two independent sessions (end-user and admin) shared by all pages.

    A slot with a stored token starts PENDING until initialize() has probed
    the backend; a failed probe clears the token and marks the slot INVALID.
    """

    def __init__(
        self,
        storage: MemoryStorage,
        client: Optional[httpx.AsyncClient] = None,
        admin_logout_redirect: bool = ADMIN_LOGOUT_REDIRECT,
        user_key: str = USER_TOKEN_KEY,
        admin_key: str = ADMIN_TOKEN_KEY,
    ):
        self.storage = storage
        self.client = client
        self.admin_logout_redirect = admin_logout_redirect
        self.user_key = user_key
        self.admin_key = admin_key
        self.user_state = SessionState.PENDING if self.user_token else SessionState.ANONYMOUS
        self.admin_state = SessionState.PENDING if self.admin_token else SessionState.ANONYMOUS

    @property
    def user_token(self) -> Optional[str]:
        return self.storage.get(self.user_key)

    @property
    def admin_token(self) -> Optional[str]:
        return self.storage.get(self.admin_key)

    @property
    def is_user_authenticated(self) -> bool:
        return self.user_state == SessionState.AUTHENTICATED

    @property
    def is_admin_authenticated(self) -> bool:
        return self.admin_state == SessionState.AUTHENTICATED

    @property
    def user_id(self) -> Optional[int]:
        return decode_subject(self.user_token)

    async def initialize(self):
        checks = []
        if self.user_token:
            checks.append(self._check_user())
        if self.admin_token:
            checks.append(self._check_admin())
        await asyncio.gather(*checks)

    async def _probe(self, endpoint: str, token: str) -> bool:
        try:
            await fetcher(endpoint, method="POST", headers=bearer(token), client=self.client)
        except ApiError as e:
            lg.info("Verification against %s failed, clearing session: %s", endpoint, e.message)
            return False
        return True

    async def _check_user(self):
        if await self._probe("/auth/me", self.user_token):
            self.user_state = SessionState.AUTHENTICATED
        else:
            self.storage.remove(self.user_key)
            self.user_state = SessionState.INVALID

    async def _check_admin(self):
        if await self._probe("/auth/admin/me", self.admin_token):
            self.admin_state = SessionState.AUTHENTICATED
        else:
            self.storage.remove(self.admin_key)
            self.admin_state = SessionState.INVALID

    def login(self, token: str):
        self.storage.set(self.user_key, token)
        self.user_state = SessionState.AUTHENTICATED

    def login_admin(self, token: str):
        self.storage.set(self.admin_key, token)
        self.admin_state = SessionState.AUTHENTICATED

    def logout(self) -> str:
        self.storage.remove(self.user_key)
        self.user_state = SessionState.ANONYMOUS
        return LOGIN_PATH

    def logout_admin(self) -> Optional[str]:
        self.storage.remove(self.admin_key)
        self.admin_state = SessionState.ANONYMOUS
        return ADMIN_LOGIN_PATH if self.admin_logout_redirect else None

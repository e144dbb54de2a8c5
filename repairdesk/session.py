"""
Login/session contract consumed by the login screen.

Credentials are checked against the remote users table. When the remote store
is unreachable the locally cached accounts are used instead, plus the
configured default administrator so an empty cache never locks everyone out.
The authenticated user (without password) is remembered under the cache
`session` key.
"""

from __future__ import annotations

import hmac
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from repairdesk.config import Settings, get_settings
from repairdesk.domain.models import Collection, SessionUser, UserAccount, UserRole
from repairdesk.errors import TransportError
from repairdesk.schema import DEFAULT_ADMIN_ID
from repairdesk.storage.abstract import RemoteStore
from repairdesk.storage.local import SESSION_KEY, LocalCache, LocalCacheTier
from repairdesk.utils.logging import get_logger

log = get_logger(__name__)


class SessionManager:
    def __init__(
        self,
        remote: RemoteStore,
        cache: LocalCache,
        settings: Optional[Settings] = None,
    ) -> None:
        self.remote = remote
        self.cache = cache
        self.settings = settings or get_settings()

    async def _local_account(self, username: str) -> Optional[UserAccount]:
        try:
            account = await LocalCacheTier(self.cache).get(Collection.USERS, username)
        except OSError:
            log.exception("Local cache unreadable during login")
            account = None
        if account is None and username == self.settings.seed_admin_username:
            return UserAccount(
                id=DEFAULT_ADMIN_ID,
                username=self.settings.seed_admin_username,
                password=self.settings.seed_admin_password,
                name=self.settings.seed_admin_name,
                role=UserRole.ADMIN,
            )
        return account  # type: ignore[return-value]

    async def login(self, username: str, password: str) -> Optional[SessionUser]:
        """
        Authenticate and remember the user. Returns None on bad credentials.
        """
        try:
            account = await self.remote.get(Collection.USERS, username)
        except TransportError as exc:
            log.warning("Remote login unavailable; checking local accounts", extra={"error": str(exc)})
            account = await self._local_account(username)

        if account is None or not hmac.compare_digest(
            account.password.encode("utf-8"), password.encode("utf-8")  # type: ignore[union-attr]
        ):
            log.info("Login rejected", extra={"username": username})
            return None

        user = account.public()  # type: ignore[union-attr]
        try:
            await self.cache.set(SESSION_KEY, user.model_dump(mode="json"))
        except OSError:
            log.exception("Could not persist session locally")
        log.info("Login accepted", extra={"username": username, "role": user.role.value})
        return user

    async def current_user(self) -> Optional[SessionUser]:
        try:
            raw = await self.cache.get(SESSION_KEY)
        except OSError:
            log.exception("Could not read session from local cache")
            return None
        if not raw:
            return None
        try:
            return SessionUser.model_validate(raw)
        except PydanticValidationError:
            log.warning("Discarding unreadable stored session")
            return None

    async def logout(self) -> None:
        try:
            await self.cache.remove(SESSION_KEY)
        except OSError:
            log.exception("Could not clear session from local cache")


__all__ = ["SessionManager"]

"""In-memory credential storage and auth header production.

Credentials are either a bearer token or a set of API-key headers, each
with an optional expiry. Expiry is checked on every read, so expired
material is never handed out.
"""

import logging
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"
USER_EMAIL_HEADER = "X-User-Email"
PROJECT_PASSWORD_HEADER = "X-Project-Password"


@dataclass(frozen=True)
class Credential:
    """Opaque auth material: a bearer token, explicit headers, or both."""
    token: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def as_headers(self) -> Dict[str, str]:
        result = dict(self.headers)
        if self.token:
            result["Authorization"] = f"Bearer {self.token}"
        return result


class CredentialManager:
    """Owns the process credential and its expiry."""

    def __init__(self, clock: Callable[[], float] = time.time):
        """Initializes an empty store.

        Args:
            clock: Returns the current time in epoch seconds.
        """
        self._clock = clock
        self._credential: Optional[Credential] = None
        self._expires_at: Optional[float] = None
        self._lock = Lock()

    def set_credential(self, credential: Credential, expires_in_seconds: Optional[float] = None) -> None:
        """Stores ``credential``; an expiry is recorded only when one is given."""
        with self._lock:
            self._credential = credential
            self._expires_at = (
                self._clock() + expires_in_seconds if expires_in_seconds is not None else None
            )
        logger.debug(f"Credential stored (expires_in={expires_in_seconds})")

    def set_token(self, token: str, expires_in_seconds: Optional[float] = None) -> None:
        self.set_credential(Credential(token=token), expires_in_seconds)

    def set_api_key_credentials(
        self,
        api_key: str,
        email: str,
        project_password: str,
        expires_in_seconds: Optional[float] = None,
    ) -> None:
        """Stores the API-key header set used by project scoped calls."""
        self.set_credential(
            Credential(headers={
                API_KEY_HEADER: api_key,
                USER_EMAIL_HEADER: email,
                PROJECT_PASSWORD_HEADER: project_password,
            }),
            expires_in_seconds,
        )

    def _is_expired_locked(self) -> bool:
        return self._expires_at is not None and self._clock() > self._expires_at

    def _clear_locked(self) -> None:
        self._credential = None
        self._expires_at = None

    def _current(self) -> Optional[Credential]:
        with self._lock:
            if self._credential is not None and self._is_expired_locked():
                logger.info("Stored credential expired, clearing it")
                self._clear_locked()
            return self._credential

    def is_expired(self) -> bool:
        with self._lock:
            return self._is_expired_locked()

    def has_credential(self) -> bool:
        return self._current() is not None

    def get_token(self) -> Optional[str]:
        credential = self._current()
        return credential.token if credential else None

    def get_auth_headers(self) -> Dict[str, str]:
        """Returns the headers for the stored credential, or {} when none is valid."""
        credential = self._current()
        if credential is None:
            return {}
        return credential.as_headers()

    def clear(self) -> None:
        with self._lock:
            self._clear_locked()
        logger.debug("Credential cleared")

import json
import logging
import time
import uuid
from pathlib import Path
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)


class ClientSession:
    """Client-local identity: the access token and the anonymous voting session id.

    The session id is minted on first use and kept stable for as long as the
    client stays logged in, which is what keeps one vote per item per client.
    Logging out, or the token expiring, clears both. When ``storage_path`` is
    given the state survives restarts, like browser local storage.
    """

    def __init__(self, storage_path: Optional[Union[str, Path]] = None, clock: Callable[[], float] = time.time):
        self.storage_path = Path(storage_path) if storage_path else None
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires_at: Optional[float] = None
        self._session_id: Optional[str] = None
        self._load()

    @property
    def token(self) -> Optional[str]:
        if self._token is not None and self._is_expired():
            logger.info("Access token expired, clearing client session")
            self.clear()
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    @property
    def session_id(self) -> str:
        if self._session_id is None:
            self._session_id = uuid.uuid4().hex
            self._save()
        return self._session_id

    def store_token(self, token: str, expires_in_ms: Optional[int] = None):
        self._token = token
        self._token_expires_at = (
            self._clock() + expires_in_ms / 1000.0 if expires_in_ms is not None else None
        )
        self._save()

    def clear(self):
        self._token = None
        self._token_expires_at = None
        self._session_id = None
        if self.storage_path is not None and self.storage_path.exists():
            self.storage_path.unlink()

    def _is_expired(self) -> bool:
        return self._token_expires_at is not None and self._clock() >= self._token_expires_at

    def _load(self):
        if self.storage_path is None or not self.storage_path.exists():
            return
        try:
            data = json.loads(self.storage_path.read_text())
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable client session file %s", self.storage_path)
            return
        self._token = data.get("token")
        self._token_expires_at = data.get("token_expires_at")
        self._session_id = data.get("session_id")

    def _save(self):
        if self.storage_path is None:
            return
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        self.storage_path.write_text(json.dumps({
            "token": self._token,
            "token_expires_at": self._token_expires_at,
            "session_id": self._session_id,
        }))

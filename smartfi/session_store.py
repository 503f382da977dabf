import json
import logging
import os
import secrets
from pathlib import Path
from typing import Dict, Optional, Protocol

from smartfi.models import DelegatedMode, DemoMode, PersistedMode

logger = logging.getLogger(__name__)

SESSION_ID_KEY = "mcp_session_id"
DEMO_MODE_KEY = "fi_mcp_demo_mode"
DEMO_PHONE_KEY = "fi_mcp_demo_phone"


class KeyValueStore(Protocol):
    """Persistence port: string keys to string values."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Key/value pairs in a single JSON file, rewritten atomically on every change."""

    def __init__(self, path):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except ValueError:
            # JSONDecodeError and UnicodeDecodeError
            logger.warning(f"State file {self.path} is corrupt, starting empty")
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)


class SessionStore:
    """
    Owns the session identifier and the persisted mode.

    If the backend raises OSError the store switches to memory for the rest of
    the process; the session id then lives only as long as the process.
    """

    def __init__(self, backend: Optional[KeyValueStore] = None):
        self._backend: KeyValueStore = backend if backend is not None else MemoryStore()
        self._session_id: Optional[str] = None
        self.degraded = False

    @classmethod
    def from_path(cls, path) -> "SessionStore":
        if path is None:
            return cls(MemoryStore())
        return cls(JsonFileStore(path))

    def _degrade(self, error: OSError) -> None:
        logger.warning(f"Local persistence unavailable ({error}); keeping session state in memory only")
        self._backend = MemoryStore()
        self.degraded = True

    def _get(self, key: str) -> Optional[str]:
        try:
            return self._backend.get(key)
        except OSError as e:
            self._degrade(e)
            return self._backend.get(key)

    def _set(self, key: str, value: str) -> None:
        try:
            self._backend.set(key, value)
        except OSError as e:
            self._degrade(e)
            self._backend.set(key, value)

    def _remove(self, key: str) -> None:
        try:
            self._backend.remove(key)
        except OSError as e:
            self._degrade(e)
            self._backend.remove(key)

    def get_or_create_session_id(self) -> str:
        if self._session_id is not None:
            return self._session_id

        stored = self._get(SESSION_ID_KEY)
        if not stored:
            stored = f"mcp-session-{secrets.token_hex(8)}"
            self._set(SESSION_ID_KEY, stored)
            logger.info("Generated new session id")
        self._session_id = stored
        return stored

    def get_persisted_mode(self) -> Optional[PersistedMode]:
        flag = self._get(DEMO_MODE_KEY)
        if flag == "true":
            phone = self._get(DEMO_PHONE_KEY)
            if phone:
                return DemoMode(phone_number=phone)
            return None
        if flag == "false":
            return DelegatedMode()
        return None

    def set_mode(self, mode: PersistedMode) -> None:
        if isinstance(mode, DemoMode):
            self._set(DEMO_MODE_KEY, "true")
            self._set(DEMO_PHONE_KEY, mode.phone_number)
        else:
            self._set(DEMO_MODE_KEY, "false")
            self._remove(DEMO_PHONE_KEY)

    def clear_mode(self) -> None:
        self._remove(DEMO_MODE_KEY)
        self._remove(DEMO_PHONE_KEY)

    def clear(self) -> None:
        """Forget everything, including the session id. A new id is generated on next use."""
        self.clear_mode()
        self._remove(SESSION_ID_KEY)
        self._session_id = None

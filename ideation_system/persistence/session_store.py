"""
Session storage for coordinator runs.

A session is a JSON-serializable dict keyed by session id. The file store
writes one ``<session_id>.json`` per session, atomically, so a crash never
leaves a half-written session behind.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable
import copy
import json
import logging
import os
import re

from ideation_system.exceptions import ConfigurationError, ValidationError
from ideation_system.utils.file_ops import atomic_write_json

logger = logging.getLogger(__name__)

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def _check_id(session_id: str) -> str:
    if not session_id or not _SESSION_ID_RE.match(session_id) or session_id.startswith("."):
        raise ValidationError(f"invalid session id: {session_id!r}")
    return session_id


@runtime_checkable
class SessionStore(Protocol):
    def save(self, session_id: str, data: Dict[str, Any]) -> None: ...

    def load(self, session_id: str) -> Optional[Dict[str, Any]]: ...

    def list_sessions(self) -> List[str]: ...

    def delete(self, session_id: str) -> bool: ...


class InMemorySessionStore:
    def __init__(self):
        self._sessions: Dict[str, Dict[str, Any]] = {}

    def save(self, session_id: str, data: Dict[str, Any]) -> None:
        self._sessions[_check_id(session_id)] = copy.deepcopy(data)

    def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        data = self._sessions.get(_check_id(session_id))
        return copy.deepcopy(data) if data is not None else None

    def list_sessions(self) -> List[str]:
        return sorted(self._sessions)

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(_check_id(session_id), None) is not None


class JsonFileSessionStore:
    def __init__(self, directory: str):
        if not directory:
            raise ConfigurationError("session directory is required")
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def _path(self, session_id: str) -> str:
        return os.path.join(self.directory, f"{_check_id(session_id)}.json")

    def save(self, session_id: str, data: Dict[str, Any]) -> None:
        atomic_write_json(self._path(session_id), data)
        logger.debug(f"Saved session {session_id} to {self.directory}")

    def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        path = self._path(session_id)
        if not os.path.exists(path):
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"session {session_id} is corrupt: {e}") from e

    def list_sessions(self) -> List[str]:
        return sorted(
            name[:-len(".json")]
            for name in os.listdir(self.directory)
            if name.endswith(".json") and not name.startswith(".")
        )

    def delete(self, session_id: str) -> bool:
        path = self._path(session_id)
        if not os.path.exists(path):
            return False
        os.remove(path)
        return True

from .session_store import InMemorySessionStore, JsonFileSessionStore, SessionStore

__all__ = ["SessionStore", "InMemorySessionStore", "JsonFileSessionStore"]

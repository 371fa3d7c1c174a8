"""
Speech session and session status data classes.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from speech_client.utils.exceptions import InvalidArgumentError, ServiceError, SessionBusyError


class SessionLifecycle(Enum):
    """Client-side lifecycle of a session handle."""
    ACTIVE = "active"
    BUSY = "busy"
    DELETE_PENDING = "delete_pending"
    DELETED = "deleted"


class SessionState:
    """Recognition states reported by the service."""
    INITIALIZED = "initialized"
    INITIALIZING = "initializing"
    LISTENING = "listening"
    READY = "ready"
    PROCESSING = "processing"
    CLOSED = "closed"


@dataclass
class SpeechSession:
    """Server-side session handle owned by the caller until deleted."""
    session_id: str
    model: Optional[str] = None
    new_session_uri: Optional[str] = None
    recognize_url: Optional[str] = None
    observe_result_url: Optional[str] = None
    recognize_ws_url: Optional[str] = None
    lifecycle: SessionLifecycle = SessionLifecycle.ACTIVE

    @classmethod
    def from_dict(cls, data: Dict[str, Any], model: Optional[str] = None) -> "SpeechSession":
        """Build a session from the create-session response."""
        if not isinstance(data, dict) or not data.get("session_id"):
            raise ServiceError(f"Session response carried no session_id: {data!r}")
        return cls(
            session_id=data["session_id"],
            model=model,
            new_session_uri=data.get("new_session_uri"),
            recognize_url=data.get("recognize"),
            observe_result_url=data.get("observe_result"),
            recognize_ws_url=data.get("recognizeWS"),
        )

    @property
    def is_deleted(self) -> bool:
        return self.lifecycle is SessionLifecycle.DELETED

    def ensure_usable(self):
        """Raise if the session can no longer be used for recognition."""
        if self.is_deleted:
            raise InvalidArgumentError(f"Session {self.session_id} has been deleted")
        if self.lifecycle is SessionLifecycle.DELETE_PENDING:
            raise InvalidArgumentError(f"Session {self.session_id} is being deleted")

    def acquire(self):
        """Mark the session busy for one streaming exchange."""
        self.ensure_usable()
        if self.lifecycle is SessionLifecycle.BUSY:
            raise SessionBusyError(f"Session {self.session_id} already has a streaming recognition in progress")
        self.lifecycle = SessionLifecycle.BUSY

    def release(self):
        """Return a busy session to the active state."""
        if self.lifecycle is SessionLifecycle.BUSY:
            self.lifecycle = SessionLifecycle.ACTIVE

    def mark_delete_pending(self):
        """Block reuse while a delete request is outstanding or has failed."""
        self.lifecycle = SessionLifecycle.DELETE_PENDING

    def mark_deleted(self):
        self.lifecycle = SessionLifecycle.DELETED


@dataclass(frozen=True)
class SessionStatus:
    """Recognition status of a session."""
    model: str
    state: str
    session_id: Optional[str] = None
    recognize_url: Optional[str] = None
    observe_result_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], session_id: Optional[str] = None) -> "SessionStatus":
        """Build a status from the recognize-status response."""
        body = data.get("session") if isinstance(data, dict) else None
        if not isinstance(body, dict) or not isinstance(body.get("state"), str) or not isinstance(body.get("model"), str):
            raise ServiceError(f"Malformed session status: {data!r}")

        # The service reports the model as a URL to its descriptor
        model = body["model"].rstrip("/").rsplit("/", 1)[-1]
        if not model or not body["state"]:
            raise ServiceError(f"Malformed session status: {data!r}")
        return cls(
            model=model,
            state=body["state"],
            session_id=session_id,
            recognize_url=body.get("recognize"),
            observe_result_url=body.get("observe_result"),
        )

"""
Events emitted by a streaming recognition, in arrival order.
"""
from dataclasses import dataclass
from typing import Optional, Union

from speech_client.data_layer.data_classes.domain_models.speech_results import SpeechResults


@dataclass(frozen=True)
class Connected:
    """The channel handshake succeeded."""


@dataclass(frozen=True)
class Interim:
    """Accumulated results after a non-terminal server message."""
    results: SpeechResults


@dataclass(frozen=True)
class Final:
    """Terminal results of the whole stream."""
    results: SpeechResults


@dataclass(frozen=True)
class Error:
    """Terminal failure reported by the service or the transport."""
    error: Exception


@dataclass(frozen=True)
class Disconnected:
    """The channel closed before the terminal result."""
    error: Optional[Exception] = None


RecognitionEvent = Union[Connected, Interim, Final, Error, Disconnected]

TERMINAL_EVENTS = (Final, Error, Disconnected)


def is_terminal(event: RecognitionEvent) -> bool:
    return isinstance(event, TERMINAL_EVENTS)

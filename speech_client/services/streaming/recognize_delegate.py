"""
Observer interface for streaming recognition.
"""
from abc import ABC, abstractmethod

from speech_client.data_layer.data_classes.domain_models.speech_results import SpeechResults


class RecognizeDelegate(ABC):
    """
    Receives the notifications of one streaming recognition.

    Handlers may be plain methods or coroutines; each one completes before the
    next notification is dispatched. They run on the recognizer's dispatch task,
    not on the caller's call stack. Exactly one of on_message(..., True),
    on_error or on_disconnected ends every attempt.
    """

    @abstractmethod
    def on_connected(self):
        """The channel to the service is open."""
        pass

    @abstractmethod
    def on_message(self, speech_results: SpeechResults, is_final: bool):
        """Accumulated results; is_final marks the terminal result of the stream."""
        pass

    @abstractmethod
    def on_error(self, error: Exception):
        """The service or the transport failed."""
        pass

    @abstractmethod
    def on_disconnected(self):
        """The channel closed before the terminal result."""
        pass

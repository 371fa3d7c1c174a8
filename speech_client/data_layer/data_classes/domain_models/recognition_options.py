"""
Recognition options data class.
"""
import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from speech_client.data_layer.data_classes.domain_models.speech_model import model_name
from speech_client.utils.exceptions import InvalidArgumentError


@dataclass(frozen=True)
class RecognitionOptions:
    """Options for one recognition call. Immutable; use replace() to derive new options."""
    continuous: bool = False
    interim_results: bool = False
    timestamps: bool = False
    word_confidence: bool = False
    content_type: Optional[str] = None
    model: Optional[str] = None
    max_alternatives: Optional[int] = None
    inactivity_timeout: Optional[int] = None
    profanity_filter: Optional[bool] = None
    keywords: Tuple[str, ...] = ()
    keywords_threshold: Optional[float] = None
    word_alternatives_threshold: Optional[float] = None

    def __post_init__(self):
        # Accept SpeechModel instances and any iterable of keywords
        object.__setattr__(self, "model", model_name(self.model))
        if isinstance(self.keywords, str):
            object.__setattr__(self, "keywords", (self.keywords,))
        else:
            object.__setattr__(self, "keywords", tuple(self.keywords or ()))
        self._validate()

    def _validate(self):
        if self.max_alternatives is not None and self.max_alternatives < 1:
            raise InvalidArgumentError(f"max_alternatives must be at least 1, got {self.max_alternatives}")
        if self.inactivity_timeout is not None and self.inactivity_timeout < -1:
            raise InvalidArgumentError(f"inactivity_timeout must be -1 or greater, got {self.inactivity_timeout}")
        for name in ("keywords_threshold", "word_alternatives_threshold"):
            value = getattr(self, name)
            if value is not None and not 0.0 <= value <= 1.0:
                raise InvalidArgumentError(f"{name} must be between 0 and 1, got {value}")
        if self.keywords and self.keywords_threshold is None:
            raise InvalidArgumentError("keywords require keywords_threshold")
        if any(not keyword.strip() for keyword in self.keywords):
            raise InvalidArgumentError("keywords must not be blank")
        if self.content_type is not None and not self.content_type.strip():
            raise InvalidArgumentError("content_type must not be blank")

    def replace(self, **changes) -> "RecognitionOptions":
        """Return a validated copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    def with_model(self, model) -> "RecognitionOptions":
        return self.replace(model=model)

    def with_content_type(self, content_type: str) -> "RecognitionOptions":
        return self.replace(content_type=content_type)

    def with_continuous(self, continuous: bool = True) -> "RecognitionOptions":
        return self.replace(continuous=continuous)

    def with_interim_results(self, interim_results: bool = True) -> "RecognitionOptions":
        return self.replace(interim_results=interim_results)

    def with_timestamps(self, timestamps: bool = True) -> "RecognitionOptions":
        return self.replace(timestamps=timestamps)

    def with_word_confidence(self, word_confidence: bool = True) -> "RecognitionOptions":
        return self.replace(word_confidence=word_confidence)

    def to_query_params(self) -> Dict[str, str]:
        """Query parameters for the one-shot recognize request."""
        params: Dict[str, str] = {}
        if self.model:
            params["model"] = self.model
        if self.continuous:
            params["continuous"] = "true"
        if self.timestamps:
            params["timestamps"] = "true"
        if self.word_confidence:
            params["word_confidence"] = "true"
        if self.max_alternatives is not None:
            params["max_alternatives"] = str(self.max_alternatives)
        if self.inactivity_timeout is not None:
            params["inactivity_timeout"] = str(self.inactivity_timeout)
        if self.profanity_filter is not None:
            params["profanity_filter"] = "true" if self.profanity_filter else "false"
        if self.keywords:
            params["keywords"] = ",".join(self.keywords)
            params["keywords_threshold"] = str(self.keywords_threshold)
        if self.word_alternatives_threshold is not None:
            params["word_alternatives_threshold"] = str(self.word_alternatives_threshold)
        return params

    def to_start_message(self, content_type: str) -> Dict[str, Any]:
        """The JSON message that opens a streaming recognition."""
        message: Dict[str, Any] = {
            "action": "start",
            "content-type": content_type,
            "continuous": self.continuous,
            "interim_results": self.interim_results,
        }
        if self.timestamps:
            message["timestamps"] = True
        if self.word_confidence:
            message["word_confidence"] = True
        if self.max_alternatives is not None:
            message["max_alternatives"] = self.max_alternatives
        if self.inactivity_timeout is not None:
            message["inactivity_timeout"] = self.inactivity_timeout
        if self.profanity_filter is not None:
            message["profanity_filter"] = self.profanity_filter
        if self.keywords:
            message["keywords"] = list(self.keywords)
            message["keywords_threshold"] = self.keywords_threshold
        if self.word_alternatives_threshold is not None:
            message["word_alternatives_threshold"] = self.word_alternatives_threshold
        return message

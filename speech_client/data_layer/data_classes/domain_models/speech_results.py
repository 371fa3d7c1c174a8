"""
Recognition result data classes.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from speech_client.utils.exceptions import ServiceError


@dataclass(frozen=True)
class SpeechTimestamp:
    """Start and end time of one recognized word, in seconds."""
    word: str
    start_time: float
    end_time: float


@dataclass(frozen=True)
class SpeechWordConfidence:
    """Confidence score of one recognized word."""
    word: str
    confidence: float


@dataclass
class SpeechAlternative:
    """One ranked hypothesis for a segment."""
    transcript: str
    confidence: Optional[float] = None
    timestamps: Optional[List[SpeechTimestamp]] = None
    word_confidences: Optional[List[SpeechWordConfidence]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpeechAlternative":
        if "transcript" not in data:
            raise ServiceError(f"Alternative without transcript: {data!r}")

        timestamps = None
        if data.get("timestamps") is not None:
            timestamps = [
                SpeechTimestamp(word=str(word), start_time=float(start), end_time=float(end))
                for word, start, end in data["timestamps"]
            ]

        word_confidences = None
        if data.get("word_confidence") is not None:
            word_confidences = [
                SpeechWordConfidence(word=str(word), confidence=float(confidence))
                for word, confidence in data["word_confidence"]
            ]

        confidence = data.get("confidence")
        return cls(
            transcript=data["transcript"],
            confidence=float(confidence) if confidence is not None else None,
            timestamps=timestamps,
            word_confidences=word_confidences,
        )


@dataclass
class Transcript:
    """A result segment: ranked alternatives for one stretch of audio."""
    final: bool = False
    alternatives: List[SpeechAlternative] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transcript":
        return cls(
            final=bool(data.get("final", False)),
            alternatives=[SpeechAlternative.from_dict(alt) for alt in data.get("alternatives", [])],
        )

    @property
    def best(self) -> Optional[SpeechAlternative]:
        return self.alternatives[0] if self.alternatives else None


@dataclass
class SpeechResults:
    """Ordered result segments of one recognition."""
    results: List[Transcript] = field(default_factory=list)
    result_index: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpeechResults":
        """Parse a results payload, raising ServiceError when it is malformed."""
        if not isinstance(data, dict) or not isinstance(data.get("results", []), list):
            raise ServiceError(f"Malformed recognition results: {data!r}")
        try:
            return cls(
                results=[Transcript.from_dict(item) for item in data.get("results", [])],
                result_index=int(data.get("result_index", 0)),
            )
        except ServiceError:
            raise
        except (TypeError, ValueError, AttributeError) as e:
            raise ServiceError(f"Malformed recognition results: {e}") from e

    def merge(self, update: "SpeechResults") -> "SpeechResults":
        """
        Apply a streaming update.
        Segments from update.result_index onwards are replaced by the update's segments,
        so a later interim or final hypothesis supersedes the earlier one for the same segment.
        """
        start = min(max(update.result_index, 0), len(self.results))
        return SpeechResults(
            results=self.results[:start] + list(update.results),
            result_index=update.result_index,
        )

    def is_final(self) -> bool:
        return bool(self.results) and all(segment.final for segment in self.results)

    @property
    def transcript(self) -> str:
        """Best hypothesis of every segment joined together."""
        parts = [segment.best.transcript.strip() for segment in self.results if segment.best]
        return " ".join(part for part in parts if part)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the service's JSON shape."""
        def alternative_dict(alt: SpeechAlternative) -> Dict[str, Any]:
            out: Dict[str, Any] = {"transcript": alt.transcript}
            if alt.confidence is not None:
                out["confidence"] = alt.confidence
            if alt.timestamps is not None:
                out["timestamps"] = [[t.word, t.start_time, t.end_time] for t in alt.timestamps]
            if alt.word_confidences is not None:
                out["word_confidence"] = [[w.word, w.confidence] for w in alt.word_confidences]
            return out

        return {
            "results": [
                {"final": segment.final, "alternatives": [alternative_dict(a) for a in segment.alternatives]}
                for segment in self.results
            ],
            "result_index": self.result_index,
        }

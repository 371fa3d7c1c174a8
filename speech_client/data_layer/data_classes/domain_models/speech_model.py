"""
Speech model descriptor.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from speech_client.utils.exceptions import ServiceError


@dataclass(frozen=True)
class SpeechModel:
    """Acoustic model available on the service."""
    name: str
    rate: Optional[int] = None
    language: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpeechModel":
        """Build a descriptor from the service's JSON representation."""
        if not isinstance(data, dict) or not data.get("name") or not isinstance(data["name"], str):
            raise ServiceError(f"Malformed model descriptor: {data!r}")
        rate = data.get("rate")
        try:
            rate = int(rate) if rate is not None else None
        except (TypeError, ValueError) as e:
            raise ServiceError(f"Malformed model rate: {rate!r}") from e
        return cls(
            name=data["name"],
            rate=rate,
            language=data.get("language"),
            description=data.get("description"),
            url=data.get("url"),
        )

    def __str__(self):
        return self.name


# Well-known models
SpeechModel.EN_BROADBAND16K = SpeechModel("en-US_BroadbandModel", 16000, "en-US", "US English broadband model.")
SpeechModel.EN_NARROWBAND8K = SpeechModel("en-US_NarrowbandModel", 8000, "en-US", "US English narrowband model.")
SpeechModel.ES_BROADBAND16K = SpeechModel("es-ES_BroadbandModel", 16000, "es-ES", "Spanish broadband model.")
SpeechModel.ES_NARROWBAND8K = SpeechModel("es-ES_NarrowbandModel", 8000, "es-ES", "Spanish narrowband model.")
SpeechModel.JA_BROADBAND16K = SpeechModel("ja-JP_BroadbandModel", 16000, "ja-JP", "Japanese broadband model.")
SpeechModel.JA_NARROWBAND8K = SpeechModel("ja-JP_NarrowbandModel", 8000, "ja-JP", "Japanese narrowband model.")
SpeechModel.PT_BROADBAND16K = SpeechModel("pt-BR_BroadbandModel", 16000, "pt-BR", "Brazilian Portuguese broadband model.")
SpeechModel.PT_NARROWBAND8K = SpeechModel("pt-BR_NarrowbandModel", 8000, "pt-BR", "Brazilian Portuguese narrowband model.")
SpeechModel.ZH_BROADBAND16K = SpeechModel("zh-CN_BroadbandModel", 16000, "zh-CN", "Mandarin broadband model.")
SpeechModel.ZH_NARROWBAND8K = SpeechModel("zh-CN_NarrowbandModel", 8000, "zh-CN", "Mandarin narrowband model.")


def model_name(model) -> Optional[str]:
    """Accept a SpeechModel, a name or None and return the name."""
    if model is None:
        return None
    if isinstance(model, SpeechModel):
        return model.name
    return str(model)

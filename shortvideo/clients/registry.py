from __future__ import annotations

import logging
from threading import Lock
from typing import Callable, Dict, Optional

from shortvideo.clients.tts import ElevenLabsClient, OpenAIEdgeTTSClient, RemoteTTSClient, SpeechProvider
from shortvideo.config import Settings
from shortvideo.models.domain import SpeechProviderKey

ProviderFactory = Callable[[], SpeechProvider]


class SpeechProviderRegistry:
    """Resolves a provider key to a lazily built, cached ``SpeechProvider``."""

    def __init__(
        self,
        factories: Dict[SpeechProviderKey, ProviderFactory],
        default: SpeechProviderKey,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if default not in factories:
            raise ValueError(f"default speech provider {default.value} is not registered")
        self._factories = dict(factories)
        self.default = default
        self._instances: Dict[SpeechProviderKey, SpeechProvider] = {}
        self._lock = Lock()
        self.log = logger or logging.getLogger(__name__)

    def available(self) -> list[SpeechProviderKey]:
        return list(self._factories)

    def resolve_key(self, value: SpeechProviderKey | str | None) -> SpeechProviderKey:
        if value is None:
            return self.default
        try:
            key = SpeechProviderKey(value)
        except ValueError as exc:
            raise ValueError(f"unsupported speech provider: {value}") from exc
        if key not in self._factories:
            raise ValueError(f"unsupported speech provider: {key.value}")
        return key

    def get(self, value: SpeechProviderKey | str | None = None) -> SpeechProvider:
        key = self.resolve_key(value)
        with self._lock:
            provider = self._instances.get(key)
            if provider is None:
                self.log.debug("initializing speech provider", extra={"provider": key.value})
                provider = self._factories[key]()
                self._instances[key] = provider
                self.log.info("speech provider initialized", extra={"provider": key.value})
            return provider


def build_speech_registry(settings: Settings, logger: Optional[logging.Logger] = None) -> SpeechProviderRegistry:
    factories: Dict[SpeechProviderKey, ProviderFactory] = {
        SpeechProviderKey.REMOTE: lambda: RemoteTTSClient(
            base_url=settings.tts_api_url,
            engine=settings.tts_engine,
            timeout=settings.tts_timeout,
            logger=logger,
        ),
        SpeechProviderKey.OPENAI_EDGE: lambda: OpenAIEdgeTTSClient(
            base_url=settings.openai_edge_tts_url,
            api_key=settings.openai_edge_tts_api_key,
            timeout=settings.tts_timeout,
            logger=logger,
        ),
        SpeechProviderKey.ELEVENLABS: lambda: ElevenLabsClient(
            api_key=settings.elevenlabs_api_key,
            model_id=settings.elevenlabs_model_id,
            base_url=settings.elevenlabs_base_url,
            timeout=settings.tts_timeout,
            logger=logger,
        ),
    }
    return SpeechProviderRegistry(factories, default=SpeechProviderKey(settings.tts_provider), logger=logger)

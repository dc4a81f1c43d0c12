import pytest

from conftest import StubSpeech
from shortvideo.clients.registry import SpeechProviderRegistry, build_speech_registry
from shortvideo.clients.tts import ElevenLabsClient, OpenAIEdgeTTSClient, RemoteTTSClient
from shortvideo.models.domain import SpeechProviderKey


def test_providers_are_built_lazily_and_cached():
    built = []

    def factory():
        built.append(1)
        return StubSpeech()

    registry = SpeechProviderRegistry({SpeechProviderKey.REMOTE: factory}, default=SpeechProviderKey.REMOTE)
    assert built == []

    first = registry.get()
    second = registry.get("remote")

    assert first is second
    assert built == [1]


def test_unknown_or_unregistered_provider_is_rejected():
    registry = SpeechProviderRegistry({SpeechProviderKey.REMOTE: StubSpeech}, default=SpeechProviderKey.REMOTE)

    with pytest.raises(ValueError):
        registry.resolve_key("polly")
    with pytest.raises(ValueError):
        registry.get(SpeechProviderKey.ELEVENLABS)


def test_default_must_be_registered():
    with pytest.raises(ValueError):
        SpeechProviderRegistry({SpeechProviderKey.REMOTE: StubSpeech}, default=SpeechProviderKey.ELEVENLABS)


def test_registry_from_settings(settings):
    registry = build_speech_registry(settings)

    assert registry.default is SpeechProviderKey.REMOTE
    assert registry.available() == [
        SpeechProviderKey.REMOTE,
        SpeechProviderKey.OPENAI_EDGE,
        SpeechProviderKey.ELEVENLABS,
    ]
    assert isinstance(registry.get("remote"), RemoteTTSClient)
    assert isinstance(registry.get("openai-edge"), OpenAIEdgeTTSClient)
    assert isinstance(registry.get("elevenlabs"), ElevenLabsClient)

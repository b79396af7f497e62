from collections.abc import Sequence

from ..llm.models import GeminiConfig, LocalConfig, OpenAIConfig
from .models import SessionSettings

AnyProvider = OpenAIConfig | GeminiConfig | LocalConfig


class FallbackPolicy:
    """Decides whether a failed request is retried on the fallback provider.

    A failure chain falls back at most once: the retry itself is never
    retried.
    """

    def __init__(self, providers: Sequence[AnyProvider] = ()):
        self._providers = {provider.id: provider for provider in providers}

    def add(self, provider: AnyProvider) -> None:
        self._providers[provider.id] = provider

    def find(self, provider_id: str | None) -> AnyProvider | None:
        if provider_id is None:
            return None
        return self._providers.get(provider_id)

    def select(
        self,
        current: AnyProvider,
        settings: SessionSettings,
        is_retry: bool
    ) -> tuple[AnyProvider, str] | None:
        """Pick the fallback provider and model for a failed request.

        Returns:
            (provider, model) to retry with, or None when no fallback applies
        """
        if is_retry or not settings.fallback_enabled:
            return None

        fallback = self.find(settings.fallback_provider_id)
        if fallback is None or fallback.id == current.id or not fallback.models:
            return None

        model = settings.fallback_model_id
        if model not in fallback.models:
            model = fallback.models[0]
        return fallback, model

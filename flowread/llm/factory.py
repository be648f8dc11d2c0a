"""
Factory for creating chat services from the settings store.

Supports dynamic provider selection by name or by analysis kind.
"""

from typing import Optional

import httpx

from flowread.config.logging_config import get_logger
from flowread.config.settings import AppSettings, load_settings
from flowread.llm.chat_service import ChatService
from flowread.llm.types import ProviderConfig, ProviderConfigError

logger = get_logger(__name__)


class ChatServiceFactory:
    """
    Factory for ChatService instances.

    Providers are looked up by name in AppSettings.ai_providers
    (deepseek, siliconflow, zhipu by default). A disabled or incomplete
    provider is a precondition failure: no service is created.
    """

    @staticmethod
    def resolve_provider(provider_name: str, settings: Optional[AppSettings] = None) -> ProviderConfig:
        """
        Look up and validate a provider config.

        Raises:
            ProviderConfigError: Unknown, disabled or incomplete provider
        """
        settings = settings or load_settings()
        provider_name = provider_name.lower().strip()

        config = settings.get_provider(provider_name)
        if config is None:
            raise ProviderConfigError(
                f"Unknown AI provider: '{provider_name}'. "
                f"Configured providers: {', '.join(sorted(settings.ai_providers))}"
            )

        config.ensure_ready()
        return config

    @staticmethod
    def create_for_provider(
        provider_name: str,
        settings: Optional[AppSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> ChatService:
        """
        Create a chat service for a named provider.

        Args:
            provider_name: Key in settings.ai_providers
            settings: Settings (loaded from the store if None)
            client: Optional shared httpx client

        Returns:
            ChatService: Service bound to the provider

        Raises:
            ProviderConfigError: Unknown, disabled or incomplete provider
        """
        config = ChatServiceFactory.resolve_provider(provider_name, settings)
        logger.info(f"🤖 Chat Factory: Creating service for '{provider_name}' (model={config.model})")
        return ChatService(config, client=client)

    @staticmethod
    def create_for_analysis(
        kind: str,
        settings: Optional[AppSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> ChatService:
        """
        Create the service selected for word or article analysis.

        Args:
            kind: 'word' or 'article'

        Raises:
            ValueError: Unknown analysis kind
            ProviderConfigError: Selected provider unusable
        """
        settings = settings or load_settings()

        if kind == "word":
            provider_name = settings.analysis.word_analysis_provider
        elif kind == "article":
            provider_name = settings.analysis.article_analysis_provider
        else:
            raise ValueError(f"Unknown analysis kind: '{kind}'. Supported kinds: 'word', 'article'")

        return ChatServiceFactory.create_for_provider(provider_name, settings=settings, client=client)

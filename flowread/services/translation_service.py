"""
LLM translation engine.

Translates paragraphs with a configured AI provider using the prompt template
from translation settings. Non-LLM engines (DeepLX, Bing, Google) are separate
request/response wrappers and are not handled here.
"""

from typing import Dict, List, Optional

import httpx

from flowread.config.logging_config import get_logger
from flowread.config.settings import AppSettings, load_settings
from flowread.llm.factory import ChatServiceFactory
from flowread.llm.types import ChatMessage, ProviderConfigError

logger = get_logger(__name__)

TRANSLATION_MAX_TOKENS = 4000

SUPPORTED_LANGUAGES: Dict[str, Dict[str, str]] = {
    "BG": {"name": "Bulgarian", "native_name": "Български"},
    "ZH": {"name": "Chinese", "native_name": "中文"},
    "CS": {"name": "Czech", "native_name": "Česky"},
    "DA": {"name": "Danish", "native_name": "Dansk"},
    "NL": {"name": "Dutch", "native_name": "Nederlands"},
    "EN": {"name": "English", "native_name": "English"},
    "ET": {"name": "Estonian", "native_name": "Eesti"},
    "FI": {"name": "Finnish", "native_name": "Suomi"},
    "FR": {"name": "French", "native_name": "Français"},
    "DE": {"name": "German", "native_name": "Deutsch"},
    "EL": {"name": "Greek", "native_name": "Ελληνικά"},
    "HU": {"name": "Hungarian", "native_name": "Magyar"},
    "IT": {"name": "Italian", "native_name": "Italiano"},
    "JA": {"name": "Japanese", "native_name": "日本語"},
    "LV": {"name": "Latvian", "native_name": "Latviešu"},
    "LT": {"name": "Lithuanian", "native_name": "Lietuvių"},
    "PL": {"name": "Polish", "native_name": "Polski"},
    "PT": {"name": "Portuguese", "native_name": "Português"},
    "RO": {"name": "Romanian", "native_name": "Română"},
    "RU": {"name": "Russian", "native_name": "Русский"},
    "SK": {"name": "Slovak", "native_name": "Slovenčina"},
    "SL": {"name": "Slovenian", "native_name": "Slovenščina"},
    "ES": {"name": "Spanish", "native_name": "Español"},
    "SV": {"name": "Swedish", "native_name": "Svenska"},
    "UK": {"name": "Ukrainian", "native_name": "Українська Мова"},
}


def get_language_name(lang_code: str) -> str:
    """English name of a language code (the code itself if unknown)."""
    language = SUPPORTED_LANGUAGES.get(lang_code.upper())
    return language["name"] if language else lang_code


def get_supported_languages() -> List[Dict[str, str]]:
    return [{"code": code, **info} for code, info in SUPPORTED_LANGUAGES.items()]


def build_translation_prompt(template: str, text: str, target_lang: str) -> str:
    return (
        template
        .replace("{targetLanguage}", get_language_name(target_lang))
        .replace("{text}", text)
    )


class LLMTranslationService:
    """
    Translation through the AI provider named by translation_engine.

    The provider is resolved from settings on every call so configuration
    changes apply without recreating the service.
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._client = client

    def _current_settings(self) -> AppSettings:
        return self._settings or load_settings()

    async def translate(self, text: str, target_lang: Optional[str] = None) -> str:
        """
        Translate text with the configured AI provider.

        Args:
            text: Source text
            target_lang: Language code (default: settings target language)

        Returns:
            str: Translated text, stripped

        Raises:
            ProviderConfigError: Engine is not an enabled, complete AI provider
            ChatError: Provider request failed
        """
        settings = self._current_settings()
        engine = settings.translation.translation_engine
        target_lang = target_lang or settings.translation.target_language

        if engine not in settings.ai_providers:
            raise ProviderConfigError(f"Translation engine '{engine}' is not an AI provider")

        prompt = build_translation_prompt(settings.translation.translation_prompt, text, target_lang)

        logger.info(f"🌐 Translation [{engine}]: Translating {len(text)} chars to {target_lang}")

        async with ChatServiceFactory.create_for_provider(engine, settings=settings, client=self._client) as service:
            response = await service.chat(
                [ChatMessage(role="user", content=prompt)],
                max_tokens=TRANSLATION_MAX_TOKENS,
            )

        return response.content.strip()

    async def test_connection(self) -> bool:
        """True if the configured AI engine answers a test prompt."""
        settings = self._current_settings()
        engine = settings.translation.translation_engine
        try:
            service = ChatServiceFactory.create_for_provider(engine, settings=settings, client=self._client)
        except ProviderConfigError as e:
            logger.warning(f"🌐 Translation [{engine}]: Not usable - {e}")
            return False

        async with service:
            return await service.test_connection()

    @staticmethod
    def is_language_supported(lang_code: str) -> bool:
        return lang_code == "auto" or lang_code.upper() in SUPPORTED_LANGUAGES

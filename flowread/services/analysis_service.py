"""
AI Analysis Sessions - word and article explanations streamed from an LLM

An AnalysisSession is one logical UI consumer (for example the word-analysis
panel). It owns a RequestLifecycle and the accumulated content buffer:

- start_analysis() supersedes any in-flight request of the same session
- only chunks of the current request reach the buffer and on_update
- on natural completion on_complete fires exactly once with the final text
  (the UI persists it to word data / favorites)
- cancellation and supersession are silent; other failures reach on_error as
  a ChatErrorEvent with a retry suggestion
"""

from enum import Enum
from typing import Any, Callable, Optional, Tuple

import httpx

from flowread.config.logging_config import get_logger
from flowread.config.settings import AppSettings, load_settings
from flowread.llm.chat_service import ChatService
from flowread.llm.factory import ChatServiceFactory
from flowread.llm.lifecycle import RequestHandle, RequestLifecycle
from flowread.llm.types import ChatError, ChatMessage, ProviderConfigError
from flowread.types.error_events import ChatErrorEvent

logger = get_logger(__name__)

EMPTY_RESULT_PLACEHOLDER = "No analysis content"


class AnalysisKind(Enum):
    """What the session explains"""
    WORD = "word"
    ARTICLE = "article"


def build_word_prompt(template: str, word: str, context: str) -> str:
    return template.replace("{word}", word).replace("{context}", context)


def build_article_prompt(template: str, title: str, content: str) -> str:
    return template.replace("{title}", title).replace("{content}", content)


async def _notify(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    """Invoke a sync or async UI callback; callback errors are logged, not raised."""
    if callback is None:
        return
    try:
        result = callback(*args)
        if hasattr(result, "__await__"):
            await result
    except Exception as e:
        logger.warning(f"🧠 Analysis: Callback error (continuing): {e}")


class AnalysisSession:
    """
    Streaming analysis for one UI consumer.

    Usage:
        session = AnalysisSession(
            AnalysisKind.WORD,
            on_update=lambda text: panel.render(text),
            on_complete=lambda text: db.update_word_data(word, translation, text),
            on_error=lambda event: panel.show_error(event.user_message),
        )
        await session.start_analysis("serendipity", context=sentence)
        ...
        session.unmount()
    """

    def __init__(
        self,
        kind: AnalysisKind = AnalysisKind.WORD,
        settings: Optional[AppSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
        service_factory: Optional[Callable[[str, AppSettings], ChatService]] = None,
        on_update: Optional[Callable[[str], Any]] = None,
        on_complete: Optional[Callable[[str], Any]] = None,
        on_error: Optional[Callable[[ChatErrorEvent], Any]] = None,
    ):
        """
        Args:
            kind: Word or article analysis
            settings: Settings snapshot (loaded from the store per request if None)
            client: Shared httpx client for created services
            service_factory: (kind, settings) -> ChatService; defaults to ChatServiceFactory
            on_update: Called with the accumulated text after every delta
            on_complete: Called once with the final text
            on_error: Called with a ChatErrorEvent for non-cancelled failures
        """
        self.kind = kind
        self.service_name = f"{kind.value}_analysis"
        self.lifecycle = RequestLifecycle(name=self.service_name)
        self.on_update = on_update
        self.on_complete = on_complete
        self.on_error = on_error

        self._settings = settings
        self._client = client
        self._service_factory = service_factory or self._default_factory

        self._content = ""
        self._last_request: Optional[Tuple[str, str]] = None
        self.loading = False
        self.completed = False
        self.last_error: Optional[ChatErrorEvent] = None

    @property
    def content(self) -> str:
        """Accumulated text of the current request."""
        return self._content

    def _default_factory(self, kind: str, settings: AppSettings) -> ChatService:
        return ChatServiceFactory.create_for_analysis(kind, settings=settings, client=self._client)

    def _build_prompt(self, settings: AppSettings, subject: str, context: str) -> str:
        if self.kind is AnalysisKind.WORD:
            return build_word_prompt(settings.analysis.word_analysis_prompt, subject, context)
        return build_article_prompt(settings.analysis.article_analysis_prompt, subject, context)

    async def start_analysis(self, subject: str, context: str = "") -> Optional[str]:
        """
        Stream an analysis, superseding any in-flight request of this session.

        Args:
            subject: The word (word analysis) or article title (article analysis)
            context: Surrounding sentence (word) or article body (article)

        Returns:
            Final content if this request completed while current, else None
        """
        if not subject.strip():
            return None

        handle = self.lifecycle.start()
        self._last_request = (subject, context)
        self._content = ""
        self.completed = False
        self.last_error = None
        self.loading = not handle.token.is_cancelled

        logger.info(f"🧠 Analysis [{self.service_name}#{handle.id}]: Starting for '{subject[:40]}'")

        try:
            settings = self._settings or load_settings()
            service = self._service_factory(self.kind.value, settings)
        except ProviderConfigError as e:
            await self._report_not_configured(handle, e)
            return None

        messages = [ChatMessage(role="user", content=self._build_prompt(settings, subject, context))]
        content = ""
        finished = False

        try:
            async with service:
                stream = service.chat_stream(messages, token=handle.token)
                async for chunk in self.lifecycle.guard(handle, stream):
                    if chunk.delta_text:
                        content += chunk.delta_text
                        self._content = content
                        await _notify(self.on_update, content)
                    if chunk.is_complete:
                        finished = True

        except ChatError as e:
            if self.lifecycle.is_current(handle):
                logger.error(f"🧠 Analysis [{self.service_name}#{handle.id}]: Failed - {e.message}")
                self.loading = False
                await self._report(ChatErrorEvent.from_chat_error(e, self.service_name, request_id=handle.id))
            return None
        except ProviderConfigError as e:
            await self._report_not_configured(handle, e)
            return None

        if not self.lifecycle.is_current(handle):
            logger.debug(f"🧠 Analysis [{self.service_name}#{handle.id}]: Superseded or cancelled")
            return None

        self.loading = False
        if not finished:
            return None

        if not content.strip():
            content = EMPTY_RESULT_PLACEHOLDER
            self._content = content
            await _notify(self.on_update, content)

        self.completed = True
        logger.info(f"🧠 Analysis [{self.service_name}#{handle.id}]: Complete ({len(content)} chars)")
        await _notify(self.on_complete, content)
        return content

    async def refresh(self) -> Optional[str]:
        """Re-run the last analysis from scratch."""
        if self._last_request is None:
            return None
        subject, context = self._last_request
        return await self.start_analysis(subject, context)

    def cancel(self) -> None:
        """Abort the in-flight request (idempotent)."""
        self.lifecycle.cancel("cancelled by user")
        self.loading = False

    def reset(self) -> None:
        """Abort the in-flight request and clear the displayed state."""
        self.cancel()
        self._content = ""
        self.completed = False
        self.last_error = None

    def unmount(self) -> None:
        """Tear down the session; nothing is delivered afterwards."""
        self.lifecycle.teardown()
        self.loading = False

    async def _report(self, event: ChatErrorEvent) -> None:
        self.last_error = event
        await _notify(self.on_error, event)

    async def _report_not_configured(self, handle: RequestHandle, error: ProviderConfigError) -> None:
        logger.warning(f"🧠 Analysis [{self.service_name}#{handle.id}]: Provider not configured - {error}")
        if self.lifecycle.is_current(handle):
            self.loading = False
            await self._report(ChatErrorEvent.not_configured(self.service_name, str(error), request_id=handle.id))

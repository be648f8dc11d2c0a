"""
Chat-completion client for OpenAI-compatible providers.

Works against any endpoint implementing POST {base_url}/chat/completions:
- DeepSeek (https://api.deepseek.com/v1)
- SiliconFlow (https://api.siliconflow.cn/v1)
- Zhipu AI (https://open.bigmodel.cn/api/paas/v4)
"""

from typing import List, Optional, Sequence, Union

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from flowread.config.chat import ChatStreamConfig, get_chat_config
from flowread.config.logging_config import get_logger
from flowread.llm.cancellation import CancellationToken
from flowread.llm.errors import error_from_payload, normalize_error
from flowread.llm.stream import ChatStream
from flowread.llm.transport import SSETransport
from flowread.llm.types import (
    ChatMessage,
    ChatParseError,
    ChatRequest,
    ChatResponse,
    ProviderConfig,
    TokenUsage,
)

logger = get_logger(__name__)

MessageLike = Union[ChatMessage, dict]

CONNECTION_TEST_PROMPT = 'Hello, this is a test message. Please respond with "OK".'


class ChatService:
    """
    Chat client bound to one provider config.

    Supports streaming via Server-Sent Events (chat_stream) and plain
    request/response (chat).
    """

    def __init__(
        self,
        config: ProviderConfig,
        client: Optional[httpx.AsyncClient] = None,
        chat_config: Optional[ChatStreamConfig] = None,
    ):
        """
        Initialize chat service.

        Args:
            config: Provider endpoint, key, model and sampling defaults
            client: Shared httpx client (created and owned here if None)
            chat_config: Timeouts/retries (default: global chat config)
        """
        self.config = config
        self.chat_config = chat_config or get_chat_config()
        self.base_url = config.base_url.rstrip("/")

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=self.chat_config.connect_timeout_s,
                read=None,  # streams may run indefinitely; open phase is bounded by SSETransport
                write=10.0,
                pool=10.0,
            ),
            follow_redirects=True,
        )
        self.transport = SSETransport(self.client, connect_timeout=self.chat_config.connect_timeout_s)

        logger.info(f"💬 Chat [{self.provider_label}]: Initialized with base URL {self.base_url}")

    @property
    def provider_label(self) -> str:
        return (self.config.name or "provider").lower()

    def _headers(self, stream: bool) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
        }
        if stream:
            headers["Accept"] = "text/event-stream"
        return headers

    def build_request(
        self,
        messages: Sequence[MessageLike],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        stream: bool = True,
    ) -> ChatRequest:
        """Assemble the request body from provider defaults and overrides."""
        return ChatRequest(
            model=self.config.model,
            messages=[m if isinstance(m, ChatMessage) else ChatMessage(**m) for m in messages],
            temperature=self.config.temperature if temperature is None else temperature,
            max_tokens=max_tokens or self.config.max_tokens or self.chat_config.default_max_tokens,
            stream=stream,
        )

    def chat_stream(
        self,
        messages: Sequence[MessageLike],
        token: Optional[CancellationToken] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatStream:
        """
        Start a streaming chat completion.

        Nothing is sent until the returned stream is iterated.

        Args:
            messages: Conversation to send
            token: Cancellation token (a private one is created if None)
            temperature: Override provider temperature
            max_tokens: Override provider max_tokens

        Returns:
            ChatStream: Single-pass async iterable of StreamChunk

        Raises:
            ProviderConfigError: Provider disabled or incomplete (before any I/O)
        """
        self.config.ensure_ready()

        token = token or CancellationToken(label=self.provider_label)
        request = self.build_request(messages, temperature, max_tokens, stream=True)
        url = f"{self.base_url}/chat/completions"

        logger.info(
            f"💬 Chat [{self.provider_label}]: Streaming request to model '{request.model}' "
            f"({len(request.messages)} messages)"
        )

        async def opener():
            return await self.transport.open(
                url,
                headers=self._headers(stream=True),
                payload=request.to_payload(),
                token=token,
                label=self.provider_label,
            )

        return ChatStream(opener, token, label=self.provider_label)

    async def chat(
        self,
        messages: Sequence[MessageLike],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatResponse:
        """
        Non-streaming chat completion.

        Raises:
            ProviderConfigError: Provider disabled or incomplete
            ChatParseError: Response body lacks choices[0].message.content
            ChatError: Transport failure or non-2xx status (normalized)
        """
        self.config.ensure_ready()

        request = self.build_request(messages, temperature, max_tokens, stream=False)
        url = f"{self.base_url}/chat/completions"

        logger.info(f"💬 Chat [{self.provider_label}]: Request to model '{request.model}'")

        try:
            response = await self._post_with_retry(url, self._headers(stream=False), request.to_payload())
        except httpx.HTTPError as e:
            logger.error(f"💬 Chat [{self.provider_label}]: Request failed - {e}")
            raise normalize_error(e) from e

        if not response.is_success:
            logger.error(f"💬 Chat [{self.provider_label}]: HTTP {response.status_code}")
            raise normalize_error(
                f"HTTP {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ChatParseError(f"Invalid JSON response: {response.text[:100]}") from e

        return parse_chat_response(data)

    async def _post_with_retry(self, url: str, headers: dict, payload: dict) -> httpx.Response:
        """
        POST with retry on connection-establishment failures.

        Only errors raised before the request reached the server are retried.
        """
        attempt = retry(
            stop=stop_after_attempt(self.chat_config.max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=5),
            retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
            reraise=True,
        )(self._post)
        return await attempt(url, headers, payload)

    async def _post(self, url: str, headers: dict, payload: dict) -> httpx.Response:
        return await self.client.post(
            url,
            headers=headers,
            json=payload,
            timeout=self.chat_config.request_timeout_s,
        )

    async def test_connection(self) -> bool:
        """
        Check that the provider answers a minimal prompt.

        Returns:
            bool: True if a non-empty answer came back
        """
        try:
            response = await self.chat(
                [ChatMessage(role="user", content=CONNECTION_TEST_PROMPT)],
                max_tokens=10,
            )
            ok = len(response.content) > 0
            logger.info(f"💬 Chat [{self.provider_label}]: Connection test {'passed' if ok else 'returned empty content'}")
            return ok

        except Exception as e:
            logger.error(f"💬 Chat [{self.provider_label}]: Connection test failed - {e}")
            return False

    async def get_models(self) -> List[str]:
        """
        List model ids from GET {base_url}/models.

        Returns:
            Model ids, or [] if the endpoint is unavailable
        """
        try:
            response = await self.client.get(
                f"{self.base_url}/models",
                headers={"Authorization": f"Bearer {self.config.api_key}"},
                timeout=10.0,
            )
            if not response.is_success:
                return []

            data = response.json()
            models = data.get("data") if isinstance(data, dict) else None
            if not isinstance(models, list):
                return []
            return [
                m.get("id") or m.get("name")
                for m in models
                if isinstance(m, dict) and (m.get("id") or m.get("name"))
            ]

        except Exception as e:
            logger.error(f"💬 Chat [{self.provider_label}]: Get models failed - {e}")
            return []

    async def close(self):
        """Close HTTP client (only if owned)."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()


def parse_chat_response(data: dict) -> ChatResponse:
    """
    Parse a non-streaming completion body.

    Raises:
        ChatParseError: choices[0].message is missing
        ChatError: Body carries an `error` object
    """
    if not isinstance(data, dict):
        raise ChatParseError("Invalid response format")

    if data.get("error"):
        raise error_from_payload(data["error"])

    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict) or not isinstance(choices[0].get("message"), dict):
        raise ChatParseError("Invalid response format")

    content = choices[0]["message"].get("content") or ""

    usage = None
    raw_usage = data.get("usage")
    if isinstance(raw_usage, dict):
        usage = TokenUsage(
            prompt_tokens=raw_usage.get("prompt_tokens") or 0,
            completion_tokens=raw_usage.get("completion_tokens") or 0,
            total_tokens=raw_usage.get("total_tokens") or 0,
        )

    return ChatResponse(content=content, usage=usage)

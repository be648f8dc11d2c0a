"""
Pytest configuration and shared fixtures for flowread tests
"""
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from flowread.config.chat import ChatStreamConfig, reset_chat_config
from flowread.config.settings import AppSettings, AnalysisSettings, TranslationSettings
from flowread.llm.types import ProviderConfig
from tests.mocks.mock_llm_server import MockLLMServer


TEST_BASE_URL = "https://llm.test/v1"


# ============================================================
# Provider Configuration
# ============================================================

@pytest.fixture
def provider_config() -> ProviderConfig:
    """Enabled, complete provider pointing at the mock server"""
    return ProviderConfig(
        name="DeepSeek",
        base_url=TEST_BASE_URL,
        api_key="sk-test",
        model="deepseek-chat",
        temperature=0.7,
        max_tokens=512,
        enabled=True,
    )


@pytest.fixture
def chat_config() -> ChatStreamConfig:
    """Fast timeouts and a single attempt (no retry sleeps)"""
    return ChatStreamConfig(connect_timeout_s=2.0, max_retries=1, request_timeout_s=5.0)


@pytest.fixture
def app_settings(provider_config) -> AppSettings:
    """Settings with deepseek enabled and used for analysis and translation"""
    settings = AppSettings()
    providers = dict(settings.ai_providers)
    providers["deepseek"] = provider_config
    return AppSettings(
        ai_providers=providers,
        analysis=AnalysisSettings(word_analysis_provider="deepseek", article_analysis_provider="deepseek"),
        translation=TranslationSettings(translation_engine="deepseek", target_language="ZH"),
    )


# ============================================================
# Mock LLM Server
# ============================================================

@pytest.fixture
def llm_server() -> MockLLMServer:
    """Scripted OpenAI-compatible endpoint"""
    return MockLLMServer()


@pytest.fixture
async def http_client(llm_server):
    """httpx client routed to the mock server"""
    async with llm_server.client() as client:
        yield client


# ============================================================
# Environment
# ============================================================

@pytest.fixture(autouse=True)
def isolate_environment(tmp_path, monkeypatch):
    """Keep tests off the real settings file and global chat config"""
    monkeypatch.setenv("FLOWREAD_SETTINGS_PATH", str(tmp_path / "settings.json"))
    for var in ("CHAT_CONNECT_TIMEOUT_S", "CHAT_DEFAULT_MAX_TOKENS", "CHAT_MAX_RETRIES", "CHAT_REQUEST_TIMEOUT_S"):
        monkeypatch.delenv(var, raising=False)
    reset_chat_config()
    yield
    reset_chat_config()

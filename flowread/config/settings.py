"""
Settings store for AI providers, analysis and translation.

Settings are persisted as a JSON document and merged over the defaults on
load, so a file written by an older version still yields every provider.

Environment Variables:
- FLOWREAD_SETTINGS_PATH: Settings file location (default: ~/.flowread/settings.json)
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError

from flowread.config.logging_config import get_logger
from flowread.llm.types import ProviderConfig

logger = get_logger(__name__)


DEFAULT_WORD_ANALYSIS_PROMPT = """You are Flow, a well-known English teacher: clear, knowledgeable and funny, and much loved by students. Explain the following word to a student:

**Word**: {word}
**Context**: {context}

## Cover:
1. **Meaning**
2. **Example sentences** (2)
3. **Common collocations**
4. **Memory tips**
5. **Role in this text**"""

DEFAULT_ARTICLE_ANALYSIS_PROMPT = """You are Flow, a well-known English teacher. Help a student read the following article:

**Title**: {title}

{content}

## Cover:
1. **Summary**
2. **Key vocabulary** with short explanations
3. **Difficult sentences** explained
4. **Structure and main ideas**"""

DEFAULT_TRANSLATION_PROMPT = (
    "Translate the following text into {targetLanguage}. Keep the meaning accurate "
    "and the language natural and fluent:\n\n{text}"
)


def _default_providers() -> Dict[str, ProviderConfig]:
    return {
        "deepseek": ProviderConfig(
            name="DeepSeek",
            description="High-performance DeepSeek models for many languages and tasks",
            base_url="https://api.deepseek.com/v1",
            model="deepseek-chat",
        ),
        "siliconflow": ProviderConfig(
            name="SiliconFlow",
            description="Open-source models such as the Qwen series hosted by SiliconFlow",
            base_url="https://api.siliconflow.cn/v1",
            model="Qwen/Qwen3-8B",
        ),
        "zhipu": ProviderConfig(
            name="Zhipu AI",
            description="GLM models tuned for Chinese",
            base_url="https://open.bigmodel.cn/api/paas/v4",
            model="glm-4.5-flash",
        ),
    }


class AnalysisSettings(BaseModel):
    word_analysis_provider: str = "deepseek"
    article_analysis_provider: str = "deepseek"
    word_analysis_prompt: str = DEFAULT_WORD_ANALYSIS_PROMPT
    article_analysis_prompt: str = DEFAULT_ARTICLE_ANALYSIS_PROMPT


class TranslationSettings(BaseModel):
    target_language: str = "ZH"
    # 'deeplx' or an AI provider name (deepseek, siliconflow, zhipu)
    translation_engine: str = "deeplx"
    translation_prompt: str = DEFAULT_TRANSLATION_PROMPT


class AppSettings(BaseModel):
    ai_providers: Dict[str, ProviderConfig] = Field(default_factory=_default_providers)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    translation: TranslationSettings = Field(default_factory=TranslationSettings)

    def get_provider(self, name: str) -> Optional[ProviderConfig]:
        return self.ai_providers.get(name)


def get_settings_path() -> Path:
    """Resolve the settings file path from the environment."""
    override = os.getenv("FLOWREAD_SETTINGS_PATH")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".flowread" / "settings.json"


def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    """A stored section, or {} when it is missing or not an object."""
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        logger.warning(f"⚙️ Settings: Ignoring '{key}' - expected an object, got {type(value).__name__}")
        return {}
    return value


def merge_settings(raw: Dict[str, Any]) -> AppSettings:
    """
    Merge a stored settings document over the defaults.

    Providers are merged field by field so a stored record may omit keys.
    Sections and provider records that are not objects are ignored.
    """
    defaults = AppSettings()

    providers = {name: config.model_dump() for name, config in defaults.ai_providers.items()}
    for name, stored in _section(raw, "ai_providers").items():
        if stored is None:
            continue
        if not isinstance(stored, dict):
            logger.warning(f"⚙️ Settings: Ignoring provider '{name}' - expected an object")
            continue
        providers[name] = {**providers.get(name, {}), **stored}

    return AppSettings(
        ai_providers=providers,
        analysis={**defaults.analysis.model_dump(), **_section(raw, "analysis")},
        translation={**defaults.translation.model_dump(), **_section(raw, "translation")},
    )


def load_settings(path: Optional[Path] = None) -> AppSettings:
    """
    Load settings, falling back to defaults on any read/parse failure.

    Args:
        path: Settings file (default: get_settings_path())

    Returns:
        AppSettings merged over defaults
    """
    path = path or get_settings_path()
    if not path.exists():
        return AppSettings()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return merge_settings(raw if isinstance(raw, dict) else {})
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.error(f"⚙️ Settings: Failed to load {path}, using defaults - {e}")
        return AppSettings()


def save_settings(settings: AppSettings, path: Optional[Path] = None) -> None:
    """Write settings as JSON (errors are logged, not raised)."""
    path = path or get_settings_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(settings.model_dump(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        logger.debug(f"⚙️ Settings: Saved to {path}")
    except OSError as e:
        logger.error(f"⚙️ Settings: Failed to save {path} - {e}")


def update_ai_provider(name: str, path: Optional[Path] = None, **changes: Any) -> AppSettings:
    """
    Update fields of one provider record and persist.

    Example:
        update_ai_provider("deepseek", api_key="sk-...", enabled=True)
    """
    current = load_settings(path)
    providers = dict(current.ai_providers)
    base = providers.get(name, ProviderConfig(name=name))
    providers[name] = base.model_copy(update=changes)

    updated = current.model_copy(update={"ai_providers": providers})
    save_settings(updated, path)
    return updated


def update_setting(key: str, value: Any, path: Optional[Path] = None) -> AppSettings:
    """Replace one top-level section (ai_providers, analysis, translation) and persist."""
    if key not in AppSettings.model_fields:
        raise ValueError(f"Unknown settings section: '{key}'")

    current = load_settings(path)
    raw = current.model_dump()
    raw[key] = value.model_dump() if isinstance(value, BaseModel) else value
    updated = AppSettings(**raw)
    save_settings(updated, path)
    return updated

"""
flowread Services Package

UI-facing services built on the chat client:
- analysis_service: Streaming word/article analysis with request supersession
- translation_service: Paragraph translation through an AI provider
"""

from .analysis_service import AnalysisKind, AnalysisSession
from .translation_service import LLMTranslationService

__all__ = [
    "AnalysisKind",
    "AnalysisSession",
    "LLMTranslationService",
]

"""
analysis — AI financial narrative with a deterministic fallback.
"""

from .engine import AnalysisEngine
from .fallback import classify_credit_score, classify_net_worth, fallback_narrative
from .services import GeminiService, LangChainService, build_analysis_service

__all__ = [
    "AnalysisEngine",
    "GeminiService",
    "LangChainService",
    "build_analysis_service",
    "classify_credit_score",
    "classify_net_worth",
    "fallback_narrative",
]

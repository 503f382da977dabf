import logging
from typing import Callable, Optional

from smartfi.analysis.fallback import fallback_narrative
from smartfi.analysis.prompts import build_prompt
from smartfi.models import DEFAULT_QUESTION, AggregateRecord, AnalysisRequest, AnalysisResult
from smartfi.utils.logging import log_audit_action

logger = logging.getLogger(__name__)

MINIMAL_NARRATIVE = (
    "**Financial Summary** (Fallback Analysis)\n\n"
    "Your financial data could not be summarized right now. "
    "Refresh your accounts and ask again."
)


class AnalysisEngine:
    """
    Turns the current AggregateRecord and a question into a narrative.

    The AI service is tried first when it has a credential; anything that goes
    wrong there ends in the deterministic fallback instead of an exception.
    """

    def __init__(self, snapshot_provider: Callable[[], AggregateRecord], service=None, session_id: Optional[str] = None):
        self._snapshot_provider = snapshot_provider
        self.service = service
        self.session_id = session_id

    async def analyze(self, question: Optional[str] = None) -> str:
        result = await self.analyze_result(question)
        return result.text

    async def analyze_result(self, question: Optional[str] = None) -> AnalysisResult:
        question = (question or "").strip() or DEFAULT_QUESTION
        try:
            snapshot = self._snapshot_provider()
        except Exception as e:
            logger.error(f"Could not read aggregate snapshot: {e}")
            snapshot = AggregateRecord()
        request = AnalysisRequest(question=question, snapshot=snapshot)

        text = await self._try_ai(request)
        if text:
            logger.info("Financial analysis generated by AI service")
            log_audit_action(self.session_id, "ANALYSIS_AI", "Analysis answered by AI service")
            return AnalysisResult(text=text, source="ai")

        logger.info("Financial analysis generated by fallback narrative")
        log_audit_action(self.session_id, "ANALYSIS_FALLBACK", "Analysis answered by fallback narrative")
        return AnalysisResult(text=self._fallback(request), source="fallback")

    def _fallback(self, request: AnalysisRequest) -> str:
        try:
            return fallback_narrative(request.snapshot, request.question)
        except Exception:
            logger.exception("Fallback narrative failed")
            return MINIMAL_NARRATIVE

    async def _try_ai(self, request: AnalysisRequest) -> Optional[str]:
        if self.service is None:
            return None
        try:
            if not self.service.is_configured():
                logger.info("No AI credential configured, skipping AI analysis")
                return None
            prompt = build_prompt(request.snapshot, request.question)
            text = await self.service.generate(prompt)
        except Exception as e:
            logger.error(f"Financial analysis error: {e}")
            return None
        if not isinstance(text, str) or not text.strip():
            return None
        return text

import logging
from typing import Optional

import httpx

from smartfi.analysis import AnalysisEngine, build_analysis_service
from smartfi.client import DataSourceClient
from smartfi.config import Settings, get_settings
from smartfi.mode_controller import ModeController
from smartfi.models import DelegatedMode, DemoMode, ModeState, Session, SourceKey
from smartfi.orchestrator import AggregateFetchOrchestrator
from smartfi.session_store import SessionStore

logger = logging.getLogger(__name__)


class FinanceDataController:
    """Wires the session store, data client, orchestrator, mode controller and analysis engine."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[SessionStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        analysis_service=None,
        identity=None,
    ):
        self.settings = settings or get_settings()
        self.store = store or SessionStore.from_path(self.settings.state_path)
        self.session_id = self.store.get_or_create_session_id()

        self.client = DataSourceClient(
            self.settings.api_base_url,
            self.session_id,
            timeout=self.settings.request_timeout,
            http_client=http_client,
        )
        self.orchestrator = AggregateFetchOrchestrator(self.client)
        self.modes = ModeController(self.store, self.client, self.orchestrator, identity=identity)

        if analysis_service is None:
            analysis_service = build_analysis_service(self.settings, http_client=http_client)
        self.analysis = AnalysisEngine(self.orchestrator.snapshot, analysis_service, session_id=self.session_id)

    # Public operations

    async def enter_demo(self, phone_number: str) -> None:
        await self.modes.enter_demo(phone_number)

    def enter_delegated(self) -> None:
        self.modes.enter_delegated()

    async def fetch_all(self) -> None:
        await self.orchestrator.fetch_all()

    async def fetch_one(self, key: SourceKey) -> None:
        await self.orchestrator.fetch_one(key)

    async def analyze(self, question: Optional[str] = None) -> str:
        return await self.analysis.analyze(question)

    # Views

    def session(self) -> Session:
        if self.modes.state == ModeState.DEMO:
            mode = DemoMode(phone_number=self.modes.demo_phone)
        elif self.modes.state == ModeState.DELEGATED:
            mode = DelegatedMode()
        else:
            mode = None
        return Session(id=self.session_id, mode=mode)

    async def aclose(self) -> None:
        await self.client.aclose()
        closer = getattr(self.analysis.service, "aclose", None)
        if closer is not None:
            await closer()

"""
FastAPI backend for the SmartFi dashboard.
Exposes the data aggregation & session controller to the React frontend.
"""
import os
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

# Load .env before the controller reads its settings
env_path = Path(__file__).resolve().parent / ".env"
if env_path.exists():
    from dotenv import load_dotenv
    load_dotenv(dotenv_path=str(env_path), override=True)

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from smartfi import DEMO_PROFILES, FinanceDataController, SourceKey
from smartfi.utils.logging import setup_logger

logger = setup_logger("smartfi")


@asynccontextmanager
async def lifespan(app: FastAPI):
    controller = getattr(app.state, "controller", None)
    if controller is None:
        controller = FinanceDataController()
        app.state.controller = controller
    # A demo session restored from disk has to log in again on the remote API
    await controller.modes.resume()
    yield
    await controller.aclose()


app = FastAPI(title="SmartFi API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("SMARTFI_CORS_ORIGINS", "http://localhost:5173,http://localhost:8080").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_controller(request: Request) -> FinanceDataController:
    return request.app.state.controller


def _source_or_404(source: str) -> SourceKey:
    try:
        return SourceKey(source)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown data source '{source}'.")


def _data_view(controller: FinanceDataController) -> dict:
    snapshot = controller.orchestrator.snapshot()
    states = controller.orchestrator.states()
    return {
        "data": {key.value: snapshot.get(key).raw for key in snapshot},
        "sources": {key.value: state.model_dump() for key, state in states.items()},
        "is_loading": controller.orchestrator.is_loading,
    }


class DemoModeRequest(BaseModel):
    phone_number: str


class AnalysisRequestBody(BaseModel):
    question: Optional[str] = None


@app.get("/api/health")
def health():
    return {"status": "ok", "service": "SmartFi API"}


@app.get("/api/session")
def get_session(request: Request):
    controller = get_controller(request)
    session = controller.session()
    return {
        "session_id": session.id,
        "mode": controller.modes.state.value,
        "demo_phone_number": controller.modes.demo_phone,
        "authenticated": controller.modes.is_authenticated(),
        "user": controller.modes.current_user(),
    }


@app.get("/api/demo-profiles")
def get_demo_profiles():
    return [p.model_dump() for p in DEMO_PROFILES]


@app.post("/api/mode/demo")
async def enter_demo(req: DemoModeRequest, request: Request):
    controller = get_controller(request)
    try:
        await controller.enter_demo(req.phone_number)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _data_view(controller)


@app.post("/api/mode/delegated")
def enter_delegated(request: Request):
    controller = get_controller(request)
    controller.enter_delegated()
    return _data_view(controller)


@app.get("/api/data")
def get_data(request: Request):
    return _data_view(get_controller(request))


@app.post("/api/data/refresh")
async def refresh_all(request: Request):
    controller = get_controller(request)
    await controller.fetch_all()
    return _data_view(controller)


@app.post("/api/data/{source}/refresh")
async def refresh_one(source: str, request: Request):
    key = _source_or_404(source)
    controller = get_controller(request)
    await controller.fetch_one(key)
    return _data_view(controller)


@app.post("/api/analysis")
async def analyze(req: AnalysisRequestBody, request: Request):
    controller = get_controller(request)
    result = await controller.analysis.analyze_result(req.question)
    return {"answer": result.text, "source": result.source}

"""
FastAPI server for the Boardroom council.
Provides REST API for the business layer and dashboards.
"""

import logging
from functools import lru_cache
from typing import Any, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

import config
from config import GATE_PERSONAS
from council import CouncilEngine
from errors import ChairmanFailure, QuorumNotMet
from prompts import PromptBuilder
from providers import ProviderFactory
from schemas import ChatMessage, CouncilSession, GateType, PlaygroundResult
from schemas.council import Language
from store import JsonFileSessionStore, SessionStore

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Boardroom Council API",
    description="Multi-model deliberation engine for gate reviews",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class CouncilRunRequest(BaseModel):
    """Request to run a gate review."""
    project_id: str = Field(..., min_length=1)
    gate_type: GateType = GateType.STRATEGIC
    topic: Optional[str] = Field(default=None, description="Defaults to '<gate> Gate'")
    context: Any = Field(default_factory=dict, description="Project context, redacted before sending")
    prior_turns: List[ChatMessage] = Field(default_factory=list)
    language: Optional[Language] = None


class PlaygroundRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    language: Optional[Language] = None


class StatusResponse(BaseModel):
    """Provider status response."""
    provider: str
    available: bool
    default_model: Optional[str] = None


@lru_cache(maxsize=1)
def get_store() -> SessionStore:
    return JsonFileSessionStore(config.settings.session_store_path)


def get_engine(store: SessionStore = Depends(get_store)) -> CouncilEngine:
    return CouncilEngine(
        config.settings.deliberation_config(),
        store=store,
        prompt_builder=PromptBuilder.from_settings(config.settings),
    )


@app.get("/")
async def root():
    """API root - health check."""
    return {
        "name": "Boardroom Council",
        "version": "1.0.0",
        "status": "running",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    available_providers = ProviderFactory.get_available()
    return {
        "status": "healthy" if available_providers else "degraded",
        "providers_available": len(available_providers),
    }


@app.get("/providers", response_model=list[StatusResponse])
async def list_providers():
    """List all providers and their status."""
    providers = []
    for name in ProviderFactory.names():
        p = ProviderFactory.get(name)
        providers.append(StatusResponse(
            provider=name,
            available=p.is_available(),
            default_model=getattr(p, "default_model", None),
        ))
    return providers


@app.get("/gates")
async def list_gates():
    """List gate types and the personas that sit on each."""
    return {
        gate.value: [
            {"persona": p.name, "role": p.role, "focus": p.focus}
            for p in personas
        ]
        for gate, personas in GATE_PERSONAS.items()
    }


@app.post("/council/run", response_model=CouncilSession)
async def council_run(request: CouncilRunRequest, engine: CouncilEngine = Depends(get_engine)):
    """
    Run a gate review and persist the session.

    Blocks until the chairman has answered.
    """
    topic = (request.topic or "").strip() or f"{request.gate_type.value} Gate"
    try:
        return await engine.run_council_session(
            request.project_id,
            request.gate_type,
            topic,
            request.context,
            prior_turns=request.prior_turns,
            language=request.language,
        )
    except QuorumNotMet as e:
        raise HTTPException(status_code=502, detail=str(e))
    except ChairmanFailure as e:
        logger.error("Chairman failure for %s: %s", request.project_id, e)
        return JSONResponse(
            status_code=502,
            content={
                "detail": str(e),
                "opinions": [o.model_dump(mode="json") for o in e.opinions],
                "model_outputs": [r.model_dump(mode="json") for r in e.stage1],
            },
        )


@app.post("/council/playground", response_model=PlaygroundResult)
async def council_playground(request: PlaygroundRequest, engine: CouncilEngine = Depends(get_engine)):
    """Ad hoc council question; nothing is persisted."""
    try:
        return await engine.run_council_playground(request.prompt.strip(), request.language)
    except (QuorumNotMet, ChairmanFailure) as e:
        raise HTTPException(status_code=502, detail=str(e))


@app.get("/council/sessions", response_model=list[CouncilSession])
async def council_sessions(project_id: Optional[str] = None, store: SessionStore = Depends(get_store)):
    """Stored sessions, optionally for one project."""
    return await store.list(project_id)

"""
API layer - FastAPI application exposing the NPC agents.
Controllers are thin and delegate to NpcAgent.
"""
import os
import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from .domain.exceptions import ConfigurationError
from .domain.models import AskOptions
from .services.agent import NpcAgent
from .services.registry import AgentRegistry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class AskRequest(BaseModel):
    npc: str
    question: str
    importance: Optional[float] = None
    top_k: int = Field(default=4, gt=0)
    in_character: bool = True
    force_local: bool = False
    force_cloud: bool = False

    def to_options(self) -> AskOptions:
        return AskOptions(
            top_k=self.top_k,
            in_character=self.in_character,
            importance=self.importance,
            force_local=self.force_local,
            force_cloud=self.force_cloud,
        )


class AskResponse(BaseModel):
    answer: str
    sources: List[str]
    scores: List[float]
    from_cloud: bool


class IngestRequest(BaseModel):
    npc: str
    text: str
    tags: Dict[str, str] = Field(default_factory=dict)
    tier: str = "npc"


class RememberRequest(BaseModel):
    npc: str
    fact: str


# Global registry, loaded on startup
registry: Optional[AgentRegistry] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load every NPC config and bring the indexes up to date."""
    global registry

    if registry is None:
        config_dir = os.getenv("GAMERAG_CONFIG_DIR", "config")
        logger.info(f"Loading NPC configs from {config_dir}")
        registry = AgentRegistry.load_directory(config_dir)
        try:
            await registry.ensure_all()
        except ConfigurationError as e:
            logger.error(f"Index bootstrap failed: {e}")

    yield

    logger.info("Application shutting down...")
    if registry is not None:
        await registry.aclose()
        registry = None


app = FastAPI(
    title="GameRAG",
    description="Retrieval-augmented NPC dialogue",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_agent(name: str) -> NpcAgent:
    agent = registry.get(name) if registry is not None else None
    if agent is None:
        raise HTTPException(status_code=404, detail=f"Unknown NPC: {name}")
    return agent


@app.get("/health")
async def health():
    """Health check endpoint."""
    npcs = sorted(agent.persona_id for agent in registry.agents) if registry else []
    return {"status": "ok", "npcs": npcs}


@app.post("/ask", response_model=AskResponse)
async def ask(request: AskRequest):
    agent = get_agent(request.npc)
    try:
        reply = await agent.ask(request.question, request.to_options())
    except ConfigurationError as e:
        logger.error(f"Ask failed for {request.npc}: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    return AskResponse(
        answer=reply.text,
        sources=reply.sources,
        scores=reply.scores,
        from_cloud=reply.from_cloud,
    )


@app.post("/ask/stream")
async def ask_stream(request: AskRequest):
    """Stream answer tokens as plain text."""
    agent = get_agent(request.npc)
    try:
        tokens = await agent.open_stream(request.question, request.to_options())
    except ConfigurationError as e:
        logger.error(f"Stream failed for {request.npc}: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    return StreamingResponse(
        tokens,
        media_type="text/plain; charset=utf-8",
    )


@app.post("/ingest")
async def ingest(request: IngestRequest):
    """Hot-ingest one text without chunking."""
    agent = get_agent(request.npc)
    try:
        key = await agent.hot_ingest(request.text, request.tags, tier=request.tier)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"success": True, "key": key}


@app.post("/remember")
async def remember(request: RememberRequest):
    agent = get_agent(request.npc)
    try:
        key = await agent.remember(request.fact)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"success": True, "key": key}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "5280")))

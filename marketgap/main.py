from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketgap.agents.orchestrator import PipelineOrchestrator
from marketgap.api.routes import agent
from marketgap.config import settings
from marketgap.services.run_registry import RunRegistry


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    registry = RunRegistry(
        max_runs=settings.run_registry_max_runs,
        ttl_seconds=settings.run_ttl_seconds,
    )
    app.state.registry = registry
    app.state.orchestrator = PipelineOrchestrator(registry)
    yield
    # Shutdown
    await app.state.orchestrator.shutdown()


app = FastAPI(
    title="marketgap",
    description="Market gap research pipeline that turns a niche into an opportunity brief",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(agent.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "marketgap"}

from __future__ import annotations

from pydantic import BaseModel


# --- Requests ---


class StartRunRequest(BaseModel):
    niche: str = ""


# --- Responses ---


class StartRunResponse(BaseModel):
    run_id: str
    niche: str
    message: str = "Agent started. Connect to the stream for live updates."


class RunStatusResponse(BaseModel):
    run_id: str
    status: str
    niche: str
    started_at: str

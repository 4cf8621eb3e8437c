"""Mission Control — FastAPI Backend (sessions, host metrics, gateway relay)"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

import journal
import roster
import syslogs
import sysmetrics
from config import Settings, get_settings, get_transport
from gatewaylink import GatewayError, relay_chat

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger("mission_control")


# ── Models ──────────────────────────────────────────────────────
class ChatRequest(BaseModel):
    message: str = ""


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("Mission Control starting; agents=%s gateway=%s", settings.agents_dir, settings.gateway_url)
    yield
    logger.info("Mission Control shutting down")

app = FastAPI(title="Mission Control", lifespan=lifespan)


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"detail": "Internal server error"}, status_code=500)


@app.get("/api/health")
def health(settings: Settings = Depends(get_settings)):
    return {"status": "ok", "agentsDir": settings.agents_dir}

# ── Sessions (per-agent index + JSONL journals) ─────────────────
@app.get("/api/sessions")
def get_sessions(
    id: Optional[str] = None,
    agent: Optional[str] = None,
    agentHint: Optional[str] = None,
    order: str = Query("earliest", pattern="^(earliest|latest)$"),
    settings: Settings = Depends(get_settings),
):
    try:
        agent_ids = journal.list_agent_ids(settings.agents_dir)
    except OSError as exc:
        logger.warning("agents directory %s unreadable: %s", settings.agents_dir, exc)
        return {"sessions": [], "messages": []}

    if id:
        messages = journal.find_session_messages(
            settings.agents_dir, id, agent_ids,
            agent_hint=agentHint,
            limit=settings.journal_limit,
            latest=order == "latest",
        )
        return {"messages": [m.model_dump(exclude_none=True) for m in messages]}

    sessions = journal.list_sessions(settings.agents_dir, agent_ids, agent, settings.session_list_limit)
    return {"sessions": [s.model_dump(exclude_none=True) for s in sessions]}

# ── Agents (platform config) ────────────────────────────────────
@app.get("/api/agents")
def list_agents(settings: Settings = Depends(get_settings)):
    try:
        agents = roster.load_agents(settings.config_path)
    except (OSError, ValueError) as exc:
        logger.warning("platform config %s unreadable: %s", settings.config_path, exc)
        agents = []
    return {"agents": [a.model_dump() for a in agents]}

# ── Chat relay ──────────────────────────────────────────────────
@app.post("/api/chat")
async def chat(body: ChatRequest, settings: Settings = Depends(get_settings), transport=Depends(get_transport)):
    message = body.message.strip()
    if not message:
        raise HTTPException(400, "message is required")
    try:
        token = roster.gateway_token(roster.load_platform_config(settings.config_path))
    except (OSError, ValueError) as exc:
        logger.warning("platform config %s unreadable: %s", settings.config_path, exc)
        token = ""
    if not token:
        raise HTTPException(500, f"Gateway token missing in {settings.config_path}")
    try:
        reply = await relay_chat(settings.gateway_url, token, message, settings.chat_model, transport)
    except GatewayError as exc:
        raise HTTPException(exc.status_code, exc.message)
    return {"reply": reply}

# ── System ──────────────────────────────────────────────────────
@app.get("/api/system/stats", response_model=sysmetrics.SystemStats, response_model_exclude_none=True)
async def get_system_stats(
    source: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    transport=Depends(get_transport),
):
    if source == "remote":
        if not settings.remote_stats_url:
            raise HTTPException(404, "Remote stats source not configured")
        try:
            return await sysmetrics.fetch_remote_stats(settings.remote_stats_url, settings.remote_stats_key, transport)
        except httpx.HTTPError as exc:
            logger.warning("remote stats %s failed: %s", settings.remote_stats_url, exc)
            raise HTTPException(502, "Remote stats source offline")
        except (ValueError, TypeError) as exc:
            logger.warning("remote stats %s malformed: %s", settings.remote_stats_url, exc)
            raise HTTPException(502, "Remote stats source returned malformed data")
    return await sysmetrics.collect_system_stats(settings, transport)


@app.get("/api/system/logs")
def get_system_logs(settings: Settings = Depends(get_settings)):
    try:
        return syslogs.tail_newest_log(settings.logs_dir).model_dump()
    except OSError as exc:
        logger.info("no readable logs in %s: %s", settings.logs_dir, exc)
        return {"source": "unavailable", "lines": []}


# ── No-cache middleware for API responses ───────────────────────
class NoCacheApiMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        return response

app.add_middleware(NoCacheApiMiddleware)

if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=True)

"""
watcher/api.py
─────────────────────────────────────────────────────────────────────────────
iMessage Watcher — status & control API

TWO USAGE MODES:
  1. Importable class (menu-bar app, scripts):
         from watcher.api import WatcherAPI
         api = WatcherAPI(orchestrator)
         status = api.get_status()

  2. FastAPI HTTP server (any local UI via fetch()):
         python -m watcher.api                   # default: port 8766
         python -m watcher.api --port 9000

ENDPOINTS:
  GET  /health          — liveness
  GET  /status          — scanner state, cursor, last result, enabled sinks
  GET  /actions         — rolling action history (newest first)
  POST /actions/seen    — clear the "unseen actions" badge flag
  POST /scan            — run one scan now and return its summary
  POST /reprocess       — rewind over the last N contact messages and rescan

The server binds to 127.0.0.1 only — not reachable from outside the machine.
No authentication (single-user machine assumed).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from watcher.orchestrator import DEFAULT_REPROCESS_COUNT, ScanOrchestrator

logger = logging.getLogger(__name__)

API_VERSION  = "2.0.0"
DEFAULT_PORT = 8766


# ═══════════════════════════════════════════════════════════════════════════
# IMPORTABLE CLASS
# ═══════════════════════════════════════════════════════════════════════════

class WatcherAPI:
    """
    Pure-Python facade over a running ScanOrchestrator.
    No HTTP layer required — import and call directly.
    """

    def __init__(self, orchestrator: ScanOrchestrator):
        self.orchestrator = orchestrator

    def get_status(self, check_llm: bool = True) -> Dict[str, Any]:
        status = self.orchestrator.status()
        if check_llm:
            status["ollama_available"] = self.orchestrator.classifier.llm.is_available()
            status["ollama_model"]     = self.orchestrator.config.ollama_model
        return status

    def get_actions(self, limit: int = 50) -> List[Dict[str, Any]]:
        limit = max(1, min(int(limit), 500))
        return [
            {"title": a.title, "timestamp": a.timestamp.isoformat()}
            for a in self.orchestrator.recent_actions(limit)
        ]

    def mark_seen(self) -> Dict[str, Any]:
        self.orchestrator.mark_seen()
        return {"status": "ok", "has_unseen_actions": False}

    def run_scan(self) -> Dict[str, Any]:
        """Blocking: runs a full cycle (including the LLM call) and returns its summary."""
        return self.orchestrator.scan("manual").to_dict()

    def reprocess(self, count: int = DEFAULT_REPROCESS_COUNT) -> Dict[str, Any]:
        if count < 1:
            raise ValueError("count must be at least 1")
        rewound = self.orchestrator.rewind(count)
        last = self.orchestrator.last_result
        return {
            "rewound": rewound,
            "cursor":  self.orchestrator.cursor,
            "scan":    last.to_dict() if rewound and last else None,
        }


# ═══════════════════════════════════════════════════════════════════════════
# FASTAPI HTTP APP
# ═══════════════════════════════════════════════════════════════════════════

class ReprocessRequest(BaseModel):
    count: int = Field(DEFAULT_REPROCESS_COUNT, ge=1, le=100)


def _build_app(orchestrator: ScanOrchestrator) -> FastAPI:
    """Build the FastAPI application around one orchestrator instance."""
    _api = WatcherAPI(orchestrator)

    _app = FastAPI(
        title       = "iMessage Watcher API",
        description = "Local status and control for the scan-classify-act pipeline",
        version     = API_VERSION,
        docs_url    = "/docs",
        redoc_url   = None,
    )

    # CORS: only allow localhost origins
    _app.add_middleware(
        CORSMiddleware,
        allow_origins     = [
            "http://localhost",
            f"http://localhost:{DEFAULT_PORT}",
            "http://127.0.0.1",
            f"http://127.0.0.1:{DEFAULT_PORT}",
            "null",   # file:// origin
        ],
        allow_methods     = ["GET", "POST", "OPTIONS"],
        allow_headers     = ["Content-Type"],
        allow_credentials = False,
    )

    @_app.get("/health", summary="Health check")
    def health():
        return {
            "status":  "ok",
            "version": API_VERSION,
            "state":   "scanning" if orchestrator.is_scanning else "idle",
        }

    @_app.get("/status", summary="Scanner status")
    def status(check_llm: bool = Query(True, description="Probe Ollama /api/tags")):
        return _api.get_status(check_llm=check_llm)

    @_app.get("/actions", summary="Recent actions")
    def actions(limit: int = Query(50, ge=1, le=500)):
        data = _api.get_actions(limit=limit)
        return {"count": len(data), "actions": data}

    @_app.post("/actions/seen", summary="Clear unseen flag")
    def actions_seen():
        return _api.mark_seen()

    @_app.post("/scan", summary="Run one scan now")
    def scan():
        """Blocks until the scan (including the LLM call) finishes."""
        result = _api.run_scan()
        if result["status"] == "busy":
            raise HTTPException(status_code=409, detail="A scan is already in progress")
        if result["status"] == "no_contact":
            raise HTTPException(status_code=400, detail="contact_phone is not configured")
        return result

    @_app.post("/reprocess", summary="Reprocess the last N contact messages")
    def reprocess(req: Optional[ReprocessRequest] = None):
        count = req.count if req else DEFAULT_REPROCESS_COUNT
        if orchestrator.is_scanning:
            raise HTTPException(status_code=409, detail="A scan is already in progress")
        return _api.reprocess(count)

    return _app


# ═══════════════════════════════════════════════════════════════════════════
# CLI ENTRYPOINT — python -m watcher.api
# ═══════════════════════════════════════════════════════════════════════════

def serve(orchestrator: ScanOrchestrator, host: str = "127.0.0.1", port: int = DEFAULT_PORT) -> None:
    import uvicorn

    uvicorn.run(_build_app(orchestrator), host=host, port=port, log_level="info")


def main() -> None:
    import argparse

    from watcher.config import ensure_config
    from watcher.poller import Poller

    parser = argparse.ArgumentParser(
        prog        = "watcher.api",
        description = "iMessage Watcher API server — polls in the background, serves status on localhost",
    )
    parser.add_argument("--port",   type=int, default=DEFAULT_PORT,
                        help=f"Port to bind (default: {DEFAULT_PORT})")
    parser.add_argument("--host",   type=str, default="127.0.0.1",
                        help="Host to bind — DO NOT change to 0.0.0.0 on shared networks")
    parser.add_argument("--config-dir", type=Path, default=None,
                        help="Directory holding watcher_config.json (default: cwd)")
    args = parser.parse_args()

    logging.basicConfig(
        level   = logging.INFO,
        format  = '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt = '%H:%M:%S',
    )

    orchestrator = ScanOrchestrator.from_config(ensure_config(args.config_dir))
    orchestrator.start()
    poller = Poller(orchestrator)
    poller.start()
    try:
        serve(orchestrator, host=args.host, port=args.port)
    finally:
        poller.stop(timeout=5)


if __name__ == "__main__":
    main()

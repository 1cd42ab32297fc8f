"""Background FastAPI service for lifestream.

Runs on localhost (port 8787 by default) with endpoints for recording and
editing entries, generating reports and cues digests, editing stored reports
and managing todos, including ones synced from a report's action items.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from rich.console import Console

from lifestream.core.config import AppConfig, load_config
from lifestream.core.errors import LifestreamError
from lifestream.core.llm import create_backend
from lifestream.core.models import parse_period_date
from lifestream.core.vault import VaultEngine
from lifestream.modules.daily_log import DailyLogStore
from lifestream.modules.report_store import VaultReportStore
from lifestream.modules.reports import GenerationRequest, ReportService
from lifestream.modules.summarizer import Summarizer
from lifestream.modules.todo import TodoStore, sync_action_items

logger = logging.getLogger(__name__)
console = Console()

PID_DIR = Path.home() / ".lifestream"
PID_FILE = PID_DIR / "daemon.pid"


# ── Wiring ─────────────────────────────────────────────────────────────────

@dataclass
class Components:
    logs: DailyLogStore
    reports: ReportService
    todos: TodoStore


def build_components(config: AppConfig) -> Components:
    """Build stores, backend and report service from one configuration."""
    engine = VaultEngine.from_config(config)
    logs = DailyLogStore(engine)
    summarizer = Summarizer(
        create_backend(config),
        pipeline=config.pipeline,
    )
    reports = ReportService(logs, VaultReportStore(engine), summarizer, user_id=config.user_id)
    return Components(logs=logs, reports=reports, todos=TodoStore(engine))


# ── Request models ─────────────────────────────────────────────────────────

class LogRequest(BaseModel):
    content: str
    tags: list[str] = Field(default_factory=list)
    timestamp: Optional[int] = None


class GenerateRequest(BaseModel):
    type: str
    periodStart: str
    periodEnd: str
    language: str = "en"
    periodName: Optional[str] = None
    force: bool = False


class CuesRequest(BaseModel):
    periodStart: str
    periodEnd: str
    language: str = "en"
    periodName: Optional[str] = None
    type: Optional[str] = None


class CreateReportRequest(BaseModel):
    type: str
    periodStart: str
    periodEnd: str
    content: str
    id: Optional[str] = None
    createdAt: Optional[int] = None


class UpdateReportRequest(BaseModel):
    content: str


class UpdateLogRequest(BaseModel):
    content: str
    tags: Optional[list[str]] = None


class TodoRequest(BaseModel):
    text: str
    source: str = ""


def _generation_request(req: GenerateRequest) -> GenerationRequest:
    return GenerationRequest.parse(
        req.type, req.periodStart, req.periodEnd, req.language,
        period_name=req.periodName, force=req.force,
    )


# ── FastAPI app ────────────────────────────────────────────────────────────

def create_app(
    config: AppConfig | None = None,
    reports: ReportService | None = None,
    todos: TodoStore | None = None,
) -> FastAPI:
    """Create the application.

    Pre-built ``reports``/``todos`` are used as-is; otherwise everything is
    built from ``config`` (loaded from disk when omitted) at startup.
    """

    state: dict[str, Any] = {}

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if reports is not None and todos is not None:
            state["reports"] = reports
            state["todos"] = todos
        else:
            components = build_components(config or load_config())
            state["reports"] = reports or components.reports
            state["todos"] = todos or components.todos
        state["logs"] = state["reports"].log_store
        logger.info("lifestream service ready (user %s)", state["reports"].user_id)
        yield
        state.clear()

    app = FastAPI(title="lifestream", lifespan=lifespan)

    @app.exception_handler(LifestreamError)
    async def handle_lifestream_error(request: Request, exc: LifestreamError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        body: dict[str, Any] = {"error": exc.message, "code": exc.error_code}
        if exc.details:
            body["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=body)

    def _user() -> str:
        return state["reports"].user_id

    # ── Endpoints ──────────────────────────────────────────────────────

    @app.get("/health")
    def get_health():
        return {"status": "ok", "service": "lifestream"}

    @app.post("/logs", status_code=201)
    def post_log(req: LogRequest):
        entry = state["logs"].append_log(_user(), req.content, req.tags, req.timestamp)
        return entry.to_dict()

    @app.get("/logs")
    def get_logs(start: str = Query(...), end: Optional[str] = Query(None)):
        start_day = parse_period_date(start, "start")
        end_day = parse_period_date(end, "end") if end else start_day
        entries = state["logs"].list_logs(_user(), start_day, end_day)
        return {"logs": [e.to_dict() for e in entries]}

    @app.put("/logs/{entry_id}")
    def put_log(entry_id: str, req: UpdateLogRequest):
        return state["logs"].update_log(_user(), entry_id, req.content, req.tags).to_dict()

    @app.delete("/logs/{entry_id}", status_code=204)
    def delete_log(entry_id: str):
        state["logs"].delete_log(_user(), entry_id)
        return Response(status_code=204)

    @app.post("/reports/generate")
    def post_generate_report(req: GenerateRequest, response: Response):
        result = state["reports"].generate_report(_generation_request(req))
        response.status_code = 201 if result.created else 200
        return {"report": result.report.to_dict(), "generated": result.generated}

    @app.post("/cues/generate")
    def post_generate_cues(req: CuesRequest):
        request = GenerationRequest.for_cues(
            req.periodStart, req.periodEnd, req.language,
            period_name=req.periodName, type=req.type,
        )
        content = state["reports"].generate_cues(request)
        return {
            "type": request.type.value,
            "periodStart": request.period_start.isoformat(),
            "periodEnd": request.period_end.isoformat(),
            "content": content,
        }

    @app.get("/reports")
    def get_reports(type: Optional[str] = Query(None)):
        return {"reports": [r.to_dict() for r in state["reports"].list_reports(type)]}

    @app.post("/reports")
    def post_report(req: CreateReportRequest, response: Response):
        report, created = state["reports"].create_report(
            req.type, req.periodStart, req.periodEnd, req.content,
            report_id=req.id, created_at=req.createdAt,
        )
        response.status_code = 201 if created else 200
        return report.to_dict()

    @app.get("/reports/{report_id}")
    def get_report(report_id: str):
        return state["reports"].get_report(report_id).to_dict()

    @app.put("/reports/{report_id}")
    def put_report(report_id: str, req: UpdateReportRequest):
        return state["reports"].update_report(report_id, req.content).to_dict()

    @app.delete("/reports/{report_id}", status_code=204)
    def delete_report(report_id: str):
        state["reports"].delete_report(report_id)
        return Response(status_code=204)

    @app.post("/reports/{report_id}/todos")
    def post_report_todos(report_id: str):
        report = state["reports"].get_report(report_id)
        added = sync_action_items(report, state["todos"], _user())
        return {"added": added}

    @app.get("/todos")
    def get_todos(include_done: bool = Query(False)):
        return {"todos": state["todos"].list_todos(_user(), include_done=include_done)}

    @app.post("/todos", status_code=201)
    def post_todo(req: TodoRequest):
        return state["todos"].add_todo(_user(), req.text, source=req.source)

    @app.post("/todos/{todo_id}/done")
    def post_todo_done(todo_id: str):
        state["todos"].complete_todo(_user(), todo_id)
        return {"id": todo_id, "done": True}

    @app.delete("/todos/{todo_id}", status_code=204)
    def delete_todo(todo_id: str):
        state["todos"].remove_todo(_user(), todo_id)
        return Response(status_code=204)

    return app


# ── Process management ─────────────────────────────────────────────────────

def _read_pid() -> Optional[int]:
    """Read PID from file, return None if missing or stale."""
    if not PID_FILE.exists():
        return None
    try:
        pid = int(PID_FILE.read_text().strip())
        os.kill(pid, 0)
        return pid
    except (ValueError, ProcessLookupError, PermissionError):
        PID_FILE.unlink(missing_ok=True)
        return None


def start_service(config: AppConfig, config_path: str | Path | None = None) -> None:
    """Start the service as a uvicorn subprocess using the app factory."""
    pid = _read_pid()
    if pid is not None:
        console.print(f"[yellow]Service already running (PID {pid})[/yellow]")
        return

    PID_DIR.mkdir(parents=True, exist_ok=True)
    env = dict(os.environ)
    if config_path:
        env["LIFESTREAM_CONFIG"] = str(Path(config_path).resolve())

    host, port = config.service.host, config.service.port
    with open(PID_DIR / "service.log", "a") as log_fd:
        proc = subprocess.Popen(
            [
                sys.executable, "-m", "uvicorn",
                "lifestream.service:create_app", "--factory",
                "--host", host,
                "--port", str(port),
                "--log-level", "info",
            ],
            stdout=log_fd,
            stderr=log_fd,
            env=env,
        )

    PID_FILE.write_text(str(proc.pid))
    console.print(f"[green]Service started[/green] (PID {proc.pid}) on {host}:{port}")


def stop_service() -> None:
    """Stop the background service."""
    pid = _read_pid()
    if pid is None:
        console.print("[dim]Service is not running.[/dim]")
        return

    try:
        os.kill(pid, signal.SIGTERM)
        console.print(f"[green]Service stopped[/green] (PID {pid})")
    except ProcessLookupError:
        console.print("[dim]Service process already gone.[/dim]")
    finally:
        PID_FILE.unlink(missing_ok=True)


def service_status(config: AppConfig | None = None) -> Optional[int]:
    """Print and return the running service's PID, if any."""
    pid = _read_pid()
    if pid is not None:
        where = f" on {config.service.host}:{config.service.port}" if config else ""
        console.print(f"[green]Service: running[/green] (PID {pid}){where}")
    else:
        console.print("[dim]Service: not running[/dim]")
    return pid

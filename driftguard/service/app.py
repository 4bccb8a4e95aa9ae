"""FastAPI application entrypoint for driftguard service mode."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import DEFAULT_CONFIG_NAME
from ..synthesizer import CheckOutcome, run_check

CheckRunner = Callable[..., CheckOutcome]


class CheckRequest(BaseModel):
    path: str
    config: str = DEFAULT_CONFIG_NAME
    base: Optional[str] = None
    head: Optional[str] = None
    fail_on_error: Optional[bool] = None
    llm_api_key: Optional[str] = None


class SkippedFileModel(BaseModel):
    file: str
    reason: str


class CheckResponse(BaseModel):
    base_sha: str
    head_sha: str
    failed: bool
    findings: List[Dict[str, Any]]
    skipped: List[SkippedFileModel] = []


class HealthResponse(BaseModel):
    status: str


def create_app(check_runner: CheckRunner = run_check) -> FastAPI:
    """Create the FastAPI application exposing drift checks."""

    app = FastAPI(title="Drift Guard Service", version="1.0.0")

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/check", response_model=CheckResponse)
    async def check(payload: CheckRequest) -> CheckResponse:
        def _run_check() -> CheckOutcome:
            return check_runner(
                payload.path,
                config_path=payload.config,
                base=payload.base,
                head=payload.head,
                llm_api_key=payload.llm_api_key,
                fail_on_error=payload.fail_on_error,
            )

        loop = asyncio.get_running_loop()
        outcome = await loop.run_in_executor(None, _run_check)
        report = outcome.report
        return CheckResponse(
            base_sha=report.base_sha,
            head_sha=report.head_sha,
            failed=outcome.failed,
            findings=[finding.to_dict() for finding in report.findings],
            skipped=[SkippedFileModel(file=item.file, reason=item.reason) for item in report.skipped],
        )

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Any, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    uvicorn.run(create_app(), host=host, port=port)


__all__ = ["CheckRequest", "CheckResponse", "create_app", "run_service"]

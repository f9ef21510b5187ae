"""Local JSON API over the analyzers (Starlette, served by uvicorn)."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .config_manager import load_analysis_config, load_schema_layout_config
from .dependencies import DependencyAnalyzer
from .file_reader import (
    FileNotFoundInProject,
    FileReadError,
    FileTooLarge,
    read_project_file,
)
from .schema_graph import analyze_schema
from .walker import ProjectRootError, analyze_project

logger = logging.getLogger(__name__)


def _error(message: str, status_code: int, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": message, "success": False, **extra}, status_code=status_code)


async def _json_body(request: Request) -> Optional[Dict[str, Any]]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


def create_app(config_path: Optional[Path] = None) -> Starlette:
    """Create the Starlette ASGI application."""

    async def health(request: Request):
        return JSONResponse({
            "message": "Analysis API is working",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    async def api_analyze(request: Request):
        body = await _json_body(request)
        if body is None:
            return _error("Invalid JSON body", 400)
        project_path = body.get("projectPath")
        if not project_path:
            return _error("Project path is required", 400)
        try:
            settings = load_analysis_config(Path(project_path), config_path)
            analysis = await run_in_threadpool(
                analyze_project,
                Path(project_path),
                bool(body.get("includeDependencies", False)),
                settings,
            )
        except ProjectRootError as e:
            return _error(str(e), 400)
        except Exception as e:
            logger.exception("Analysis failed")
            return _error(str(e) or "Failed to analyze project", 500)
        return JSONResponse({"success": True, "data": analysis.to_dict()})

    async def api_analyze_dependencies(request: Request):
        body = await _json_body(request)
        if body is None:
            return _error("Invalid JSON body", 400)
        file_path = body.get("filePath")
        if not file_path:
            return _error("File path is required", 400)
        project_root = body.get("projectRoot") or os.path.dirname(os.path.abspath(file_path))
        path = Path(file_path)
        if not path.is_absolute():
            path = Path(project_root) / path
        try:
            settings = load_analysis_config(Path(project_root), config_path)
            analyzer = DependencyAnalyzer(Path(project_root), settings.alias_prefix)
            result = await run_in_threadpool(analyzer.analyze, path)
        except Exception as e:
            logger.exception("Dependency analysis failed")
            return _error(str(e) or "Failed to analyze dependencies", 500)
        return JSONResponse({"success": True, "data": result.to_dict()})

    async def api_analyze_schema(request: Request):
        body = await _json_body(request)
        if body is None:
            return _error("Invalid JSON body", 400)
        schema_path = body.get("schemaPath")
        if not schema_path:
            return _error("Schema path is required", 400)
        path = Path(schema_path)
        if not path.is_file():
            return _error(f"Schema file not found: {schema_path}", 404)
        try:
            graph = await run_in_threadpool(
                analyze_schema, path, True, load_schema_layout_config(config_path),
            )
        except Exception as e:
            logger.exception("Schema analysis failed")
            return _error(str(e) or "Failed to analyze schema", 500)
        payload = graph.to_dict()
        payload["fileName"] = path.name
        return JSONResponse(payload)

    async def api_read_file(request: Request):
        body = await _json_body(request)
        if body is None:
            return _error("Invalid JSON body", 400)
        try:
            content = read_project_file(body.get("filePath") or "", body.get("projectRoot"))
        except FileNotFoundInProject:
            return _error("File not found", 404)
        except FileTooLarge:
            return _error("File too large to display", 413)
        except FileReadError as e:
            return _error(str(e), 400)
        except OSError as e:
            logger.exception("Reading file failed")
            return _error("Failed to read file", 500, details=str(e))
        return JSONResponse({"content": content.content, "filePath": content.file_path})

    return Starlette(routes=[
        Route("/api/analyze", health, methods=["GET"]),
        Route("/api/analyze", api_analyze, methods=["POST"]),
        Route("/api/analyze-dependencies", api_analyze_dependencies, methods=["POST"]),
        Route("/api/analyze-schema", api_analyze_schema, methods=["POST"]),
        Route("/api/read-file", api_read_file, methods=["POST"]),
    ])

"""FastAPI service applying visual edits to a project's JSX/TSX source."""

import asyncio
import json as json_module
import logging
from pathlib import Path
from typing import Any, Callable

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

import settings
from action_history import ActionHistory
from edit_risk import EditRiskAnalyzer
from file_resolver import FileResolver
from services.color_update import ColorUpdateService
from services.font_family_update import FontFamilyUpdateService
from services.font_size_update import FontSizeUpdateService
from services.payloads import (
    ColorUpdatePayload,
    DeleteElementPayload,
    ElementPayload,
    FontFamilyUpdatePayload,
    FontSizeUpdatePayload,
    TextUpdatePayload,
)
from services.text_update import TextUpdateService
from services.visual_delete import VisualDeleteService

settings.configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Visual Source Editor")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

PROJECT_ROOT = settings.get_project_root()

history = ActionHistory(PROJECT_ROOT)
resolver = FileResolver(PROJECT_ROOT)
risk = EditRiskAnalyzer(resolver)

text_service = TextUpdateService(PROJECT_ROOT, history, resolver, risk)
color_service = ColorUpdateService(PROJECT_ROOT, history, resolver, risk)
font_size_service = FontSizeUpdateService(PROJECT_ROOT, history, resolver, risk)
font_family_service = FontFamilyUpdateService(PROJECT_ROOT, history, resolver, risk)
delete_service = VisualDeleteService(PROJECT_ROOT, history, resolver, risk)


def _json_response(body: dict[str, Any], status_code: int) -> Response:
    return Response(
        content=json_module.dumps(body),
        status_code=status_code,
        media_type="application/json",
    )


def _label(action_type: str, tag: str, source_file: str) -> str:
    page = Path(source_file).name or "page"
    return f"{action_type}: <{tag}> in {page}"


async def _run_edit(
    action_type: str,
    payload: ElementPayload | DeleteElementPayload,
    handler: Callable[[], dict[str, Any]],
):
    """Run one edit as a history action in a worker thread and map its result to a response."""
    label = _label(action_type, payload.tag, payload.source_file)
    try:
        result = await asyncio.to_thread(
            history.run_action,
            action_type,
            label,
            handler,
            {"sourceFile": payload.source_file, "tag": payload.tag},
        )
    except Exception:
        logger.exception(f"{action_type} failed")
        return _json_response({"success": False, "error": f"{action_type} failed"}, 500)

    if result.get("warning"):
        return result
    if result.get("success"):
        return result
    return _json_response(result, 400)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "projectRoot": str(PROJECT_ROOT)}


# ─── Edits ──────────────────────────────────────────────────────────


@app.post("/api/updates/text")
async def update_text_endpoint(request_body: TextUpdatePayload):
    return await _run_edit("TextUpdate", request_body, lambda: text_service.update_text(request_body))


@app.post("/api/updates/color")
async def update_color_endpoint(request_body: ColorUpdatePayload):
    return await _run_edit("ColorUpdate", request_body, lambda: color_service.update_color(request_body))


@app.post("/api/updates/font-size")
async def update_font_size_endpoint(request_body: FontSizeUpdatePayload):
    return await _run_edit(
        "FontSizeUpdate", request_body, lambda: font_size_service.update_font_size(request_body)
    )


@app.post("/api/updates/font-family")
async def update_font_family_endpoint(request_body: FontFamilyUpdatePayload):
    return await _run_edit(
        "FontFamilyUpdate", request_body, lambda: font_family_service.update_font_family(request_body)
    )


@app.post("/api/delete/element")
async def delete_element_endpoint(request_body: DeleteElementPayload):
    """Delete the clicked element, trying progressively looser strategies."""
    return await _run_edit("VisualDelete", request_body, lambda: delete_service.delete_element(request_body))


# ─── History ────────────────────────────────────────────────────────


@app.get("/api/history/status")
async def history_status():
    summary = history.get_last_action_summary()
    return {"success": True, "hasAction": summary is not None, "action": summary}


@app.post("/api/history/undo")
async def undo_last_action():
    """Restore the files touched by the last recorded action."""
    try:
        result = await asyncio.to_thread(history.undo_last_action)
    except Exception:
        logger.exception("Undo failed")
        return _json_response({"success": False, "error": "Undo failed"}, 500)
    if not result.get("success"):
        return _json_response(result, 400)
    return result

"""FastAPI app exposing the TuneScout search pipeline to web clients."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..core.event_bus import Events
from ..models.search_request import SearchKind, SearchRequest
from ..models.track import MusicSuggestion
from .runtime import TuneScoutRuntime, build_runtime


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class MusicSearchRequest(BaseModel):
    query: str = ""
    limit: Optional[int] = None


def _parse_kind(kind: str) -> SearchKind:
    try:
        return SearchKind.parse(kind)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _clamp_limit(value: Any, default: int) -> int:
    try:
        limit = int(value)
    except (TypeError, ValueError):
        limit = default
    return max(1, min(50, limit))


def create_app(runtime: Optional[TuneScoutRuntime] = None) -> FastAPI:
    runtime = runtime or build_runtime()

    def _default_limit() -> int:
        return _clamp_limit(runtime.settings.get("service_default_limit", 10), 10)

    def _fallback_suggestions(limit: int) -> List[Dict]:
        return [MusicSuggestion.from_track(t).to_dict() for t in runtime.catalog.tracks[:limit]]

    app = FastAPI(title="TuneScout API", version="1.0.0")

    @app.get("/health")
    def health() -> Dict:
        return {"ok": True, "time": _utc_now_iso()}

    @app.post("/api/music-search")
    async def music_search(request: Request):
        # A degradable search never surfaces a 5xx: any failure answers 200 with catalog data.
        try:
            raw = await request.json()
            body = MusicSearchRequest(**(raw if isinstance(raw, dict) else {}))
        except Exception as e:
            print(f"Error in music-search body: {e}")
            return {"suggestions": _fallback_suggestions(_default_limit())}

        if not body.query or not body.query.strip():
            return JSONResponse({"error": "Query parameter is required"}, status_code=400)

        limit = _clamp_limit(body.limit, _default_limit()) if body.limit is not None else _default_limit()
        try:
            search_request = SearchRequest(query=body.query, kind=SearchKind.SONG, match_genre=True)
            # Relay delivery blocks, so it runs off the event loop.
            tracks = await run_in_threadpool(runtime.orchestrator.search, search_request, limit=limit)
            suggestions = [MusicSuggestion.from_track(t).to_dict() for t in tracks[:limit]]
        except Exception as e:
            print(f"Error in music-search: {e}")
            suggestions = _fallback_suggestions(limit)
        return {"suggestions": suggestions}

    @app.get("/api/search")
    def search(
        q: str = Query(""),
        kind: str = Query("song"),
        genre: str = Query(""),
        limit: int = Query(20, ge=1, le=100),
    ) -> Dict:
        request = SearchRequest(query=q, kind=_parse_kind(kind), genre=genre or None)
        if not request.is_well_formed():
            raise HTTPException(status_code=400, detail="Query or genre is required for this search kind.")
        outcome = runtime.orchestrator.search_outcome(request, limit=limit)
        return {
            "tracks": [t.to_dict() for t in outcome.records],
            "count": len(outcome.records),
            "status": outcome.status.value,
            "reason": outcome.reason,
        }

    @app.get("/api/suggest")
    def suggest(q: str = Query(""), kind: str = Query("song")) -> Dict:
        outcome = runtime.orchestrator.suggest_outcome(q, _parse_kind(kind))
        return {
            "suggestions": [s.to_dict() for s in outcome.records],
            "status": outcome.status.value,
        }

    @app.get("/api/relays")
    def relays() -> Dict:
        return runtime.router.get_runtime_status()

    def _apply_settings(keys: List[str]) -> Dict:
        runtime.router.reload_from_settings()
        runtime.orchestrator.reload_from_settings()
        runtime.event_bus.emit(Events.SETTINGS_CHANGED, {"keys": keys})
        return {"ok": True, "settings": runtime.settings.get_all()}

    @app.get("/api/settings")
    def get_settings() -> Dict:
        return {"settings": runtime.settings.get_all()}

    @app.patch("/api/settings")
    def patch_settings(body: Dict[str, Any] = Body(default={})):  # noqa: B008
        updates = {k: v for k, v in body.items() if v is not None}
        if not updates:
            return {"ok": True, "settings": runtime.settings.get_all()}
        errors = runtime.settings.validate(updates)
        if errors:
            raise HTTPException(status_code=400, detail={"errors": errors})
        runtime.settings.update(updates)
        return _apply_settings(sorted(updates.keys()))

    @app.post("/api/settings/reset")
    def reset_settings() -> Dict:
        runtime.settings.reset()
        return _apply_settings(["*"])

    return app


app = create_app()

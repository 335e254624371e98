from __future__ import annotations
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel

from .errors import ValidationError
from .service import DealTrackerService, build_service


class SearchResultIn(BaseModel):
    id: str
    title: str
    price: str = ""
    price_value: float
    shop: str = ""
    url: str = ""


class TrackRequest(BaseModel):
    result: SearchResultIn
    target_price: float


class TrackedGameOut(BaseModel):
    id: str
    title: str
    current_price: float
    target_price: float
    url: str
    added_at: str
    last_checked: Optional[str] = None
    last_error: Optional[str] = None
    shop: Optional[str] = None


def create_app(service: Optional[DealTrackerService] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "service", None) is None:
            app.state.service = build_service()
        await app.state.service.start()
        try:
            yield
        finally:
            await app.state.service.close()

    app = FastAPI(title="DealSentinel", lifespan=lifespan)
    app.state.service = service

    def _service(request: Request) -> DealTrackerService:
        return request.app.state.service

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/search")
    async def search(request: Request, q: str = Query("", description="Game title to search for")):
        return await _service(request).search(q)

    @app.get("/tracked", response_model=List[TrackedGameOut])
    def tracked(request: Request):
        return [asdict(g) for g in _service(request).list_tracked()]

    @app.post("/tracked", response_model=TrackedGameOut)
    async def track(request: Request, body: TrackRequest):
        try:
            game = await _service(request).track(body.result.model_dump(), body.target_price)
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=str(exc))
        return asdict(game)

    @app.delete("/tracked/{game_id}")
    async def untrack(request: Request, game_id: str):
        return await _service(request).remove(game_id)

    @app.post("/check")
    async def check(request: Request):
        report = await _service(request).check_now()
        return {
            "checked": report.checked,
            "failed": report.failed,
            "alerts": [asdict(a) for a in report.alerts],
        }

    return app


app = create_app()

"""FastAPI web server for the investor CRM.

REST endpoints for the investor collection, the derived scoring views
(prioritized targets, recommendations, dashboard summary) and the
third-party lookups (Apollo contacts, Claude research, Gmail sync).
"""

import asyncio
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from investor_crm.client import ApolloAPIError, ApolloClient
from investor_crm.config import Settings
from investor_crm.engine import (
    annotate,
    classify_investor_type,
    generate_recommendations,
    get_ai_prioritized_investors,
    suggest_pitch_angle,
    summarize_pipeline,
)
from investor_crm.gmail import GmailAPIError, GmailAuthError, GmailClient, sync_sent_mail
from investor_crm.importer import InvestorImporter
from investor_crm.pipeline import InvestorNotFoundError, InvestorPipeline
from investor_crm.research import InvestorResearcher

# ---------------------------------------------------------------------------
# Request models (module-level so FastAPI can introspect them)
# ---------------------------------------------------------------------------


class InvestorCreate(BaseModel):
    name: str = Field(min_length=1)
    company: str = ""
    email: str | None = None
    type: str = "other"
    stage: str = "identified"
    priority: str = "medium"
    pitch_angle: str = "neutral-auction"
    notes: str = ""
    next_action: str = ""
    source: str = "manual"
    website: str = ""
    twitter: str = ""
    location: str = ""
    focus: str = ""
    aum: str = ""


class InvestorUpdate(BaseModel):
    name: str | None = None
    company: str | None = None
    email: str | None = None
    type: str | None = None
    stage: str | None = None
    priority: str | None = None
    pitch_angle: str | None = None
    commitment: int | None = None
    notes: str | None = None
    next_action: str | None = None
    source: str | None = None
    website: str | None = None
    twitter: str | None = None
    location: str | None = None
    focus: str | None = None
    aum: str | None = None


class ActivityRequest(BaseModel):
    type: str
    note: str = ""


class StageRequest(BaseModel):
    ids: list[int]
    stage: str


class ContactRequest(BaseModel):
    company: str
    type: str = ""


class ResearchRequest(BaseModel):
    investor_id: int


class GmailSyncRequest(BaseModel):
    access_token: str | None = None


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

_settings: Settings | None = None
_pipeline: InvestorPipeline | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore[call-arg]
    return _settings


def get_pipeline() -> InvestorPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = InvestorPipeline.from_settings(get_settings())
    return _pipeline


def create_app(
    pipeline: InvestorPipeline | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    If *pipeline* / *settings* are provided they are used directly (useful for
    tests). Otherwise they are built from environment settings on first request.
    """
    app = FastAPI(title="Investor CRM", version="0.1.0")

    global _pipeline, _settings
    if pipeline is not None:
        _pipeline = pipeline
    if settings is not None:
        _settings = settings

    def _get_investor(investor_id: int) -> Any:
        try:
            return get_pipeline().get(investor_id)
        except InvestorNotFoundError:
            raise HTTPException(status_code=404, detail="Investor not found") from None

    # ------------------------------------------------------------------
    # API — Investors
    # ------------------------------------------------------------------

    @app.get("/api/investors")
    async def list_investors(
        search: str = "",
        type: str = "all",
        stage: str = "all",
        priority: str = "all",
        source: str = "all",
        sort: str = Query(default="name", pattern="^(name|engagement|commitment|stage)$"),
    ) -> list[dict[str, Any]]:
        investors = get_pipeline().list_investors(
            search=search, type=type, stage=stage, priority=priority, source=source, sort=sort
        )
        return [annotate(i).model_dump(mode="json") for i in investors]

    @app.post("/api/investors", status_code=201)
    async def add_investor(body: InvestorCreate) -> dict[str, Any]:
        investor = get_pipeline().add(**body.model_dump())
        return annotate(investor).model_dump(mode="json")

    @app.get("/api/investors/{investor_id}")
    async def get_investor(investor_id: int) -> dict[str, Any]:
        return annotate(_get_investor(investor_id)).model_dump(mode="json")

    @app.patch("/api/investors/{investor_id}")
    async def update_investor(investor_id: int, body: InvestorUpdate) -> dict[str, Any]:
        _get_investor(investor_id)
        try:
            investor = get_pipeline().update(investor_id, **body.model_dump(exclude_unset=True))
        except ValidationError as exc:
            raise HTTPException(
                status_code=422, detail=exc.errors(include_url=False, include_context=False)
            ) from None
        return annotate(investor).model_dump(mode="json")

    @app.delete("/api/investors/{investor_id}")
    async def delete_investor(investor_id: int) -> dict[str, Any]:
        _get_investor(investor_id)
        get_pipeline().delete(investor_id)
        return {"status": "deleted", "id": investor_id}

    @app.post("/api/investors/{investor_id}/activities", status_code=201)
    async def log_activity(investor_id: int, body: ActivityRequest) -> dict[str, Any]:
        _get_investor(investor_id)
        investor = get_pipeline().log_activity(investor_id, body.type, body.note)
        return annotate(investor).model_dump(mode="json")

    @app.post("/api/investors/stage")
    async def reassign_stage(body: StageRequest) -> list[dict[str, Any]]:
        for investor_id in body.ids:
            _get_investor(investor_id)
        moved = get_pipeline().reassign_stage(body.ids, body.stage)
        return [i.model_dump(mode="json") for i in moved]

    # ------------------------------------------------------------------
    # API — Import / export
    # ------------------------------------------------------------------

    @app.post("/api/import")
    async def import_investors(
        rows: list[dict[str, Any]],
        replace: bool = True,
    ) -> dict[str, Any]:
        if not rows:
            raise HTTPException(status_code=422, detail="Expected a non-empty list of investors")
        stats = InvestorImporter(get_pipeline()).import_rows(rows, replace=replace)
        return {"created": stats.created, "skipped": stats.skipped, "errors": stats.errors}

    @app.get("/api/export")
    async def export_investors() -> list[dict[str, Any]]:
        return [i.model_dump(mode="json") for i in get_pipeline().investors]

    # ------------------------------------------------------------------
    # API — Scoring views
    # ------------------------------------------------------------------

    @app.get("/api/prioritized")
    async def prioritized() -> list[dict[str, Any]]:
        ranked = get_ai_prioritized_investors(get_pipeline().investors)
        return [p.model_dump(mode="json") for p in ranked]

    @app.get("/api/recommendations")
    async def recommendations() -> list[dict[str, Any]]:
        buckets = generate_recommendations(get_pipeline().investors)
        return [b.model_dump(mode="json") for b in buckets]

    @app.get("/api/summary")
    async def summary() -> dict[str, Any]:
        return summarize_pipeline(get_pipeline().investors).model_dump(mode="json")

    @app.post("/api/classify")
    async def classify(raw: dict[str, Any]) -> dict[str, str]:
        investor_type = classify_investor_type(raw)
        return {"type": investor_type, "pitch_angle": suggest_pitch_angle(investor_type)}

    # ------------------------------------------------------------------
    # API — Third-party lookups
    # ------------------------------------------------------------------

    @app.post("/api/apollo")
    async def find_contact(body: ContactRequest) -> dict[str, Any]:
        try:
            async with ApolloClient(get_settings()) as apollo:
                lookup = await apollo.find_contact(body.company, body.type)
        except ApolloAPIError as exc:
            return {
                "success": False,
                "error": f"Apollo API returned {exc.status_code}" if exc.status_code else exc.detail,
                "details": exc.detail,
                "suggestion": "Use the LinkedIn or Google buttons to search manually",
            }
        return lookup.model_dump(mode="json")

    @app.post("/api/ai-research")
    async def ai_research(body: ResearchRequest) -> dict[str, Any]:
        investor = _get_investor(body.investor_id)
        researcher = InvestorResearcher(get_settings())
        result = await asyncio.to_thread(researcher.research, investor)
        return result.model_dump(mode="json")

    @app.post("/api/gmail/sync")
    async def gmail_sync(body: GmailSyncRequest) -> Any:
        settings = get_settings()
        token = body.access_token or settings.gmail_access_token
        pipeline = get_pipeline()
        try:
            async with GmailClient(token, settings) as gmail:
                result = await sync_sent_mail(
                    gmail,
                    pipeline.investors,
                    lookback_days=settings.gmail_lookback_days,
                    max_messages=settings.gmail_max_messages,
                )
        except GmailAuthError as exc:
            raise HTTPException(status_code=401, detail=exc.detail) from None
        except GmailAPIError as exc:
            return JSONResponse(
                status_code=500,
                content={"error": "Failed to sync Gmail", "details": exc.detail},
            )
        except httpx.HTTPError as exc:
            return JSONResponse(
                status_code=500,
                content={"error": "Failed to sync Gmail", "details": str(exc)},
            )
        pipeline.apply_email_matches(result.matches)
        return {"success": True, **result.model_dump(mode="json")}

    # ------------------------------------------------------------------
    # API — Status
    # ------------------------------------------------------------------

    @app.get("/api/status")
    async def status() -> dict[str, Any]:
        s = get_settings()
        return {
            "investors": len(get_pipeline().investors),
            "remote_enabled": s.remote_enabled,
            "apollo_configured": bool(s.apollo_api_key),
            "anthropic_configured": bool(s.anthropic_api_key),
            "gmail_configured": bool(s.gmail_access_token),
        }

    return app

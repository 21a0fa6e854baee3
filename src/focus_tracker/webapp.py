"""FastAPI application exposing the focus tracker as a local API."""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from .config import TrackerSettings
from .models import CategorisationConfig, ClassifiedActivity, Observation
from .paths import get_db_path
from .service import FocusTrackerService
from .tracker import describe

logger = logging.getLogger(__name__)


class ObservationPayload(BaseModel):
    app_name: str
    origin: Literal["system", "extension"] = "system"
    source: Literal["app", "url"] = "app"
    timestamp: Optional[datetime] = None
    bundle_id: Optional[str] = None
    window_title: Optional[str] = None
    url: Optional[str] = None
    domain: Optional[str] = None
    idle_seconds: float = Field(default=0.0, ge=0)

    model_config = ConfigDict(extra="forbid")


class CategorisationPayload(BaseModel):
    productive: list[str] = Field(default_factory=list)
    neutral: list[str] = Field(default_factory=list)
    frivolity: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class SettingsUpdate(BaseModel):
    categorisation: Optional[CategorisationPayload] = None
    idle_threshold: Optional[float] = None
    frivolous_idle_threshold: Optional[float] = None
    continuity_window_seconds: Optional[float] = None
    excluded_keywords: Optional[list[str]] = None

    model_config = ConfigDict(extra="forbid")


class PinnedPayload(BaseModel):
    ids: list[str]

    model_config = ConfigDict(extra="forbid")


class RemoteEarnedPayload(BaseModel):
    id: str
    earned_at: datetime
    meta: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="forbid")


class ProfilePayload(BaseModel):
    profile: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    service: Optional[FocusTrackerService] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    tracker_service = service or FocusTrackerService.open(
        resolved_db_path, settings=settings or TrackerSettings()
    )

    app = FastAPI(title="Focus Tracker", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.service = tracker_service

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        tracker_service.stop()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        svc: FocusTrackerService = request.app.state.service
        return {
            "database_path": str(request.app.state.db_path),
            "current": describe(svc.tracker.current),
            "evaluation_pending": svc.trophies.evaluation_pending,
            "gap_ceiling_seconds": svc.settings.gap_ceiling.total_seconds(),
        }

    @app.post("/api/activity")
    def report_activity(payload: ObservationPayload, request: Request) -> Dict[str, Any]:
        svc: FocusTrackerService = request.app.state.service
        observation = Observation(
            timestamp=_naive_local(payload.timestamp) if payload.timestamp else svc.clock(),
            app_name=payload.app_name,
            source=payload.source,
            bundle_id=payload.bundle_id,
            window_title=payload.window_title,
            url=payload.url,
            domain=payload.domain,
            idle_seconds=payload.idle_seconds,
        )
        activity = svc.handle_activity(observation, payload.origin)
        if activity is None:
            return {"accepted": False, "activity": None}
        return {"accepted": True, "activity": _activity_payload(activity)}

    @app.get("/api/activities/recent")
    def recent(request: Request, limit: int = Query(default=50, ge=1, le=500)) -> Dict[str, Any]:
        svc: FocusTrackerService = request.app.state.service
        return {
            "activities": [dataclasses.asdict(record) for record in svc.tracker.get_recent(limit)]
        }

    @app.get("/api/summary")
    def summary(
        request: Request,
        window_hours: float = Query(default=24, description="Window length in hours (1-168)."),
    ) -> Dict[str, Any]:
        svc: FocusTrackerService = request.app.state.service
        return dataclasses.asdict(svc.tracker.get_summary(window_hours))

    @app.get("/api/journey")
    def journey(
        request: Request,
        window_hours: float = Query(default=24, description="Window length in hours (1-168)."),
    ) -> Dict[str, Any]:
        svc: FocusTrackerService = request.app.state.service
        return dataclasses.asdict(svc.tracker.get_journey(window_hours))

    @app.get("/api/analytics/overview")
    def analytics_overview(request: Request, days: int = Query(default=7, ge=1, le=90)):
        svc: FocusTrackerService = request.app.state.service
        return dataclasses.asdict(svc.analytics.get_overview(days))

    @app.get("/api/analytics/time-of-day")
    def analytics_time_of_day(request: Request, days: int = Query(default=7, ge=1, le=90)):
        svc: FocusTrackerService = request.app.state.service
        return {"hours": [dataclasses.asdict(row) for row in svc.analytics.get_time_of_day(days)]}

    @app.get("/api/settings")
    def read_settings(request: Request) -> Dict[str, Any]:
        return _settings_payload(request.app.state.service)

    @app.patch("/api/settings")
    def update_settings(payload: SettingsUpdate, request: Request) -> Dict[str, Any]:
        svc: FocusTrackerService = request.app.state.service
        settings_service = svc.settings_service
        try:
            if payload.categorisation is not None:
                settings_service.set_categorisation(
                    CategorisationConfig(**payload.categorisation.model_dump())
                )
            if payload.idle_threshold is not None:
                settings_service.set_idle_threshold(payload.idle_threshold)
            if payload.frivolous_idle_threshold is not None:
                settings_service.set_frivolous_idle_threshold(payload.frivolous_idle_threshold)
            if payload.continuity_window_seconds is not None:
                settings_service.set_continuity_window_seconds(payload.continuity_window_seconds)
            if payload.excluded_keywords is not None:
                settings_service.set_excluded_keywords(payload.excluded_keywords)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _settings_payload(svc)

    @app.get("/api/trophies")
    def trophies(request: Request) -> Dict[str, Any]:
        svc: FocusTrackerService = request.app.state.service
        return {"trophies": [status.to_dict() for status in svc.trophies.list_statuses()]}

    @app.get("/api/trophies/earned")
    def trophies_earned(request: Request) -> Dict[str, Any]:
        svc: FocusTrackerService = request.app.state.service
        return {
            "earned": [
                {"id": row.id, "earned_at": row.earned_at.isoformat() if row.earned_at else None}
                for row in svc.trophies.list_earned()
            ]
        }

    @app.post("/api/trophies/profile")
    def trophy_profile(payload: ProfilePayload, request: Request) -> Dict[str, Any]:
        svc: FocusTrackerService = request.app.state.service
        return dataclasses.asdict(svc.trophies.get_profile_summary(payload.profile))

    @app.put("/api/trophies/pinned")
    def pin_trophies(payload: PinnedPayload, request: Request) -> Dict[str, Any]:
        svc: FocusTrackerService = request.app.state.service
        return {"pinned": svc.trophies.set_pinned(payload.ids)}

    @app.post("/api/trophies/remote")
    def remote_earned(payload: RemoteEarnedPayload, request: Request) -> Dict[str, Any]:
        svc: FocusTrackerService = request.app.state.service
        updated = svc.trophies.upsert_remote_earned(
            payload.id, _naive_local(payload.earned_at), payload.meta
        )
        return {"updated": updated}

    @app.post("/api/trophies/reset")
    def reset_trophies(request: Request) -> Dict[str, Any]:
        svc: FocusTrackerService = request.app.state.service
        svc.trophies.reset_local()
        return {"reset": True}

    return app


def _naive_local(value: datetime) -> datetime:
    """Timestamps are stored as naive local time."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _activity_payload(activity: ClassifiedActivity) -> Dict[str, Any]:
    return {
        "timestamp": activity.timestamp.isoformat(),
        "app_name": activity.app_name,
        "source": activity.source,
        "domain": activity.domain,
        "category": activity.category,
        "is_idle": activity.is_idle,
        "idle_threshold_seconds": activity.idle_threshold_seconds,
        "continuity_applied": activity.continuity_applied,
    }


def _settings_payload(svc: FocusTrackerService) -> Dict[str, Any]:
    settings_service = svc.settings_service
    return {
        "categorisation": settings_service.get_categorisation().to_dict(),
        "idle_threshold": settings_service.get_idle_threshold(),
        "frivolous_idle_threshold": settings_service.get_frivolous_idle_threshold(),
        "continuity_window_seconds": settings_service.get_continuity_window_seconds(),
        "excluded_keywords": settings_service.get_excluded_keywords(),
    }

from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from alerts.transport import TransportError
from app.logging_setup import configure_logging
from app.services import Services, build_services
from app.settings import Settings
from geo.resolver import active_in_country, available_countries
from store.db import close_database, open_database, to_iso
from store.models import CountryTopic, Subscription


logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()
    configure_logging(settings.log_level)
    db = open_database(settings.db_path)
    client = httpx.AsyncClient(follow_redirects=True)
    services = build_services(settings, db, client)
    services.detector.initialize()

    app.state.settings = settings
    app.state.db = db
    app.state.services = services

    if settings.scheduler_enabled:
        services.scheduler.start()
    else:
        logger.info("scheduler disabled; use the /api/sync and /api/alerts routes")
    try:
        yield
    finally:
        await services.scheduler.stop()
        await client.aclose()
        close_database(db)


app = FastAPI(lifespan=lifespan)


def _services(request: Request) -> Services:
    return request.app.state.services


def _topic_dict(topic: CountryTopic) -> dict:
    return {
        "country": topic.country,
        "topic_handle": topic.topic_handle,
        "disaster_count": topic.disaster_count,
        "updated_at": to_iso(topic.updated_at) if topic.updated_at else None,
    }


def _subscription_dict(sub: Subscription) -> dict:
    return {
        "email": sub.email,
        "country": sub.country,
        "subscription_handle": sub.subscription_handle,
        "status": sub.status,
        "subscribed_at": to_iso(sub.subscribed_at),
        "unsubscribed_at": to_iso(sub.unsubscribed_at) if sub.unsubscribed_at else None,
    }


class SubscriptionRequest(BaseModel):
    email: str = Field(min_length=3, max_length=254)
    country: str = Field(min_length=1, max_length=100)


@app.post("/api/sync")
async def api_sync_all(request: Request) -> JSONResponse:
    logger.info("manual sync triggered")
    summary = await _services(request).scheduler.run_sync_now()
    return JSONResponse(
        {
            "success": summary.success,
            "message": "Disaster data sync completed",
            "data": summary.as_dict(),
        }
    )


@app.post("/api/sync/{disaster_type}")
async def api_sync_type(request: Request, disaster_type: str) -> JSONResponse:
    valid = _services(request).orchestrator.disaster_types
    if disaster_type not in valid:
        return JSONResponse(
            {
                "success": False,
                "message": f"Invalid disaster type. Must be one of: {', '.join(valid)}",
            },
            status_code=400,
        )

    logger.info("manual sync triggered for %s", disaster_type)
    result = await _services(request).scheduler.run_sync_for_type(disaster_type)
    if not result.success:
        return JSONResponse(
            {
                "success": False,
                "message": f"Failed to sync {disaster_type} data",
                "error": result.error,
            },
            status_code=500,
        )
    return JSONResponse(
        {
            "success": True,
            "message": f"{disaster_type} data sync completed",
            "data": result.as_dict(),
        }
    )


@app.get("/api/sync/status")
def api_sync_status(request: Request) -> JSONResponse:
    services = _services(request)
    return JSONResponse(
        {
            "scheduler": services.scheduler.status(),
            **services.orchestrator.status(),
            "processed": len(services.processed),
        }
    )


@app.post("/api/alerts/run")
async def api_alerts_run(request: Request) -> JSONResponse:
    result = await _services(request).scheduler.run_alerts_now()
    if result is None:
        return JSONResponse({"error": "already_running"}, status_code=409)
    return JSONResponse(result.as_dict())


@app.get("/api/topics")
def api_topics(request: Request) -> JSONResponse:
    return JSONResponse([_topic_dict(t) for t in _services(request).topics.list_topics()])


@app.get("/api/topics/countries")
async def api_countries(request: Request) -> JSONResponse:
    services = _services(request)
    countries = await available_countries(services.resolver, services.store.list_active())
    return JSONResponse(countries)


@app.get("/api/subscriptions")
def api_subscriptions(request: Request, email: str) -> JSONResponse:
    subs = _services(request).topics.subscriptions_for(email.strip().lower())
    return JSONResponse([_subscription_dict(s) for s in subs])


@app.post("/api/subscriptions")
async def api_subscribe(request: Request, body: SubscriptionRequest) -> JSONResponse:
    email = body.email.strip().lower()
    if not _EMAIL_RE.match(email):
        return JSONResponse({"error": "invalid_email"}, status_code=400)

    services = _services(request)
    country = body.country.strip()
    active = await active_in_country(services.resolver, services.store.list_active(), country)
    try:
        sub = await services.topics.subscribe(email, country, active=active)
    except TransportError as e:
        logger.error("subscription for %s failed: %s", country, e)
        return JSONResponse({"error": "transport_error"}, status_code=502)
    return JSONResponse(
        {**_subscription_dict(sub), "active_disasters": len(active)}, status_code=201
    )


@app.delete("/api/subscriptions/{subscription_handle}")
async def api_unsubscribe(request: Request, subscription_handle: str) -> JSONResponse:
    found = await _services(request).topics.unsubscribe(subscription_handle)
    if not found:
        return JSONResponse({"error": "not_found"}, status_code=404)
    return JSONResponse({"success": True})

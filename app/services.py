from __future__ import annotations

from dataclasses import dataclass

import httpx

from alerts.detector import NewEventDetector
from alerts.dispatcher import AlertDispatcher
from alerts.job import AlertJob
from alerts.processed import ProcessedSet
from alerts.topics import TopicManager
from alerts.transport import NotificationTransport, OutboxTransport
from app.settings import Settings
from geo.geocoder import Geocoder, NominatimGeocoder, RateLimiter, TTLCache
from geo.resolver import CountryResolver
from ingest.orchestrator import FetchOrchestrator
from ingest.scheduler import Scheduler
from ingest.sources.base import SourceFetcher
from ingest.sources.earthquake import EarthquakeFetcher
from ingest.sources.fire import FireFeed, FireFetcher, FirmsFireFeed, SampleFireFeed
from ingest.sources.gdacs import CycloneFetcher, FloodFetcher
from store.db import Database
from store.disasters import DisasterStore
from store.topics import TopicStore


@dataclass(frozen=True)
class Services:
    store: DisasterStore
    resolver: CountryResolver
    orchestrator: FetchOrchestrator
    processed: ProcessedSet
    detector: NewEventDetector
    topics: TopicManager
    alert_job: AlertJob
    scheduler: Scheduler


def build_fetchers(
    settings: Settings, db: Database, client: httpx.AsyncClient
) -> list[SourceFetcher]:
    timeout = settings.http_timeout_seconds
    firms_key = (settings.firms_api_key or "").strip()
    fire_feed: FireFeed
    if firms_key:
        fire_feed = FirmsFireFeed(
            client,
            api_key=firms_key,
            user_agent=settings.user_agent,
            timeout_seconds=timeout,
        )
        fire_source = "firms_hotspots"
    else:
        fire_feed = SampleFireFeed()
        fire_source = "sample_fires"

    return [
        EarthquakeFetcher(
            db=db,
            client=client,
            url=settings.usgs_feed_url,
            user_agent=settings.user_agent,
            timeout_seconds=timeout,
            min_magnitude=settings.min_earthquake_magnitude,
            max_attempts=settings.usgs_max_attempts,
            retry_delay_seconds=settings.usgs_retry_delay_seconds,
        ),
        FloodFetcher(
            db=db,
            client=client,
            url=settings.gdacs_feed_url,
            user_agent=settings.user_agent,
            timeout_seconds=timeout,
        ),
        FireFetcher(db=db, feed=fire_feed, source_id=fire_source),
        CycloneFetcher(
            db=db,
            client=client,
            url=settings.gdacs_feed_url,
            user_agent=settings.user_agent,
            timeout_seconds=timeout,
        ),
    ]


def build_services(
    settings: Settings,
    db: Database,
    client: httpx.AsyncClient,
    *,
    transport: NotificationTransport | None = None,
    geocoder: Geocoder | None = None,
    fetchers: list[SourceFetcher] | None = None,
) -> Services:
    store = DisasterStore(db)
    if geocoder is None:
        geocoder = NominatimGeocoder(
            client, url=settings.geocoder_url, user_agent=settings.user_agent
        )
    resolver = CountryResolver(
        geocoder,
        rate_limiter=RateLimiter(settings.geocode_min_interval_seconds),
        cache=TTLCache(settings.geocode_cache_ttl_seconds),
    )

    orchestrator = FetchOrchestrator(
        db=db,
        fetchers=fetchers if fetchers is not None else build_fetchers(settings, db, client),
    )

    processed = ProcessedSet()
    detector = NewEventDetector(store=store, processed=processed)
    topics = TopicManager(
        store=TopicStore(db),
        transport=transport if transport is not None else OutboxTransport(db),
        prefix=settings.topic_prefix,
    )
    alert_job = AlertJob(
        store=store,
        resolver=resolver,
        detector=detector,
        dispatcher=AlertDispatcher(topics=topics, processed=processed),
    )
    scheduler = Scheduler(
        orchestrator=orchestrator,
        alert_job=alert_job,
        sync_interval_seconds=settings.sync_interval_seconds,
        alert_interval_seconds=settings.alert_interval_seconds,
        alert_initial_delay_seconds=settings.alert_initial_delay_seconds,
    )
    return Services(
        store=store,
        resolver=resolver,
        orchestrator=orchestrator,
        processed=processed,
        detector=detector,
        topics=topics,
        alert_job=alert_job,
        scheduler=scheduler,
    )

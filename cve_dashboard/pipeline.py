"""Ingestion pipeline: feeds, enrichment, aggregation."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from .aggregate import build_snapshot
from .cache import utc_now
from .config import GEMINI_KEY_ENV, NVD_KEY_ENV, app_setting, feed_configs, get_api_key
from .enrichment import EnrichmentStage
from .fetchers import rss
from .fetchers.nvd import NVD_API_BASE, NvdClient
from .genai import GeminiClient
from .mitigation import GeminiSuggester
from .models import Article, DashboardSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineRun:
    """Enriched articles and the snapshot computed from them."""

    articles: Tuple[Article, ...]
    snapshot: DashboardSnapshot


class ThreatPipeline:
    """Runs every feed adapter, enriches their CVEs and aggregates the result."""

    def __init__(
        self,
        sources: List[rss.FeedSource],
        enrichment: EnrichmentStage,
        timeout: float = 20,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.sources = sources
        self.enrichment = enrichment
        self.timeout = timeout
        self.clock = clock

    async def collect(self) -> List[Article]:
        articles = await rss.fetch_all(self.sources, timeout=self.timeout)
        logger.info(f"Found {len(articles)} CVE-bearing articles across {len(self.sources)} sources")
        return await self.enrichment.enrich(articles)

    def articles(self) -> List[Article]:
        """Blocking entry point: run one full collection."""
        return asyncio.run(self.collect())

    def snapshot(self, articles: Optional[List[Article]] = None) -> DashboardSnapshot:
        if articles is None:
            articles = self.articles()
        snapshot = build_snapshot(articles, self.clock())
        logger.info(
            f"Snapshot: {snapshot.total_threats} threats, {snapshot.cves_monitored} CVEs, "
            f"{snapshot.critical_threats} critical"
        )
        return snapshot

    def run(self) -> PipelineRun:
        articles = self.articles()
        return PipelineRun(articles=tuple(articles), snapshot=self.snapshot(articles))


def build_pipeline(config: dict, clock: Callable[[], datetime] = utc_now) -> ThreatPipeline:
    """Wire the pipeline from configuration and environment API keys."""
    timeout = float(app_setting(config, "http_timeout", 20))
    nvd_config = config.get("nvd") or {}
    gemini_config = config.get("gemini") or {}

    lookup = NvdClient(
        api_key=get_api_key(config, "nvd", NVD_KEY_ENV),
        base_url=nvd_config.get("base_url", NVD_API_BASE),
        timeout=timeout,
    )

    gemini_key = get_api_key(config, "gemini", GEMINI_KEY_ENV)
    suggester = None
    if gemini_key:
        client = GeminiClient(
            gemini_key,
            model=gemini_config.get("model", "gemini-2.0-flash"),
            timeout=timeout,
        )
        suggester = GeminiSuggester(client)
    else:
        logger.warning("Gemini API key not set, using fallback mitigation suggestions")

    sources = []
    for feed in feed_configs(config):
        name = feed.get("name", "Unknown")
        url = feed.get("url")
        if not url:
            logger.warning(f"Skipping RSS feed {name}: no URL")
            continue
        sources.append(rss.FeedSource(name=name, url=url))

    enrichment = EnrichmentStage(
        lookup,
        suggester,
        max_concurrency=int(app_setting(config, "max_concurrency", 8)),
    )
    return ThreatPipeline(sources, enrichment, timeout=timeout, clock=clock)

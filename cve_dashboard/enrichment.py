"""Resolve extracted CVE ids and attach mitigation steps."""

import asyncio
import logging
from dataclasses import replace
from typing import Dict, List, Optional, Protocol

from .fetchers.nvd import LookupFailed
from .genai import GenerationError
from .mitigation import fallback_mitigations
from .models import Article, CVERecord
from .scoring import determine_threat_level

logger = logging.getLogger(__name__)


class VulnerabilityLookup(Protocol):
    def lookup(self, cve_id: str) -> Optional[CVERecord]:
        """Return the record, None when unknown, or raise LookupFailed."""


class MitigationSuggester(Protocol):
    def suggest(self, cve_id: str, description: str) -> List[str]:
        """Return ordered mitigation steps or raise GenerationError."""


class EnrichmentStage:
    """
    Looks up every unique CVE once and asks for mitigation steps.

    Lookups for different ids run concurrently in worker threads, bounded
    by ``max_concurrency``. For a single id the database lookup always
    finishes before the mitigation request, which needs its description.
    Without a suggester every CVE gets the static fallback steps.
    """

    def __init__(
        self,
        lookup: VulnerabilityLookup,
        suggester: Optional[MitigationSuggester] = None,
        max_concurrency: int = 8,
    ):
        self.lookup = lookup
        self.suggester = suggester
        self.max_concurrency = max(1, max_concurrency)

    def _mitigations(self, record: CVERecord) -> List[str]:
        if self.suggester is None:
            return fallback_mitigations(record.description)
        try:
            steps = self.suggester.suggest(record.id, record.description)
            logger.debug(f"Got mitigation suggestions for {record.id}")
            return steps
        except GenerationError as e:
            logger.warning(f"Error getting mitigation suggestions for {record.id}: {e}")
            return fallback_mitigations(record.description)
        except Exception:
            logger.exception(f"Unexpected error getting mitigation suggestions for {record.id}")
            return fallback_mitigations(record.description)

    def _resolve_one(self, cve_id: str) -> Optional[CVERecord]:
        try:
            record = self.lookup.lookup(cve_id)
        except LookupFailed as e:
            logger.error(f"Error fetching CVE details for {cve_id}: {e}")
            return None
        except Exception:
            logger.exception(f"Unexpected error fetching CVE details for {cve_id}")
            return None
        if record is None:
            return None
        if record.description:
            record = replace(record, mitigation=self._mitigations(record))
        return record

    async def resolve(self, cve_ids: List[str]) -> Dict[str, CVERecord]:
        """Resolve ids concurrently; ids that fail or are unknown are left out."""
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(cve_id: str) -> Optional[CVERecord]:
            async with semaphore:
                return await asyncio.to_thread(self._resolve_one, cve_id)

        unique_ids = list(dict.fromkeys(cve_ids))
        results = await asyncio.gather(*(bounded(cve_id) for cve_id in unique_ids))
        return {cve_id: record for cve_id, record in zip(unique_ids, results) if record is not None}

    async def enrich(self, articles: List[Article]) -> List[Article]:
        """
        Attach resolved CVE records to each article and re-derive its
        threat-level tag from them.

        Articles are never dropped; one whose CVEs all fail to resolve keeps
        an empty ``cves`` list.
        """
        all_ids = [cve_id for article in articles for cve_id in article.cve_ids]
        records = await self.resolve(all_ids)
        logger.info(f"Resolved {len(records)} of {len(set(all_ids))} CVEs")

        enriched = []
        for article in articles:
            cves = [replace(records[cve_id]) for cve_id in article.cve_ids if cve_id in records]
            threat_level = determine_threat_level(article.title, cves)
            logger.debug(f"Threat level {threat_level.value} for '{article.title[:60]}'")
            enriched.append(replace(article, cves=cves, threat_level=threat_level))
        return enriched

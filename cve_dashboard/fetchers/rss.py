"""RSS feed fetcher."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Union

import feedparser
import requests
from dateutil import parser as date_parser

from ..extraction import extract_cves
from ..models import Article
from ..scoring import initial_threat_level

logger = logging.getLogger(__name__)

USER_AGENT = "cve-dashboard/1.0"


@dataclass(frozen=True)
class FeedSource:
    name: str
    url: str


def parse_date(date_str: str) -> datetime:
    """Parse a date string to an aware datetime, handling various formats."""
    try:
        parsed = date_parser.parse(date_str)
    except (ValueError, TypeError, OverflowError) as e:
        logger.warning(f"Failed to parse date '{date_str}': {e}, using current time")
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_feed(content: Union[str, bytes], source_name: str) -> List[Article]:
    """
    Parse RSS/Atom content into articles.

    Entries mentioning no CVE are dropped. Each kept article carries the
    extracted CVE ids and a threat-level tag taken from its title.

    Args:
        content: Raw feed document
        source_name: Name of the feed source

    Returns:
        List of Article objects
    """
    feed = feedparser.parse(content)

    if feed.bozo and feed.bozo_exception:
        logger.warning(f"RSS feed parsing warning for {source_name}: {feed.bozo_exception}")

    articles = []

    if not feed.entries:
        logger.warning(f"No entries found in RSS feed: {source_name}")
        return articles

    for entry in feed.entries:
        try:
            title = entry.get("title", "Untitled").strip()

            description = entry.get("summary", "") or entry.get("description", "")
            if not description and entry.get("content"):
                description = entry.content[0].get("value", "")
            description = description.strip()

            link = entry.get("link", "") or entry.get("id", "")

            published_str = entry.get("published", "") or entry.get("updated", "")
            published_at = parse_date(published_str) if published_str else datetime.now(timezone.utc)

            cve_ids = extract_cves(f"{title} {description}")
            if not cve_ids:
                continue

            articles.append(
                Article(
                    title=title,
                    description=description,
                    link=link,
                    source=source_name,
                    published_at=published_at,
                    threat_level=initial_threat_level(title),
                    cve_ids=cve_ids,
                )
            )
            logger.debug(f"{source_name}: {len(cve_ids)} CVEs in '{title[:60]}'")

        except Exception as e:
            logger.error(f"Error processing RSS entry from {source_name}: {e}")
            continue

    logger.info(f"Parsed {len(articles)} CVE-bearing items from {source_name}")
    return articles


def fetch_rss(source: FeedSource, timeout: float = 20) -> List[Article]:
    """
    Fetch and parse one feed.

    Network and parse failures are logged and yield an empty list so one
    broken source never stops the others.
    """
    logger.debug(f"Fetching RSS feed: {source.name} from {source.url}")

    try:
        response = requests.get(source.url, headers={"User-Agent": USER_AGENT}, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error(f"Error fetching RSS feed {source.name} from {source.url}: {e}")
        return []

    try:
        return parse_feed(response.content, source.name)
    except Exception as e:
        logger.error(f"Error parsing RSS feed {source.name}: {e}")
        return []


async def fetch_all(sources: List[FeedSource], timeout: float = 20) -> List[Article]:
    """Fetch every source concurrently and concatenate the results."""
    results = await asyncio.gather(
        *(asyncio.to_thread(fetch_rss, source, timeout) for source in sources)
    )
    articles = []
    for source, items in zip(sources, results):
        logger.info(f"Fetched {len(items)} items from {source.name}")
        articles.extend(items)
    return articles

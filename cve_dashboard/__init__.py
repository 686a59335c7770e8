"""CVE threat dashboard: feed aggregation, CVE enrichment and statistics."""

__version__ = "0.1.0"

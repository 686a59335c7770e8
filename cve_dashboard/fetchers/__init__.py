"""Outbound data sources: threat feeds and the vulnerability database."""

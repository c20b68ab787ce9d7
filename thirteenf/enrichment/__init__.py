"""Sector enrichment."""

from .sector_enrichment import SectorEnricher, cache_key

__all__ = ["SectorEnricher", "cache_key"]

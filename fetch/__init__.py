"""
Fetch Module

Artifact fetching for the sandbox module registry.

This module provides:
- Unified BaseFetcher interface
- urllib-based fetcher for http(s), file:// and local paths
- Deterministic fake fetcher for offline use
- Retry logic and SQLite-backed artifact caching
"""

__version__ = "0.1.0"

"""
Playground Module

Configuration and tooling around the documentation sandbox.

This module provides:
- Pydantic configuration schemas loaded from YAML
- Snippet extraction from markdown pages
- Shareable snippet tokens
- Typer CLI for running snippets outside the browser
"""

__version__ = "0.1.0"

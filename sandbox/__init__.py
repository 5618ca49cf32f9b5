"""
Sandbox Module

Import interception for documentation snippets.

This module provides:
- A registry of interceptable module names and their artifact locations
- Isolated evaluation of fetched library artifacts
- Stub (.pyi) declaration registration for the editor's type checker
- A replacement __import__ and an in-process snippet runner

WARNING: This sandbox is NOT a security boundary. Snippets run in-process
with the host's privileges; only imports and printing are redirected.
"""

__version__ = "0.1.0"

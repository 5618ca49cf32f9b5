"""
Console Module

Safe rendering of snippet output.

This module provides:
- A recursive value formatter producing bounded, collapsible HTML
- Cycle detection scoped to one formatting call
- A fake console (log/warn/error) that appends rendered blocks to a surface
- Debounced wiring of expand/collapse handlers
"""

__version__ = "0.1.0"

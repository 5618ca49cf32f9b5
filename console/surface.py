"""HTML display surface for rendered console blocks."""

from __future__ import annotations

import html
from pathlib import Path
from string import Template
from typing import Protocol

ARROW_MARKUP = '<span class="collapsible-arrow">'
WIRED_ARROW_MARKUP = '<span class="collapsible-arrow" onclick="toggleCollapsible(this)">'

PAGE_TEMPLATE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>$title</title>
<style>
body { font-family: ui-monospace, SFMono-Regular, Menlo, monospace; font-size: 13px; }
.console-log, .console-warn, .console-error { padding: 2px 6px; border-bottom: 1px solid #eee; white-space: pre-wrap; }
.console-warn { background: #fffbe6; }
.console-error { background: #fff0f0; }
.key { color: #881391; }
.string { color: #c41a16; }
.number, .boolean { color: #1c00cf; }
.null, .undefined, .circular, .more { color: #808080; }
.function { color: #0d22aa; font-style: italic; }
.error { color: #c41a16; }
.collapsible-arrow { cursor: pointer; user-select: none; display: inline-block; width: 1em; }
.collapsible-content { display: none; margin-left: 1.5em; }
.collapsible.open > .collapsible-content { display: block; }
.collapsible.open > .collapsible-preview { display: none; }
</style>
<script>
function toggleCollapsible(arrow) {
  arrow.parentElement.classList.toggle('open');
  arrow.textContent = arrow.textContent === '+' ? '-' : '+';
}
</script>
</head>
<body>
<div class="console-output">
$body
</div>
</body>
</html>
""")


class OutputSurface(Protocol):
    def append(self, markup: str) -> None: ...

    def attach_toggles(self) -> int: ...


class HtmlSurface:
    """Append-only list of rendered blocks with lazily wired toggles."""

    def __init__(self) -> None:
        self.blocks: list[str] = []
        self._wired = 0

    def append(self, markup: str) -> None:
        self.blocks.append(markup)

    def attach_toggles(self) -> int:
        """Wire the expand/collapse handler on blocks appended since the last pass."""
        start = self._wired
        for index in range(start, len(self.blocks)):
            self.blocks[index] = self.blocks[index].replace(ARROW_MARKUP, WIRED_ARROW_MARKUP)
        self._wired = len(self.blocks)
        return self._wired - start

    @property
    def pending_toggles(self) -> int:
        return len(self.blocks) - self._wired

    @property
    def markup(self) -> str:
        return "\n".join(self.blocks)

    def render_page(self, title: str = "Sandbox output") -> str:
        return PAGE_TEMPLATE.substitute(title=html.escape(title), body=self.markup)

    def write(self, path: str | Path, title: str = "Sandbox output") -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        _ = path.write_text(self.render_page(title), encoding="utf-8")
        return path

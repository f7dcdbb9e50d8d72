"""Rich-powered view of orchestrator progress."""

from __future__ import annotations

from dataclasses import dataclass, field

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sitepublish.core import LocalRepoStatus, OrchestratorSnapshot, PublishResult

_RESULT_STYLES = {
    "success": "green",
    "fail": "red",
    "terminated": "yellow",
}

_STATUS_LABELS = {
    LocalRepoStatus.READY: "ready",
    LocalRepoStatus.FAIL: "failed",
    LocalRepoStatus.INITIALIZING: "initializing",
    LocalRepoStatus.MISSING_REPOSITORY: "repository missing",
}


def _result_text(result: str | PublishResult | None) -> Text:
    if result is None:
        return Text("-", style="dim")
    value = result.value if isinstance(result, PublishResult) else str(result)
    return Text(value, style=_RESULT_STYLES.get(value, ""))


def render_snapshot(snapshot: OrchestratorSnapshot) -> RenderableType:
    """Render an orchestrator snapshot as a panel."""

    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()

    generating = snapshot.generating_progress
    pages = ""
    if generating.total_pages:
        pages = f" ({generating.generated_pages or 0}/{generating.total_pages} pages)"
    table.add_row(
        "generate",
        Text.assemble(
            "running" if snapshot.is_generating else "idle",
            pages,
            " | ",
            _result_text(generating.result),
            f" {generating.message}".rstrip(),
        ),
    )

    publishing = snapshot.publishing_progress
    percent = (
        f" {publishing.total_progress}%" if publishing.total_progress is not None else ""
    )
    table.add_row(
        "publish",
        Text.assemble(
            "running" if snapshot.is_publishing else "idle",
            f" | {publishing.phase or '-'}{percent} | ",
            _result_text(publishing.result),
            f" {publishing.message}".rstrip(),
        ),
    )
    table.add_row(
        "repository",
        f"{snapshot.repository_name or '-'} ({_STATUS_LABELS[snapshot.local_repo_status]})",
    )
    if not snapshot.is_credential_valid:
        table.add_row("credentials", Text("incomplete", style="red"))

    return Panel(Group(table), title="Sitepublish", border_style="#005a69")


@dataclass(slots=True)
class ProgressView:
    """Live-updating console view fed with orchestrator snapshots."""

    console: Console = field(default_factory=Console)
    enabled: bool = True
    refresh_per_second: float = 4.0
    _snapshot: OrchestratorSnapshot | None = field(default=None, init=False)
    _live: Live | None = field(default=None, init=False)

    def __enter__(self) -> ProgressView:
        if self.enabled:
            self._live = Live(console=self.console, refresh_per_second=self.refresh_per_second)
            self._live.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._live is not None:
            self._live.__exit__(exc_type, exc, tb)
            self._live = None

    @property
    def snapshot(self) -> OrchestratorSnapshot | None:
        return self._snapshot

    def update(self, snapshot: OrchestratorSnapshot) -> None:
        self._snapshot = snapshot
        if self._live is not None:
            self._live.update(render_snapshot(snapshot), refresh=True)

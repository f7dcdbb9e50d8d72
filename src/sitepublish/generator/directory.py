"""Site generator that assembles the output directory from a content tree."""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from sitepublish.core.errors import GenerationError
from sitepublish.core.events import EventEmitter, GeneratorEvents


@dataclass(slots=True)
class DirectorySiteGenerator:
    """Copy every visible file under ``source_dir`` into a fresh ``output_dir``.

    Emits one ``PAGE_GENERATED`` event per copied file.
    """

    source_dir: Path
    output_dir: Path
    logger: logging.Logger
    events: EventEmitter = field(default_factory=EventEmitter, init=False, repr=False)

    async def get_output_dir(self) -> str:
        return str(self.output_dir.resolve())

    async def generate_site(self) -> list[str]:
        if not self.source_dir.is_dir():
            raise GenerationError(f"Source directory not found: {self.source_dir}")

        sources = _collect_sources(self.source_dir)
        total = len(sources)
        self.logger.debug("Generating %d files from %s", total, self.source_dir)

        try:
            await asyncio.to_thread(_reset_directory, self.output_dir)
            generated: list[str] = []
            for index, source in enumerate(sources, start=1):
                relative = source.relative_to(self.source_dir)
                await asyncio.to_thread(_copy_file, source, self.output_dir / relative)
                generated.append(relative.as_posix())
                self.events.emit(
                    GeneratorEvents.PAGE_GENERATED,
                    {"generated_pages": index, "total_pages": total},
                )
        except OSError as exc:
            raise GenerationError(f"Unable to write generated site: {exc}") from exc

        return generated


def _collect_sources(root: Path) -> list[Path]:
    return sorted(
        path
        for path in root.rglob("*")
        if path.is_file()
        and not any(part.startswith(".") for part in path.relative_to(root).parts)
    )


def _reset_directory(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)


def _copy_file(source: Path, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, destination)

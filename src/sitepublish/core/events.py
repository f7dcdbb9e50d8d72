"""Typed event registration used between the orchestrator and its collaborators."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class GeneratorEvents(str, Enum):
    PAGE_GENERATED = "page_generated"


class GitEvents(str, Enum):
    PROGRESS = "progress"
    MESSAGE = "message"
    LOCAL_REPO_STATUS_CHANGED = "local_repo_status_changed"


class RemoteHostEvents(str, Enum):
    INFO_CHANGED = "info_changed"


class OrchestratorEvents(str, Enum):
    STATE_CHANGED = "state_changed"


class EventEmitter:
    """Deliver events to listeners synchronously, in registration order.

    A failing listener is logged and skipped; the remaining listeners still receive the
    event.
    """

    def __init__(self) -> None:
        self._listeners: dict[Enum, list[Listener]] = {}

    def on(self, event: Enum, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unregisters it."""

        self._listeners.setdefault(event, []).append(listener)
        return lambda: self.off(event, listener)

    def off(self, event: Enum, listener: Listener) -> None:
        listeners = self._listeners.get(event)
        if not listeners:
            return
        try:
            listeners.remove(listener)
        except ValueError:
            return

    def emit(self, event: Enum, *args: Any) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(*args)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Listener %r failed while handling %s", listener, event.value)

    def listener_count(self, event: Enum) -> int:
        return len(self._listeners.get(event, ()))

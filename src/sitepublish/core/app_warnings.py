"""Application warnings that can forbid user actions while they are active."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Forbidden(str, Enum):
    GENERATE = "generate"
    PUBLISH = "publish"


@dataclass(slots=True, frozen=True)
class AppWarning:
    message: str
    forbidden: frozenset[Forbidden] = frozenset()
    raised_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


@dataclass(slots=True)
class WarningCenter:
    """Keeps the active warnings, newest last."""

    logger: logging.Logger | None = None
    _warnings: list[AppWarning] = field(default_factory=list, init=False, repr=False)

    def raise_warning(self, message: str, forbidden: Iterable[Forbidden] = ()) -> AppWarning:
        warning = AppWarning(message=message, forbidden=frozenset(forbidden))
        self._warnings.append(warning)
        if self.logger is not None:
            self.logger.warning(
                "%s (forbids: %s)",
                message,
                ", ".join(sorted(item.value for item in warning.forbidden)) or "nothing",
            )
        return warning

    def clear(self, warning: AppWarning | None = None) -> None:
        """Drop one warning, or all of them when ``warning`` is None."""

        if warning is None:
            self._warnings.clear()
        elif warning in self._warnings:
            self._warnings.remove(warning)

    def get_latest_warning(self, forbidden: Forbidden | None = None) -> AppWarning | None:
        """Return the newest warning, restricted to those forbidding ``forbidden`` if given."""

        for warning in reversed(self._warnings):
            if forbidden is None or forbidden in warning.forbidden:
                return warning
        return None

    @property
    def warnings(self) -> tuple[AppWarning, ...]:
        return tuple(self._warnings)

"""Error kinds raised by the audit pipeline.

Every error is fatal to the current run. ``context()`` returns the fields a
host needs to report the failure without parsing the message.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any


class AuditError(Exception):
    """Base class for all pipeline errors."""

    def context(self) -> dict[str, Any]:
        return {}


class TimeLabelError(AuditError):
    """A relative-time label could not be resolved."""

    def __init__(self, label: str | None, title: str | None = None) -> None:
        self.label = label
        self.title = title
        super().__init__(self._describe())

    def _describe(self) -> str:
        raise NotImplementedError

    def annotate(self, title: str) -> None:
        """Attach the title of the item whose label failed."""
        self.title = title
        self.args = (self._describe(),)

    def context(self) -> dict[str, Any]:
        return {"label": self.label, "title": self.title}


class ParseError(TimeLabelError):
    def _describe(self) -> str:
        msg = f"Failed to parse time string: {self.label!r}"
        if self.title is not None:
            msg += f" (item {self.title!r})"
        return msg


class UnsupportedUnitError(TimeLabelError):
    def __init__(
        self, label: str | None, unit: str, title: str | None = None
    ) -> None:
        self.unit = unit
        super().__init__(label, title)

    def _describe(self) -> str:
        msg = f"Unsupported time unit {self.unit!r} in {self.label!r}"
        if self.title is not None:
            msg += f" (item {self.title!r})"
        return msg

    def context(self) -> dict[str, Any]:
        return {**super().context(), "unit": self.unit}


class IncompleteCollectionError(AuditError):
    def __init__(self, obtained: int, target: int) -> None:
        self.obtained = obtained
        self.target = target
        super().__init__(f"Expected exactly {target} items, found {obtained}")

    def context(self) -> dict[str, Any]:
        return {"obtained": self.obtained, "target": self.target}


class SortInvariantViolation(AuditError):
    """Adjacent items out of order after sorting. Indicates a comparator bug."""

    def __init__(
        self,
        index: int,
        previous_title: str,
        previous_time: datetime,
        current_title: str,
        current_time: datetime,
    ) -> None:
        self.index = index
        self.previous_title = previous_title
        self.previous_time = previous_time
        self.current_title = current_title
        self.current_time = current_time
        if current_time > previous_time:
            detail = f"{current_title!r} is newer than {previous_title!r}"
        else:
            detail = (
                f"{current_title!r} should come before {previous_title!r} "
                "(same timestamp)"
            )
        super().__init__(f"Items are not sorted correctly at index {index}: {detail}")

    def context(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "previous_title": self.previous_title,
            "previous_time": self.previous_time.isoformat(),
            "current_title": self.current_title,
            "current_time": self.current_time.isoformat(),
        }


class PaginationError(AuditError):
    """The "next page" interaction failed. Treated as end of pagination."""


class SourceUnavailableError(AuditError):
    """The listing source or the browsing environment cannot be reached."""

    def __init__(self, message: str, url: str | None = None) -> None:
        self.url = url
        super().__init__(message)

    def context(self) -> dict[str, Any]:
        return {"url": self.url} if self.url else {}

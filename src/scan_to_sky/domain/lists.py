"""Domain models for Skylight lists."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ListSummary:
    """A list as returned by the frame's list index."""

    id: str
    label: str
    kind: str
    color: str | None = None


@dataclass(frozen=True)
class ListItem:
    """An item belonging to a remote list."""

    id: str
    label: str
    status: str

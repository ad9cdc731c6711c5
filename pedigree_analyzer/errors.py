from __future__ import annotations


class PedigreeError(Exception):
    """Base class for errors surfaced to callers of the pedigree core."""


class MutationRejected(PedigreeError):
    """A structural request was refused; the graph was left unchanged."""

    def __init__(self, reason: str, message: str = "") -> None:
        self.reason = reason
        self.message = message or reason
        super().__init__(f"{reason}: {self.message}")


class PedigreeLoadError(PedigreeError):
    """A persisted document could not be turned into a pedigree."""

"""Error taxonomy shared by the core and adapters.

Each error carries its scope implicitly: fetch errors abort one
entity/category pass, resolve and delivery errors abort one event, and only
FatalStartupError ends the process.
"""

from __future__ import annotations

from typing import Optional


class KillwatchError(Exception):
    """Base class for all killwatch errors."""


class FetchError(KillwatchError):
    """Events could not be retrieved or decoded from the feed."""


class ResolveError(KillwatchError):
    """A location or type name lookup failed."""


class DeliveryError(KillwatchError):
    """The webhook rejected a notification or could not be reached."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class PersistenceError(KillwatchError):
    """Entity state could not be written to the store."""


class FatalStartupError(KillwatchError):
    """Configuration or store failure that prevents the watcher from starting."""

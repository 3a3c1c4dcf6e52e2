"""
errors.py — Domain exceptions shared by the server and the field agent.

Only StorageError is meant to reach the submitter: a hazard report must
never be lost silently, so persistence failures are always surfaced.
RemoteUnavailable and MalformedResponse are caught inside the classifier
and turned into the keyword fallback.
"""


class TideWatchError(Exception):
    """Base class for all TideWatch domain errors."""


class ReportValidationError(TideWatchError):
    """A report is missing a required field (location, hazard_type)."""


class RemoteUnavailable(TideWatchError):
    """The classification provider could not be reached or returned an error."""


class MalformedResponse(TideWatchError):
    """The classification provider replied, but not with usable JSON."""


class StorageError(TideWatchError):
    """The local submission queue could not be read or written."""


class SyncConflict(TideWatchError):
    """A queue entry was claimed for submission after it had already been synced."""

    def __init__(self, local_id: str) -> None:
        super().__init__(f"Queue entry {local_id} is already synced")
        self.local_id = local_id

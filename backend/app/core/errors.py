"""
Membership store error taxonomy.

Expected admission outcomes (full, duplicate, missing event) are NOT
exceptions; they come back from the controller as typed results.
Only infrastructure problems travel as exceptions.
"""


class MembershipStoreError(Exception):
    """Base class for membership store failures."""


class StoreUnavailableError(MembershipStoreError):
    """
    Backing store unreachable, timed out, or failed mid-call.

    Transient: Join/Leave are single atomic attempts, so the caller
    may retry safely.
    """

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        message = f"Membership store unavailable during {operation}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class RecordExistsError(MembershipStoreError):
    """A membership record for this event already exists."""

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Membership record for event {event_id} already exists")

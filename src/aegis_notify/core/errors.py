"""Exception types raised by the notification pipeline and its clients."""

from __future__ import annotations


class NotificationPipelineError(Exception):
    """Base class for all pipeline errors."""


class BackendError(NotificationPipelineError):
    """The backend REST service could not serve a request."""


class MembershipResolutionError(NotificationPipelineError):
    """One or more member profiles of a group could not be fetched."""

    def __init__(self, group_id: str, cause: BaseException) -> None:
        super().__init__(f"Failed to resolve members of group {group_id}: {cause}")
        self.group_id = group_id
        self.cause = cause


class SubscriptionError(NotificationPipelineError):
    """A realtime listener could not be established or failed."""

    def __init__(self, group_id: str, cause: BaseException) -> None:
        super().__init__(f"Listener for group {group_id} failed: {cause}")
        self.group_id = group_id
        self.cause = cause


class DeliveryError(NotificationPipelineError):
    """The push-delivery service rejected or failed a request."""

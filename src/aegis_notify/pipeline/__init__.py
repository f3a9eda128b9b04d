"""Notification fan-out pipeline components."""

from aegis_notify.pipeline.dispatcher import NotificationDispatcher, truncate_body
from aegis_notify.pipeline.ledger import DedupLedger
from aegis_notify.pipeline.membership import MembershipResolver
from aegis_notify.pipeline.resource_cache import CoalescingCache, UserGroupsCache
from aegis_notify.pipeline.subscriptions import SessionScope, SubscriptionManager

__all__ = [
    "CoalescingCache",
    "DedupLedger",
    "MembershipResolver",
    "NotificationDispatcher",
    "SessionScope",
    "SubscriptionManager",
    "UserGroupsCache",
    "truncate_body",
]

"""Clients for the external services the pipeline consumes."""

from aegis_notify.clients.backend import BackendService, HttpBackendClient
from aegis_notify.clients.push import HttpPushClient, MockPushService, PushService
from aegis_notify.clients.streaming import InMemoryStreamingStore, StreamingStore

__all__ = [
    "BackendService",
    "HttpBackendClient",
    "HttpPushClient",
    "InMemoryStreamingStore",
    "MockPushService",
    "PushService",
    "StreamingStore",
]

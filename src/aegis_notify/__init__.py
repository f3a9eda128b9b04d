"""Realtime group chat notification fan-out for the Aegis client."""

from aegis_notify.pipeline.service import ChatNotificationPipeline, create_pipeline

__all__ = ["ChatNotificationPipeline", "create_pipeline"]

#!/usr/bin/env python3
"""Push one simulated chat message through the notification pipeline.

Usage:
    python3 scripts/simulate_chat.py --principal user_abc --token <jwt> \
        --group-id 10 --sender user_xyz --text "On my way home"

The pipeline talks to the backend and push services configured through
AEGIS_* environment variables. Messages come from an in-memory realtime
store instead of the live one, so the script can run without a device.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid
from pathlib import Path

# Ensure the project source is importable when running the script directly.
_project_root = Path(__file__).resolve().parent.parent
_src = _project_root / "src"
if str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from aegis_notify.clients.streaming import InMemoryStreamingStore  # noqa: E402
from aegis_notify.core.config import Settings, configure_logging  # noqa: E402
from aegis_notify.core.errors import BackendError  # noqa: E402
from aegis_notify.core.types import MessageSnapshot, Principal  # noqa: E402
from aegis_notify.pipeline.service import create_pipeline  # noqa: E402
from aegis_notify.telemetry import PipelineEventType  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Send a simulated group chat message through the push fan-out."
    )
    parser.add_argument("--principal", required=True, help="External-auth id of the session user.")
    parser.add_argument("--token", default=None, help="Access token of the session user.")
    parser.add_argument("--group-id", required=True, help="Group to post the message in.")
    parser.add_argument("--sender", required=True, help="External-auth id of the message sender.")
    parser.add_argument("--sender-name", default=None)
    parser.add_argument("--text", default="Test message")
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    settings = Settings()
    configure_logging(settings)

    store = InMemoryStreamingStore()
    async with create_pipeline(store, settings) as pipeline:
        principal = Principal(external_id=args.principal, access_token=args.token)
        try:
            groups = await pipeline.start(principal)
        except BackendError as exc:
            print(f"ERROR: could not load groups: {exc}")
            sys.exit(1)

        if args.group_id not in pipeline.subscriptions.subscribed_groups:
            known = ", ".join(str(g.id) for g in groups) or "none"
            print(f"ERROR: {args.principal} is not in group {args.group_id} (groups: {known})")
            sys.exit(1)

        store.publish(args.group_id, MessageSnapshot(
            id=str(uuid.uuid4()),
            group_id=args.group_id,
            sender_id=args.sender,
            sender_name=args.sender_name,
            content=args.text,
        ))
        await pipeline.drain()

        delivered = pipeline.telemetry.query(PipelineEventType.DELIVERY_SUCCEEDED)
        failed = pipeline.telemetry.query(PipelineEventType.DELIVERY_FAILED)
        print(f"Delivered: {len(delivered)}  Failed: {len(failed)}")
        for event in failed:
            print(f"  - user {event.details['recipient_user_id']}: {event.details['error']}")

    sys.exit(0 if not failed else 1)


if __name__ == "__main__":
    asyncio.run(main())

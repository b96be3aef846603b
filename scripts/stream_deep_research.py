#!/usr/bin/env python3
"""
Run deep research for one contact and follow its progress stream.

Prints status, reasoning and source events as they arrive, then the
reconstructed research text.

Usage:
    python scripts/stream_deep_research.py CONTACT_ID --token TOKEN [--base-url URL]

Options:
    --token: Supabase access token of the contact owner (or CONTACT_ENGINE_TOKEN)
    --base-url: API base URL (default: http://localhost:8000)
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

import httpx

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from contact_engine.core.schemas_research import (
    ContentEvent,
    ErrorEvent,
    ReasoningEvent,
    SourcesEvent,
    StatusEvent,
    aiter_research_events,
    collect_research_text,
)


async def follow(base_url: str, contact_id: str, token: str) -> int:
    url = f"{base_url.rstrip('/')}/v1/contacts/{contact_id}/deep-research/stream"
    events = []

    async with httpx.AsyncClient(timeout=None) as client:
        async with client.stream(
            "POST", url, headers={"Authorization": f"Bearer {token}"}
        ) as response:
            if response.status_code != 200:
                body = await response.aread()
                print(f"Request failed ({response.status_code}): {body.decode()}")
                return 1

            async for event in aiter_research_events(response.aiter_lines()):
                events.append(event)
                if isinstance(event, StatusEvent):
                    print(f"[{event.stage}]")
                elif isinstance(event, ReasoningEvent):
                    print(f"  thinking: {event.text}")
                elif isinstance(event, SourcesEvent):
                    print(f"  {len(event.sources)} sources")
                elif isinstance(event, ErrorEvent):
                    print(f"ERROR: {event.message}")
                    return 1
                elif not isinstance(event, ContentEvent):
                    print("[done]")

    print()
    print(collect_research_text(events))
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Stream deep research for a contact")
    parser.add_argument("contact_id")
    parser.add_argument("--token", default=os.getenv("CONTACT_ENGINE_TOKEN"))
    parser.add_argument("--base-url", default="http://localhost:8000")
    args = parser.parse_args()

    if not args.token:
        parser.error("--token or CONTACT_ENGINE_TOKEN is required")

    return asyncio.run(follow(args.base_url, args.contact_id, args.token))


if __name__ == "__main__":
    sys.exit(main())

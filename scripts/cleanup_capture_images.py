#!/usr/bin/env python3
"""
Delete capture screenshots older than the retention window.

Clears image_paths and stamps images_deleted_at on every capture it selects,
including captures that never held images.
Meant to run once a day from cron.

Usage:
    python scripts/cleanup_capture_images.py [--days 30] [--limit 200]

Options:
    --days: Retention window in days (default: CAPTURE_IMAGE_RETENTION_DAYS)
    --limit: Max captures per sweep (default: CAPTURE_CLEANUP_BATCH)
"""

import argparse
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from contact_engine.core.capture_lifecycle import cleanup_old_capture_images
from contact_engine.core.config import get_settings
from contact_engine.core.logging import get_logger
from contact_engine.db.captures import SupabaseCaptureStore
from contact_engine.db.storage import SupabaseBlobStore

logger = get_logger(__name__)


def main() -> int:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Delete old capture screenshots")
    parser.add_argument("--days", type=int, default=settings.CAPTURE_IMAGE_RETENTION_DAYS)
    parser.add_argument("--limit", type=int, default=settings.CAPTURE_CLEANUP_BATCH)
    args = parser.parse_args()

    results = cleanup_old_capture_images(
        SupabaseCaptureStore(),
        SupabaseBlobStore(),
        older_than_days=args.days,
        limit=args.limit,
    )

    print(
        f"Cleaned {results['captures_cleaned']} captures, "
        f"deleted {results['images_deleted']} images "
        f"({results['image_delete_failures']} failures)"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())

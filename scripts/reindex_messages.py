#!/usr/bin/env python3
"""
Message Re-sync Script

Rebuilds the vector index from a JSON-lines export of the message table
(one message object per line: id, channelId, userId, content, createdAt,
replyToId). Safe to re-run: record ids are deterministic, so existing
vectors are overwritten in place.

Usage:
    python scripts/reindex_messages.py messages.jsonl [--clear] [--dry-run] [--batch-size 100]
"""

import sys
import json
import asyncio
import argparse
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv()


def read_pages(path: Path, page_size: int):
    """Yield lists of message dicts, page_size at a time"""
    page = []
    with open(path, encoding="utf-8") as f:
        for line_no, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                page.append(json.loads(line))
            except json.JSONDecodeError as e:
                print(f"[Reindex] WARNING: Skipping line {line_no}: {e}")
                continue
            if len(page) >= page_size:
                yield page
                page = []
    if page:
        yield page


async def run(args) -> int:
    from recall.common.config import load_config
    from recall.common.errors import ValidationError
    from recall.common.schemas import validate_message
    from recall.indexer.chunker import Chunker
    from recall.service import RecallService

    config = load_config()
    batch_size = args.batch_size or config.indexing.batch_size

    if args.dry_run:
        print("[Reindex] DRY RUN - no changes will be made")
        chunker = Chunker()
        messages = chunks = invalid = 0
        for page in read_pages(args.source, batch_size):
            for raw in page:
                try:
                    message = validate_message(raw)
                except ValidationError as e:
                    print(f"[Reindex] WARNING: {e}")
                    invalid += 1
                    continue
                messages += 1
                chunks += len(chunker.split(message.content))
        print(f"[Reindex] Would index {messages} messages as {chunks} chunks ({invalid} invalid)")
        return 0

    config.indexing.batch_size = batch_size
    print(f"[Reindex] Vector backend: {config.vector_index.backend}")
    print(f"[Reindex] Embedding model: {config.embedding.model}")
    service = RecallService.from_config(config)

    indexed = 0
    failed = 0
    try:
        if args.clear:
            print("[Reindex] Clearing index...")
            await service.clear_index()

        for page_no, page in enumerate(read_pages(args.source, batch_size), 1):
            print(f"[Reindex] Indexing page {page_no} ({len(page)} messages)...")
            try:
                results = await service.index_messages(page)
            except ValidationError as e:
                print(f"[Reindex] ERROR: Page {page_no} rejected: {e}")
                failed += len(page)
                continue

            for result in results:
                if result.success:
                    indexed += 1
                else:
                    failed += 1
            if any(not r.success for r in results):
                print(f"[Reindex] WARNING: Page {page_no} failed: {results[0].error}")
    finally:
        await service.close()

    print(f"[Reindex] Complete: {indexed} indexed, {failed} failed")
    return 1 if failed else 0


def main():
    parser = argparse.ArgumentParser(description="Re-index chat messages from a JSON-lines export")
    parser.add_argument("source", type=Path, help="JSON-lines file with one message per line")
    parser.add_argument("--clear", action="store_true", help="Delete every vector before indexing")
    parser.add_argument("--dry-run", action="store_true", help="Only count messages and chunks")
    parser.add_argument("--batch-size", type=int, default=0, help="Messages per page (default: indexing.batch_size)")
    args = parser.parse_args()

    if not args.source.exists():
        print(f"[Reindex] ERROR: {args.source} not found")
        sys.exit(1)

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()

#!/usr/bin/env python
"""Script to stage local image files and save them under a grouping key."""
from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from imagestage.config import get_settings
from imagestage.models import SourceFile
from imagestage.services.engine import StagingEngine
from imagestage.services.store import get_store


class PromptConfirmer:
    def confirm(self, message: str) -> bool:
        return input(f"{message} [y/N] ").strip().lower() in {"y", "yes"}


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = get_store()
    engine = StagingEngine(
        store,
        confirm=PromptConfirmer(),
        group_label=args.group or settings.group_label,
    )
    try:
        await engine.set_key(args.key)
        if args.clear and not await engine.clear_all():
            print(engine.status.text)

        files = [SourceFile(name=path.name, path=path) for path in args.paths]
        if files and await engine.add_files(files):
            for ordinal, note in enumerate(args.note or []):
                await engine.set_note_at(ordinal, note)
            await engine.save_all(concurrent=args.concurrent)

        print(engine.status.text)
        print(engine.view().breakdown)
        return 0 if engine.status.level != "error" else 1
    finally:
        await store.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Upload images for one grouping key")
    parser.add_argument("--key", required=True, help="Grouping key the images belong to")
    parser.add_argument("--group", default=None, help="Group label written with each record")
    parser.add_argument("--note", action="append", help="Note for the n-th image (repeatable)")
    parser.add_argument("--concurrent", action="store_true", help="Issue creates concurrently")
    parser.add_argument("--clear", action="store_true", help="Delete saved images of the key first")
    parser.add_argument("paths", nargs="*", type=Path)
    args = parser.parse_args()
    raise SystemExit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()

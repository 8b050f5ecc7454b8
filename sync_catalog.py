# sync_catalog.py: load scraped bookstore / Amazon data into the catalog
#
#   python sync_catalog.py books scraped.json [--section 1234 ...]
#   python sync_catalog.py stale
#   python sync_catalog.py amazon amazon.json
import argparse
import asyncio
import json
import logging
import sys

from crud.book import get_books_to_update, save_scraped_entities, scrape, update_amazon_data
from database import AsyncSessionLocal, engine, init_db
from logging_middleware import configure_logging
from services.bookstore import JsonDumpScraper

logger = logging.getLogger("sync_catalog")


async def sync_books(path, section_ids) -> int:
    books = scrape(JsonDumpScraper(path), section_ids)
    async with AsyncSessionLocal() as db:
        result = await save_scraped_entities(db, books)
    print(f"Saved {len(result.saved)} books ({result.inserted} new, {result.updated} updated)")
    for failure in result.failures:
        print(f"FAILED [{failure.kind.value}] {failure.record.get('bookstore_id', '?')}: {failure.message}")
    return 1 if result.failures else 0


async def list_stale(limit) -> int:
    async with AsyncSessionLocal() as db:
        for isbn in await get_books_to_update(db, limit):
            print(isbn)
    return 0


async def sync_amazon(path) -> int:
    with open(path, encoding="utf-8") as f:
        details = json.load(f)
    async with AsyncSessionLocal() as db:
        result = await update_amazon_data(db, details)
    print(f"Updated Amazon data for {result.updated} books")
    for failure in result.failures:
        print(f"FAILED [{failure.kind.value}] {failure.record.get('isbn', '?')}: {failure.message}")
    return 1 if result.failures else 0


async def run(args) -> int:
    await init_db()
    try:
        if args.command == "books":
            return await sync_books(args.file, args.section)
        if args.command == "stale":
            return await list_stale(args.limit)
        return await sync_amazon(args.file)
    finally:
        await engine.dispose()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Sync the textbook catalog")
    sub = parser.add_subparsers(dest="command", required=True)

    books = sub.add_parser("books", help="save scraped bookstore records")
    books.add_argument("file", help="JSON dump from the bookstore scraper")
    books.add_argument("--section", action="append", default=[], help="only these section ids")

    stale = sub.add_parser("stale", help="print ISBNs due for an Amazon refresh")
    stale.add_argument("--limit", type=int, default=None)

    amazon = sub.add_parser("amazon", help="apply Amazon details (list of objects with isbn)")
    amazon.add_argument("file")

    args = parser.parse_args(argv)
    configure_logging()
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())

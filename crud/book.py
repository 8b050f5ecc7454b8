# crud/book.py: catalog queries, entity assembly and scrape reconciliation
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from crud.base import MissingColumnsError, get, get_many_by, insert, update, update_many
from crud.post import get_active_posts, get_min_price
from models import Book, Course, RequiredStatus, Section, SectionBook
from schemas import (
    AmazonUpdateResult,
    CourseMap,
    EnrichedBook,
    FailureKind,
    PostOut,
    ReconcileFailure,
    ReconcileResult,
    ScrapedBook,
    StoredBook,
    UserOut,
)
from services.isbn_utils import normalize_isbn

logger = logging.getLogger(__name__)

STATUS_BY_VALUE = {status.value: status for status in RequiredStatus}


async def get_book(db: AsyncSession, bid: int) -> Optional[Book]:
    return await get(db, Book, bid)


async def get_courses(db: AsyncSession, bid: int):
    """(name, section, required_status) rows for every section using the book."""
    stmt = (
        select(Course.name, Section.code.label("section"), SectionBook.required_status)
        .distinct()
        .select_from(Course)
        .join(Section, Section.cid == Course.cid)
        .join(SectionBook, SectionBook.sid == Section.sid)
        .where(SectionBook.bid == bid)
        .order_by(Course.name.asc(), Section.code.asc())
    )
    result = await db.execute(stmt)
    return result.all()


def group_courses(rows: Iterable) -> CourseMap:
    courses = {status.label: {} for status in RequiredStatus}
    for row in rows:
        status = STATUS_BY_VALUE.get(row.required_status)
        if status is None:
            logger.warning("Unknown required_status %r for course %s", row.required_status, row.name)
            continue
        courses[status.label].setdefault(row.name, []).append(row.section)
    return courses


async def prepare_entity(db: AsyncSession, book: Book, viewer: Optional[UserOut] = None) -> EnrichedBook:
    """Build the view of a book shown on search results.

    Adds the courses that use it, its active posts (cheapest first) and the
    lowest student and store prices. `user_pid` is the viewer's own post for
    this book, if they have one.
    """
    entity = EnrichedBook.model_validate(book)
    entity.courses = group_courses(await get_courses(db, book.bid))

    posts = await get_active_posts(db, book.bid)
    entity.posts = [PostOut.model_validate(post) for post in posts]
    if viewer is not None:
        for post in entity.posts:
            if post.uid == viewer.uid:
                entity.user_pid = post.pid

    entity.num_posts = len(entity.posts)
    entity.min_student_price = await get_min_price(db, book.bid)

    # A used bookstore copy lowers the minimum but is not counted as an offer.
    all_store_offers = []
    bookstore_offers = []
    if entity.bookstore_new_price is not None:
        entity.num_store_offers += 1
        all_store_offers.append(entity.bookstore_new_price)
        bookstore_offers.append(entity.bookstore_new_price)
    if entity.bookstore_used_price is not None:
        all_store_offers.append(entity.bookstore_used_price)
        bookstore_offers.append(entity.bookstore_used_price)
    if entity.amazon_new_price is not None:
        entity.num_store_offers += 1
        all_store_offers.append(entity.amazon_new_price)
    entity.min_store_price = min(all_store_offers, default=None)
    entity.min_bookstore_price = min(bookstore_offers, default=None)
    return entity


async def get_books_by_string(db: AsyncSession, string: str) -> List[Book]:
    """Books for the first course whose name matches, else books whose title does."""
    pattern = f"%{string}%"
    result = await db.execute(
        select(Course).where(Course.name.ilike(pattern)).order_by(Course.cid)
    )
    course = result.scalars().first()
    if course is not None:
        stmt = (
            select(Book)
            .distinct()
            .join(SectionBook, SectionBook.bid == Book.bid)
            .join(Section, Section.sid == SectionBook.sid)
            .where(Section.cid == course.cid)
            .order_by(Book.title)
        )
    else:
        stmt = select(Book).where(Book.title.ilike(pattern)).order_by(Book.title)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_books_to_update(db: AsyncSession, limit: Optional[int] = None) -> List[str]:
    """ISBNs of books whose Amazon data is missing or stale, oldest first."""
    cutoff = datetime.now() - timedelta(hours=settings.amazon_refresh_hours)
    stmt = (
        select(Book.isbn)
        .where(Book.isbn.is_not(None))
        .where(or_(Book.amazon_updated.is_(None), Book.amazon_updated < cutoff))
        .order_by(Book.amazon_updated.asc().nulls_first())
        .limit(limit or settings.amazon_batch_size)
    )
    result = await db.execute(stmt)
    return [isbn for isbn in result.scalars().all() if isbn]


async def update_amazon_data(db: AsyncSession, book_details: Iterable[Mapping[str, Any]]) -> AmazonUpdateResult:
    """Batch update Amazon fields, matching books on their normalized ISBN.

    Details without a usable ISBN are reported in `failures` and skipped.
    """
    result = AmazonUpdateResult()
    now = datetime.now()
    rows = []
    for details in book_details:
        raw_isbn = details.get("isbn") if isinstance(details, Mapping) else None
        isbn = normalize_isbn(str(raw_isbn)) if raw_isbn is not None else None
        if isbn is None:
            logger.warning("Skipping Amazon details without a valid ISBN: %r", details)
            record = dict(details) if isinstance(details, Mapping) else {"value": repr(details)}
            result.failures.append(ReconcileFailure(
                record=record, kind=FailureKind.VALIDATION, message=f"invalid or missing isbn: {raw_isbn!r}"))
            continue
        rows.append({**details, "isbn": isbn, "amazon_updated": now})

    if rows:
        result.updated = await update_many(db, Book, rows, key="isbn")
    logger.info("Updated Amazon data for %d books (%d rejected)", result.updated, len(result.failures))
    return result


def scrape(scraper, section_ids: List[str]) -> List[Dict[str, Any]]:
    """Raw book records for the given bookstore section ids."""
    return scraper.get_books(section_ids)


async def save_scraped_entities(db: AsyncSession, scraped_entities: Iterable[Mapping[str, Any]]) -> ReconcileResult:
    """Save scraped books, updating rows that already exist.

    A scraped book matches an existing row by bookstore product id, or failing
    that by ISBN. Matched rows get their bookstore fields refreshed once per
    product id per batch; everything else is inserted. `saved` follows the
    input order and carries each book's bid. Records that could not be saved
    are listed in `failures`.
    """
    result = ReconcileResult()

    records: List[ScrapedBook] = []
    for raw in scraped_entities:
        try:
            records.append(ScrapedBook.model_validate(raw))
        except ValidationError as e:
            logger.warning("Rejected scraped record %r: %s", raw, e)
            record = dict(raw) if isinstance(raw, Mapping) else {"value": repr(raw)}
            result.failures.append(ReconcileFailure(record=record, kind=FailureKind.VALIDATION, message=str(e)))

    scraped_ids = list(dict.fromkeys(r.bookstore_id for r in records))
    scraped_isbns = list(dict.fromkeys(r.isbn for r in records if r.isbn))

    existing_by_id = {
        row.bookstore_id: row.bid
        for row in await get_many_by(db, Book, {"bookstore_id": scraped_ids})
    }
    existing_by_isbn = {}
    for row in await get_many_by(db, Book, {"isbn": scraped_isbns}, order_by="bid"):
        existing_by_isbn.setdefault(row.isbn, row.bid)

    processed_ids = set()
    for record in records:
        product_id = record.bookstore_id
        bid = existing_by_id.get(product_id)
        if bid is None and record.isbn:
            bid = existing_by_isbn.get(record.isbn)

        if bid is not None:
            if product_id not in processed_ids:
                try:
                    await update(db, Book, {
                        "bid": bid,
                        "bookstore_id": product_id,
                        "bookstore_part_number": record.bookstore_part_number,
                        "bookstore_used_price": record.bookstore_used_price,
                        "bookstore_new_price": record.bookstore_new_price,
                        "updated": datetime.now(),
                    })
                except SQLAlchemyError as e:
                    logger.warning("Could not update book %s (%s): %s", bid, product_id, e)
                    result.failures.append(ReconcileFailure(
                        record=record.model_dump(mode="json"), kind=FailureKind.DATABASE, message=str(e)))
                    continue
                processed_ids.add(product_id)
                existing_by_id[product_id] = bid
                result.updated += 1
            result.saved.append(StoredBook(bid=bid, **record.model_dump()))
            continue

        try:
            bid = await insert(db, Book, record.model_dump())
        except MissingColumnsError as e:
            logger.warning("Could not insert book %s: %s", product_id, e)
            result.failures.append(ReconcileFailure(
                record=record.model_dump(mode="json"), kind=FailureKind.VALIDATION, message=str(e)))
            continue
        except SQLAlchemyError as e:
            logger.warning("Could not insert book %s: %s", product_id, e)
            result.failures.append(ReconcileFailure(
                record=record.model_dump(mode="json"), kind=FailureKind.DATABASE, message=str(e)))
            continue

        result.saved.append(StoredBook(bid=bid, **record.model_dump()))
        result.inserted += 1
        # later records with this product id are matches, not new rows
        existing_by_id[product_id] = bid
        processed_ids.add(product_id)

    logger.info(
        "Saved %d scraped books (%d inserted, %d updated, %d failed)",
        len(result.saved), result.inserted, result.updated, len(result.failures),
    )
    return result

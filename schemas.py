import enum
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from models import ProductType
from services.isbn_utils import normalize_isbn

logger = logging.getLogger(__name__)

# category label -> course name -> section codes
CourseMap = Dict[str, Dict[str, List[str]]]


class UserOut(BaseModel):
    uid: int
    netid: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    class Config:
        from_attributes = True


class BookOut(BaseModel):
    bid: int
    title: str
    bookstore_id: str
    bookstore_part_number: Optional[str] = None
    isbn: Optional[str] = None
    author: Optional[str] = None
    edition: Optional[str] = None
    publisher: Optional[str] = None
    image_url: Optional[str] = None
    product_type: ProductType = ProductType.BOOK
    bookstore_new_price: Optional[Decimal] = None
    bookstore_used_price: Optional[Decimal] = None
    amazon_new_price: Optional[Decimal] = None
    amazon_url: Optional[str] = None
    updated: Optional[datetime] = None

    class Config:
        from_attributes = True


class PostOut(BaseModel):
    pid: int
    bid: int
    uid: int
    price: Decimal
    notes: Optional[str] = None
    active: bool = True
    user: Optional[UserOut] = None

    class Config:
        from_attributes = True


class UserPost(PostOut):
    book: BookOut


class PostCreate(BaseModel):
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("notes")
    @classmethod
    def blank_notes(cls, value):
        if value is not None and not value.strip():
            return None
        return value


class EnrichedBook(BookOut):
    """A book plus everything the listing pages show about it.

    None of these fields are stored; they are rebuilt on every read.
    """
    courses: CourseMap = Field(default_factory=dict)
    posts: List[PostOut] = Field(default_factory=list)
    user_pid: Optional[int] = None
    num_posts: int = 0
    min_student_price: Optional[Decimal] = None
    num_store_offers: int = 0
    min_store_price: Optional[Decimal] = None
    min_bookstore_price: Optional[Decimal] = None


class ScrapedBook(BaseModel):
    """One book record as returned by the bookstore scraper."""
    bookstore_id: str
    bookstore_part_number: Optional[str] = None
    bookstore_used_price: Optional[Decimal] = None
    bookstore_new_price: Optional[Decimal] = None
    title: Optional[str] = None
    isbn: Optional[str] = None
    author: Optional[str] = None
    edition: Optional[str] = None
    publisher: Optional[str] = None
    image_url: Optional[str] = None
    product_type: ProductType = ProductType.BOOK

    @field_validator("bookstore_id", "bookstore_part_number", mode="before")
    @classmethod
    def as_text(cls, value):
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("bookstore_used_price", "bookstore_new_price", mode="before")
    @classmethod
    def blank_price(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("isbn", mode="before")
    @classmethod
    def clean_isbn(cls, value):
        if value is None or value == "":
            return None
        cleaned = normalize_isbn(str(value))
        if cleaned is None:
            logger.warning("Ignoring invalid ISBN %r from scraper", value)
        return cleaned


class StoredBook(ScrapedBook):
    """A scraped record after reconciliation, with its catalog id."""
    bid: int


class FailureKind(str, enum.Enum):
    VALIDATION = "validation"
    DATABASE = "database"


class ReconcileFailure(BaseModel):
    record: dict
    kind: FailureKind
    message: str


class ReconcileResult(BaseModel):
    saved: List[StoredBook] = Field(default_factory=list)
    failures: List[ReconcileFailure] = Field(default_factory=list)
    inserted: int = 0
    updated: int = 0


class AmazonUpdateResult(BaseModel):
    updated: int = 0
    failures: List[ReconcileFailure] = Field(default_factory=list)

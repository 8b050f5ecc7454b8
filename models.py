# models.py
import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import relationship

from database import Base


class RequiredStatus(enum.IntEnum):
    """Values for sections_books.required_status"""
    BOOKSTORE_RECOMMENDED = 0
    GO_TO_CLASS_FIRST = 1
    RECOMMENDED = 2
    REQUIRED = 3

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


class ProductType(enum.IntEnum):
    """Values for books.product_type"""
    BOOK = 0
    PACKAGE_COMPONENT = 1
    PACKAGE = 2


class User(Base):
    __tablename__ = "users"
    __required_columns__ = ("netid",)
    uid = Column(Integer, primary_key=True)
    netid = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255))
    first_name = Column(String(100))
    last_name = Column(String(100))
    created = Column(DateTime, server_default=func.now())


class Course(Base):
    __tablename__ = "courses"
    __required_columns__ = ("name",)
    cid = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    bookstore_id = Column(String(64), index=True)

    sections = relationship("Section", back_populates="course")


class Section(Base):
    __tablename__ = "sections"
    __required_columns__ = ("cid", "code")
    sid = Column(Integer, primary_key=True)
    cid = Column(Integer, ForeignKey("courses.cid"), nullable=False, index=True)
    code = Column(String(32), nullable=False)
    bookstore_id = Column(String(64), index=True)

    course = relationship("Course", back_populates="sections")


class SectionBook(Base):
    __tablename__ = "sections_books"
    __required_columns__ = ("sid", "bid", "required_status")
    sid = Column(Integer, ForeignKey("sections.sid"), primary_key=True)
    bid = Column(Integer, ForeignKey("books.bid"), primary_key=True)
    required_status = Column(Integer, nullable=False, default=RequiredStatus.REQUIRED)


class Book(Base):
    __tablename__ = "books"
    # Some bookstore listings have no ISBN, but every one has a product id.
    __required_columns__ = ("title", "bookstore_id")
    bid = Column(Integer, primary_key=True)
    title = Column(String(500), nullable=False, index=True)
    bookstore_id = Column(String(64), unique=True, nullable=False, index=True)
    bookstore_part_number = Column(String(64))
    isbn = Column(String(13), index=True)
    author = Column(String(255))
    edition = Column(String(64))
    publisher = Column(String(255))
    image_url = Column(String(1000))
    product_type = Column(Integer, nullable=False, default=ProductType.BOOK)
    bookstore_new_price = Column(Numeric(10, 2), nullable=True)
    bookstore_used_price = Column(Numeric(10, 2), nullable=True)
    amazon_new_price = Column(Numeric(10, 2), nullable=True)
    amazon_url = Column(String(1000))
    created = Column(DateTime, server_default=func.now())
    updated = Column(DateTime, nullable=True)
    amazon_updated = Column(DateTime, nullable=True)


class Post(Base):
    __tablename__ = "posts"
    __required_columns__ = ("bid", "uid", "price")
    pid = Column(Integer, primary_key=True)
    bid = Column(Integer, ForeignKey("books.bid"), nullable=False, index=True)
    uid = Column(Integer, ForeignKey("users.uid"), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    notes = Column(String(1000))
    active = Column(Boolean, nullable=False, default=True)
    created = Column(DateTime, server_default=func.now())
    updated = Column(DateTime, nullable=True)

    user = relationship("User")
    book = relationship("Book")

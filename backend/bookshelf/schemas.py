from sqlalchemy import Column, Float, ForeignKey, Integer, String, Table, UniqueConstraint
from sqlalchemy.orm import relationship

from .database import Base

# Bảng nối nhiều-nhiều giữa sách và tác giả, không có cột riêng
book_authors = Table(
    "book_authors",
    Base.metadata,
    Column("book_id", Integer, ForeignKey("books.id"), primary_key=True),
    Column("author_id", Integer, ForeignKey("authors.id"), primary_key=True),
)


class Publisher(Base):
    __tablename__ = "publishers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Tên là khóa tự nhiên: lookup-or-create dựa vào ràng buộc UNIQUE này
    name = Column(String(128), nullable=False, unique=True, index=True)


class Author(Base):
    __tablename__ = "authors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(128), nullable=False, unique=True, index=True)


class Book(Base):
    __tablename__ = "books"
    __table_args__ = (
        UniqueConstraint("title", "publisher_id", name="uq_books_title_publisher"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(128), nullable=False, index=True)
    price = Column(Float, nullable=False)
    publisher_id = Column(Integer, ForeignKey("publishers.id"), nullable=False)

    # Chỉ đọc: các dòng book_authors được ghi/xóa trực tiếp trong crud
    authors = relationship(
        "Author", secondary=book_authors, order_by="Author.id", viewonly=True
    )

    @property
    def author_ids(self):
        return [a.id for a in self.authors]

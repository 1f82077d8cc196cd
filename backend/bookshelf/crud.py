from typing import List, Optional, Type, Union

from sqlalchemy import delete, insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, selectinload

from . import schemas

NamedModel = Type[Union[schemas.Author, schemas.Publisher]]


def _get_or_create_by_name(db: Session, model: NamedModel, name: str) -> int:
    """Trả về id của dòng có `name`, tạo mới nếu chưa có.

    INSERT ... ON CONFLICT DO NOTHING dựa vào ràng buộc UNIQUE(name), nên hai
    request cùng lúc không thể tạo ra hai dòng trùng tên. Khi có dòng mới,
    id được lấy từ RETURNING; nếu không thì đọc lại theo tên.
    """
    stmt = (
        sqlite_insert(model)
        .values(name=name)
        .on_conflict_do_nothing(index_elements=["name"])
        .returning(model.id)
    )
    new_id = db.execute(stmt).scalar_one_or_none()
    if new_id is not None:
        return new_id
    return db.query(model.id).filter(model.name == name).scalar()


def get_or_create_publisher(db: Session, name: str) -> int:
    return _get_or_create_by_name(db, schemas.Publisher, name)


def get_or_create_author(db: Session, name: str) -> int:
    return _get_or_create_by_name(db, schemas.Author, name)


def get_or_create_authors(db: Session, names: List[str]) -> List[int]:
    """Một id cho mỗi tên, giữ nguyên thứ tự (tên lặp lại cho id lặp lại)."""
    return [get_or_create_author(db, name) for name in names]


def get_author(db: Session, author_id: int) -> Optional[schemas.Author]:
    return db.query(schemas.Author).filter(schemas.Author.id == author_id).first()


def get_publisher(db: Session, publisher_id: int) -> Optional[schemas.Publisher]:
    return (
        db.query(schemas.Publisher)
        .filter(schemas.Publisher.id == publisher_id)
        .first()
    )


def get_publisher_by_name(db: Session, name: str) -> Optional[schemas.Publisher]:
    return db.query(schemas.Publisher).filter(schemas.Publisher.name == name).first()


def get_book(db: Session, book_id: int) -> Optional[schemas.Book]:
    return db.query(schemas.Book).filter(schemas.Book.id == book_id).first()


def get_book_by_title(
    db: Session, title: str, publisher_id: int
) -> Optional[schemas.Book]:
    """Sách trùng là sách có cùng title và cùng nhà xuất bản."""
    return (
        db.query(schemas.Book)
        .filter(
            schemas.Book.title == title,
            schemas.Book.publisher_id == publisher_id,
        )
        .first()
    )


def insert_book(db: Session, title: str, price: float, publisher_id: int) -> int:
    db_book = schemas.Book(title=title, price=price, publisher_id=publisher_id)
    db.add(db_book)
    # flush để DB cấp id, không cần query lại theo (title, price, publisher_id)
    db.flush()
    return db_book.id


def link_authors(db: Session, book_id: int, author_ids: List[int]) -> None:
    """Ghi một dòng book_authors cho mỗi tác giả.

    Id tác giả bị lặp sẽ vi phạm khóa chính (book_id, author_id) và gây
    IntegrityError, không tự loại bỏ trùng lặp.
    """
    if not author_ids:
        return
    db.execute(
        insert(schemas.book_authors),
        [{"book_id": book_id, "author_id": author_id} for author_id in author_ids],
    )


def delete_book(db: Session, book_id: int) -> None:
    # Xóa liên kết trước: SQLite không tự cascade và khóa ngoại đang bật
    db.execute(
        delete(schemas.book_authors).where(schemas.book_authors.c.book_id == book_id)
    )
    db.execute(delete(schemas.Book).where(schemas.Book.id == book_id))


def _books_query(db: Session):
    return (
        db.query(schemas.Book)
        .options(selectinload(schemas.Book.authors))
        .order_by(schemas.Book.id)
    )


def list_books(db: Session) -> List[schemas.Book]:
    return _books_query(db).all()


def list_books_by_author(db: Session, author_id: int) -> List[schemas.Book]:
    return (
        _books_query(db)
        .join(schemas.book_authors, schemas.book_authors.c.book_id == schemas.Book.id)
        .filter(schemas.book_authors.c.author_id == author_id)
        .all()
    )


def list_books_by_publisher(db: Session, publisher_id: int) -> List[schemas.Book]:
    return _books_query(db).filter(schemas.Book.publisher_id == publisher_id).all()

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud, models
from .config import Settings
from .database import get_db, init_db, make_engine, make_session_factory
from .seed import SeedError, load_seed

logger = logging.getLogger(__name__)

# Giới hạn của kiểu INTEGER trong SQLite (số nguyên có dấu 64 bit)
MAX_SQLITE_ID = 2**63 - 1


def _parse_id(raw: str, what: str) -> int:
    """Id trên URL phải là số nguyên dương; rỗng, sai định dạng hoặc vượt quá INTEGER -> 400."""
    raw = (raw or "").strip()
    if not raw.isdecimal() or int(raw) > MAX_SQLITE_ID:
        raise HTTPException(status_code=400, detail=f"{what} id not valid")
    return int(raw)


def _missing_id(what: str):
    def handler():
        raise HTTPException(status_code=400, detail=f"{what} id not valid")
    return handler


def _store_error(db: Session, message: str) -> HTTPException:
    """Ghi log lỗi DB (kèm traceback) và trả về 500 với thông báo chung."""
    db.rollback()
    logger.exception(message)
    return HTTPException(status_code=500, detail=message)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part != "body"]
    field = ".".join(loc)
    msg = first.get("msg", "invalid value")
    return f"{field}: {msg}" if field else msg


def _to_out(books) -> List[models.BookOut]:
    return [
        models.BookOut(
            id=b.id,
            title=b.title,
            price=b.price,
            publisher_id=b.publisher_id,
            authors=b.author_ids,
        )
        for b in books
    ]


def open_store(app: FastAPI, settings: Settings) -> None:
    """
    Mở DB. Nếu file DB chưa tồn tại thì tạo bảng và nạp dữ liệu seed (chỉ một lần).
    """
    is_new = not Path(settings.database_path).exists()
    engine = make_engine(settings.database_url)
    init_db(engine)
    app.state.engine = engine
    app.state.SessionLocal = make_session_factory(engine)
    logger.info("[+] Database opened: %s", settings.database_path)

    if not is_new:
        return

    logger.info("New database created, loading seed data")
    db = app.state.SessionLocal()
    try:
        load_seed(db, settings.seed_path)
    except SeedError as e:
        # Bảng vẫn được giữ (rỗng), server vẫn tiếp tục chạy
        logger.error("Seed load aborted: %s", e)
    finally:
        db.close()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            open_store(app, settings)
        except SQLAlchemyError:
            logger.exception("[!] Error opening database %s", settings.database_path)
            raise
        yield
        app.state.engine.dispose()

    app = FastAPI(title="Bookshelf API", lifespan=lifespan)
    app.state.settings = settings

    # --- Cài đặt CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": _validation_message(exc)})

    # === API Endpoints ===

    @app.get("/author/id/{author_id}", response_model=models.NameOut)
    def get_author(author_id: str, db: Session = Depends(get_db)):
        author_id = _parse_id(author_id, "Author")
        try:
            author = crud.get_author(db, author_id)
        except SQLAlchemyError:
            raise _store_error(db, "Error selecting author")
        if author is None:
            raise HTTPException(status_code=404, detail="Author not found")
        return models.NameOut.model_validate(author)

    @app.get("/author/books/{author_id}", response_model=List[models.BookOut])
    def get_author_books(author_id: str, db: Session = Depends(get_db)):
        author_id = _parse_id(author_id, "Author")
        try:
            books = _to_out(crud.list_books_by_author(db, author_id))
        except SQLAlchemyError:
            raise _store_error(db, "Error selecting author books")
        if not books:
            raise HTTPException(status_code=404, detail="No books found")
        return books

    @app.get("/publisher/id/{publisher_id}", response_model=models.NameOut)
    def get_publisher(publisher_id: str, db: Session = Depends(get_db)):
        publisher_id = _parse_id(publisher_id, "Publisher")
        try:
            publisher = crud.get_publisher(db, publisher_id)
        except SQLAlchemyError:
            raise _store_error(db, "Error selecting publisher")
        if publisher is None:
            raise HTTPException(status_code=404, detail="Publisher not found")
        return models.NameOut.model_validate(publisher)

    @app.get("/publisher/books/{publisher_id}", response_model=List[models.BookOut])
    def get_publisher_books(publisher_id: str, db: Session = Depends(get_db)):
        publisher_id = _parse_id(publisher_id, "Publisher")
        try:
            books = _to_out(crud.list_books_by_publisher(db, publisher_id))
        except SQLAlchemyError:
            raise _store_error(db, "Error selecting publisher books")
        if not books:
            raise HTTPException(status_code=404, detail="No books found")
        return books

    @app.get("/books", response_model=List[models.BookOut])
    def list_books(db: Session = Depends(get_db)):
        try:
            return _to_out(crud.list_books(db))
        except SQLAlchemyError:
            raise _store_error(db, "Error selecting books")

    @app.post("/book", response_model=models.MessageOut)
    def add_book(book: models.BookCreate, db: Session = Depends(get_db)):
        """
        Thêm sách mới. Sách bị coi là trùng khi đã có cùng title và cùng nhà xuất bản.
        """
        try:
            # Kiểm tra xem sách đã tồn tại chưa
            publisher = crud.get_publisher_by_name(db, book.publisher)
            if publisher and crud.get_book_by_title(db, book.title, publisher.id):
                raise HTTPException(status_code=409, detail="Book already present")

            publisher_id = crud.get_or_create_publisher(db, book.publisher)
            author_ids = crud.get_or_create_authors(db, book.authors)
            book_id = crud.insert_book(db, book.title, book.price, publisher_id)
            crud.link_authors(db, book_id, author_ids)
            db.commit()
        except IntegrityError:
            # Request song song đã thêm cùng sách, hoặc tác giả bị lặp trong payload
            db.rollback()
            logger.warning("Conflict inserting book %r", book.title, exc_info=True)
            raise HTTPException(status_code=409, detail="Book already present")
        except SQLAlchemyError:
            raise _store_error(db, "Error inserting book")

        logger.info("Book inserted: %s (id=%s)", book.title, book_id)
        return models.MessageOut(message="Book inserted", id=book_id)

    @app.delete("/book/{book_id}", response_model=models.MessageOut)
    def delete_book(book_id: str, db: Session = Depends(get_db)):
        book_id = _parse_id(book_id, "Book")
        try:
            if crud.get_book(db, book_id) is None:
                raise HTTPException(status_code=404, detail="Book not found")
            crud.delete_book(db, book_id)
            db.commit()
        except SQLAlchemyError:
            raise _store_error(db, "Error deleting book")

        logger.info("Book deleted: id=%s", book_id)
        return models.MessageOut(message="Book deleted", id=book_id)

    # Route không có id -> 400 (thay vì 404/405 mặc định)
    app.add_api_route("/author/id/", _missing_id("Author"),
                      methods=["GET"], include_in_schema=False)
    app.add_api_route("/author/books/", _missing_id("Author"),
                      methods=["GET"], include_in_schema=False)
    app.add_api_route("/publisher/id/", _missing_id("Publisher"),
                      methods=["GET"], include_in_schema=False)
    app.add_api_route("/publisher/books/", _missing_id("Publisher"),
                      methods=["GET"], include_in_schema=False)
    app.add_api_route("/book/", _missing_id("Book"),
                      methods=["DELETE"], include_in_schema=False)

    # --- Mount Static Files (trang web), phải đứng sau các route API ---
    app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="ui")

    return app


app = create_app()


def run() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from tqdm import tqdm

from . import crud
from .config import Settings
from .database import init_db, make_engine, make_session_factory
from .models import BookCreate

logger = logging.getLogger(__name__)

_records_adapter = TypeAdapter(List[BookCreate])


class SeedError(Exception):
    """File seed không đọc được, sai định dạng, hoặc ghi vào DB thất bại."""


@dataclass
class SeedReport:
    imported: int = 0
    skipped: int = 0


def read_seed_file(path) -> List[BookCreate]:
    """
    Đọc và kiểm tra toàn bộ file JSON trước khi ghi bất cứ thứ gì vào DB.
    Chỉ cần một dòng sai là cả file bị từ chối.
    """
    path = Path(path)
    logger.info("Loading seed data from %s...", path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise SeedError(f"Seed file not found: {path}") from e
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SeedError(f"Could not read seed file {path}: {e}") from e

    try:
        return _records_adapter.validate_python(raw)
    except ValidationError as e:
        raise SeedError(f"Invalid seed data in {path}: {e}") from e


def import_records(db: Session, records: List[BookCreate]) -> SeedReport:
    """
    Ghi từng cuốn sách theo thứ tự: nhà xuất bản -> tác giả -> sách -> liên kết.
    Chạy tuần tự, không song song. Không commit ở đây.
    """
    report = SeedReport()
    for record in tqdm(records, desc="Seeding books"):
        publisher_id = crud.get_or_create_publisher(db, record.publisher)

        # Kiểm tra xem sách đã tồn tại chưa
        if crud.get_book_by_title(db, record.title, publisher_id):
            logger.info(
                "Skipping %r (%s): already present", record.title, record.publisher
            )
            report.skipped += 1
            continue

        author_ids = crud.get_or_create_authors(db, record.authors)
        book_id = crud.insert_book(db, record.title, record.price, publisher_id)
        crud.link_authors(db, book_id, author_ids)
        report.imported += 1
    return report


def load_seed(db: Session, path) -> SeedReport:
    """Nạp file seed trong một transaction duy nhất; lỗi thì rollback toàn bộ."""
    records = read_seed_file(path)
    try:
        report = import_records(db, records)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise SeedError(f"Could not import seed data from {path}: {e}") from e

    logger.info(
        "Seed finished. %d new books added. %d books skipped (already exist).",
        report.imported,
        report.skipped,
    )
    return report


def main(argv=None) -> int:
    defaults = Settings.from_env()
    parser = argparse.ArgumentParser(
        description="Import a JSON seed file into the bookshelf database."
    )
    parser.add_argument("--database", default=defaults.database_path,
                        help="SQLite file (created if missing)")
    parser.add_argument("--seed", default=defaults.seed_path,
                        help="JSON array of {title, price, publisher, authors}")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=defaults.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = make_engine(Settings(database_path=args.database).database_url)
    try:
        init_db(engine)
        db = make_session_factory(engine)()
        try:
            report = load_seed(db, args.seed)
        finally:
            db.close()
    except SeedError as e:
        logger.error("%s", e)
        return 1
    except SQLAlchemyError:
        logger.exception("Could not open database %s", args.database)
        return 1
    finally:
        engine.dispose()

    print(f"Import finished. {report.imported} new records added. "
          f"{report.skipped} records skipped (already exist).")
    return 0


if __name__ == "__main__":
    sys.exit(main())

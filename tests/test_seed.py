"""Seed loading, both the library functions and the bookshelf-seed command."""

import pytest

from bookshelf import crud, schemas
from bookshelf.seed import SeedError, load_seed, main, read_seed_file
from tests.conftest import SEED_BOOKS, write_seed


def test_load_seed(db, seed_file):
    report = load_seed(db, seed_file)
    assert (report.imported, report.skipped) == (1, 0)

    books = crud.list_books(db)
    assert len(books) == 1
    assert books[0].title == "A"
    assert len(books[0].author_ids) == 2
    assert crud.get_publisher(db, books[0].publisher_id).name == "P"


def test_load_seed_twice_skips_existing_books(db, seed_file):
    load_seed(db, seed_file)
    report = load_seed(db, seed_file)
    assert (report.imported, report.skipped) == (0, 1)
    assert db.query(schemas.Book).count() == 1
    assert db.query(schemas.Author).count() == 2


def test_load_seed_shares_authors_and_publishers(db, tmp_path):
    path = write_seed(tmp_path / "shared.json", [
        {"title": "A", "price": 1, "publisher": "P", "authors": ["X"]},
        {"title": "B", "price": 2.5, "publisher": "P", "authors": ["X", "Y"]},
    ])
    report = load_seed(db, path)
    assert report.imported == 2
    assert db.query(schemas.Publisher).count() == 1
    assert db.query(schemas.Author).count() == 2


def test_read_seed_file_strips_names(tmp_path):
    path = write_seed(tmp_path / "padded.json", [
        {"title": " A ", "price": 1, "publisher": " P", "authors": ["X "]},
    ])
    [record] = read_seed_file(path)
    assert (record.title, record.publisher, record.authors) == ("A", "P", ["X"])


@pytest.mark.parametrize("content", [
    "not json at all",
    '{"title": "A"}',
    '[{"title": "A", "price": -1, "publisher": "P", "authors": ["X"]}]',
    '[{"title": "A", "price": 1, "publisher": "P", "authors": "X"}]',
])
def test_invalid_seed_is_rejected_as_a_whole(db, tmp_path, content):
    path = tmp_path / "bad.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(SeedError):
        load_seed(db, path)
    assert db.query(schemas.Book).count() == 0
    assert db.query(schemas.Publisher).count() == 0


def test_store_failure_rolls_back_the_whole_load(db, tmp_path):
    # the second book lists the same author twice, which breaks the junction key
    path = write_seed(tmp_path / "dup.json", SEED_BOOKS + [
        {"title": "B", "price": 1, "publisher": "Q", "authors": ["Z", "Z"]},
    ])
    with pytest.raises(SeedError):
        load_seed(db, path)
    assert db.query(schemas.Book).count() == 0
    assert db.query(schemas.Author).count() == 0


def test_missing_seed_file(db, tmp_path):
    with pytest.raises(SeedError, match="not found"):
        load_seed(db, tmp_path / "nope.json")


def test_seed_command(tmp_path, seed_file, capsys):
    database = tmp_path / "cli.db"
    assert main(["--database", str(database), "--seed", str(seed_file)]) == 0
    assert "1 new records added" in capsys.readouterr().out

    assert main(["--database", str(database), "--seed", str(seed_file)]) == 0
    assert "1 records skipped" in capsys.readouterr().out


def test_seed_command_fails_on_bad_file(tmp_path):
    database = tmp_path / "cli.db"
    assert main(["--database", str(database), "--seed", str(tmp_path / "nope.json")]) == 1

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

STATIC_DIR = Path(__file__).resolve().parent / "static"


def _split_origins(raw: str) -> List[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass
class Settings:
    # File SQLite, được tạo cùng với schema ở lần chạy đầu tiên
    database_path: str = "books.db"

    # Chỉ được đọc khi database_path chưa tồn tại
    seed_path: str = "data/books.json"

    static_dir: str = str(STATIC_DIR)
    host: str = "127.0.0.1"
    port: int = 3000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.database_path}"

    @classmethod
    def from_env(cls) -> "Settings":
        """Đọc cấu hình, cho phép các biến môi trường BOOKSHELF_* ghi đè giá trị mặc định."""
        defaults = cls()
        return cls(
            database_path=os.getenv("BOOKSHELF_DATABASE", defaults.database_path),
            seed_path=os.getenv("BOOKSHELF_SEED", defaults.seed_path),
            static_dir=os.getenv("BOOKSHELF_STATIC_DIR", defaults.static_dir),
            host=os.getenv("BOOKSHELF_HOST", defaults.host),
            port=int(os.getenv("BOOKSHELF_PORT", defaults.port)),
            cors_origins=_split_origins(os.getenv("BOOKSHELF_CORS_ORIGINS", "*")),
            log_level=os.getenv("BOOKSHELF_LOG_LEVEL", defaults.log_level).upper(),
        )

import os
from pathlib import Path
from dotenv import load_dotenv
from typing import Optional

# Load .env robustly (try project root and CWD)
_ROOT = Path(__file__).resolve().parent
_candidates = [
    _ROOT / ".env",
    Path.cwd() / ".env",
]
for p in _candidates:
    try:
        if p.exists():
            load_dotenv(p, override=False)
    except OSError:
        pass


def _resolve_db_path(value: Optional[str]) -> Path:
    """A bare filename or relative path lands next to the code, like the default."""
    if not value:
        return _ROOT / "memory.db"
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = _ROOT / path
    return path


class Settings:
    # Storage
    DB_FILE_PATH: str = str(_resolve_db_path(os.getenv("DB_FILE_PATH")))
    CHROMA_DB_PATH: Optional[str] = os.getenv("CHROMA_DB_PATH")

    # Embeddings
    CACHE_DIR: Optional[str] = os.getenv("CACHE_DIR")
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "bge-base-en-v1.5")
    OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY")

    # Search: "vector" (embeddings + index) or "lexical" (substring only)
    SEARCH_MODE: str = os.getenv("SEARCH_MODE", "vector").strip().lower()
    VECTOR_DISTANCE: str = os.getenv("VECTOR_DISTANCE", "cosine").strip().lower()

    # Background enrichment
    EMBEDDING_WORKERS: int = int(os.getenv("EMBEDDING_WORKERS", "2"))
    EMBEDDING_QUEUE_SIZE: int = int(os.getenv("EMBEDDING_QUEUE_SIZE", "1000"))

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8002"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    def __init__(self, **overrides):
        for key, value in overrides.items():
            if not hasattr(type(self), key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)
        self.DB_FILE_PATH = str(_resolve_db_path(self.DB_FILE_PATH))

    @property
    def data_dir(self) -> Path:
        return Path(self.DB_FILE_PATH).parent

    @property
    def chroma_path(self) -> str:
        if self.CHROMA_DB_PATH:
            return str(Path(self.CHROMA_DB_PATH).expanduser())
        return f"{self.DB_FILE_PATH}.chroma"

    @property
    def cache_dir(self) -> str:
        if self.CACHE_DIR:
            return str(Path(self.CACHE_DIR).expanduser())
        return str(self.data_dir / "models")


settings = Settings()

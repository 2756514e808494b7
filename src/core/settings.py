## src/core/settings.py

from functools import lru_cache
from typing import Any

from dotenv import find_dotenv
from pydantic import Field, SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = """
You are an advanced file analysis assistant named "FileInsight".
Your goal is to answer user questions based strictly on the provided documents.

INSTRUCTIONS:
1.  Analyze the provided files carefully.
2.  Answer the user's questions based ONLY on these documents.
3.  If the answer is not in the documents, state that clearly.
4.  Cite the filename when referencing specific information.
5.  Format your response using clear Markdown.
"""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=find_dotenv(),
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        validate_default=False,
    )
    MODE: str | None = None

    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # bearer secret protecting the HTTP service; auth is off when unset
    AUTH_SECRET: SecretStr | None = None

    # —— Gemini ——
    GEMINI_API_KEY: SecretStr | None = None
    DEFAULT_MODEL: str = "gemini-3-pro-preview"
    SYSTEM_PROMPT: str = DEFAULT_SYSTEM_PROMPT
    # ——

    # -- Retry --
    MAX_RETRIES: int = 3
    RETRY_BASE_DELAY: float = 1.0

    # -- Indexing --
    POLL_INTERVAL_SECONDS: float = 2.0
    INDEXING_TIMEOUT_SECONDS: float = 120.0
    INDEX_DISPLAY_PREFIX: str = "InsightStore"
    # previously created store to reuse; verified before use
    INDEX_STORE_NAME: str | None = None

    # -- Uploads --
    MAX_UPLOAD_MB: int = 5
    SUPPORTED_EXTENSIONS: list[str] = [
        ".txt",
        ".md",
        ".json",
        ".csv",
        ".js",
        ".jsx",
        ".ts",
        ".tsx",
        ".py",
        ".html",
        ".css",
        ".xml",
        ".sql",
        ".pdf",
    ]
    MIME_TYPE_MAP: dict[str, str] = Field(
        default_factory=lambda: {
            "txt": "text/plain",
            "md": "text/markdown",
            "json": "application/json",
            "csv": "text/csv",
            "js": "text/javascript",
            "jsx": "text/javascript",
            "ts": "text/javascript",
            "tsx": "text/javascript",
            "py": "text/x-python",
            "html": "text/html",
            "css": "text/css",
            "xml": "text/xml",
            "sql": "application/x-sql",
            "pdf": "application/pdf",
        },
        description="Extension (without dot) to MIME type used when sniffing fails",
    )

    def model_post_init(self, __context: Any) -> None:
        self.SUPPORTED_EXTENSIONS = [
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in self.SUPPORTED_EXTENSIONS
        ]
        if self.POLL_INTERVAL_SECONDS <= 0:
            raise ValueError("POLL_INTERVAL_SECONDS must be positive")
        if self.INDEXING_TIMEOUT_SECONDS <= 0:
            raise ValueError("INDEXING_TIMEOUT_SECONDS must be positive")
        if self.MAX_RETRIES < 0:
            raise ValueError("MAX_RETRIES must not be negative")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def BASE_URL(self) -> str:
        return f"http://{self.HOST}:{self.PORT}"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def MAX_UPLOAD_BYTES(self) -> int:
        return self.MAX_UPLOAD_MB * 1024 * 1024

    def is_dev(self) -> bool:
        return self.MODE == "dev"


settings = Settings()


@lru_cache(maxsize=1)
def get_settings() -> Settings:  # pragma: no cover
    """Return a cached instance so settings are evaluated once only."""

    return Settings()

"""Configuration management for the import engine."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Conversation policy
    confidence_threshold: float = 0.7  # Below this the document type is confirmed with the user
    period_choices: int = 3  # Quick-pick months offered for the reference period

    # Date repair: years outside this window are treated as misread days
    plausible_year_min: int = 2020
    plausible_year_max: int = 2030

    # Ledger rows
    other_category_id: int = 13
    ledger_origin: str = "import"
    ledger_status: str = "confirmed"
    currency_symbol: str = "R$"

    # Document extraction
    max_file_size_mb: int = 20
    max_pdf_pages: int = 5
    min_pdf_text_chars: int = 50

    # LLM Configuration
    llm_provider: Literal["ollama", "openai"] = "ollama"
    openai_api_key: str = ""
    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"
    openai_model: str = "gpt-4o-mini"
    llm_timeout: float = 60.0

    # Development mode
    dev_mode: bool = True

    # Data directory
    data_dir: Path = Path.home() / ".chatimport"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # LLM_PROVIDER and llm_provider both work
        extra="ignore",  # Ignore extra environment variables
    )

    @property
    def db_path(self) -> Path:
        """Get the SQLite database path."""
        suffix = "dev" if self.dev_mode else "prod"
        return self.data_dir / f"ledger_{suffix}.db"

    @property
    def plausible_years(self) -> tuple[int, int]:
        """Inclusive year window trusted by the date repair heuristic."""
        return self.plausible_year_min, self.plausible_year_max

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    def ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()

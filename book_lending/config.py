import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # Lending API
    api_base_url: str = os.getenv("LENDING_API_BASE_URL", "http://localhost:10000/api")
    api_timeout: float = float(os.getenv("LENDING_API_TIMEOUT", "10"))

    # Listing
    page_size: int = int(os.getenv("PAGE_SIZE", "10"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "WARNING")

    # Google Books
    google_books_base_url: str = os.getenv("GOOGLE_BOOKS_BASE_URL", "https://www.googleapis.com/books/v1")
    google_books_api_key: Optional[str] = os.getenv("GOOGLE_BOOKS_API_KEY")
    google_books_timeout: float = float(os.getenv("GOOGLE_BOOKS_TIMEOUT", "10"))

    # Hugging Face (magazine JAN lookup)
    hugging_face_api_key: Optional[str] = os.getenv("HUGGING_FACE_API_KEY")
    hugging_face_base_url: str = os.getenv("HUGGING_FACE_BASE_URL", "https://api-inference.huggingface.co")
    hugging_face_model: str = os.getenv("HUGGING_FACE_MAGAZINE_MODEL", "mistralai/Mistral-7B-Instruct-v0.2")
    hugging_face_timeout: float = float(os.getenv("HUGGING_FACE_TIMEOUT", "15"))

    # Feature flags
    enable_metadata_lookup: bool = _env_flag("ENABLE_METADATA_LOOKUP", "True")


settings = Settings()

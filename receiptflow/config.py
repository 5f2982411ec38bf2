"""
Application settings
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./data/receipts.db"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # File storage
    DATA_DIR: str = "./data"
    UPLOAD_DIR: str = "./data/uploads"
    SCRATCH_DIR: str = "./data/temp_images"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Rasterization (poppler via pdf2image)
    RASTER_DPI: int = 300
    RASTER_WIDTH: int = 1654
    RASTER_HEIGHT: int = 2339
    RASTER_TIMEOUT_SECONDS: int = 120
    POPPLER_PATH: Optional[str] = None

    # OCR (tesseract via pytesseract)
    OCR_LANG: str = "eng"
    OCR_CONFIG: str = ""
    OCR_TIMEOUT_SECONDS: int = 120
    TESSERACT_CMD: Optional[str] = None
    OCR_MAX_WORKERS: int = 2

    # Fail startup when poppler or tesseract cannot be found
    VERIFY_EXTERNAL_TOOLS: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))

    # Database settings
    data_file: str = os.getenv("LIBRARY_DB_FILE", "catalog.db")
    seed_file: Optional[str] = os.getenv("LIBRARY_SEED_FILE")

    # Routing
    catalog_prefix: str = os.getenv("CATALOG_PREFIX", "/catalog")

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Local Library")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "False").lower() in ("true", "1", "yes")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Copies saved with a blank status get this one
    default_copy_status: str = os.getenv("DEFAULT_COPY_STATUS", "Maintenance")


settings = Settings()

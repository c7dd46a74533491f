"""
Configuration management for Order Sheets
Loads settings from YAML files with environment variable overrides
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Optional
from pydantic import BaseModel, Field
from loguru import logger


class AppConfig(BaseModel):
    """Main application configuration"""

    # Flask settings
    SECRET_KEY: str = Field(default_factory=lambda: os.urandom(24).hex())
    FLASK_ENV: str = "development"
    DEBUG: bool = True

    # Paths
    OUTPUT_FOLDER: str = "output"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/app.log"

    # Order service
    ORDERS_API_URL: str = "https://api.onrise.in/v1/orders/all?categoryId=H8SZ4VfsFXa4C9cUeonB&status=confirmed"
    HTTP_TIMEOUT_SEC: float = 30.0

    # Image processing
    PRODUCT_IMAGE_QUALITY: float = Field(default=0.85, ge=0.0, le=1.0)
    DARK_PIXEL_THRESHOLD: int = Field(default=50, ge=0, le=255)

    # Layout (millimetres)
    LAYOUT_MODE: str = "pages"  # or "flow"
    PAGE_MARGIN_MM: float = 20.0
    COVER_MARGIN_MM: float = 5.0
    FULL_WIDTH_MARGIN_MM: float = 15.0
    GARMENT_MAX_WIDTH_MM: float = 150.0
    PRODUCT_MAX_WIDTH_MM: float = 90.0


def load_yaml_config(file_path: str) -> Dict:
    """Load configuration from YAML file"""
    path = Path(file_path)
    if not path.exists():
        logger.debug(f"Config file not found: {file_path}")
        return {}

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except Exception as e:
        logger.error(f"Error loading config file {file_path}: {e}")
        return {}


def load_config(environment: str = "development", config_dir: Optional[str] = None) -> AppConfig:
    """Load configuration with environment-specific overrides"""
    config_dir = config_dir or os.getenv('ORDER_SHEETS_CONFIG_DIR', 'config')

    # Load base settings
    base_config = load_yaml_config(f"{config_dir}/settings.yaml")

    # Load environment-specific settings
    env_config = load_yaml_config(f"{config_dir}/settings_{environment}.yaml")

    # Merge configurations (env overrides base)
    config_dict = {**base_config, **env_config}

    # Apply environment variable overrides
    env_overrides = {
        'ORDERS_API_URL': os.getenv('ORDERS_API_URL'),
        'OUTPUT_FOLDER': os.getenv('OUTPUT_FOLDER'),
        'FLASK_ENV': os.getenv('FLASK_ENV', environment),
        'LOG_LEVEL': os.getenv('LOG_LEVEL'),
        'LOG_FILE': os.getenv('LOG_FILE'),
        'SECRET_KEY': os.getenv('SECRET_KEY'),
    }

    # Only include non-None values
    env_overrides = {k: v for k, v in env_overrides.items() if v is not None}
    config_dict.update(env_overrides)

    if 'FLASK_ENV' in config_dict:
        config_dict['DEBUG'] = config_dict['FLASK_ENV'] == 'development'

    try:
        return AppConfig(**config_dict)
    except Exception as e:
        logger.error(f"Configuration validation error: {e}")
        return AppConfig()


# Global config instance
_config_instance = None


def get_config() -> AppConfig:
    """Get the global configuration instance"""
    global _config_instance
    if _config_instance is None:
        _config_instance = load_config(os.getenv('FLASK_ENV', 'development'))
    return _config_instance


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it"""
    global _config_instance
    _config_instance = None

"""
Centralized configuration for the Cribbage table server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.PORT)
    print(config.cribbage.points_to_win)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class CribbageDefaults:
    """Default match rules - the single source of truth for table settings."""
    points_to_win: int = 121
    skunk_enabled: bool = True
    skunk_threshold: int = 91         # Loser below this = skunk (2x)
    double_skunk_enabled: bool = True
    double_skunk_threshold: int = 61  # Loser below this = double skunk (3x)
    ante_amount: int = 1

    def to_dict(self) -> dict:
        """Get defaults as dictionary for rule construction."""
        return {
            "points_to_win": self.points_to_win,
            "skunk_enabled": self.skunk_enabled,
            "skunk_threshold": self.skunk_threshold,
            "double_skunk_enabled": self.double_skunk_enabled,
            "double_skunk_threshold": self.double_skunk_threshold,
            "ante_amount": self.ante_amount,
        }


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Persistence (both optional - tables run in memory without them)
    DATABASE_URL: str = ""
    REDIS_URL: str = ""

    # Table settings
    MAX_TABLES: int = 200
    BOT_AUTOPLAY: bool = True

    # Match rules
    cribbage: CribbageDefaults = field(default_factory=CribbageDefaults)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 8000),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            DATABASE_URL=get_env("DATABASE_URL", ""),
            REDIS_URL=get_env("REDIS_URL", ""),
            MAX_TABLES=get_env_int("MAX_TABLES", 200),
            BOT_AUTOPLAY=get_env_bool("BOT_AUTOPLAY", True),
            cribbage=CribbageDefaults(
                points_to_win=get_env_int("CRIBBAGE_POINTS_TO_WIN", 121),
                skunk_enabled=get_env_bool("CRIBBAGE_SKUNK_ENABLED", True),
                skunk_threshold=get_env_int("CRIBBAGE_SKUNK_THRESHOLD", 91),
                double_skunk_enabled=get_env_bool("CRIBBAGE_DOUBLE_SKUNK_ENABLED", True),
                double_skunk_threshold=get_env_int("CRIBBAGE_DOUBLE_SKUNK_THRESHOLD", 61),
                ante_amount=get_env_int("CRIBBAGE_ANTE_AMOUNT", 1),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config

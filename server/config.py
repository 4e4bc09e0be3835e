"""
Centralized configuration for the Flip 7 rules engine.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.LOG_LEVEL)
    print(config.game_defaults.goal_score)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

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
class GameDefaults:
    """Default rule parameters for a new table."""
    max_rounds: int = 5
    goal_score: int = 200
    completion_bonus: int = 15     # Flip 7 bonus, added after the multiplier
    completion_target: int = 7     # distinct number values needed for Flip 7
    flip_three_count: int = 3
    min_players: int = 2
    max_players: int = 8


@dataclass
class ServerConfig:
    """Configuration for the service embedding the engine."""
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Shared table storage
    REDIS_URL: str = "redis://localhost:6379"
    STORE_MAX_RETRIES: int = 5
    TABLE_TTL_HOURS: int = 24

    # Room settings
    ROOM_CODE_LENGTH: int = 6
    TURN_TIMEOUT_SECONDS: int = 30

    # Rule defaults
    game_defaults: GameDefaults = field(default_factory=GameDefaults)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            REDIS_URL=get_env("REDIS_URL", "redis://localhost:6379"),
            STORE_MAX_RETRIES=get_env_int("STORE_MAX_RETRIES", 5),
            TABLE_TTL_HOURS=get_env_int("TABLE_TTL_HOURS", 24),
            ROOM_CODE_LENGTH=get_env_int("ROOM_CODE_LENGTH", 6),
            TURN_TIMEOUT_SECONDS=get_env_int("TURN_TIMEOUT_SECONDS", 30),
            game_defaults=GameDefaults(
                max_rounds=get_env_int("DEFAULT_MAX_ROUNDS", 5),
                goal_score=get_env_int("DEFAULT_GOAL_SCORE", 200),
                completion_bonus=get_env_int("COMPLETION_BONUS", 15),
                completion_target=get_env_int("COMPLETION_TARGET", 7),
                flip_three_count=get_env_int("FLIP_THREE_COUNT", 3),
                min_players=get_env_int("MIN_PLAYERS", 2),
                max_players=get_env_int("MAX_PLAYERS", 8),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config

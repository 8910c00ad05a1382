import tomllib
import shutil
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv
import os

CONFIG_DIR = Path.home() / ".quizladder"
CONFIG_PATH = CONFIG_DIR / "config.toml"
PROJECT_CONFIG_EXAMPLE = Path(__file__).parent / "config.toml"

def load_config() -> Dict[str, Any]:
    """Load config from ~/.quizladder/config.toml, copy example if missing, load .env overrides."""
    load_dotenv()  # Load .env for overrides (e.g., QUIZLADDER_DB_PATH env var)
    if not CONFIG_PATH.exists():
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        shutil.copy(PROJECT_CONFIG_EXAMPLE, CONFIG_PATH)
    with open(CONFIG_PATH, "rb") as f:
        config = tomllib.load(f)

    database_cfg = config.get("database", {})
    config["database"] = {
        "path": os.getenv("QUIZLADDER_DB_PATH", database_cfg.get("path", "")),
        "busy_timeout_seconds": float(os.getenv(
            "QUIZLADDER_DB_TIMEOUT", database_cfg.get("busy_timeout_seconds", 10)
        )),
    }
    calendar_cfg = config.get("calendar", {})
    config["calendar"] = {
        "timezone": os.getenv("QUIZLADDER_TIMEZONE", calendar_cfg.get("timezone", "Asia/Kolkata")),
    }
    rewards_cfg = config.get("rewards", {})
    config["rewards"] = {
        "xp_per_correct_first_attempt": int(rewards_cfg.get("xp_per_correct_first_attempt", 5)),
        "xp_per_correct_repeat": int(rewards_cfg.get("xp_per_correct_repeat", 1)),
        "unlock_accuracy_percent": float(rewards_cfg.get("unlock_accuracy_percent", 30)),
        "min_watch_percent": float(rewards_cfg.get("min_watch_percent", 80)),
    }
    leaderboard_cfg = config.get("leaderboard", {})
    config["leaderboard"] = {
        "top_n": int(leaderboard_cfg.get("top_n", 50)),
    }
    cache_cfg = config.get("cache", {})
    config["cache"] = {
        "settings_ttl_seconds": float(cache_cfg.get("settings_ttl_seconds", 300)),
        "reels_ttl_seconds": float(cache_cfg.get("reels_ttl_seconds", 3600)),
    }
    logging_cfg = config.get("logging", {})
    config["logging"] = {
        "level": os.getenv("QUIZLADDER_LOG_LEVEL", logging_cfg.get("level", "INFO")).upper(),
    }
    return config

def get_config_value(section: str, key: str, default: Optional[Any] = None) -> Any:
    """Get nested config value, e.g., get_config_value('rewards', 'min_watch_percent')."""
    config = load_config()
    value = config.get(section, {}).get(key, default)
    return value

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

from dotenv import load_dotenv


def _load_env() -> None:
    env_file = os.getenv("ENV_FILE", "").strip()
    if env_file:
        load_dotenv(dotenv_path=env_file)
        return

    repo_root = Path(__file__).resolve().parents[2]
    parent_root = repo_root.parent
    candidates = [
        parent_root / ".env",
        repo_root / ".env",
        Path.cwd() / ".env",
    ]

    for candidate in candidates:
        if candidate.exists():
            load_dotenv(dotenv_path=candidate)
            return

    load_dotenv()


_load_env()


DEFAULT_LLM_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai"
DEFAULT_REPO_URL = "https://github.com/asukaminato0721/telegram-summary-bot"


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str
    db_path: str
    default_timezone: str
    llm_base_url: str
    llm_api_key: str
    llm_model: str
    llm_temperature: float
    llm_timeout_seconds: int
    llm_max_tokens: int
    daily_summary_message_threshold: int
    message_cleanup_threshold: int
    image_retention_hours: int
    skip_summary_group_ids: Tuple[int, ...]
    ignored_keywords: Tuple[str, ...]
    summary_shard_count: int
    summary_interval_minutes: int
    active_groups_cache_ttl_seconds: int
    link_reference_prefix: str
    repo_url: str
    git_commit_sha: str
    link_preview_enabled: bool


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _str_list_env(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _int_list_env(name: str, default: Tuple[int, ...]) -> Tuple[int, ...]:
    items: list[int] = []
    for part in _str_list_env(name, tuple(str(item) for item in default)):
        try:
            items.append(int(part))
        except ValueError as exc:
            raise ValueError(f"Invalid integer in {name}: {part}") from exc
    return tuple(items)


def _validate_cadence(shard_count: int, interval_minutes: int) -> None:
    if shard_count <= 0 or interval_minutes <= 0:
        raise ValueError("SUMMARY_SHARD_COUNT and SUMMARY_INTERVAL_MINUTES must be positive.")
    if shard_count * interval_minutes != 60:
        raise ValueError(
            "SUMMARY_SHARD_COUNT * SUMMARY_INTERVAL_MINUTES must equal 60 "
            f"(got {shard_count} * {interval_minutes})."
        )


def get_settings() -> Settings:
    token = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()
    if not token:
        raise ValueError("Missing TELEGRAM_BOT_TOKEN in environment.")

    shard_count = _int_env("SUMMARY_SHARD_COUNT", 10)
    interval_minutes = _int_env("SUMMARY_INTERVAL_MINUTES", 6)
    _validate_cadence(shard_count, interval_minutes)

    return Settings(
        telegram_bot_token=token,
        db_path=os.getenv("DB_PATH", "summary_bot.db"),
        default_timezone=os.getenv("DEFAULT_TIMEZONE", "Asia/Shanghai"),
        llm_base_url=os.getenv("LLM_BASE_URL", DEFAULT_LLM_BASE_URL).strip(),
        llm_api_key=os.getenv("LLM_API_KEY", os.getenv("GEMINI_API_KEY", "")).strip(),
        llm_model=os.getenv("LLM_MODEL", "gemini-2.0-flash").strip(),
        llm_temperature=_float_env("LLM_TEMPERATURE", 0.4),
        llm_timeout_seconds=max(5, _int_env("LLM_TIMEOUT_SECONDS", 30)),
        llm_max_tokens=max(256, _int_env("LLM_MAX_TOKENS", 4096)),
        daily_summary_message_threshold=max(0, _int_env("DAILY_SUMMARY_MESSAGE_THRESHOLD", 10)),
        message_cleanup_threshold=max(1, _int_env("MESSAGE_CLEANUP_THRESHOLD", 5000)),
        image_retention_hours=max(1, _int_env("IMAGE_RETENTION_HOURS", 48)),
        skip_summary_group_ids=_int_list_env("SKIP_SUMMARY_GROUP_IDS", (-1001687785734,)),
        ignored_keywords=_str_list_env("IGNORED_KEYWORDS", ("签到", "打卡", "查找")),
        summary_shard_count=shard_count,
        summary_interval_minutes=interval_minutes,
        active_groups_cache_ttl_seconds=max(60, _int_env("ACTIVE_GROUPS_CACHE_TTL_SECONDS", 10000)),
        link_reference_prefix=os.getenv("LINK_REFERENCE_PREFIX", "ref").strip() or "ref",
        repo_url=os.getenv("REPO_URL", DEFAULT_REPO_URL).strip(),
        git_commit_sha=os.getenv("GIT_COMMIT_SHA", "").strip(),
        link_preview_enabled=_bool_env("LINK_PREVIEW_ENABLED", True),
    )

"""Configuration loading, validation and persistence."""

import json
import os
from dataclasses import asdict, dataclass, field

from summarizer.exceptions import ConfigurationError, PersistenceError

DEFAULT_SUMMARY_PROMPT = "请用简洁的中文总结以上对话的主要内容，保留关键信息和角色行为。"
DEFAULT_USER_DISPLAY_NAME = "用户"


@dataclass
class ApiConfig:
    """Configuration for the chat-completions endpoint."""
    endpoint: str = ""
    api_key: str = ""
    model: str = ""
    temperature: float = 0.7
    max_tokens: int = 2000
    connect_timeout: float = 5.0
    read_timeout: float = 120.0
    request_timeout: float = 180.0
    max_retries: int = 3


@dataclass
class ExtractionConfig:
    """Persisted extraction rules and blacklist."""
    enabled: bool = False
    rules: list[dict] = field(default_factory=list)
    blacklist: list[str] = field(default_factory=list)


@dataclass
class WorldInfoConfig:
    """Configuration for the optional world-info memory sink."""
    enabled: bool = False
    book_name: str = "Chat Summaries"
    directory: str = "data/world_info"


@dataclass
class ExtensionsConfig:
    """Configuration for extension toggles."""
    enabled_map: dict[str, bool] = field(default_factory=dict)


@dataclass
class SummarizerConfig:
    """Complete summarizer configuration."""
    api: ApiConfig = field(default_factory=ApiConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    world_info: WorldInfoConfig = field(default_factory=WorldInfoConfig)
    extensions: ExtensionsConfig = field(default_factory=ExtensionsConfig)
    summary_prompt: str = DEFAULT_SUMMARY_PROMPT
    user_display_name: str = DEFAULT_USER_DISPLAY_NAME
    max_messages: int = 20
    auto_summarize: bool = False
    trigger_interval: int = 20
    keep_visible: int = 10
    auto_hide: bool = False
    settle_delay: float = 1.0
    data_dir: str = "data"
    log_dir: str | None = "data/logs"
    store_path: str = "data/summaries.db"
    chats_dir: str = "data/chats"
    credentials_path: str = "data/credentials.json"


def require_api(api: ApiConfig, need_model: bool = True) -> None:
    """Fail fast before any network call when credentials are incomplete."""
    missing = []
    if not api.endpoint:
        missing.append("endpoint")
    if not api.api_key:
        missing.append("api_key")
    if need_model and not api.model:
        missing.append("model")
    if missing:
        raise ConfigurationError(f"API configuration incomplete: missing {', '.join(missing)}")


def load_config(config_path: str = "config.json") -> SummarizerConfig:
    """Load configuration from JSON file with defaults."""
    if not os.path.exists(config_path):
        config = SummarizerConfig()
        _apply_env_overrides(config.api)
        return config

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        raise ConfigurationError(f"Failed to load config from {config_path}: {e}")

    if not isinstance(raw, dict):
        raise ConfigurationError(f"{config_path} must contain a JSON object")

    return config_from_dict(raw)


def config_from_dict(raw: dict) -> SummarizerConfig:
    """Build a validated config from a raw settings mapping."""
    data_dir = raw.get("data_dir", "data")
    if not isinstance(data_dir, str) or not data_dir.strip():
        raise ConfigurationError("data_dir must be a non-empty string")

    api = _load_api_settings(raw.get("api", {}) or {})
    _apply_env_overrides(api)
    extraction = _load_extraction_settings(raw.get("extraction", {}) or {})
    world_info = _load_world_info_settings(raw.get("world_info", {}) or {}, data_dir)
    extensions = _load_extensions_settings(raw.get("extensions", {}))

    summary_prompt = raw.get("summary_prompt", DEFAULT_SUMMARY_PROMPT)
    if not isinstance(summary_prompt, str) or not summary_prompt.strip():
        raise ConfigurationError("summary_prompt must be a non-empty string")

    user_display_name = raw.get("user_display_name", DEFAULT_USER_DISPLAY_NAME)
    if not isinstance(user_display_name, str) or not user_display_name.strip():
        raise ConfigurationError("user_display_name must be a non-empty string")

    log_dir = raw.get("log_dir", os.path.join(data_dir, "logs"))
    if log_dir is not None and not isinstance(log_dir, str):
        raise ConfigurationError("log_dir must be a string or null")

    return SummarizerConfig(
        api=api,
        extraction=extraction,
        world_info=world_info,
        extensions=extensions,
        summary_prompt=summary_prompt,
        user_display_name=user_display_name.strip(),
        max_messages=_coerce_int(raw.get("max_messages", 20), "max_messages", 1),
        auto_summarize=_coerce_bool(raw.get("auto_summarize", False), "auto_summarize"),
        trigger_interval=_coerce_int(raw.get("trigger_interval", 20), "trigger_interval", 1),
        keep_visible=_coerce_int(raw.get("keep_visible", 10), "keep_visible", 0),
        auto_hide=_coerce_bool(raw.get("auto_hide", False), "auto_hide"),
        settle_delay=_coerce_float(raw.get("settle_delay", 1.0), "settle_delay", 0.0),
        data_dir=data_dir,
        log_dir=log_dir,
        store_path=raw.get("store_path", os.path.join(data_dir, "summaries.db")),
        chats_dir=raw.get("chats_dir", os.path.join(data_dir, "chats")),
        credentials_path=raw.get("credentials_path", os.path.join(data_dir, "credentials.json")),
    )


def config_to_dict(config: SummarizerConfig, include_secrets: bool = False) -> dict:
    """Serialize a config for the settings file.

    The API key is left out unless asked for; it normally lives in the
    credential store.
    """
    payload = asdict(config)
    if not include_secrets:
        payload["api"].pop("api_key", None)
    payload["extensions"] = dict(config.extensions.enabled_map)
    return payload


class SettingsStore:
    """JSON-file persistence for the settings object."""

    def __init__(self, path: str, credentials: "CredentialStore | None" = None):
        self.path = path
        self.credentials = credentials

    def load(self) -> SummarizerConfig:
        config = load_config(self.path)
        if self.credentials is not None:
            self.credentials.apply(config)
        return config

    def save(self, config: SummarizerConfig) -> None:
        """Write the settings file and mirror credentials."""
        existing: dict = {}
        if os.path.exists(self.path):
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    existing = json.load(f)
            except (json.JSONDecodeError, IOError):
                existing = {}
        if not isinstance(existing, dict):
            existing = {}
        existing.update(config_to_dict(config, include_secrets=self.credentials is None))
        try:
            _write_json(self.path, existing)
        except OSError as e:
            raise PersistenceError(f"Failed to save settings to {self.path}: {e}") from e
        if self.credentials is not None:
            self.credentials.save(config.api.endpoint, config.api.api_key)


class CredentialStore:
    """Endpoint and key mirrored into a file separate from the settings."""

    def __init__(self, path: str):
        self.path = path

    def load(self) -> dict | None:
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError):
            return None
        return data if isinstance(data, dict) else None

    def save(self, endpoint: str, api_key: str) -> None:
        try:
            _write_json(self.path, {"endpoint": endpoint, "api_key": api_key})
        except OSError as e:
            raise PersistenceError(f"Failed to save credentials to {self.path}: {e}") from e

    def apply(self, config: SummarizerConfig) -> None:
        """Overlay stored credentials onto a loaded config."""
        creds = self.load()
        if not creds:
            return
        if creds.get("endpoint"):
            config.api.endpoint = str(creds["endpoint"]).strip()
        if creds.get("api_key"):
            config.api.api_key = str(creds["api_key"]).strip()


def _apply_env_overrides(api: ApiConfig) -> None:
    env_endpoint = os.getenv("SUMMARIZER_API_ENDPOINT")
    if env_endpoint:
        api.endpoint = env_endpoint.strip()
    env_key = os.getenv("SUMMARIZER_API_KEY")
    if env_key:
        api.api_key = env_key.strip()
    env_model = os.getenv("SUMMARIZER_MODEL")
    if env_model:
        api.model = env_model.strip()


def _load_api_settings(raw: dict) -> ApiConfig:
    """Parse and validate completions endpoint settings."""
    if not isinstance(raw, dict):
        raise ConfigurationError("api must be an object")

    strings = {}
    for key in ("endpoint", "api_key", "model"):
        value = raw.get(key, "")
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise ConfigurationError(f"api.{key} must be a string")
        strings[key] = value.strip()

    return ApiConfig(
        endpoint=strings["endpoint"],
        api_key=strings["api_key"],
        model=strings["model"],
        temperature=_coerce_float(raw.get("temperature", 0.7), "api.temperature", 0.0),
        max_tokens=_coerce_int(raw.get("max_tokens", 2000), "api.max_tokens", 1),
        connect_timeout=_coerce_float(raw.get("connect_timeout", 5.0), "api.connect_timeout", 0.1),
        read_timeout=_coerce_float(raw.get("read_timeout", 120.0), "api.read_timeout", 0.1),
        request_timeout=_coerce_float(raw.get("request_timeout", 180.0), "api.request_timeout", 0.1),
        max_retries=_coerce_int(raw.get("max_retries", 3), "api.max_retries", 1),
    )


def _load_extraction_settings(raw: dict) -> ExtractionConfig:
    """Parse extraction rules and blacklist; rule kinds are checked by RuleSet."""
    if not isinstance(raw, dict):
        raise ConfigurationError("extraction must be an object")

    enabled = _coerce_bool(raw.get("enabled", False), "extraction.enabled")

    rules_raw = raw.get("rules", []) or []
    if not isinstance(rules_raw, list):
        raise ConfigurationError("extraction.rules must be a list")
    rules: list[dict] = []
    for idx, rule in enumerate(rules_raw):
        if not isinstance(rule, dict):
            raise ConfigurationError(f"extraction.rules[{idx}] must be an object")
        kind = rule.get("type")
        value = rule.get("value")
        if not isinstance(kind, str) or not isinstance(value, str):
            raise ConfigurationError(f"extraction.rules[{idx}] needs string 'type' and 'value'")
        rules.append({"type": kind, "value": value})

    blacklist_raw = raw.get("blacklist", []) or []
    if not isinstance(blacklist_raw, list):
        raise ConfigurationError("extraction.blacklist must be a list")
    blacklist: list[str] = []
    for entry in blacklist_raw:
        if not isinstance(entry, str):
            raise ConfigurationError("extraction.blacklist must contain strings")
        blacklist.append(entry)

    return ExtractionConfig(enabled=enabled, rules=rules, blacklist=blacklist)


def _load_world_info_settings(raw: dict, data_dir: str) -> WorldInfoConfig:
    """Parse and validate world-info sink settings."""
    if not isinstance(raw, dict):
        raise ConfigurationError("world_info must be an object")

    enabled = _coerce_bool(raw.get("enabled", False), "world_info.enabled")

    book_name = raw.get("book_name", "Chat Summaries")
    if not isinstance(book_name, str) or not book_name.strip():
        raise ConfigurationError("world_info.book_name must be a non-empty string")

    directory = raw.get("directory", os.path.join(data_dir, "world_info"))
    if not isinstance(directory, str) or not directory.strip():
        raise ConfigurationError("world_info.directory must be a non-empty string")

    return WorldInfoConfig(enabled=enabled, book_name=book_name.strip(), directory=directory)


def _load_extensions_settings(raw: dict) -> ExtensionsConfig:
    """Parse and validate extension toggle settings."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigurationError("extensions must be an object mapping extension name to boolean")
    enabled_map: dict[str, bool] = {}
    for key, value in raw.items():
        if not isinstance(key, str) or not key.strip():
            raise ConfigurationError("extensions keys must be non-empty strings")
        if not isinstance(value, bool):
            raise ConfigurationError(f"extensions.{key} must be a boolean")
        enabled_map[key.strip()] = value
    return ExtensionsConfig(enabled_map=enabled_map)


def _write_json(path: str, payload: dict) -> None:
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)


def _coerce_bool(value: object, name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a boolean")
    return value


def _coerce_float(value: object, name: str, min_value: float) -> float:
    """Coerce config value to float with basic validation."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number")

    if value < min_value:
        raise ConfigurationError(f"{name} must be >= {min_value}")
    return value


def _coerce_int(value: object, name: str, min_value: int) -> int:
    """Coerce config value to int with basic validation."""
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer")
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer")

    if value < min_value:
        raise ConfigurationError(f"{name} must be >= {min_value}")
    return value

"""Configuration helpers for the style preference engine."""

from dataclasses import dataclass
from pathlib import Path
import os
from typing import Optional

STORE_BACKENDS = ("json", "sqlite", "rest")
DEFAULT_STORE_BACKEND = "sqlite"
DEFAULT_REST_TIMEOUT_SECONDS = 5.0


@dataclass
class AppConfig:
    """Configuration values for the engine and its persistence backend.

    ``profile_store_path`` is a database file for ``sqlite`` and a directory
    for ``json``. With ``rest`` it names the local fallback directory used
    while remote sync is unavailable.
    """

    profile_store_backend: str = DEFAULT_STORE_BACKEND
    profile_store_path: Optional[str] = None
    rest_url: Optional[str] = None
    rest_api_key: Optional[str] = None
    rest_timeout_seconds: float = DEFAULT_REST_TIMEOUT_SECONDS
    log_level: str = "INFO"
    environment: str | None = None

    def __post_init__(self) -> None:
        backend = (self.profile_store_backend or DEFAULT_STORE_BACKEND).strip().lower()
        if backend not in STORE_BACKENDS:
            raise ValueError(f"Unsupported profile store backend '{self.profile_store_backend}'")
        self.profile_store_backend = backend
        if backend == "rest" and not self.rest_url:
            raise ValueError("rest_url is required when profile_store_backend is 'rest'")
        if self.rest_timeout_seconds <= 0:
            raise ValueError("rest_timeout_seconds must be positive")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build a config from environment variables or an environment YAML file.

        Environment specific YAML lives in ``config/environments/<env>.yaml`` by
        default and is merged with environment variables so that secrets such
        as the REST API key can be injected by the runtime environment.
        """

        env_name = os.getenv("APP_ENV")
        config_path = os.getenv("APP_CONFIG_PATH")
        config_dir = Path(os.getenv("APP_CONFIG_DIR", "config/environments"))
        yaml_config: dict = {}

        if config_path:
            path = Path(config_path)
        elif env_name:
            path = config_dir / f"{env_name}.yaml"
        else:
            path = None

        if path and path.exists():
            yaml_config = cls._load_yaml_config(path)

        def get_value(key: str, default: Optional[str] = None) -> Optional[str]:
            env_key = key.upper()
            return os.getenv(env_key, yaml_config.get(key, default))

        timeout_raw = get_value("rest_timeout_seconds")
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_REST_TIMEOUT_SECONDS
        except ValueError as exc:
            raise ValueError(f"rest_timeout_seconds must be a number, got {timeout_raw!r}") from exc

        return cls(
            profile_store_backend=str(get_value("profile_store_backend", DEFAULT_STORE_BACKEND)),
            profile_store_path=get_value("profile_store_path"),
            rest_url=get_value("rest_url"),
            rest_api_key=get_value("rest_api_key"),
            rest_timeout_seconds=timeout,
            log_level=str(get_value("log_level", "INFO") or "INFO"),
            environment=env_name,
        )

    @staticmethod
    def _load_yaml_config(path: Path) -> dict:
        """Parse a minimal YAML/INI-style config without external dependencies."""

        config: dict[str, str] = {}
        for line in path.read_text().splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            value = raw_value.strip()
            if (value.startswith("\"") and value.endswith("\"")) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]
            config[key.strip()] = value
        return config

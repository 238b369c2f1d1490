"""
Configuration for the composition engine.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class EngineConfig(BaseModel):
    """Scheduling and traversal settings."""

    workers: int = Field(default_factory=lambda: os.cpu_count() or 4, ge=1)
    render_timeout: float = 60.0  # seconds, per renderer invocation
    respect_gitignore: bool = True
    base_dir: str | None = None  # relative roots resolve against this


class CacheConfig(BaseModel):
    """Graph and cache persistence."""

    backend: str = "sqlite"  # sqlite, memory
    db_path: str = ".composition/cache.db"
    remote_ttl_seconds: int = 86400


class HttpConfig(BaseModel):
    """Remote fetch settings."""

    timeout: float = 30.0
    user_agent: str = "composition-engine/0.1"
    follow_redirects: bool = True


class LLMConfig(BaseModel):
    """LLM provider configuration."""

    provider: str = "ollama"  # ollama, openai
    model: str = "llama3.1:8b"
    base_url: str | None = None  # provider default when unset
    api_key: str | None = None
    temperature: float = 0.0
    max_tokens: int = 2000
    timeout: float = 120.0


class EmbedderConfig(BaseModel):
    """Embedder configuration."""

    provider: str = "ollama"  # ollama, openai
    model: str = "nomic-embed-text"
    base_url: str | None = None  # provider default when unset
    api_key: str | None = None
    timeout: float = 120.0
    dimensions: int | None = None  # OpenAI text-embedding-3 only


class WatchConfig(BaseModel):
    """Polling watcher configuration."""

    interval: float = 0.5
    debounce: float = 1.0


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = False
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class Config(BaseModel):
    """Main configuration."""

    engine: EngineConfig = Field(default_factory=EngineConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    embedder: EmbedderConfig = Field(default_factory=EmbedderConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in project root)

        Returns:
            Config instance

        Environment variables:
            COMPOSITION_WORKERS: Worker pool size
            COMPOSITION_RENDER_TIMEOUT: Per-renderer timeout in seconds
            COMPOSITION_RESPECT_GITIGNORE: Refuse files ignored by .gitignore
            COMPOSITION_BASE_DIR: Base directory for relative roots
            COMPOSITION_CACHE_BACKEND: Cache backend (sqlite, memory)
            COMPOSITION_CACHE_DB_PATH: SQLite database path
            COMPOSITION_REMOTE_TTL: Default remote TTL in seconds
            COMPOSITION_HTTP_TIMEOUT: Remote fetch timeout in seconds
            COMPOSITION_LLM_PROVIDER: LLM provider (ollama, openai)
            COMPOSITION_LLM_MODEL: LLM model name
            COMPOSITION_LLM_API_KEY: LLM API key (for OpenAI)
            COMPOSITION_EMBEDDER_PROVIDER: Embedder provider
            COMPOSITION_EMBEDDER_MODEL: Embedder model name
            COMPOSITION_EMBEDDER_DIMENSIONS: Embedding vector size (OpenAI only)
            COMPOSITION_LOG_LEVEL: Log level
        """
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None or value == "":
                return default
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        engine_defaults = EngineConfig()
        return cls(
            engine=EngineConfig(
                workers=get_env("COMPOSITION_WORKERS", engine_defaults.workers),
                render_timeout=get_env("COMPOSITION_RENDER_TIMEOUT", 60.0),
                respect_gitignore=get_env("COMPOSITION_RESPECT_GITIGNORE", True),
                base_dir=get_env("COMPOSITION_BASE_DIR"),
            ),
            cache=CacheConfig(
                backend=get_env("COMPOSITION_CACHE_BACKEND", "sqlite"),
                db_path=get_env("COMPOSITION_CACHE_DB_PATH", ".composition/cache.db"),
                remote_ttl_seconds=get_env("COMPOSITION_REMOTE_TTL", 86400),
            ),
            http=HttpConfig(
                timeout=get_env("COMPOSITION_HTTP_TIMEOUT", 30.0),
                user_agent=get_env("COMPOSITION_HTTP_USER_AGENT", "composition-engine/0.1"),
                follow_redirects=get_env("COMPOSITION_HTTP_FOLLOW_REDIRECTS", True),
            ),
            llm=LLMConfig(
                provider=get_env("COMPOSITION_LLM_PROVIDER", "ollama"),
                model=get_env("COMPOSITION_LLM_MODEL", "llama3.1:8b"),
                base_url=get_env("COMPOSITION_LLM_BASE_URL"),
                api_key=get_env("COMPOSITION_LLM_API_KEY"),
                temperature=get_env("COMPOSITION_LLM_TEMPERATURE", 0.0),
                max_tokens=get_env("COMPOSITION_LLM_MAX_TOKENS", 2000),
                timeout=get_env("COMPOSITION_LLM_TIMEOUT", 120.0),
            ),
            embedder=EmbedderConfig(
                provider=get_env("COMPOSITION_EMBEDDER_PROVIDER", "ollama"),
                model=get_env("COMPOSITION_EMBEDDER_MODEL", "nomic-embed-text"),
                base_url=get_env("COMPOSITION_EMBEDDER_BASE_URL"),
                api_key=get_env("COMPOSITION_EMBEDDER_API_KEY"),
                timeout=get_env("COMPOSITION_EMBEDDER_TIMEOUT", 120.0),
                dimensions=get_env("COMPOSITION_EMBEDDER_DIMENSIONS", 0) or None,
            ),
            watch=WatchConfig(
                interval=get_env("COMPOSITION_WATCH_INTERVAL", 0.5),
                debounce=get_env("COMPOSITION_WATCH_DEBOUNCE", 1.0),
            ),
            logging=LoggingConfig(
                level=get_env("COMPOSITION_LOG_LEVEL", "INFO"),
                log_to_file=get_env("COMPOSITION_LOG_TO_FILE", False),
                log_dir=get_env("COMPOSITION_LOG_DIR", "logs"),
                file_rotation=get_env("COMPOSITION_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("COMPOSITION_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("COMPOSITION_LOG_COMPRESSION", "zip"),
                serialize=get_env("COMPOSITION_LOG_SERIALIZE", True),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Sections whose env values differ from the defaults replace the
        matching YAML section.
        """
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        env_config = cls.from_env(env_file)
        default = cls()

        final_dict = {**config_dict}
        for section in cls.model_fields:
            env_section = getattr(env_config, section)
            if env_section != getattr(default, section):
                final_dict[section] = env_section.model_dump()

        return cls(**final_dict) if final_dict else env_config


# Default config instance
default_config = Config()

"""Audit configuration using Pydantic Settings.

Settings come from, in increasing precedence:
- Defaults declared on ``AuditSettings``
- ``DOCAUDIT_*`` environment variables (and a local ``.env`` file)
- The project's ``.docaudit.yml`` (or the file passed with ``--config``)
- Explicit overrides (CLI flags)
"""

from __future__ import annotations

import fnmatch
from pathlib import Path, PurePosixPath
from typing import Any, Literal

import yaml
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_FILENAME = ".docaudit.yml"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# Always excluded; user patterns are added to these
DEFAULT_EXCLUDE = [
    ".git",
    ".hg",
    "node_modules",
    ".venv",
    "venv",
    "__pycache__",
    ".tox",
    ".mypy_cache",
    ".pytest_cache",
    "build",
    "dist",
    "site-packages",
]


class AuditSettings(BaseSettings):
    """Settings for a documentation audit run."""

    model_config = SettingsConfigDict(
        env_prefix="DOCAUDIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Corpus discovery
    include: list[str] = Field(
        default=["**/*.md", "**/*.markdown"],
        description="Glob patterns (relative to the project root) selecting documents",
    )
    exclude: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE),
        description="Directory names or path globs excluded in addition to the defaults",
    )

    # Orphan analysis
    root_documents: list[str] = Field(
        default=["README.md", "docs/README.md", "docs/index.md"],
        description="Entry-point documents used for reachability",
    )
    protected: list[str] = Field(
        default=[
            "CHANGELOG*",
            "LICENSE*",
            "CONTRIBUTING*",
            "SECURITY*",
            "CODE_OF_CONDUCT*",
            "AGENTS.md",
            "CLAUDE.md",
            ".github/**",
        ],
        description="Documents never reported as deletion candidates",
    )

    # Staleness
    source_mapping: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Document glob -> source globs it describes",
    )
    staleness_days: int = Field(
        default=0,
        ge=0,
        description="Grace period before a newer source makes a document stale",
    )

    # Duplicate detection
    similarity_threshold: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="Minimum Jaccard similarity for two passages to be duplicates",
    )
    shingle_size: int = Field(default=5, ge=1, le=50)
    num_perm: int = Field(default=64, ge=8, le=1024)
    lsh_bands: int = Field(default=16, ge=1)
    min_paragraph_words: int = Field(
        default=12,
        ge=1,
        description="Paragraphs shorter than this are ignored by duplicate detection",
    )

    # Scope selection
    incremental_max_ratio: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Largest share of the corpus an automatic incremental scan may cover",
    )

    # Logging
    log_level: str = "WARNING"
    log_format: Literal["text", "json"] = "text"
    log_file: str | None = None

    @field_validator("exclude")
    @classmethod
    def merge_default_excludes(cls, v: list[str]) -> list[str]:
        return DEFAULT_EXCLUDE + [p for p in v if p not in DEFAULT_EXCLUDE]

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        return level

    @model_validator(mode="after")
    def validate_lsh_layout(self) -> AuditSettings:
        if self.num_perm % self.lsh_bands != 0:
            raise ValueError(
                f"lsh_bands ({self.lsh_bands}) must evenly divide num_perm ({self.num_perm})"
            )
        return self

    @property
    def rows_per_band(self) -> int:
        return self.num_perm // self.lsh_bands


def load_settings(
    project_root: Path,
    config_path: Path | None = None,
    **overrides: Any,
) -> AuditSettings:
    """Load settings for a project.

    Args:
        project_root: Root directory of the audited project
        config_path: Explicit config file; defaults to ``<root>/.docaudit.yml``
        **overrides: Values that win over every other source (``None`` is skipped)

    Returns:
        Validated settings

    Raises:
        ConfigurationError: If the config file is missing (when explicit),
            unreadable, malformed, or holds invalid values
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = project_root / DEFAULT_CONFIG_FILENAME

    file_values: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Failed to load config: {e}", config_path=str(config_path)
            ) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                "Config file must contain a mapping at the top level",
                config_path=str(config_path),
            )
        file_values = {str(k).replace("-", "_"): v for k, v in data.items()}

        unknown = sorted(set(file_values) - set(AuditSettings.model_fields))
        if unknown:
            logger.warning(f"Ignoring unknown config keys in {config_path}: {', '.join(unknown)}")
        logger.debug(f"Loaded config file {config_path}")
    elif explicit:
        raise ConfigurationError(
            f"Config file not found: {config_path}", config_path=str(config_path)
        )

    values = {**file_values, **{k: v for k, v in overrides.items() if v is not None}}
    try:
        return AuditSettings(**values)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration: {e}", config_path=str(config_path)
        ) from e


def path_matches(path: str, patterns: list[str]) -> bool:
    """Check a project-relative POSIX path against glob patterns.

    Patterns without a ``/`` match the file name; patterns with one match the
    whole path. ``**/`` also matches zero directories, at the start of the
    pattern or after a ``/``.
    """
    name = PurePosixPath(path).name
    for pattern in patterns:
        if "/" not in pattern:
            if fnmatch.fnmatch(name, pattern):
                return True
            continue
        if fnmatch.fnmatch(path, pattern):
            return True
        if pattern.startswith("**/") and fnmatch.fnmatch(path, pattern[3:]):
            return True
        if "/**/" in pattern and fnmatch.fnmatch(path, pattern.replace("/**/", "/")):
            return True
    return False


def is_excluded(path: str, patterns: list[str]) -> bool:
    """Check whether any directory component (or the whole path) is excluded."""
    parts = PurePosixPath(path).parts
    for pattern in patterns:
        if "/" in pattern:
            if fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(path, pattern.rstrip("/") + "/*"):
                return True
            continue
        for part in parts[:-1]:
            if fnmatch.fnmatch(part, pattern):
                return True
    return False

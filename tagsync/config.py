"""Configuration loading for tagsync.

Settings come from ``tagsync.yaml`` in the project root, laid over
DEFAULT_CONFIG, and finally overridden by command line options.

Key functions:
- load_config: Load the raw config mapping with defaults applied.
- resolve_config: Validate a mapping and turn it into a SyncConfig.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .artifacts import DEFAULT_LAYOUT
from .errors import ConfigurationError
from .normalizer import DEFAULT_LANGUAGE_TAGS, parse_tag_list
from .scanner import DEFAULT_EXTENSIONS

CONFIG_FILENAME = "tagsync.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "content_dir": "_posts",
    "artifacts_dir": "tags",
    "artifact_filename": "index.html",
    "artifact_template": None,
    "layout": DEFAULT_LAYOUT,
    "extensions": list(DEFAULT_EXTENSIONS),
    "language_tags": list(DEFAULT_LANGUAGE_TAGS),
    "workers": 4,
}


@dataclass(frozen=True)
class SyncConfig:
    """Resolved settings for one run.

    Attributes:
        project_root: Directory relative paths are resolved against.
        content_dir: Content root scanned for documents.
        artifacts_dir: Directory holding one subdirectory per tag.
        artifact_filename: File name of each artifact.
        artifact_template: Optional Jinja2 template for artifacts.
        layout: Layout name written into artifacts.
        extensions: File extensions treated as content.
        language_tags: Allowlist of casing-preserving tags.
        workers: Number of scanner threads.
    """

    project_root: Path
    content_dir: Path
    artifacts_dir: Path
    artifact_filename: str = "index.html"
    artifact_template: Path | None = None
    layout: str = DEFAULT_LAYOUT
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    language_tags: tuple[str, ...] = DEFAULT_LANGUAGE_TAGS
    workers: int = 4


def load_config(project_root: Path, config_path: Path | None = None) -> dict[str, Any]:
    """Load configuration from tagsync.yaml.

    Args:
        project_root: Root directory of the project.
        config_path: Explicit config file; must exist when given.

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        ConfigurationError: The file is unreadable, not YAML or not a mapping.
    """
    explicit = config_path is not None
    config_path = config_path or project_root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if not config_path.exists():
        if explicit:
            raise ConfigurationError("config file does not exist", config_path)
        return config
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"cannot load config: {exc}", config_path) from exc
    if not isinstance(loaded, dict):
        raise ConfigurationError("config must be a mapping", config_path)
    config.update(loaded)
    return config


def resolve_config(
    project_root: Path, config: dict[str, Any], overrides: dict[str, Any] | None = None
) -> SyncConfig:
    """Validate a config mapping and resolve its paths.

    Args:
        project_root: Directory relative paths are resolved against.
        config: Mapping as returned by load_config.
        overrides: Values from the command line; None values are ignored.

    Returns:
        SyncConfig.

    Raises:
        ConfigurationError: A value has the wrong type or range.
    """
    merged = dict(config)
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value

    def path_option(key: str) -> Path:
        value = merged.get(key)
        if not isinstance(value, (str, Path)) or not str(value).strip():
            raise ConfigurationError(f"'{key}' must be a path, got {value!r}")
        return project_root / Path(value).expanduser()

    language_tags = merged.get("language_tags")
    if isinstance(language_tags, (list, tuple)) and all(isinstance(t, str) for t in language_tags):
        language_tags = parse_tag_list(language_tags)
    elif isinstance(language_tags, str):
        language_tags = parse_tag_list(language_tags)
    else:
        raise ConfigurationError(
            f"'language_tags' must be a list of strings, got {language_tags!r}"
        )

    extensions = merged.get("extensions")
    if not isinstance(extensions, (list, tuple)) or not all(
        isinstance(e, str) and e.startswith(".") for e in extensions
    ):
        raise ConfigurationError(f"'extensions' must be a list like ['.md'], got {extensions!r}")

    workers = merged.get("workers")
    if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
        raise ConfigurationError(f"'workers' must be a positive integer, got {workers!r}")

    filename = merged.get("artifact_filename")
    if not isinstance(filename, str) or not filename or "/" in filename or "\\" in filename:
        raise ConfigurationError(f"'artifact_filename' must be a file name, got {filename!r}")

    layout = merged.get("layout")
    if not isinstance(layout, str) or not layout.strip():
        raise ConfigurationError(f"'layout' must be a non-empty string, got {layout!r}")

    template = merged.get("artifact_template")
    return SyncConfig(
        project_root=project_root,
        content_dir=path_option("content_dir"),
        artifacts_dir=path_option("artifacts_dir"),
        artifact_filename=filename,
        artifact_template=path_option("artifact_template") if template else None,
        layout=layout.strip(),
        extensions=tuple(extensions),
        language_tags=language_tags,
        workers=workers,
    )

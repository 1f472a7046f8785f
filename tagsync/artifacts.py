"""Index artifact rendering and creation for tagsync.

An artifact is the page the site renderer turns into the index for one tag.
tagsync only writes its front matter: the layout to use and the tag the page
stands for. The content comes from a Jinja2 template so a site can add
whatever else its renderer expects.

Key classes:
- ArtifactRenderer: Renders artifact content and checks it declares its tag.

Key functions:
- write_new_file: Atomically create a file, never overwriting one.
- remove_artifact: Delete one orphaned artifact after approval.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path

import yaml
from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    TemplateNotFound,
    TemplateSyntaxError,
)

from .errors import ArtifactWriteError, ConfigurationError, MalformedArtifact, MalformedDocument
from .extractors import extract_frontmatter
from .index import ARTIFACT_TAG_FIELD, read_artifact_tag

DEFAULT_LAYOUT = "tagpage"
DEFAULT_TEMPLATE = "---\n{{ header }}---\n"

__all__ = [
    "ArtifactRenderer",
    "DEFAULT_LAYOUT",
    "DEFAULT_TEMPLATE",
    "remove_artifact",
    "write_new_file",
]


class ArtifactRenderer:
    """Renders the content of tag index artifacts.

    Templates get three variables: ``tag`` (canonical tag), ``layout`` and
    ``header``, the YAML front matter body with both fields already dumped
    safely. The default template is just the front matter.

    Attributes:
        layout: Layout name written into every artifact.
        template_path: Optional user template file.
    """

    def __init__(self, layout: str = DEFAULT_LAYOUT, template_path: Path | None = None):
        """Initialize the renderer.

        Args:
            layout: Layout name for the site renderer.
            template_path: Path to a Jinja2 template; the default template
                is used when None.

        Raises:
            ConfigurationError: The template is missing or does not parse.
        """
        self.layout = layout
        self.template_path = template_path
        if template_path is None:
            self.env = Environment(
                autoescape=False, keep_trailing_newline=True, undefined=StrictUndefined
            )
            self.template = self.env.from_string(DEFAULT_TEMPLATE)
            return
        self.env = Environment(
            loader=FileSystemLoader(str(template_path.parent)),
            autoescape=False,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )
        try:
            self.template = self.env.get_template(template_path.name)
        except TemplateNotFound as exc:
            raise ConfigurationError("artifact template not found", template_path) from exc
        except TemplateSyntaxError as exc:
            raise ConfigurationError(
                f"artifact template syntax error on line {exc.lineno}: {exc.message}",
                template_path,
            ) from exc

    def header(self, tag: str) -> str:
        """Dump the front matter fields for ``tag`` as YAML."""
        return yaml.safe_dump(
            {"layout": self.layout, ARTIFACT_TAG_FIELD: tag},
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
        )

    def render(self, tag: str) -> str:
        """Render the artifact for ``tag``.

        Args:
            tag: Canonical tag.

        Returns:
            Artifact file content.

        Raises:
            ArtifactWriteError: The template failed, or its output does not
                declare ``tag`` as its identity.
        """
        try:
            text = self.template.render(tag=tag, layout=self.layout, header=self.header(tag))
        except TemplateError as exc:
            raise ArtifactWriteError(
                tag, f"template error: {exc}", self.template_path, exc
            ) from exc
        try:
            frontmatter, _ = extract_frontmatter(text)
        except MalformedDocument as exc:
            raise ArtifactWriteError(
                tag, f"rendered artifact is invalid: {exc.message}", self.template_path, exc
            ) from exc
        if frontmatter.get(ARTIFACT_TAG_FIELD) != tag:
            raise ArtifactWriteError(
                tag,
                f"rendered artifact does not declare '{ARTIFACT_TAG_FIELD}: {tag}'",
                self.template_path,
            )
        return text


def write_new_file(target: Path, content: str) -> bool:
    """Create ``target`` with ``content`` unless it already exists.

    The content goes to a temporary file next to the target first and is
    then hard-linked into place, so the target either appears complete or not
    at all, and an existing file is never replaced.

    Args:
        target: File to create.
        content: Text to write.

    Returns:
        True if the file was created, False if it already existed.

    Raises:
        OSError: Writing or linking failed; nothing is left behind.
    """
    parent = target.parent
    # Topmost directory this call creates, removed again if nothing is written.
    first_created = None
    missing = parent
    while not missing.exists():
        first_created = missing
        missing = missing.parent
    parent.mkdir(parents=True, exist_ok=True)
    tmp_path: Path | None = None
    created = False
    try:
        fd, name = tempfile.mkstemp(prefix=".tagsync-", suffix=".tmp", dir=parent)
        tmp_path = Path(name)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        try:
            os.link(tmp_path, target)
        except FileExistsError:
            return False
        created = True
        return True
    finally:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
        if first_created is not None and not created:
            _remove_empty_dirs(parent, first_created)


def _remove_empty_dirs(directory: Path, top: Path) -> None:
    """Remove ``directory`` and its parents up to and including ``top``."""
    with contextlib.suppress(OSError):
        while True:
            directory.rmdir()
            if directory == top:
                return
            directory = directory.parent


def remove_artifact(path: Path, tag: str, artifacts_dir: Path) -> None:
    """Delete the artifact for ``tag`` after re-reading its identity.

    Only ever called after a person approved the deletion. The tag directory
    is removed too when nothing else is left in it.

    Args:
        path: Artifact file.
        tag: Tag the artifact is expected to declare.
        artifacts_dir: Root of the artifact tree; never removed.

    Raises:
        ArtifactWriteError: The file now declares another tag or cannot be
            removed.
    """
    try:
        declared = read_artifact_tag(path)
    except MalformedArtifact as exc:
        raise ArtifactWriteError(tag, exc.message, path, exc) from exc
    if declared != tag:
        raise ArtifactWriteError(tag, f"artifact now declares {declared!r}; left in place", path)
    try:
        path.unlink()
    except OSError as exc:
        raise ArtifactWriteError(tag, f"cannot remove artifact: {exc}", path, exc) from exc
    parent = path.parent
    if parent != artifacts_dir and not any(parent.iterdir()):
        parent.rmdir()

"""Document scanning for tagsync.

This module discovers content files under a content root, parses their front
matter and produces immutable Document records. Files that cannot be used
are skipped with a MalformedDocument warning; they never abort the scan.

Key classes:
- Document: Frozen dataclass describing one content file.
- DocumentScanner: Discovers files and reads them into Documents.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .errors import ConfigurationError, MalformedDocument, SyncCancelled
from .extractors import default_metadata_extractor, extract_frontmatter
from .protocols import MetadataExtractor
from .utils import has_extension, is_hidden_path

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".md", ".markdown", ".html")


@dataclass(frozen=True)
class Document:
    """One content file as seen by the tag index.

    Attributes:
        path: POSIX path relative to the content root; the stable identifier.
        tags: Raw tag strings in declaration order.
        published: False when the front matter sets ``published: false``.
        date: Date identity from the filename prefix or front matter.
    """

    path: str
    tags: tuple[str, ...] = ()
    published: bool = True
    date: datetime | None = field(default=None, compare=False)


class DocumentScanner:
    """Reads Documents from a content root.

    Attributes:
        root: Content root directory.
        extensions: File extensions treated as content.
        exclude: Directories never scanned, such as the artifact tree.
    """

    def __init__(
        self,
        root: Path,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        metadata_extractor: MetadataExtractor | None = None,
        exclude: Iterable[Path] = (),
    ):
        self.root = Path(root)
        self.extensions = tuple(extensions)
        self.exclude = tuple(Path(p).resolve() for p in exclude)
        self.metadata_extractor = metadata_extractor or default_metadata_extractor

    def check_root(self) -> None:
        """Fail fast when the content root is unusable.

        Raises:
            ConfigurationError: Root missing, not a directory or unreadable.
        """
        if not self.root.exists():
            raise ConfigurationError("content root does not exist", self.root)
        if not self.root.is_dir():
            raise ConfigurationError("content root is not a directory", self.root)
        try:
            next(self.root.iterdir(), None)
        except OSError as exc:
            raise ConfigurationError(f"content root is not readable: {exc}", self.root) from exc

    def iter_paths(self) -> list[Path]:
        """List all candidate content files, sorted.

        Returns:
            Absolute paths of files with a content extension, skipping
            hidden files and directories.
        """
        self.check_root()
        files: list[Path] = []
        for path in self.root.rglob("*"):
            rel = path.relative_to(self.root)
            if is_hidden_path(rel):
                continue
            if not has_extension(path, self.extensions):
                continue
            if self._is_excluded(path):
                continue
            if path.is_file():
                files.append(path)
        return sorted(files)

    def _is_excluded(self, path: Path) -> bool:
        resolved = path.resolve()
        return any(resolved.is_relative_to(excluded) for excluded in self.exclude)

    def read(self, path: Path) -> Document:
        """Read one content file.

        Args:
            path: Absolute path to a file under the root.

        Returns:
            Document record.

        Raises:
            MalformedDocument: The file cannot contribute to the index.
        """
        rel = path.relative_to(self.root).as_posix()
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise MalformedDocument(f"cannot read file: {exc}", rel) from exc
        frontmatter, _ = extract_frontmatter(raw, rel)
        metadata = self.metadata_extractor.extract(frontmatter, Path(rel))
        return Document(
            path=rel,
            tags=metadata.get("tags", ()),
            published=metadata.get("published", True),
            date=metadata.get("date"),
        )

    def scan(
        self, cancel: threading.Event | None = None, paths: Iterable[Path] | None = None
    ) -> Iterator[Document | MalformedDocument]:
        """Lazily read documents, yielding failures instead of raising them.

        Every call re-reads from disk. A file that cannot be used comes out
        as its MalformedDocument so the caller can report it and carry on.

        Args:
            cancel: Checked before each file.
            paths: Files to read; the whole content root when None.

        Raises:
            ConfigurationError: The content root is unusable.
            SyncCancelled: The cancel event was set.
        """
        if paths is None:
            paths = self.iter_paths()
        for path in paths:
            if cancel is not None and cancel.is_set():
                raise SyncCancelled("scan cancelled", self.root)
            try:
                document = self.read(path)
            except MalformedDocument as exc:
                logger.debug("skipping %s: %s", exc.source_path, exc.message)
                yield exc
                continue
            yield document

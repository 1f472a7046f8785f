"""Protocol definitions for tagsync.

These are the seams between the pipeline stages. Anything with the right
shape can be swapped in, which is mostly useful for tests.
"""

from __future__ import annotations

import threading
from abc import abstractmethod
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .errors import MalformedDocument
    from .scanner import Document


@runtime_checkable
class MetadataExtractor(Protocol):
    """Protocol for pulling one kind of field out of parsed front matter."""

    @abstractmethod
    def extract(self, frontmatter: dict[str, Any], path: Path) -> dict[str, Any]:
        """Extract metadata from front matter.

        Args:
            frontmatter: Parsed front matter.
            path: Path to the source file, relative to the content root.

        Returns:
            Dictionary of extracted metadata.

        Raises:
            MalformedDocument: The field is present but unusable.
        """
        ...


@runtime_checkable
class DocumentSource(Protocol):
    """Protocol for discovering and reading content documents."""

    @abstractmethod
    def iter_paths(self) -> list[Path]:
        """List all candidate content files in a stable order."""
        ...

    @abstractmethod
    def read(self, path: Path) -> Document:
        """Read one file into a Document.

        Raises:
            MalformedDocument: The file cannot contribute to the index.
        """
        ...

    @abstractmethod
    def scan(
        self, cancel: threading.Event | None = None, paths: Iterable[Path] | None = None
    ) -> Iterator[Document | MalformedDocument]:
        """Read documents lazily, yielding unusable files as MalformedDocument."""
        ...


@runtime_checkable
class ContentRenderer(Protocol):
    """Protocol for producing the content of one tag artifact."""

    @abstractmethod
    def render(self, tag: str) -> str:
        """Render the artifact for a canonical tag.

        Raises:
            ArtifactWriteError: The artifact cannot be produced.
        """
        ...

"""Tag index building for tagsync.

This module folds normalized tags from documents into an inverted index
(canonical tag -> document paths) and enumerates the index artifacts already
on disk. Nothing here writes to the filesystem.

The index is a mergeable accumulator: building it from independent batches
of documents and merging the partial indexes in any order gives the same
result as a single pass. That lets the pipeline scan with several workers.

Key classes:
- TagIndex: Inverted index with associative, commutative merge.
- TagIndexEntry: The aggregate for one canonical tag.
- Artifact: An index page found on disk.
- ArtifactInventory: Mapping of declared tag to Artifact.

Key functions:
- build_index: Fold a batch of documents into a TagIndex.
- load_inventory: Enumerate existing artifacts by their declared tag.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path

from .errors import (
    ConfigurationError,
    ConflictError,
    MalformedArtifact,
    MalformedDocument,
    ValidationError,
)
from .extractors import extract_frontmatter
from .normalizer import NormalizedTag, TagNormalizer
from .scanner import Document

logger = logging.getLogger(__name__)

ARTIFACT_TAG_FIELD = "tag"


@dataclass(frozen=True)
class TagIndexEntry:
    """Aggregate for one canonical tag.

    Attributes:
        canonical: The canonical tag.
        documents: Paths of documents declaring the tag; never empty.
        artifact_exists: Whether an artifact for the tag is on disk.
    """

    canonical: str
    documents: frozenset[str]
    artifact_exists: bool = False


class TagIndex:
    """Inverted index from tag to document paths.

    Tags are grouped by their merge key, so differently cased spellings of a
    language tag land in one entry. For each spelling the smallest document
    path using it is remembered; the spelling with the smallest such path
    becomes the canonical tag. Min is associative and commutative, which is
    what keeps merge order irrelevant.
    """

    def __init__(self):
        self._documents: dict[str, set[str]] = {}
        self._spellings: dict[str, dict[str, str]] = {}

    def add(self, path: str, tag: NormalizedTag) -> None:
        """Record that the document at ``path`` declares ``tag``."""
        self._documents.setdefault(tag.key, set()).add(path)
        spellings = self._spellings.setdefault(tag.key, {})
        first = spellings.get(tag.canonical)
        if first is None or path < first:
            spellings[tag.canonical] = path

    def merge(self, other: TagIndex) -> TagIndex:
        """Return a new index holding the union of both indexes."""
        merged = TagIndex()
        for source in (self, other):
            for key, paths in source._documents.items():
                merged._documents.setdefault(key, set()).update(paths)
            for key, spellings in source._spellings.items():
                target = merged._spellings.setdefault(key, {})
                for spelling, path in spellings.items():
                    first = target.get(spelling)
                    if first is None or path < first:
                        target[spelling] = path
        return merged

    def _canonical(self, key: str) -> str:
        spellings = self._spellings[key]
        return min(spellings, key=lambda spelling: (spellings[spelling], spelling))

    def canonical_tags(self) -> dict[str, frozenset[str]]:
        """Map every canonical tag to the paths declaring it, sorted by tag."""
        tags = {self._canonical(key): frozenset(paths) for key, paths in self._documents.items()}
        return dict(sorted(tags.items()))

    def conflicts(self) -> list[ConflictError]:
        """Report every tag used with more than one casing."""
        found = []
        for key in sorted(self._spellings):
            spellings = self._spellings[key]
            if len(spellings) > 1:
                found.append(ConflictError(self._canonical(key), spellings))
        return found

    def entries(self, inventory: Mapping[str, object] | None = None) -> dict[str, TagIndexEntry]:
        """Build the TagIndexEntry mapping against an artifact inventory."""
        inventory = inventory or {}
        return {
            tag: TagIndexEntry(canonical=tag, documents=paths, artifact_exists=tag in inventory)
            for tag, paths in self.canonical_tags().items()
        }

    def __len__(self) -> int:
        return len(self._documents)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TagIndex):
            return NotImplemented
        return self._documents == other._documents and self._spellings == other._spellings

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TagIndex({len(self)} tags)"


def build_index(
    documents: Iterable[Document], normalizer: TagNormalizer
) -> tuple[TagIndex, list[ValidationError]]:
    """Fold a batch of documents into a TagIndex.

    Unpublished documents contribute nothing. A tag that fails normalization,
    or repeats a tag already declared by the same document, is rejected for
    that document only.

    Args:
        documents: Documents of one batch.
        normalizer: Tag normalizer.

    Returns:
        Tuple of (index, per-tag validation errors).
    """
    index = TagIndex()
    errors: list[ValidationError] = []
    for document in documents:
        if not document.published:
            continue
        seen: set[str] = set()
        for raw in document.tags:
            try:
                tag = normalizer.normalize(raw, document.path)
            except ValidationError as exc:
                errors.append(exc)
                continue
            if tag.key in seen:
                errors.append(ValidationError(f"duplicate tag {raw!r}", document.path, tag=raw))
                continue
            seen.add(tag.key)
            index.add(document.path, tag)
    return index, errors


@dataclass(frozen=True)
class Artifact:
    """An index artifact found on disk.

    Attributes:
        tag: Tag identity declared in the artifact's front matter.
        path: Path to the artifact file.
    """

    tag: str
    path: Path


class ArtifactInventory(Mapping[str, Artifact]):
    """Mapping of declared tag to the artifact representing it."""

    def __init__(self, artifacts: Iterable[Artifact] = ()):
        self._artifacts = {artifact.tag: artifact for artifact in artifacts}

    def __getitem__(self, key: str) -> Artifact:
        return self._artifacts[key]

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._artifacts))

    def __len__(self) -> int:
        return len(self._artifacts)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"ArtifactInventory({len(self._artifacts)} artifacts)"


def read_artifact_tag(path: Path) -> str:
    """Read the tag identity an artifact declares.

    Args:
        path: Artifact file.

    Returns:
        The declared tag.

    Raises:
        MalformedArtifact: The file is unreadable or declares no tag.
    """
    try:
        text = path.read_text(encoding="utf-8")
        frontmatter, _ = extract_frontmatter(text, path)
    except (OSError, UnicodeDecodeError) as exc:
        raise MalformedArtifact(f"cannot read artifact: {exc}", path) from exc
    except MalformedDocument as exc:
        raise MalformedArtifact(exc.message, path) from exc
    value = frontmatter.get(ARTIFACT_TAG_FIELD)
    # Unquoted numeric tags written by older tooling come back as ints.
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        raise MalformedArtifact(f"no '{ARTIFACT_TAG_FIELD}' field declaring the tag", path)
    return value.strip()


def load_inventory(
    artifacts_dir: Path, filename: str = "index.html"
) -> tuple[ArtifactInventory, list[MalformedArtifact]]:
    """Enumerate the artifacts currently on disk.

    Identity comes from each artifact's declared tag field, not from its
    directory name. When two artifacts declare the same tag, the first in
    sorted path order is kept and the other is reported.

    Args:
        artifacts_dir: Directory holding one subdirectory per tag.
        filename: Name of the artifact file inside each subdirectory.

    Returns:
        Tuple of (inventory, warnings).

    Raises:
        ConfigurationError: ``artifacts_dir`` exists but is not a directory.
    """
    if not artifacts_dir.exists():
        return ArtifactInventory(), []
    if not artifacts_dir.is_dir():
        raise ConfigurationError("artifacts path is not a directory", artifacts_dir)

    found: dict[str, Artifact] = {}
    warnings: list[MalformedArtifact] = []
    for path in sorted(artifacts_dir.rglob(filename)):
        if not path.is_file():
            continue
        try:
            tag = read_artifact_tag(path)
        except MalformedArtifact as exc:
            warnings.append(exc)
            continue
        if tag in found:
            warnings.append(
                MalformedArtifact(f"tag {tag!r} already declared by {found[tag].path}", path)
            )
            continue
        found[tag] = Artifact(tag=tag, path=path)
    logger.debug("found %d artifacts under %s", len(found), artifacts_dir)
    return ArtifactInventory(found.values()), warnings

"""Front matter extractors for tagsync.

This module parses the YAML front matter block at the top of a content file
and pulls out the few fields the tag index cares about. Each extractor
handles a single field and raises MalformedDocument when the field is
present but unusable.

Key classes:
- TagsExtractor: Extracts the declared ``tags`` list.
- DateExtractor: Extracts the date identity from filename or front matter.
- PublishedExtractor: Extracts the ``published`` flag.
- CompositeMetadataExtractor: Runs a list of extractors and merges results.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml

from .errors import MalformedDocument
from .utils import coerce_date, extract_date_from_name

FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE
)


def extract_frontmatter(text: str, path: Path | str | None = None) -> tuple[dict[str, Any], str]:
    """Extract YAML front matter from content.

    Args:
        text: Raw file content.
        path: Path used for error context.

    Returns:
        Tuple of (front matter dict, remaining content).

    Raises:
        MalformedDocument: No front matter block, invalid YAML, or YAML
            that is not a mapping.
    """
    text = text.removeprefix("\ufeff")
    match = FRONTMATTER_RE.match(text)
    if not match:
        raise MalformedDocument("no front matter block", path)
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        problem = getattr(exc, "problem", None) or str(exc)
        raise MalformedDocument(f"invalid front matter: {problem}", path) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedDocument("front matter is not a mapping", path)
    return data, text[match.end() :]


class TagsExtractor:
    """Extracts the declared tags.

    A missing or empty ``tags`` field means no tags. Anything other than a
    list of strings makes the whole document unusable for indexing.
    """

    field = "tags"

    def extract(self, frontmatter: dict[str, Any], path: Path) -> dict[str, Any]:
        """Extract tags from front matter.

        Args:
            frontmatter: Parsed front matter.
            path: Path to the source file.

        Returns:
            Dictionary with 'tags' key containing a tuple of raw strings.
        """
        value = frontmatter.get(self.field)
        if value is None:
            return {"tags": ()}
        if not isinstance(value, list):
            raise MalformedDocument(
                f"'{self.field}' must be a list of strings, got {type(value).__name__}", path
            )
        for item in value:
            if not isinstance(item, str):
                raise MalformedDocument(
                    f"'{self.field}' must be a list of strings, found {item!r}", path
                )
        return {"tags": tuple(value)}


class DateExtractor:
    """Extracts the date identity of a post.

    Looks for a YYYY-MM-DD prefix in the filename, falling back to the
    ``date`` front matter field. Unlike the renderer, the modification time
    is never used: a post without a date has no stable identity.
    """

    def extract(self, frontmatter: dict[str, Any], path: Path) -> dict[str, Any]:
        date = extract_date_from_name(path.stem)
        if date is None:
            date = coerce_date(frontmatter.get("date"))
        if date is None:
            raise MalformedDocument(
                "no date: expected a YYYY-MM-DD- filename prefix or a 'date' field", path
            )
        return {"date": date}


class PublishedExtractor:
    """Extracts the ``published`` flag (defaults to True)."""

    def extract(self, frontmatter: dict[str, Any], path: Path) -> dict[str, Any]:
        value = frontmatter.get("published", True)
        if not isinstance(value, bool):
            raise MalformedDocument(f"'published' must be true or false, got {value!r}", path)
        return {"published": value}


class CompositeMetadataExtractor:
    """Combines multiple metadata extractors.

    Runs every extractor on the same front matter and merges their results.
    Later extractors can override earlier ones.
    """

    def __init__(self, extractors: list | None = None):
        """Initialize with a list of extractors.

        Args:
            extractors: List of MetadataExtractor implementations.
                If None, uses the default extractors.
        """
        if extractors is None:
            self._extractors = [TagsExtractor(), DateExtractor(), PublishedExtractor()]
        else:
            self._extractors = list(extractors)

    def add_extractor(self, extractor) -> None:
        self._extractors.append(extractor)

    def extract(self, frontmatter: dict[str, Any], path: Path) -> dict[str, Any]:
        """Extract all metadata from front matter.

        Args:
            frontmatter: Parsed front matter.
            path: Path to the source file.

        Returns:
            Dictionary with all extracted metadata.
        """
        result: dict[str, Any] = {}
        for extractor in self._extractors:
            result.update(extractor.extract(frontmatter, path))
        return result


default_metadata_extractor = CompositeMetadataExtractor()

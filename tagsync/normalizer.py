"""Tag normalization for tagsync.

Tags are classified as language tags or topic tags by membership in a
declared allowlist. Language tags keep their casing verbatim; topic tags are
lower-cased with whitespace runs replaced by a single hyphen. Nothing else is
inferred: ``fsharp`` and ``F#`` stay two different tags.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from .errors import ValidationError

WHITESPACE_RE = re.compile(r"\s+")

DEFAULT_LANGUAGE_TAGS = (
    "C",
    "C#",
    "C++",
    "Clojure",
    "Elixir",
    "Elm",
    "Erlang",
    "F#",
    "Go",
    "Haskell",
    "Java",
    "JavaScript",
    "Kotlin",
    "OCaml",
    "PowerShell",
    "Python",
    "Ruby",
    "Rust",
    "Scala",
    "SQL",
    "Swift",
    "TypeScript",
)


@dataclass(frozen=True)
class NormalizedTag:
    """Canonical form of one raw tag string.

    Attributes:
        raw: The tag as declared.
        canonical: Identifier used for indexing and artifact naming.
        display_casing: Preserved casing for language tags, otherwise None.
    """

    raw: str
    canonical: str
    display_casing: str | None = None

    @property
    def is_language(self) -> bool:
        return self.display_casing is not None

    @property
    def key(self) -> str:
        """Merge identity; spellings differing only in case share it."""
        return self.canonical.lower()


class TagNormalizer:
    """Pure ``raw -> NormalizedTag`` function configured with an allowlist."""

    def __init__(self, language_tags: Iterable[str] = DEFAULT_LANGUAGE_TAGS):
        self.language_tags = frozenset(t.strip().lower() for t in language_tags if t.strip())

    def is_language_tag(self, tag: str) -> bool:
        return tag.lower() in self.language_tags

    def normalize(self, raw: str, source_path: str | None = None) -> NormalizedTag:
        """Normalize one raw tag.

        Args:
            raw: Tag string as declared in front matter.
            source_path: Owning document, used for error context.

        Returns:
            NormalizedTag.

        Raises:
            ValidationError: The tag is empty after trimming.

        Examples:
            >>> TagNormalizer().normalize("F#").canonical
            'F#'

            >>> TagNormalizer().normalize("  Functional   Programming ").canonical
            'functional-programming'
        """
        stripped = raw.strip()
        if not stripped:
            raise ValidationError("empty tag", source_path, tag=raw)
        if self.is_language_tag(stripped):
            return NormalizedTag(raw=raw, canonical=stripped, display_casing=stripped)
        canonical = WHITESPACE_RE.sub("-", stripped.lower())
        return NormalizedTag(raw=raw, canonical=canonical)


def parse_tag_list(value: str | Iterable[str] | None) -> tuple[str, ...]:
    """Parse a comma separated list (or an iterable) of language tags."""
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return tuple(item.strip() for item in items if item.strip())

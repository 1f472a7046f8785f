"""Error taxonomy for tagsync.

Only ConfigurationError is fatal. Every other error is raised at the point of
failure and caught by the stage that owns the batch, which records it as a
warning and carries on with the remaining documents, tags or artifacts.

Key classes:
- TagSyncError: Base class with source path and message context.
- ConfigurationError: Bad root path, unreadable directory, invalid config.
- MalformedDocument: A content file that cannot contribute to the index.
- ValidationError: A single tag rejected for one document.
- ConflictError: Differently cased spellings of the same language tag.
- MalformedArtifact: An index artifact without a usable tag identity.
- ArtifactWriteError: Creating one artifact failed.
- SyncCancelled: The run was cancelled between documents or creations.
"""

from __future__ import annotations

from pathlib import Path


class TagSyncError(Exception):
    """Base error with file context.

    Attributes:
        source_path: Path the error relates to, if any.
        message: Human-readable error message.
    """

    def __init__(self, message: str, source_path: Path | str | None = None):
        self.source_path = source_path
        self.message = message
        if source_path is None:
            super().__init__(message)
        else:
            super().__init__(f"{source_path}: {message}")

    @property
    def sort_key(self) -> tuple[str, str, str]:
        """Key used to present warnings in a canonical order."""
        return (type(self).__name__, str(self.source_path or ""), self.message)


class ConfigurationError(TagSyncError):
    """Fatal configuration problem; the run aborts before doing any work."""


class SyncCancelled(TagSyncError):
    """The run was cancelled; everything written so far is complete."""


class MalformedDocument(TagSyncError):
    """A content document was skipped and contributes nothing to the index."""


class ValidationError(TagSyncError):
    """One tag of one document was rejected.

    Attributes:
        tag: The raw tag string that failed validation.
    """

    def __init__(self, message: str, source_path: Path | str | None = None, tag: str = ""):
        self.tag = tag
        super().__init__(message, source_path)


class ConflictError(TagSyncError):
    """Several casings of the same language tag were used.

    The conflict is resolved deterministically, but always reported.

    Attributes:
        chosen: The casing used as the canonical tag.
        variants: Every casing seen, mapped to the first document using it.
    """

    def __init__(self, chosen: str, variants: dict[str, str]):
        self.chosen = chosen
        self.variants = dict(sorted(variants.items()))
        listed = ", ".join(f"{casing!r} ({path})" for casing, path in self.variants.items())
        super().__init__(f"tag spelled differently across documents: {listed}; using {chosen!r}")

    @property
    def sort_key(self) -> tuple[str, str, str]:
        return (type(self).__name__, self.chosen.lower(), self.message)


class MalformedArtifact(TagSyncError):
    """An existing index artifact could not be attributed to a tag."""


class ArtifactWriteError(TagSyncError):
    """Creating the artifact for one tag failed.

    Attributes:
        tag: Canonical tag whose artifact could not be created.
        original_error: The underlying exception, if any.
    """

    def __init__(
        self,
        tag: str,
        message: str,
        source_path: Path | str | None = None,
        original_error: Exception | None = None,
    ):
        self.tag = tag
        self.original_error = original_error
        super().__init__(message, source_path)

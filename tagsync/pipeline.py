"""Batch pipeline for tagsync.

This module wires the stages together for one run: scan the content root,
normalize tags and fold them into an index (across worker threads), take
the artifact inventory, compute the sync plan and, unless running dry,
create the missing artifacts.

Every run recomputes the whole index from disk. There is no cache, so the
artifacts can never drift from the content because of stale state.

Key functions:
- build_tag_index: Scan and index the content root with a worker pool.
- run_sync: Run the full pipeline and return a SyncReport.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from .artifacts import ArtifactRenderer
from .config import SyncConfig
from .errors import (
    ArtifactWriteError,
    ConflictError,
    MalformedDocument,
    TagSyncError,
    ValidationError,
)
from .index import ArtifactInventory, TagIndex, TagIndexEntry, build_index, load_inventory
from .normalizer import TagNormalizer
from .protocols import DocumentSource
from .scanner import Document, DocumentScanner
from .synchronizer import ApplyResult, SyncPlan, Synchronizer, plan_sync
from .utils import split_batches

logger = logging.getLogger(__name__)


@dataclass
class IndexResult:
    """Index over a set of documents plus what went wrong building it.

    Attributes:
        index: The merged tag index.
        documents_scanned: Number of content files read, malformed included.
        warnings: MalformedDocument and ValidationError instances.
    """

    index: TagIndex = field(default_factory=TagIndex)
    documents_scanned: int = 0
    warnings: list[TagSyncError] = field(default_factory=list)

    def merge(self, other: IndexResult) -> IndexResult:
        return IndexResult(
            index=self.index.merge(other.index),
            documents_scanned=self.documents_scanned + other.documents_scanned,
            warnings=self.warnings + other.warnings,
        )


@dataclass
class SyncReport:
    """Everything a run found and did.

    Attributes:
        documents_scanned: Number of content files read.
        entries: Canonical tag -> TagIndexEntry.
        inventory: Artifacts found before applying.
        plan: The computed plan.
        dry_run: Whether the plan was left unapplied.
        applied: Result of applying the plan, None on a dry run.
        warnings: Malformed documents, rejected tags and unusable artifacts.
        conflicts: Casing conflicts resolved by tie-break.
    """

    documents_scanned: int
    entries: dict[str, TagIndexEntry]
    inventory: ArtifactInventory
    plan: SyncPlan
    dry_run: bool = False
    applied: ApplyResult | None = None
    warnings: list[TagSyncError] = field(default_factory=list)
    conflicts: list[ConflictError] = field(default_factory=list)

    @property
    def tags_indexed(self) -> int:
        return len(self.entries)

    @property
    def created(self) -> list[str]:
        return self.applied.created if self.applied else []

    @property
    def failed(self) -> list[ArtifactWriteError]:
        return self.applied.failed if self.applied else []

    @property
    def orphaned(self) -> tuple[str, ...]:
        return self.plan.to_flag_orphaned

    @property
    def document_warnings(self) -> list[TagSyncError]:
        return [w for w in self.warnings if isinstance(w, (MalformedDocument, ValidationError))]

    @property
    def exit_code(self) -> int:
        """0 when clean, 1 when documents were rejected or creations failed."""
        if self.document_warnings or self.failed:
            return 1
        return 0


def _index_batch(
    scanner: DocumentSource,
    normalizer: TagNormalizer,
    batch: list[Path],
    cancel: threading.Event | None,
) -> IndexResult:
    documents: list[Document] = []
    warnings: list[TagSyncError] = []
    for outcome in scanner.scan(cancel, batch):
        if isinstance(outcome, MalformedDocument):
            warnings.append(outcome)
        else:
            documents.append(outcome)
    index, errors = build_index(documents, normalizer)
    return IndexResult(index=index, documents_scanned=len(batch), warnings=warnings + errors)


def build_tag_index(
    config: SyncConfig,
    cancel: threading.Event | None = None,
    scanner: DocumentSource | None = None,
) -> IndexResult:
    """Scan the content root and build the tag index.

    Paths are dealt into ``config.workers`` batches; each batch is read and
    indexed on its own thread and the partial indexes are merged as they
    finish, in whatever order that is.

    Args:
        config: Resolved configuration.
        cancel: Checked between documents.
        scanner: Document source; a DocumentScanner over the content root
            when None.

    Returns:
        IndexResult with warnings sorted canonically.

    Raises:
        ConfigurationError: The content root is unusable.
        SyncCancelled: The cancel event was set.
    """
    scanner = scanner or DocumentScanner(
        config.content_dir, config.extensions, exclude=[config.artifacts_dir]
    )
    normalizer = TagNormalizer(config.language_tags)
    paths = scanner.iter_paths()
    batches = split_batches(paths, config.workers)
    logger.debug("scanning %d files in %d batches", len(paths), len(batches))

    result = IndexResult()
    if batches:
        with ThreadPoolExecutor(max_workers=len(batches)) as executor:
            futures = [
                executor.submit(_index_batch, scanner, normalizer, batch, cancel)
                for batch in batches
            ]
            for future in as_completed(futures):
                result = result.merge(future.result())
    result.warnings.sort(key=lambda w: w.sort_key)
    return result


def run_sync(
    config: SyncConfig,
    dry_run: bool = False,
    cancel: threading.Event | None = None,
) -> SyncReport:
    """Run the whole pipeline once.

    Configuration problems are detected before any document is read or any
    artifact is written.

    Args:
        config: Resolved configuration.
        dry_run: Compute the plan without creating anything.
        cancel: Checked between documents and between artifact creations.

    Returns:
        SyncReport.

    Raises:
        ConfigurationError: Fatal configuration problem; nothing was written.
        SyncCancelled: The cancel event was set; the artifact tree is valid.
    """
    renderer = ArtifactRenderer(config.layout, config.artifact_template)
    scanner = DocumentScanner(
        config.content_dir, config.extensions, exclude=[config.artifacts_dir]
    )
    scanner.check_root()
    inventory, artifact_warnings = load_inventory(config.artifacts_dir, config.artifact_filename)

    indexed = build_tag_index(config, cancel, scanner=scanner)
    entries = indexed.index.entries(inventory)
    plan = plan_sync(entries, inventory)
    logger.info(
        "%d documents, %d tags, %d to create, %d orphaned",
        indexed.documents_scanned,
        len(entries),
        len(plan.to_create),
        len(plan.to_flag_orphaned),
    )

    applied = None
    if not dry_run:
        synchronizer = Synchronizer(config.artifacts_dir, renderer, config.artifact_filename)
        applied = synchronizer.apply(plan, cancel)

    warnings: list[TagSyncError] = list(indexed.warnings)
    warnings.extend(artifact_warnings)
    warnings.sort(key=lambda w: w.sort_key)
    return SyncReport(
        documents_scanned=indexed.documents_scanned,
        entries=entries,
        inventory=inventory,
        plan=plan,
        dry_run=dry_run,
        applied=applied,
        warnings=warnings,
        conflicts=indexed.index.conflicts(),
    )


__all__ = [
    "IndexResult",
    "SyncReport",
    "build_tag_index",
    "run_sync",
]

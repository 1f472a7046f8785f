"""Drift resolution for tagsync.

Compares the tags implied by content (desired state) with the artifacts on
disk (actual state) and produces a SyncPlan. Applying a plan only ever
creates missing artifacts: existing artifacts are never rewritten and
orphaned ones are reported, never deleted.

Key classes:
- SyncPlan: Value object describing what to create and what is orphaned.
- ApplyResult: What applying a plan actually did.
- Synchronizer: Applies the creations of a plan.

Key functions:
- plan_sync: Diff index entries against an artifact inventory.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .artifacts import ArtifactRenderer, write_new_file
from .errors import ArtifactWriteError, MalformedArtifact, SyncCancelled
from .index import TagIndexEntry, read_artifact_tag
from .protocols import ContentRenderer
from .utils import artifact_dirname

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncPlan:
    """Diff between desired and actual artifacts.

    Attributes:
        to_create: Tags with documents but no artifact.
        to_flag_orphaned: Tags with an artifact but no documents.
        unchanged: Tags with documents and an artifact.
    """

    to_create: tuple[str, ...] = ()
    to_flag_orphaned: tuple[str, ...] = ()
    unchanged: tuple[str, ...] = ()

    @property
    def in_sync(self) -> bool:
        return not self.to_create and not self.to_flag_orphaned

    def lines(self) -> list[str]:
        """Render the plan as ``CREATE <tag>`` / ``ORPHAN <tag>`` lines."""
        return [f"CREATE {tag}" for tag in self.to_create] + [
            f"ORPHAN {tag}" for tag in self.to_flag_orphaned
        ]


def plan_sync(entries: Mapping[str, TagIndexEntry], inventory: Mapping[str, object]) -> SyncPlan:
    """Compute the plan that reconciles artifacts with content.

    Args:
        entries: Canonical tag -> TagIndexEntry, every entry with documents.
        inventory: Declared tag -> artifact currently on disk.

    Returns:
        SyncPlan with every tuple sorted.
    """
    wanted = {tag for tag, entry in entries.items() if entry.documents}
    to_create = sorted(tag for tag in wanted if tag not in inventory)
    unchanged = sorted(tag for tag in wanted if tag in inventory)
    orphaned = sorted(tag for tag in inventory if tag not in wanted)
    return SyncPlan(
        to_create=tuple(to_create), to_flag_orphaned=tuple(orphaned), unchanged=tuple(unchanged)
    )


@dataclass
class ApplyResult:
    """Outcome of applying a plan.

    Attributes:
        created: Tags whose artifact this run created.
        existing: Tags whose artifact turned out to exist already.
        failed: One ArtifactWriteError per tag that could not be created.
    """

    created: list[str] = field(default_factory=list)
    existing: list[str] = field(default_factory=list)
    failed: list[ArtifactWriteError] = field(default_factory=list)


class Synchronizer:
    """Creates the artifacts a plan asks for.

    Attributes:
        artifacts_dir: Directory holding one subdirectory per tag.
        renderer: Produces artifact content.
        filename: Artifact file name inside each tag directory.
    """

    def __init__(
        self,
        artifacts_dir: Path,
        renderer: ContentRenderer | None = None,
        filename: str = "index.html",
    ):
        self.artifacts_dir = Path(artifacts_dir)
        self.renderer = renderer or ArtifactRenderer()
        self.filename = filename

    def artifact_path(self, tag: str) -> Path:
        """Preferred location of the artifact for ``tag``."""
        return self.candidate_paths(tag)[0]

    def candidate_paths(self, tag: str) -> list[Path]:
        """Locations the artifact for ``tag`` may be created at, in order.

        Different tags can share a directory name (``ci/cd`` and ``ci-cd``),
        so the second location adds a short digest of the tag itself.
        """
        name = artifact_dirname(tag)
        digest = hashlib.sha1(tag.encode("utf-8")).hexdigest()[:8]
        return [
            self.artifacts_dir / name / self.filename,
            self.artifacts_dir / f"{name}-{digest}" / self.filename,
        ]

    def create(self, tag: str) -> bool:
        """Create the artifact for one tag.

        An artifact already on disk that declares the same tag counts as
        success, which makes repeated and concurrent runs safe. A location
        taken by another tag's artifact moves on to the next candidate.

        Returns:
            True if created, False if it already existed.

        Raises:
            ArtifactWriteError: Rendering or writing failed, or every
                candidate location is taken by an artifact for a different
                tag.
        """
        content = None
        occupied: list[tuple[Path, str]] = []
        for target in self.candidate_paths(tag):
            if not target.exists():
                if content is None:
                    content = self.renderer.render(tag)
                try:
                    if write_new_file(target, content):
                        return True
                except OSError as exc:
                    raise ArtifactWriteError(
                        tag, f"cannot write artifact: {exc}", target, exc
                    ) from exc
            declared = self._declared_tag(tag, target)
            if declared == tag:
                return False
            occupied.append((target, declared))
        target, declared = occupied[0]
        raise ArtifactWriteError(tag, f"path is occupied by the artifact for {declared!r}", target)

    def _declared_tag(self, tag: str, target: Path) -> str:
        try:
            return read_artifact_tag(target)
        except MalformedArtifact as exc:
            raise ArtifactWriteError(
                tag, f"path is occupied by an unreadable artifact: {exc.message}", target, exc
            ) from exc

    def apply(self, plan: SyncPlan, cancel: threading.Event | None = None) -> ApplyResult:
        """Perform the creations of ``plan`` and nothing else.

        A failure for one tag is recorded and the remaining tags are still
        attempted.

        Args:
            plan: Plan to apply.
            cancel: Checked before each creation.

        Raises:
            SyncCancelled: The cancel event was set; artifacts created so
                far are complete.
        """
        result = ApplyResult()
        for tag in plan.to_create:
            if cancel is not None and cancel.is_set():
                raise SyncCancelled("apply cancelled", self.artifacts_dir)
            try:
                if self.create(tag):
                    logger.debug("created artifact for %r", tag)
                    result.created.append(tag)
                else:
                    result.existing.append(tag)
            except ArtifactWriteError as exc:
                logger.debug("failed to create artifact for %r: %s", tag, exc.message)
                result.failed.append(exc)
        return result

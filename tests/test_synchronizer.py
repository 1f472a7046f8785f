import threading

import pytest

from tagsync.artifacts import ArtifactRenderer
from tagsync.errors import ArtifactWriteError, SyncCancelled
from tagsync.index import TagIndexEntry, load_inventory, read_artifact_tag
from tagsync.synchronizer import SyncPlan, Synchronizer, plan_sync


def entry(tag, *paths):
    return TagIndexEntry(canonical=tag, documents=frozenset(paths))


def test_plan_sync_diffs_desired_against_actual():
    entries = {
        "F#": entry("F#", "a.md"),
        "monads": entry("monads", "a.md", "b.md"),
        "python": entry("python", "b.md"),
    }
    plan = plan_sync(entries, {"monads": object(), "old": object()})
    assert plan == SyncPlan(
        to_create=("F#", "python"), to_flag_orphaned=("old",), unchanged=("monads",)
    )
    assert not plan.in_sync
    assert plan.lines() == ["CREATE F#", "CREATE python", "ORPHAN old"]


def test_plan_sync_in_sync():
    plan = plan_sync({"monads": entry("monads", "a.md")}, {"monads": object()})
    assert plan.in_sync
    assert plan.lines() == []


def test_apply_creates_only_missing_artifacts(tmp_path):
    tags = tmp_path / "tags"
    synchronizer = Synchronizer(tags)
    result = synchronizer.apply(SyncPlan(to_create=("F#", "monads")))
    assert result.created == ["F#", "monads"]
    assert result.failed == []
    assert read_artifact_tag(tags / "F#" / "index.html") == "F#"

    inventory, warnings = load_inventory(tags)
    assert list(inventory) == ["F#", "monads"]
    assert warnings == []


def test_create_existing_artifact_is_success_and_untouched(tmp_path):
    tags = tmp_path / "tags"
    synchronizer = Synchronizer(tags)
    target = synchronizer.artifact_path("monads")
    target.parent.mkdir(parents=True)
    target.write_text("---\nlayout: custom\ntag: monads\n---\nHand edited\n", encoding="utf-8")

    result = synchronizer.apply(SyncPlan(to_create=("monads",)))
    assert result.created == []
    assert result.existing == ["monads"]
    assert target.read_text(encoding="utf-8").endswith("Hand edited\n")


def test_create_uses_alternate_path_when_name_is_taken(tmp_path):
    tags = tmp_path / "tags"
    synchronizer = Synchronizer(tags)
    primary, alternate = synchronizer.candidate_paths("ci/cd")
    primary.parent.mkdir(parents=True)
    primary.write_text("---\ntag: ci-cd\n---\n", encoding="utf-8")

    assert synchronizer.create("ci/cd") is True
    assert alternate.parent.parent == tags
    assert alternate.parent.name.startswith("ci-cd-")
    assert read_artifact_tag(alternate) == "ci/cd"
    assert read_artifact_tag(primary) == "ci-cd"
    assert synchronizer.create("ci/cd") is False


def test_create_refuses_when_every_candidate_is_taken(tmp_path):
    tags = tmp_path / "tags"
    synchronizer = Synchronizer(tags)
    for path in synchronizer.candidate_paths("ci/cd"):
        path.parent.mkdir(parents=True)
        path.write_text("---\ntag: ci-cd\n---\n", encoding="utf-8")

    with pytest.raises(ArtifactWriteError, match="occupied by the artifact for 'ci-cd'"):
        synchronizer.create("ci/cd")


def test_apply_isolates_failures(tmp_path):
    tags = tmp_path / "tags"
    synchronizer = Synchronizer(tags)
    blocked = synchronizer.artifact_path("broken")
    blocked.parent.mkdir(parents=True)
    blocked.write_text("not an artifact", encoding="utf-8")

    result = synchronizer.apply(SyncPlan(to_create=("a", "broken", "c")))
    assert result.created == ["a", "c"]
    assert [f.tag for f in result.failed] == ["broken"]
    assert "unreadable artifact" in result.failed[0].message


def test_apply_write_error_leaves_no_partial_file(tmp_path, monkeypatch):
    def fail_write(target, content):
        raise PermissionError("read-only file system")

    monkeypatch.setattr("tagsync.synchronizer.write_new_file", fail_write)
    synchronizer = Synchronizer(tmp_path / "tags", ArtifactRenderer())
    result = synchronizer.apply(SyncPlan(to_create=("monads",)))
    assert result.created == []
    assert result.failed[0].message.startswith("cannot write artifact")
    assert isinstance(result.failed[0].original_error, PermissionError)


def test_apply_is_cancellable_between_creations(tmp_path):
    cancel = threading.Event()
    created = []

    class CancellingRenderer(ArtifactRenderer):
        def render(self, tag):
            created.append(tag)
            cancel.set()
            return super().render(tag)

    synchronizer = Synchronizer(tmp_path / "tags", CancellingRenderer())
    with pytest.raises(SyncCancelled):
        synchronizer.apply(SyncPlan(to_create=("a", "b", "c")), cancel)
    assert created == ["a"]
    assert read_artifact_tag(synchronizer.artifact_path("a")) == "a"
    assert not synchronizer.artifact_path("b").exists()


def test_custom_filename(tmp_path):
    synchronizer = Synchronizer(tmp_path / "tags", filename="index.md")
    synchronizer.create("monads")
    assert (tmp_path / "tags" / "monads" / "index.md").exists()


def plant_on_write(declared):
    """Stand-in for write_new_file where another writer wins the link."""

    def fake_write(target, content):
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(f"---\ntag: {declared}\n---\n", encoding="utf-8")
        return False

    return fake_write


def test_lost_race_to_same_tag_counts_as_existing(tmp_path, monkeypatch):
    monkeypatch.setattr("tagsync.synchronizer.write_new_file", plant_on_write("monads"))
    synchronizer = Synchronizer(tmp_path / "tags")
    result = synchronizer.apply(SyncPlan(to_create=("monads",)))
    assert result.existing == ["monads"]
    assert result.created == []
    assert result.failed == []


def test_lost_race_to_other_tag_is_a_failure(tmp_path, monkeypatch):
    monkeypatch.setattr("tagsync.synchronizer.write_new_file", plant_on_write("other"))
    synchronizer = Synchronizer(tmp_path / "tags")
    result = synchronizer.apply(SyncPlan(to_create=("monads",)))
    assert result.created == []
    assert [f.tag for f in result.failed] == ["monads"]
    assert "occupied by the artifact for 'other'" in result.failed[0].message
    assert read_artifact_tag(synchronizer.artifact_path("monads")) == "other"

import threading
from dataclasses import replace
from pathlib import Path

import pytest

from tagsync.config import SyncConfig
from tagsync.errors import ConfigurationError, MalformedArtifact, SyncCancelled
from tagsync.index import read_artifact_tag
from tagsync.pipeline import build_tag_index, run_sync
from tagsync.scanner import Document


def write_post(posts: Path, name: str, tags: str, extra: str = "") -> None:
    path = posts / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"---\ntitle: {name}\n{extra}tags: {tags}\n---\nBody\n", encoding="utf-8")


def make_config(tmp_path: Path, **kwargs) -> SyncConfig:
    return SyncConfig(
        project_root=tmp_path,
        content_dir=tmp_path / "_posts",
        artifacts_dir=tmp_path / "tags",
        **kwargs,
    )


def snapshot(directory: Path) -> dict[str, str]:
    return {
        p.relative_to(directory).as_posix(): p.read_text(encoding="utf-8")
        for p in sorted(directory.rglob("*"))
        if p.is_file()
    }


@pytest.fixture
def blog(tmp_path):
    posts = tmp_path / "_posts"
    write_post(posts, "2024-01-01-monads.md", "[F#, monads]")
    write_post(posts, "2024-01-02-python.md", "[Python, monads]")
    write_post(posts, "2024-01-03-lambda.md", "[Lambda Calculus]")
    return tmp_path


def test_example_blog_creates_three_then_is_in_sync(blog):
    config = make_config(blog)
    report = run_sync(config)
    assert report.created == ["F#", "Python", "lambda-calculus", "monads"]
    assert report.exit_code == 0
    assert report.documents_scanned == 3
    assert report.tags_indexed == 4
    assert report.entries["monads"].documents == frozenset(
        {"2024-01-01-monads.md", "2024-01-02-python.md"}
    )
    for tag in report.created:
        assert read_artifact_tag(blog / "tags" / tag / "index.html") == tag

    before = snapshot(blog / "tags")
    again = run_sync(config)
    assert again.created == []
    assert again.plan.in_sync
    assert again.plan.unchanged == ("F#", "Python", "lambda-calculus", "monads")
    assert snapshot(blog / "tags") == before


def test_dry_run_writes_nothing(blog):
    report = run_sync(make_config(blog), dry_run=True)
    assert report.plan.to_create == ("F#", "Python", "lambda-calculus", "monads")
    assert report.applied is None
    assert report.created == []
    assert not (blog / "tags").exists()


def test_output_is_identical_for_any_worker_count(blog):
    posts = blog / "_posts"
    for i in range(12):
        write_post(posts, f"2024-02-{i + 1:02d}-post.md", f"[topic-{i % 5}, python, Python]")
    write_post(posts, "2024-03-01-broken.md", "not-a-list")

    results = []
    for workers in range(1, 6):
        config = make_config(blog, workers=workers)
        report = run_sync(config, dry_run=True)
        indexed = build_tag_index(config)
        results.append(
            (
                report.plan,
                report.entries,
                [str(w) for w in report.warnings],
                [str(c) for c in report.conflicts],
                indexed.index,
            )
        )
    assert all(result == results[0] for result in results[1:])


def test_orphans_are_reported_never_deleted(blog):
    orphan = blog / "tags" / "old-topic" / "index.html"
    orphan.parent.mkdir(parents=True)
    orphan.write_text("---\nlayout: tagpage\ntag: old-topic\n---\n", encoding="utf-8")

    report = run_sync(make_config(blog))
    assert report.orphaned == ("old-topic",)
    assert report.exit_code == 0
    assert orphan.exists()


def test_renamed_artifact_directory_keeps_its_identity(blog):
    existing = blog / "tags" / "fsharp" / "index.html"
    existing.parent.mkdir(parents=True)
    existing.write_text("---\nlayout : tagpage\ntag : F#\n---\n", encoding="utf-8")

    report = run_sync(make_config(blog))
    assert "F#" in report.plan.unchanged
    assert "F#" not in report.created
    assert not (blog / "tags" / "F#").exists()


def test_partial_failure_indexes_the_rest(tmp_path):
    posts = tmp_path / "_posts"
    for i in range(9):
        write_post(posts, f"2024-01-{i + 1:02d}-post.md", f"[tag-{i}]")
    (posts / "2024-01-10-broken.md").write_text("---\ntags: [unclosed\n---\n", encoding="utf-8")

    report = run_sync(make_config(tmp_path))
    assert report.documents_scanned == 10
    assert report.tags_indexed == 9
    assert len(report.created) == 9
    assert [w.source_path for w in report.document_warnings] == ["2024-01-10-broken.md"]
    assert report.exit_code == 1


def test_conflicts_are_reported_without_failing(tmp_path):
    posts = tmp_path / "_posts"
    write_post(posts, "2024-01-01-a.md", "[Python]")
    write_post(posts, "2024-01-02-b.md", "[python]")
    report = run_sync(make_config(tmp_path))
    assert report.created == ["Python"]
    assert [c.chosen for c in report.conflicts] == ["Python"]
    assert report.exit_code == 0


def test_unusable_artifacts_are_warnings_only(blog):
    junk = blog / "tags" / "junk" / "index.html"
    junk.parent.mkdir(parents=True)
    junk.write_text("<html></html>", encoding="utf-8")
    report = run_sync(make_config(blog))
    assert [type(w) for w in report.warnings] == [MalformedArtifact]
    assert report.exit_code == 0


def test_artifact_tree_inside_content_root_is_not_scanned(tmp_path):
    write_post(tmp_path / "site", "2024-01-01-a.md", "[monads]")
    config = SyncConfig(
        project_root=tmp_path,
        content_dir=tmp_path / "site",
        artifacts_dir=tmp_path / "site" / "tags",
    )
    run_sync(config)
    second = run_sync(config)
    assert second.documents_scanned == 1
    assert second.warnings == []


def test_missing_root_fails_before_writing(tmp_path):
    with pytest.raises(ConfigurationError, match="does not exist"):
        run_sync(make_config(tmp_path))
    assert not (tmp_path / "tags").exists()


def test_bad_template_fails_before_writing(blog):
    config = make_config(blog, artifact_template=blog / "missing.j2")
    with pytest.raises(ConfigurationError):
        run_sync(config)
    assert not (blog / "tags").exists()


def test_unpublished_posts_do_not_get_pages(blog):
    write_post(blog / "_posts", "2024-04-01-draft.md", "[secret]", extra="published: false\n")
    report = run_sync(make_config(blog))
    assert "secret" not in report.entries
    assert report.documents_scanned == 4


def test_cancelled_run_raises(blog):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(SyncCancelled):
        run_sync(make_config(blog), cancel=cancel)
    assert not (blog / "tags").exists()


def test_build_tag_index_single_worker_equals_many(blog):
    one = build_tag_index(replace(make_config(blog), workers=1))
    many = build_tag_index(replace(make_config(blog), workers=8))
    assert one.index == many.index
    assert one.documents_scanned == many.documents_scanned == 3


def test_two_document_example(tmp_path):
    posts = tmp_path / "_posts"
    write_post(posts, "2024-01-01-a.md", "[F#, monads]")
    write_post(posts, "2024-01-02-b.md", "[python, monads]")
    config = make_config(tmp_path)

    plan = run_sync(config, dry_run=True).plan
    assert set(plan.to_create) == {"F#", "monads", "python"}

    run_sync(config)
    after = run_sync(config, dry_run=True)
    assert after.plan.to_create == ()
    assert all(entry.artifact_exists for entry in after.entries.values())


def test_build_tag_index_accepts_any_document_source(tmp_path):
    class MemorySource:
        def __init__(self, documents):
            self.documents = {Path(d.path): d for d in documents}

        def iter_paths(self):
            return sorted(self.documents)

        def read(self, path):
            return self.documents[path]

        def scan(self, cancel=None, paths=None):
            for path in self.iter_paths() if paths is None else paths:
                yield self.read(path)

    source = MemorySource(
        [
            Document("2024-01-01-a.md", ("Elm", "monads")),
            Document("2024-01-02-b.md", ("monads",)),
        ]
    )
    indexed = build_tag_index(make_config(tmp_path, workers=2), scanner=source)
    assert indexed.documents_scanned == 2
    assert indexed.index.canonical_tags() == {
        "Elm": frozenset({"2024-01-01-a.md"}),
        "monads": frozenset({"2024-01-01-a.md", "2024-01-02-b.md"}),
    }


def test_tags_sharing_a_directory_name_both_get_artifacts(tmp_path):
    posts = tmp_path / "_posts"
    write_post(posts, "2024-01-01-devops.md", "[ci/cd, ci-cd, .net, -net]")
    config = make_config(tmp_path)

    first = run_sync(config)
    assert first.failed == []
    assert sorted(first.created) == ["-net", ".net", "ci-cd", "ci/cd"]
    assert first.exit_code == 0

    second = run_sync(config, dry_run=True)
    assert second.plan.to_create == ()
    assert set(second.inventory) == {"-net", ".net", "ci-cd", "ci/cd"}
    assert all(entry.artifact_exists for entry in second.entries.values())

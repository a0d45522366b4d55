"""
Tests for the invoke operator tasks.

StoreContext.from_config is patched to return the test context so the tasks
run against the temporary DuckDB file and the in-memory bucket.
"""

import json
from unittest.mock import patch

import pytest
from invoke import Context

from photostore.cli.tasks import batch_upload, bootstrap_admin, find_images, namespace, reconcile


@pytest.fixture
def env_file(tmp_path):
    return str(tmp_path / "missing.env")


@pytest.fixture
def patched_store(store_context):
    with patch("photostore.cli.tasks.StoreContext.from_config", return_value=store_context) as mock_from_config:
        yield mock_from_config


@pytest.fixture
def admin(store_context):
    return store_context.users.bootstrap_admin("Admin", "admin@example.com", "admin", "s3cret-pass")


@pytest.fixture
def photo_dir(tmp_path, canon_jpeg, jpeg_bytes):
    directory = tmp_path / "photos"
    (directory / "nested").mkdir(parents=True)
    (directory / "a.jpg").write_bytes(canon_jpeg)
    (directory / "b.JPEG").write_bytes(jpeg_bytes)
    (directory / "notes.txt").write_text("not a photo")
    (directory / "nested" / "c.jpg").write_bytes(jpeg_bytes)
    return directory


class TestFindImages:
    """Test cases for find_images."""

    def test_top_level(self, photo_dir):
        """Test that only image extensions in the directory itself are found."""
        assert [path.name for path in find_images(photo_dir)] == ["a.jpg", "b.JPEG"]

    def test_recursive(self, photo_dir):
        """Test searching subdirectories."""
        assert [path.name for path in find_images(photo_dir, recursive=True)] == ["a.jpg", "b.JPEG", "c.jpg"]


class TestBootstrapAdminTask:
    """Test cases for the bootstrap-admin task."""

    def test_creates_admin(self, patched_store, store_context, env_file, capsys):
        """Test creating the first user."""
        bootstrap_admin(Context(), "Admin", "admin@example.com", "admin", "s3cret-pass", env_file=env_file)

        assert "Created admin user admin" in capsys.readouterr().out
        assert store_context.metadata.get_user_by_username("admin").email == "admin@example.com"

    def test_refuses_second_admin(self, patched_store, admin, env_file, capsys):
        """Test that bootstrap exits non-zero once a user exists."""
        with pytest.raises(SystemExit) as exc_info:
            bootstrap_admin(Context(), "Other", "other@example.com", "other", "pass", env_file=env_file)

        assert exc_info.value.code == 1
        assert "Admin user already exists." in capsys.readouterr().out


class TestBatchUploadTask:
    """Test cases for the batch-upload task."""

    def test_uploads_for_user(self, patched_store, store_context, admin, photo_dir, env_file, capsys):
        """Test that every image is ingested as the named user."""
        batch_upload(Context(), str(photo_dir), "admin", env_file=env_file)

        assert "Successful: 2, Failed: 0" in capsys.readouterr().out
        assert store_context.metadata.count_photos(admin.id) == 2

    def test_failures_do_not_stop_batch(self, patched_store, store_context, admin, photo_dir, env_file, capsys):
        """Test that a broken file is reported and the rest still uploads."""
        (photo_dir / "broken.jpg").write_bytes(b"not an image")

        batch_upload(Context(), str(photo_dir), "admin", env_file=env_file, recursive=True)

        out = capsys.readouterr().out
        assert "Successful: 3, Failed: 1" in out
        assert "broken.jpg: metadata_extraction_failed" in out
        assert store_context.metadata.count_photos(admin.id) == 3

    def test_reports_orphaned_blobs(self, patched_store, admin, photo_dir, bucket, env_file, capsys):
        """Test that orphaned blobs are listed for reconciliation."""
        (photo_dir / "a.jpg").write_bytes(b"not an image")
        (photo_dir / "b.JPEG").unlink()
        bucket.fail("delete")

        batch_upload(Context(), str(photo_dir), "admin", env_file=env_file)

        out = capsys.readouterr().out
        assert "a.jpg: orphaned_blob" in out
        assert "Orphaned blobs (run 'reconcile --fix' once the grace window has passed)" in out

    def test_dry_run(self, patched_store, photo_dir, env_file, capsys):
        """Test that a dry run lists files without opening the stores."""
        batch_upload(Context(), str(photo_dir), "admin", env_file=env_file, dry_run=True)

        out = capsys.readouterr().out
        assert "a.jpg" in out
        assert "notes.txt" not in out
        patched_store.assert_not_called()

    def test_unknown_user(self, patched_store, photo_dir, env_file):
        """Test that an unknown owner aborts the batch."""
        with pytest.raises(SystemExit) as exc_info:
            batch_upload(Context(), str(photo_dir), "nobody", env_file=env_file)

        assert exc_info.value.code == 1

    def test_missing_directory(self, tmp_path, env_file):
        """Test that a missing directory aborts the batch."""
        with pytest.raises(SystemExit):
            batch_upload(Context(), str(tmp_path / "absent"), "admin", env_file=env_file)


class TestReconcileTask:
    """Test cases for the reconcile task."""

    def test_consistent(self, patched_store, env_file, capsys):
        """Test the report of consistent stores."""
        reconcile(Context(), env_file=env_file)

        assert json.loads(capsys.readouterr().out)["consistent"] is True

    def test_orphan_exits_non_zero(self, patched_store, storage_service, bucket, jpeg_bytes, env_file, capsys):
        """Test that an inconsistency without --fix exits with status 2."""
        orphan = storage_service.put(jpeg_bytes, "orphan.jpg", "image/jpeg")
        bucket.age_objects(2 * 3600)

        with pytest.raises(SystemExit) as exc_info:
            reconcile(Context(), env_file=env_file)

        assert exc_info.value.code == 2
        assert json.loads(capsys.readouterr().out)["orphaned_blobs"] == [orphan]

    def test_fix(self, patched_store, storage_service, jpeg_bytes, env_file, capsys):
        """Test that --fix deletes orphaned blobs."""
        orphan = storage_service.put(jpeg_bytes, "orphan.jpg", "image/jpeg")

        reconcile(Context(), fix=True, grace_seconds="0", env_file=env_file)

        assert json.loads(capsys.readouterr().out)["deleted_blobs"] == [orphan]
        assert not storage_service.exists(orphan)

    def test_recent_blob_is_pending(self, patched_store, storage_service, jpeg_bytes, env_file, capsys):
        """Test that a blob inside the grace window is neither an inconsistency nor deleted."""
        blob_id = storage_service.put(jpeg_bytes, "in-flight.jpg", "image/jpeg")

        reconcile(Context(), fix=True, env_file=env_file)

        report = json.loads(capsys.readouterr().out)
        assert report["pending_blobs"] == [blob_id]
        assert report["deleted_blobs"] == []
        assert storage_service.exists(blob_id)


class TestNamespace:
    """Test cases for the task collection."""

    def test_task_names(self):
        """Test that all tasks are exposed with dashed names."""
        assert set(namespace.task_names) == {"bootstrap-admin", "batch-upload", "reconcile"}

"""
Operator tasks.

Run through invoke as the ``photostore`` console script:

    photostore bootstrap-admin --name Admin --email a@example.com --username admin --password secret
    photostore batch-upload --directory ./photos --username admin
    photostore reconcile --fix
"""

import json
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from invoke import Collection, Context, Program, task

from .. import __version__
from ..config import load_env_file
from ..error_handling import NotFoundError, OrphanedBlobError, PhotoStoreError
from ..logging_config import configure_structured_logging, get_logger
from ..services.context import StoreContext
from ..services.reconciliation import reconcile as reconcile_stores

logger = get_logger(__name__)

SUPPORTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".tif", ".tiff", ".heic", ".heif"}


@contextmanager
def open_store(env_file: str) -> Iterator[StoreContext]:
    """Load the env file, configure logging and yield an open StoreContext."""
    load_env_file(env_file)
    configure_structured_logging()
    with StoreContext.from_config() as context:
        yield context


def find_images(directory: str | Path, recursive: bool = False) -> list[Path]:
    """List image files in a directory by extension, sorted by path."""
    root = Path(directory)
    candidates = root.rglob("*") if recursive else root.iterdir()
    return sorted(path for path in candidates if path.is_file() and path.suffix.lower() in SUPPORTED_EXTENSIONS)


@task
def bootstrap_admin(c: Context, name: str, email: str, username: str, password: str, env_file: str = ".env"):
    """
    Create the first user. Refused once any user exists.

    Args:
        c (Context): Invoke context.
        name (str): Display name.
        email (str): Email address.
        username (str): Login username.
        password (str): Password.
        env_file (str): Path to the environment file. Default is '.env'.
    """
    with open_store(env_file) as context:
        try:
            user = context.users.bootstrap_admin(name, email, username, password)
        except PhotoStoreError as e:
            print(f"Bootstrap failed: {e.user_message}")
            raise SystemExit(1) from e

    print(f"Created admin user {user.username} ({user.id})")


@task
def batch_upload(
    c: Context,
    directory: str,
    username: str,
    env_file: str = ".env",
    recursive: bool = False,
    dry_run: bool = False,
):
    """
    Upload images from a local directory for one user.

    Each file is staged through a temporary copy and ingested like an HTTP
    upload; a failed file does not stop the batch.

    Args:
        c (Context): Invoke context.
        directory (str): Path to the directory containing images.
        username (str): Owner of the uploaded photos.
        env_file (str): Path to the environment file. Default is '.env'.
        recursive (bool): Search for images in subdirectories. Default is False.
        dry_run (bool): If True, lists files to be processed without uploading. Default is False.
    """
    if not os.path.isdir(directory):
        logger.error("batch_directory_not_found", directory=directory)
        raise SystemExit(1)

    image_files = find_images(directory, recursive=recursive)
    if not image_files:
        logger.warning("batch_no_images_found", directory=directory)
        return

    logger.info("batch_upload_started", directory=directory, username=username, file_count=len(image_files))

    if dry_run:
        print("\n--- Dry Run Mode: Files to be processed ---")
        for path in image_files:
            print(f"- {path}")
        print("--- End of Dry Run ---")
        return

    successful = 0
    failed: dict[str, str] = {}
    orphaned: list[str] = []

    with open_store(env_file) as context:
        try:
            user = context.metadata.get_user_by_username(username)
        except NotFoundError as e:
            print(f"Unknown user: {username}")
            raise SystemExit(1) from e

        # The operator holds the signing key, so uploads run as the target user
        token = context.auth.issue_token(user.id)

        for path in image_files:
            try:
                record = context.coordinator.ingest_file(token, path)
            except OrphanedBlobError as e:
                orphaned.append(e.details.get("blob_id", ""))
                failed[str(path)] = e.code
            except PhotoStoreError as e:
                failed[str(path)] = e.code
            else:
                successful += 1
                logger.info("batch_file_uploaded", filename=path.name, photo_id=record.id)

    logger.info(
        "batch_upload_finished",
        successful=successful,
        failed=len(failed),
        orphaned_blobs=len(orphaned),
        total=len(image_files),
    )
    print(f"\nBatch upload complete. Successful: {successful}, Failed: {len(failed)}")
    for path_name, code in failed.items():
        print(f"  {path_name}: {code}")
    if orphaned:
        print(f"Orphaned blobs (run 'reconcile --fix' once the grace window has passed): {', '.join(orphaned)}")


@task
def reconcile(c: Context, fix: bool = False, grace_seconds=None, env_file: str = ".env"):
    """
    Report blobs without records and records without blobs.

    Args:
        c (Context): Invoke context.
        fix (bool): Delete orphaned blobs. Records without blobs are only reported.
        grace_seconds: Minimum age of an unreferenced blob before it is treated as orphaned.
            Default is RECONCILE_GRACE_SECONDS.
        env_file (str): Path to the environment file. Default is '.env'.
    """
    with open_store(env_file) as context:
        report = reconcile_stores(
            context.storage,
            context.metadata,
            fix=fix,
            grace_seconds=int(grace_seconds) if grace_seconds is not None else None,
        )

    print(json.dumps(report.to_dict(), indent=2))
    if not report.is_consistent and not fix:
        raise SystemExit(2)


namespace = Collection(bootstrap_admin, batch_upload, reconcile)
program = Program(namespace=namespace, version=__version__, name="photostore", binary="photostore")

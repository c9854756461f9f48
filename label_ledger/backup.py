"""
Backup and restore of a file-backed SQLite ledger.

A backup checkpoints the WAL first so the main database file holds every
committed write, then zips it together with the uploads directory when one
is configured. Restoring closes the store, drops stale WAL/SHM files,
extracts the archive over the live paths and reopens; the ledger is
unavailable in between.
"""

import logging
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from .db import LedgerStore

logger = logging.getLogger(__name__)

DB_ARCHIVE_NAME = "database.sqlite"
UPLOADS_ARCHIVE_DIR = "uploads"

PathLike = Union[str, Path]


def _require_file_db(store: LedgerStore) -> Path:
    path = store.database_path
    if path is None:
        raise ValueError("Backups are only supported for file-backed SQLite stores")
    return path


def create_backup(store: LedgerStore, backup_dir: PathLike, uploads_dir: Optional[PathLike] = None) -> Path:
    db_path = _require_file_db(store)
    store.checkpoint()

    backup_dir = Path(backup_dir)
    backup_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    archive_path = backup_dir / f"ledger-backup-{stamp}.zip"

    with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
        if db_path.exists():
            archive.write(db_path, DB_ARCHIVE_NAME)
        if uploads_dir is not None and Path(uploads_dir).is_dir():
            root = Path(uploads_dir)
            for file in sorted(root.rglob("*")):
                if file.is_file():
                    archive.write(file, f"{UPLOADS_ARCHIVE_DIR}/{file.relative_to(root).as_posix()}")

    logger.info("Backup written to %s", archive_path)
    return archive_path


def restore_backup(store: LedgerStore, archive_path: PathLike, uploads_dir: Optional[PathLike] = None) -> None:
    db_path = _require_file_db(store)
    archive_path = Path(archive_path)

    with zipfile.ZipFile(archive_path) as archive:
        names = archive.namelist()
        if DB_ARCHIVE_NAME not in names:
            raise ValueError(f"{archive_path} does not contain {DB_ARCHIVE_NAME}")

        logger.info("Restoring ledger from %s", archive_path)
        store.close()
        try:
            for suffix in ("-wal", "-shm"):
                Path(f"{db_path}{suffix}").unlink(missing_ok=True)

            db_path.parent.mkdir(parents=True, exist_ok=True)
            db_path.write_bytes(archive.read(DB_ARCHIVE_NAME))

            if uploads_dir is not None:
                root = Path(uploads_dir)
                prefix = f"{UPLOADS_ARCHIVE_DIR}/"
                for name in names:
                    if not name.startswith(prefix) or name.endswith("/"):
                        continue
                    target = (root / name[len(prefix):]).resolve()
                    if root.resolve() not in target.parents:
                        raise ValueError(f"Refusing to extract {name} outside {root}")
                    target.parent.mkdir(parents=True, exist_ok=True)
                    target.write_bytes(archive.read(name))
        finally:
            store.open()

    logger.info("Restore complete")

from __future__ import annotations

import shutil
import tarfile
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from tempfile import TemporaryDirectory

from .common import (
    BackupError,
    BackupNotFound,
    EmptyRepository,
    MetadataError,
    RestoreError,
    ServiceManagerError,
    TimerName,
    logger,
)
from .context import Context
from .cronie import install_from_dir, remove_timer
from .repository import TimerPaths, is_valid_name
from .systemd import ServiceControl


def default_backup_path(now: datetime | None = None) -> Path:
    if now is None:
        now = datetime.now()
    return Path(f'cronie_backup_{now:%Y-%m-%d_%H%M%S}.tar.gz')


def backup(ctx: Context, dest: Path | None = None) -> Path:
    base = ctx.base_dir
    if not base.is_dir() or not any(base.iterdir()):
        raise EmptyRepository('Cronie base directory is empty. Nothing to back up.')
    if dest is None:
        dest = default_backup_path()

    logger.info(f"Creating backup archive at '{dest}'...")
    try:
        tar = tarfile.open(dest, 'w:gz')
    except OSError as e:
        raise BackupError(f"Could not create backup archive '{dest}': {e}") from e
    try:
        with tar:
            tar.add(base, arcname=base.name)
    except (OSError, tarfile.TarError) as e:
        # half written archive is useless
        dest.unlink(missing_ok=True)
        raise BackupError(f"Could not write backup archive '{dest}': {e}") from e
    logger.success('Backup completed successfully.')
    return dest


class Collision(Enum):
    OVERWRITE = 'o'
    SKIP = 's'
    ABORT = 'a'


# gets called with the name of a timer which already exists
OnCollision = Callable[[TimerName], Collision]


@dataclass
class RestoreReport:
    restored: list[TimerName] = field(default_factory=list)
    skipped: list[TimerName] = field(default_factory=list)
    failed: list[TimerName] = field(default_factory=list)
    aborted: bool = False


def _extract(archive: Path, dest: Path) -> None:
    try:
        with tarfile.open(archive, 'r:*') as tar:
            tar.extractall(dest, filter='data')
    except (tarfile.TarError, OSError) as e:
        raise RestoreError(f'Failed to extract backup file. It may be corrupted or not a valid archive: {e}') from e


def restore(ctx: Context, sc: ServiceControl, archive: Path, *, on_collision: OnCollision) -> RestoreReport:
    if not archive.is_file():
        raise BackupNotFound(f"Backup file not found at '{archive}'.")

    report = RestoreReport()
    with TemporaryDirectory(prefix='cronie-restore-') as _tdir:
        tdir = Path(_tdir)
        logger.info('Extracting backup to a temporary location...')
        _extract(archive, tdir)

        extracted = tdir / ctx.base_dir.name
        if not extracted.is_dir():
            raise RestoreError(f"Backup archive does not contain a '{ctx.base_dir.name}' directory.")

        candidates = sorted(p for p in extracted.iterdir() if p.is_dir())
        if len(candidates) == 0:
            logger.warning('No timers found in the backup archive.')
            return report

        logger.info(f'Found {len(candidates)} timers in the backup.')
        for candidate in candidates:
            name = candidate.name
            logger.info(f'Processing timer: {name}')
            if not is_valid_name(name):
                logger.warning(f"Skipping '{name}', not a valid timer name.")
                report.skipped.append(name)
                continue

            paths = TimerPaths.of(ctx, name)
            if paths.dir.exists():
                logger.warning(f"Timer '{name}' already exists.")
                action = on_collision(name)
                if action is Collision.SKIP:
                    logger.info(f"Skipping '{name}'.")
                    report.skipped.append(name)
                    continue
                if action is Collision.ABORT:
                    logger.error('Restore aborted by user.')
                    report.aborted = True
                    break
                logger.info(f"Overwriting '{name}'. Deleting existing version first.")
                remove_timer(ctx, sc, name)

            logger.info(f"Restoring '{name}' files...")
            shutil.copytree(candidate, paths.dir)
            try:
                install_from_dir(ctx, sc, name)
            except (MetadataError, ServiceManagerError) as e:
                logger.error(f"Could not install '{name}': {e}")
                report.failed.append(name)
                continue
            logger.success(f"Timer '{name}' installed and enabled.")
            report.restored.append(name)

    if not report.aborted:
        logger.success('Restore process completed.')
    return report

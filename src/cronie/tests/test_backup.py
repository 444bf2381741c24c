from __future__ import annotations

import tarfile
from datetime import datetime
from pathlib import Path

import pytest

from ..backup import Collision, backup, default_backup_path, restore
from ..common import BackupError, BackupNotFound, EmptyRepository, RestoreError
from ..context import Context
from ..cronie import create_timer, edit_description, remove_timer
from ..repository import TimerPaths, read_info, timer_names
from ..schedule import every_hours, weekly
from ..scripts import empty_script, health_check_script
from .fakes import FakeServiceControl


def populate(ctx: Context, sc: FakeServiceControl) -> None:
    create_timer(ctx, sc, name='alpha', description='First', schedule=every_hours(2), script=empty_script('alpha'))
    create_timer(
        ctx,
        sc,
        name='beta',
        description='Second',
        schedule=weekly('Fri', '17:00'),
        script=health_check_script('beta', url='https://example.com'),
    )
    (TimerPaths.of(ctx, 'alpha').logs_dir / '2026-10-17.log').write_text('ran\n')


def state(ctx: Context, name: str) -> dict[str, str]:
    p = TimerPaths.of(ctx, name)
    return {
        'info': p.info_log.read_text(),
        'script': p.script.read_text(),
        'service': p.service_unit.read_text(),
        'timer': p.timer_unit.read_text(),
    }


def never(name: str) -> Collision:
    raise AssertionError(f'unexpected collision: {name}')


def test_default_backup_path() -> None:
    assert default_backup_path(datetime(2026, 10, 18, 9, 5, 7)) == Path('cronie_backup_2026-10-18_090507.tar.gz')


def test_backup_empty(ctx: Context, tmp_path: Path) -> None:
    with pytest.raises(EmptyRepository):
        backup(ctx, tmp_path / 'backup.tar.gz')
    assert not (tmp_path / 'backup.tar.gz').exists()


def test_backup_bad_destination(ctx: Context, sc: FakeServiceControl, tmp_path: Path) -> None:
    populate(ctx, sc)
    with pytest.raises(BackupError, match='Could not create'):
        backup(ctx, tmp_path / 'missing' / 'backup.tar.gz')
    with pytest.raises(BackupError, match='Could not create'):
        backup(ctx, tmp_path)
    assert not (tmp_path / 'missing').exists()


def test_backup_removes_partial_archive(ctx: Context, sc: FakeServiceControl, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    populate(ctx, sc)

    def full_disk(*args, **kwargs) -> None:
        raise OSError(28, 'No space left on device')

    monkeypatch.setattr(tarfile.TarFile, 'add', full_disk)
    dest = tmp_path / 'backup.tar.gz'
    with pytest.raises(BackupError, match='No space left'):
        backup(ctx, dest)
    assert not dest.exists()


def test_backup_layout(ctx: Context, sc: FakeServiceControl, tmp_path: Path) -> None:
    populate(ctx, sc)
    archive = backup(ctx, tmp_path / 'backup.tar.gz')
    with tarfile.open(archive) as tar:
        names = set(tar.getnames())
    assert 'cronie' in names
    assert 'cronie/alpha/alpha_INFORMATION_LOG.log' in names
    assert 'cronie/alpha/logs/2026-10-17.log' in names
    assert 'cronie/beta/beta_EXECUTABLE_SCRIPT.sh' in names
    assert all(n == 'cronie' or n.startswith('cronie/') for n in names)


def test_backup_restore_roundtrip(ctx: Context, sc: FakeServiceControl, tmp_path: Path) -> None:
    populate(ctx, sc)
    before = {n: state(ctx, n) for n in timer_names(ctx)}
    archive = backup(ctx, tmp_path / 'backup.tar.gz')

    for name in timer_names(ctx):
        remove_timer(ctx, sc, name)
    assert timer_names(ctx) == []
    assert list(ctx.unit_dir.iterdir()) == []

    report = restore(ctx, sc, archive, on_collision=never)

    assert report.restored == ['alpha', 'beta']
    assert report.skipped == report.failed == []
    assert not report.aborted
    assert {n: state(ctx, n) for n in timer_names(ctx)} == before
    assert (TimerPaths.of(ctx, 'alpha').logs_dir / '2026-10-17.log').read_text() == 'ran\n'
    assert sc.enabled == {'alpha.timer', 'beta.timer'}


def test_restore_skip(ctx: Context, sc: FakeServiceControl, tmp_path: Path) -> None:
    populate(ctx, sc)
    archive = backup(ctx, tmp_path / 'backup.tar.gz')

    # diverge from the backup
    edit_description(ctx, sc, 'alpha', 'Changed after backup')
    TimerPaths.of(ctx, 'alpha').script.write_text('#!/bin/bash\necho changed\n')
    current = state(ctx, 'alpha')
    sc.calls.clear()

    asked = []

    def skip(name: str) -> Collision:
        asked.append(name)
        return Collision.SKIP

    report = restore(ctx, sc, archive, on_collision=skip)
    assert asked == ['alpha', 'beta']
    assert report.skipped == ['alpha', 'beta']
    assert report.restored == []
    assert state(ctx, 'alpha') == current
    assert sc.calls == []


def test_restore_overwrite(ctx: Context, sc: FakeServiceControl, tmp_path: Path) -> None:
    populate(ctx, sc)
    original = state(ctx, 'alpha')
    archive = backup(ctx, tmp_path / 'backup.tar.gz')

    edit_description(ctx, sc, 'alpha', 'Changed after backup')
    (TimerPaths.of(ctx, 'alpha').logs_dir / 'stale.log').write_text('gone after restore')
    remove_timer(ctx, sc, 'beta')

    report = restore(ctx, sc, archive, on_collision=lambda _: Collision.OVERWRITE)
    assert report.restored == ['alpha', 'beta']
    assert state(ctx, 'alpha') == original
    assert read_info(TimerPaths.of(ctx, 'alpha')).description == 'First'
    assert not (TimerPaths.of(ctx, 'alpha').logs_dir / 'stale.log').exists()


def test_restore_abort(ctx: Context, sc: FakeServiceControl, tmp_path: Path) -> None:
    populate(ctx, sc)
    archive = backup(ctx, tmp_path / 'backup.tar.gz')
    remove_timer(ctx, sc, 'alpha')
    beta = state(ctx, 'beta')

    asked = []

    def abort(name: str) -> Collision:
        asked.append(name)
        return Collision.ABORT

    report = restore(ctx, sc, archive, on_collision=abort)
    # alpha comes first and gets restored, then processing stops
    assert report.restored == ['alpha']
    assert report.aborted
    assert asked == ['beta']
    assert state(ctx, 'beta') == beta


def test_restore_broken_timer(ctx: Context, sc: FakeServiceControl, tmp_path: Path) -> None:
    populate(ctx, sc)
    TimerPaths.of(ctx, 'alpha').info_log.unlink()
    archive = backup(ctx, tmp_path / 'backup.tar.gz')
    for name in timer_names(ctx):
        remove_timer(ctx, sc, name)
    sc.calls.clear()

    report = restore(ctx, sc, archive, on_collision=never)
    assert report.failed == ['alpha']
    assert report.restored == ['beta']
    # copied, but not installed
    alpha = TimerPaths.of(ctx, 'alpha')
    assert alpha.script.exists()
    assert not alpha.timer_unit.exists()
    assert ('enable', 'alpha.timer') not in sc.calls


def test_restore_missing_archive(ctx: Context, sc: FakeServiceControl, tmp_path: Path) -> None:
    with pytest.raises(BackupNotFound):
        restore(ctx, sc, tmp_path / 'nope.tar.gz', on_collision=never)


def test_restore_garbage_archive(ctx: Context, sc: FakeServiceControl, tmp_path: Path) -> None:
    archive = tmp_path / 'garbage.tar.gz'
    archive.write_bytes(b'definitely not a tarball')
    with pytest.raises(RestoreError):
        restore(ctx, sc, archive, on_collision=never)


def test_restore_wrong_layout(ctx: Context, sc: FakeServiceControl, tmp_path: Path) -> None:
    other = tmp_path / 'other' / 'job'
    other.mkdir(parents=True)
    (other / 'job_INFORMATION_LOG.log').write_text('Description: x\nOnCalendar Value: daily\n')
    archive = tmp_path / 'other.tar.gz'
    with tarfile.open(archive, 'w:gz') as tar:
        tar.add(tmp_path / 'other', arcname='other')

    with pytest.raises(RestoreError, match="does not contain a 'cronie' directory"):
        restore(ctx, sc, archive, on_collision=never)
    assert timer_names(ctx) == []


def test_restore_empty_archive(ctx: Context, sc: FakeServiceControl, tmp_path: Path) -> None:
    # backup refuses to do that, so build one by hand
    archive = tmp_path / 'empty.tar.gz'
    with tarfile.open(archive, 'w:gz') as tar:
        tar.add(ctx.base_dir, arcname='cronie')

    report = restore(ctx, sc, archive, on_collision=never)
    assert report.restored == report.skipped == report.failed == []
    assert sc.calls == []

from collections.abc import Iterator
from pathlib import Path

import pytest
from loguru import logger

from .context import Context
from .tests.fakes import FakeServiceControl


@pytest.fixture
def ctx(tmp_path: Path) -> Context:
    '''
    User-level context with everything living under tmp_path
    '''
    home = tmp_path / 'home'
    c = Context(
        system_wide=False,
        user='tester',
        base_dir=home / 'cronie',
        unit_dir=home / '.config' / 'systemd' / 'user',
    )
    c.ensure_dirs()
    return c


@pytest.fixture
def sc() -> FakeServiceControl:
    return FakeServiceControl()


@pytest.fixture
def caplog_loguru() -> Iterator[list[str]]:
    '''
    Collects messages logged via loguru (pytest's caplog only sees stdlib logging)
    '''
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record['message']), level='DEBUG')
    try:
        yield messages
    finally:
        logger.remove(handler_id)

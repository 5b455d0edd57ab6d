from __future__ import annotations

import threading

import pytest

from fileshare.services.file_locks import FileLockRegistry


def test_lock_for_returns_same_lock_per_path(tmp_path):
    registry = FileLockRegistry()
    path = tmp_path / 'a.txt'

    assert registry.lock_for(path) is registry.lock_for(str(path))
    assert path in registry
    assert len(registry) == 1


def test_distinct_paths_do_not_block_each_other(tmp_path):
    registry = FileLockRegistry()

    with registry.hold(tmp_path / 'a.txt'):
        other = registry.lock_for(tmp_path / 'b.txt')
        assert other.acquire(timeout=1)
        other.release()


def test_hold_blocks_same_path_from_other_thread(tmp_path):
    registry = FileLockRegistry()
    path = tmp_path / 'shared.txt'
    acquired = []

    def _contender():
        lock = registry.lock_for(path)
        acquired.append(lock.acquire(timeout=0.2))
        if acquired[-1]:
            lock.release()

    with registry.hold(path):
        worker = threading.Thread(target=_contender)
        worker.start()
        worker.join()

    assert acquired == [False]


def test_hold_releases_on_error(tmp_path):
    registry = FileLockRegistry()
    path = tmp_path / 'boom.txt'

    with pytest.raises(RuntimeError):
        with registry.hold(path):
            raise RuntimeError('boom')

    assert not registry.lock_for(path).locked()


def test_discard_removes_entry(tmp_path):
    registry = FileLockRegistry()
    path = tmp_path / 'gone.txt'
    registry.lock_for(path)

    registry.discard(path)
    registry.discard(path)

    assert path not in registry
    assert len(registry) == 0


def test_registries_are_independent(tmp_path):
    first = FileLockRegistry()
    second = FileLockRegistry()
    path = tmp_path / 'a.txt'

    assert first.lock_for(path) is not second.lock_for(path)

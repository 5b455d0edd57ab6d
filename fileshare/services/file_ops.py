from __future__ import annotations

import logging
import os
import shutil
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from ..exceptions import (
    EmptyUploadError,
    FileExistsConflictError,
    FolderExistsError,
    FolderNotEmptyError,
    InvalidPathError,
    NotFoundError,
    TransientIOError,
    UploadTooLargeError,
)
from .file_locks import FileLockRegistry
from .validation import (
    MAX_NAME_LENGTH,
    TRASH_PREFIX,
    encoded_length,
    normalize_folder_path,
    parent_folder,
    validate_file_name,
    validate_folder_path,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024
MAX_RENAME_ATTEMPTS = 999
_CREATE_RETRIES = 5


@dataclass(frozen=True)
class StoredEntry:
    name: str
    type: str
    size: int
    modified: datetime


@dataclass(frozen=True)
class FolderListing:
    items: list[StoredEntry] = field(default_factory=list)
    current_folder: str = ''
    parent_folder: Optional[str] = None


def validate_path(requested_path: str, root: Path | str) -> Path:
    """Map a relative path under ``root``, refusing anything that resolves outside it."""
    base = Path(root).resolve(strict=False)
    relative = requested_path.lstrip('/')
    candidate = (base / relative).resolve(strict=False)
    if base != candidate and base not in candidate.parents:
        raise InvalidPathError('Invalid folder path.')
    return base / relative if relative else base


def unique_name(directory: Path, name: str, now: Optional[datetime] = None) -> str:
    """Return ``name`` or the first free ``stem (n).ext`` variant in ``directory``.

    After ``MAX_RENAME_ATTEMPTS`` taken variants a second-resolution timestamp
    suffix is used instead.
    """
    if not os.path.lexists(directory / name):
        return name

    stem, ext = os.path.splitext(name)
    for counter in range(1, MAX_RENAME_ATTEMPTS + 1):
        candidate = _with_suffix(stem, f' ({counter})', ext)
        if not os.path.lexists(directory / candidate):
            return candidate

    stamp = (now or datetime.now()).strftime('%Y%m%d_%H%M%S')
    return _with_suffix(stem, f' ({stamp})', ext)


def _with_suffix(stem: str, suffix: str, ext: str) -> str:
    room = MAX_NAME_LENGTH - len(suffix) - len(ext)
    stem = stem[:max(room, 1)]
    while len(stem) > 1 and encoded_length(f'{stem}{suffix}{ext}') > MAX_NAME_LENGTH:
        stem = stem[:-1]
    return f'{stem}{suffix}{ext}'


def _stream_size(source: BinaryIO) -> int:
    source.seek(0, os.SEEK_END)
    size = source.tell()
    source.seek(0)
    return size


def _sort_key(item: StoredEntry) -> tuple[int, str]:
    return (1 if item.type == 'file' else 0, item.name)


class FileOps:
    def __init__(
        self,
        root: str | Path,
        locks: Optional[FileLockRegistry] = None,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    ):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.locks = locks if locks is not None else FileLockRegistry()
        self.max_upload_bytes = max_upload_bytes

    @property
    def max_upload_mb(self) -> int:
        return self.max_upload_bytes // (1024 * 1024)

    def safe_path(self, rel: str) -> Path:
        return validate_path(rel, self.root)

    def folder_dir(self, folder: Optional[str]) -> Path:
        reason = validate_folder_path(folder)
        if reason:
            raise InvalidPathError(reason)
        return self.safe_path(normalize_folder_path(folder))

    def file_path(self, name: str, folder: Optional[str]) -> Path:
        self.folder_dir(folder)
        reason = validate_file_name(name)
        if reason:
            raise InvalidPathError(reason)
        normalized = normalize_folder_path(folder)
        return self.safe_path(f'{normalized}/{name}' if normalized else name)

    def save_upload(
        self,
        source: BinaryIO,
        original_name: str,
        new_name: Optional[str] = None,
        folder: Optional[str] = None,
    ) -> tuple[str, Optional[str]]:
        use_name = new_name if new_name and new_name.strip() else original_name
        reason = validate_file_name(use_name)
        if reason:
            raise InvalidPathError(reason)
        target_dir = self.folder_dir(folder)

        size = _stream_size(source)
        if size == 0:
            raise EmptyUploadError()
        if size > self.max_upload_bytes:
            raise UploadTooLargeError(use_name, self.max_upload_mb)

        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except (FileExistsError, NotADirectoryError):
            raise InvalidPathError('Invalid folder path.')
        except OSError as exc:
            raise TransientIOError(f'Failed to create folder: {exc.strerror}') from exc

        for _ in range(_CREATE_RETRIES):
            final_name = unique_name(target_dir, use_name)
            try:
                self._write_new_file(source, target_dir / final_name)
            except FileExistsError:
                # Another writer claimed the name after it was resolved.
                continue
            logger.info('Stored upload %s (%d bytes) in /%s', final_name, size, normalize_folder_path(folder))
            return final_name, folder

        raise TransientIOError(f"Could not allocate a unique name for '{use_name}'.")

    def _write_new_file(self, source: BinaryIO, target: Path) -> None:
        with self.locks.hold(target):
            source.seek(0)
            try:
                handle = target.open('xb')
            except FileExistsError:
                raise
            except OSError as exc:
                raise TransientIOError(f'Failed to store file: {exc.strerror}') from exc
            try:
                with handle:
                    shutil.copyfileobj(source, handle, CHUNK_SIZE)
                    handle.flush()
                    os.fsync(handle.fileno())
            except BaseException as exc:
                target.unlink(missing_ok=True)
                if isinstance(exc, OSError):
                    raise TransientIOError(f'Failed to store file: {exc.strerror}') from exc
                raise

    def list_entries(self, folder: Optional[str] = None, search: Optional[str] = None) -> FolderListing:
        target = self.folder_dir(folder)
        if not target.is_dir():
            raise NotFoundError('Folder not found')

        if search and search.strip():
            items = self._search(target, search)
        else:
            items = self._children(target)

        items.sort(key=_sort_key)
        return FolderListing(
            items=items,
            current_folder=normalize_folder_path(folder),
            parent_folder=parent_folder(folder),
        )

    def _children(self, directory: Path) -> list[StoredEntry]:
        items: list[StoredEntry] = []
        try:
            with os.scandir(directory) as it:
                for entry in it:
                    if entry.name.startswith(TRASH_PREFIX):
                        continue
                    try:
                        items.append(_stored_entry(entry, entry.name))
                    except OSError:
                        continue
        except FileNotFoundError:
            raise NotFoundError('Folder not found')
        return items

    def _search(self, base: Path, term: str) -> list[StoredEntry]:
        needle = term.casefold()
        found: list[StoredEntry] = []
        stack: list[tuple[str, str]] = [(str(base), '')]

        while stack:
            directory, prefix = stack.pop()
            try:
                with os.scandir(directory) as it:
                    entries = list(it)
            except (PermissionError, FileNotFoundError, NotADirectoryError):
                logger.debug('Skipping unreadable folder during search: %s', directory)
                continue

            for entry in entries:
                if entry.name.startswith(TRASH_PREFIX):
                    continue
                relative = prefix + entry.name
                try:
                    if needle in entry.name.casefold():
                        found.append(_stored_entry(entry, relative))
                    # Symlinked folders are reported but not walked.
                    descend = entry.is_dir(follow_symlinks=False)
                except OSError:
                    logger.debug('Skipping vanished entry during search: %s', entry.path)
                    continue
                if descend:
                    stack.append((entry.path, relative + '/'))

        return found

    def create_folder(self, name: str, parent: Optional[str] = None) -> str:
        parent_dir = self.folder_dir(parent)
        reason = validate_file_name(name)
        if reason:
            raise InvalidPathError(reason)

        target = parent_dir / name
        self._raise_if_taken(target, name)
        if not parent_dir.is_dir():
            raise NotFoundError('Parent folder not found')

        try:
            target.mkdir(parents=False, exist_ok=False)
        except FileExistsError:
            self._raise_if_taken(target, name)
            raise
        except FileNotFoundError:
            raise NotFoundError('Parent folder not found')
        except OSError as exc:
            raise TransientIOError(f'Failed to create folder: {exc.strerror}') from exc

        normalized_parent = normalize_folder_path(parent)
        relative = f'{normalized_parent}/{name}' if normalized_parent else name
        logger.info('Created folder /%s', relative)
        return relative

    @staticmethod
    def _raise_if_taken(target: Path, name: str) -> None:
        if target.is_dir():
            raise FolderExistsError(name)
        if os.path.lexists(target):
            raise FileExistsConflictError(name)

    def delete_folder(self, folder: Optional[str], force: bool = False) -> None:
        reason = validate_folder_path(folder)
        if reason:
            raise InvalidPathError(reason)
        normalized = normalize_folder_path(folder)
        if not normalized:
            raise InvalidPathError('Cannot delete root folder')

        target = self.safe_path(normalized)
        if not target.is_dir():
            raise NotFoundError('Folder not found')

        if not force:
            files_count, folders_count = self._count_children(target)
            if files_count or folders_count:
                raise FolderNotEmptyError(files_count, folders_count)

        # Renaming first makes the whole subtree disappear from listings at once.
        tombstone = target.with_name(f'{TRASH_PREFIX}{uuid.uuid4().hex}')
        try:
            target.rename(tombstone)
        except FileNotFoundError:
            raise NotFoundError('Folder not found')
        except OSError as exc:
            raise TransientIOError(f'Failed to delete folder: {exc.strerror}') from exc

        self._purge(tombstone)
        logger.info('Deleted folder /%s (force=%s)', normalized, force)

    @staticmethod
    def _count_children(directory: Path) -> tuple[int, int]:
        files_count = folders_count = 0
        with os.scandir(directory) as it:
            for entry in it:
                if entry.name.startswith(TRASH_PREFIX):
                    continue
                if entry.is_dir():
                    folders_count += 1
                else:
                    files_count += 1
        return files_count, folders_count

    @staticmethod
    def _purge(tombstone: Path) -> None:
        try:
            if tombstone.is_symlink():
                tombstone.unlink()
            else:
                shutil.rmtree(tombstone)
        except OSError as exc:
            logger.warning('Could not remove deleted folder remains %s: %s', tombstone, exc)

    def delete_file(self, name: str, folder: Optional[str] = None) -> None:
        path = self.file_path(name, folder)
        if not path.is_file():
            raise NotFoundError('File not found')

        with self.locks.hold(path):
            try:
                path.unlink()
            except FileNotFoundError:
                raise NotFoundError('File not found')
        self.locks.discard(path)
        logger.info('Deleted file %s from /%s', name, normalize_folder_path(folder))

    def open_download(self, name: str, folder: Optional[str] = None) -> Iterator[bytes]:
        path = self.file_path(name, folder)
        if not path.is_file():
            raise NotFoundError('File not found')
        return self._read_chunks(path)

    def _read_chunks(self, path: Path) -> Iterator[bytes]:
        with self.locks.hold(path):
            with path.open('rb') as handle:
                while chunk := handle.read(CHUNK_SIZE):
                    yield chunk


def _stored_entry(entry: os.DirEntry, name: str) -> StoredEntry:
    is_dir = entry.is_dir()
    stat = entry.stat()
    return StoredEntry(
        name=name,
        type='folder' if is_dir else 'file',
        size=0 if is_dir else stat.st_size,
        modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
    )

from __future__ import annotations

import ntpath
import os
import posixpath
from typing import Optional

MAX_NAME_LENGTH = 255
MAX_FOLDER_PATH_LENGTH = 1000
TRASH_PREFIX = '.fileshare-trash-'

_CONTROL_CHARS = frozenset(chr(code) for code in range(32))
_WINDOWS_FORBIDDEN = frozenset('<>:"|?*')
FORBIDDEN_CHARS = _CONTROL_CHARS | _WINDOWS_FORBIDDEN if os.name == 'nt' else _CONTROL_CHARS


def _has_forbidden_chars(value: str) -> bool:
    return any(ch in FORBIDDEN_CHARS for ch in value)


def _base_name(value: str) -> str:
    if os.name == 'nt':
        # Drive prefixes and both separator styles.
        return ntpath.basename(value)
    return posixpath.basename(value)


def encoded_length(value: str) -> int:
    """Length of ``value`` as the host filesystem stores it; -1 if it cannot be encoded."""
    try:
        return len(os.fsencode(value))
    except UnicodeEncodeError:
        return -1


def validate_file_name(name: Optional[str]) -> Optional[str]:
    if name is None or not name.strip():
        return 'Invalid file name.'

    safe_name = _base_name(name)
    if (
        not safe_name.strip()
        or safe_name != name
        or safe_name == '.'
        or '..' in safe_name
        or '/' in safe_name
        or '\\' in safe_name
        or _has_forbidden_chars(safe_name)
        or safe_name.startswith(TRASH_PREFIX)
    ):
        return 'Invalid file name.'

    encoded = encoded_length(safe_name)
    if encoded < 0:
        return 'Invalid file name.'
    if len(safe_name) > MAX_NAME_LENGTH or encoded > MAX_NAME_LENGTH:
        return 'File name too long.'
    return None


def normalize_folder_path(folder: Optional[str]) -> str:
    if folder is None or not folder.strip():
        return ''
    return folder.replace('\\', '/')


def validate_folder_path(folder: Optional[str]) -> Optional[str]:
    normalized = normalize_folder_path(folder)
    if not normalized:
        return None

    if '..' in normalized or normalized.startswith('/') or normalized.endswith('/'):
        return 'Invalid folder path.'

    for part in normalized.split('/'):
        if not part.strip() or part == '.' or _has_forbidden_chars(part) or part.startswith(TRASH_PREFIX):
            return 'Invalid folder name in path.'
        encoded = encoded_length(part)
        if encoded < 0:
            return 'Invalid folder name in path.'
        if len(part) > MAX_NAME_LENGTH or encoded > MAX_NAME_LENGTH:
            return 'Folder name too long.'

    if len(normalized) > MAX_FOLDER_PATH_LENGTH:
        return 'Folder path too long.'
    return None


def parent_folder(folder: Optional[str]) -> Optional[str]:
    normalized = normalize_folder_path(folder)
    if not normalized:
        return None
    parts = [part for part in normalized.split('/') if part]
    if len(parts) <= 1:
        return ''
    return '/'.join(parts[:-1])

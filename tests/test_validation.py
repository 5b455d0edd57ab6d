from __future__ import annotations

import os

import pytest

from fileshare.services.validation import (
    TRASH_PREFIX,
    normalize_folder_path,
    parent_folder,
    validate_file_name,
    validate_folder_path,
)


@pytest.mark.parametrize('name', ['report.pdf', 'dupe (1).txt', '.env', 'a' * 255, 'ünïcode.txt'])
def test_validate_file_name_accepts_plain_names(name):
    assert validate_file_name(name) is None


@pytest.mark.parametrize(
    'name',
    ['', '   ', None, '../bad.txt', 'a/b.txt', 'a\\b.txt', 'x..y', '..', '.', '/etc/passwd', 'nul\x00.txt', 'tab\there'],
)
def test_validate_file_name_rejects_traversal_and_forbidden_chars(name):
    assert validate_file_name(name) == 'Invalid file name.'


def test_validate_file_name_rejects_reserved_trash_prefix():
    assert validate_file_name(f'{TRASH_PREFIX}abc') == 'Invalid file name.'


def test_validate_file_name_reports_length_after_shape():
    assert validate_file_name('a' * 256) == 'File name too long.'
    assert validate_file_name('a' * 256 + '.txt') == 'File name too long.'
    assert validate_file_name('../' + 'a' * 300) == 'Invalid file name.'


def test_validate_file_name_counts_encoded_bytes():
    assert validate_file_name('é' * 127) is None
    assert validate_file_name('é' * 200 + '.txt') == 'File name too long.'


@pytest.mark.skipif(os.name == 'nt', reason='colons are forbidden in Windows file names')
def test_validate_file_name_allows_colon_on_posix():
    assert validate_file_name('a:b.txt') is None
    assert validate_folder_path('c:/reports') is None


@pytest.mark.parametrize('folder', [None, '', '   ', 'docs', 'docs/2024/q1', 'docs\\2024'])
def test_validate_folder_path_accepts_valid_paths(folder):
    assert validate_folder_path(folder) is None


@pytest.mark.parametrize('folder', ['../invalid', 'a/../b', '/abs', 'trailing/', '\\lead'])
def test_validate_folder_path_rejects_traversal_and_edges(folder):
    assert validate_folder_path(folder) == 'Invalid folder path.'


@pytest.mark.parametrize('folder', ['a//b', 'a/ /b', 'a/./b', 'a/bad\x01name'])
def test_validate_folder_path_rejects_bad_segments(folder):
    assert validate_folder_path(folder) == 'Invalid folder name in path.'


def test_validate_folder_path_length_limits():
    assert validate_folder_path('a' * 256) == 'Folder name too long.'
    assert validate_folder_path('docs/' + 'é' * 200) == 'Folder name too long.'
    long_path = '/'.join(['b' * 200] * 6)
    assert len(long_path) > 1000
    assert validate_folder_path(long_path) == 'Folder path too long.'


def test_normalize_folder_path():
    assert normalize_folder_path(None) == ''
    assert normalize_folder_path('  ') == ''
    assert normalize_folder_path('a\\b') == 'a/b'


def test_parent_folder():
    assert parent_folder(None) is None
    assert parent_folder('') is None
    assert parent_folder('top') == ''
    assert parent_folder('top/mid/leaf') == 'top/mid'

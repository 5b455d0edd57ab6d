from __future__ import annotations

from fastapi import Request

from .services.file_ops import FileOps


def get_file_ops(request: Request) -> FileOps:
    return request.app.state.file_ops

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileItem(CamelModel):
    name: str
    type: str
    size: int
    modified_date: datetime


class FileListResponse(CamelModel):
    items: list[FileItem]
    current_folder: str
    parent_folder: Optional[str] = None


class UploadResponse(CamelModel):
    file: str
    folder: Optional[str] = None


class CreateFolderRequest(CamelModel):
    name: str = ''
    parent_folder: Optional[str] = None


class FolderResponse(CamelModel):
    folder: str


class FolderNotEmptyResponse(CamelModel):
    message: str
    is_empty: bool = False
    files_count: int
    folders_count: int

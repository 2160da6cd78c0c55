from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel


class CommandMetadataDTO(BaseModel):
    command_name: str
    implementing_type_name: str


class SkippedTypeDTO(BaseModel):
    type_name: str
    error: str


class LoadResponseDTO(BaseModel):
    ok: bool
    commands: List[CommandMetadataDTO] = []
    skipped_types: List[SkippedTypeDTO] = []
    error: Optional[str] = None

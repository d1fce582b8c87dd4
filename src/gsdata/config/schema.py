"""Configuration schema for bucket synchronization."""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..storage.acl import StorageAcl
from .settings import get_settings


class SyncConfig(BaseModel):
    """Options for one synchronization run."""

    bucket: str = Field(..., min_length=1, description="Target bucket name")
    directory: Path = Field(..., description="Local directory to synchronize")
    project_id: Optional[str] = Field(None, description="Google API project number")
    acl: StorageAcl = Field(default=StorageAcl.PRIVATE, description="Canned ACL for uploads")
    recipients: List[str] = Field(default_factory=list, description="GnuPG recipients to encrypt for")
    exclusions_file: Optional[Path] = Field(None, description="File of regex exclusions, one per line")
    md5sums: bool = Field(default=False, description="Write a digest manifest into the directory")
    purge: bool = Field(default=False, description="Delete remote objects with no local file")
    max_workers: int = Field(
        default_factory=lambda: get_settings().sync.max_workers,
        ge=1,
        description="Concurrent transfer limit"
    )

    @field_validator("acl", mode="before")
    @classmethod
    def validate_acl(cls, v):
        return StorageAcl.from_name(v)

    @field_validator("directory")
    @classmethod
    def validate_directory(cls, v: Path) -> Path:
        if not v.is_dir():
            raise ValueError(f"Not a directory: {v}")
        return v

    @field_validator("recipients")
    @classmethod
    def validate_recipients(cls, v: List[str]) -> List[str]:
        return [r for r in (item.strip() for item in v) if r]

    @property
    def encrypted(self) -> bool:
        return bool(self.recipients)

    @property
    def manifest_path(self) -> Path:
        return self.directory / get_settings().sync.manifest_name

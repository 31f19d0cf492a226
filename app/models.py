from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class UploadCandidate:
    data: bytes
    declared_name: str
    declared_size: int
    declared_content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class AccessGrant:
    view_url: str
    download_url: str
    expires_at: datetime


class UploadedFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    url: str
    download_url: str = Field(alias="downloadUrl")
    expires_at: datetime = Field(alias="expiresAt")


class UploadResponse(BaseModel):
    message: str = "Upload successful"
    file: UploadedFile


class ErrorResponse(BaseModel):
    error: str

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from docvault.content import format_file_size, format_file_type


class Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str | None = Field(default=None, alias="fileName")
    file_type: str | None = Field(default=None, alias="fileType")
    file_size: int = Field(default=0, alias="fileSize")
    category: str | None = None
    upload_date: datetime | None = Field(default=None, alias="uploadDate")
    is_public: bool = Field(default=False, alias="isPublic")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        return str(value)

    @property
    def display_name(self) -> str:
        return self.name or "Untitled Document"

    @property
    def display_size(self) -> str:
        return format_file_size(self.file_size)

    @property
    def display_type(self) -> str:
        return format_file_type(self.file_type)


class ShareOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_public: bool = True
    expiry_days: int = Field(default=30, gt=0)
    max_views: int = Field(default=100, gt=0)


class ShareLinkRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    document_id: str
    is_public: bool
    expiry_days: int
    max_views: int


class ShareLink(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str
    token: str
    created_via: ShareOptions
    address: str


class BlobHandle(BaseModel):
    model_config = ConfigDict(frozen=True)

    local_address: str
    source_content_type: str
    created_at: datetime
    ttl: float
    size: int


class Busy(str, Enum):
    NONE = "none"
    VIEWING = "viewing"
    GENERATING_LINK = "generating_link"
    DELETING = "deleting"


class ActionMenuState(BaseModel):
    open: bool = False
    busy: Busy = Busy.NONE

    @property
    def label(self) -> str:
        if not self.open:
            return "closed"
        if self.busy is Busy.NONE:
            return "open/idle"
        return f"open/{self.busy.value}"


class DownloadedFile(BaseModel):
    filename: str
    content_type: str
    content: bytes

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class IndexHandle(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    display_name: str = ""


class StoreInfo(BaseModel):
    name: str
    display_name: str | None = None
    create_time: str | None = None
    update_time: str | None = None


class IndexOperation(BaseModel):
    """A long-running import into a store, as last reported by the server."""

    name: str | None = None
    done: bool = False
    error: str | None = None
    document_name: str | None = None
    raw: Any = Field(default=None, repr=False, exclude=True)

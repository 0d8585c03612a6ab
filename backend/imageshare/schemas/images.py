from typing import Literal

from pydantic import BaseModel


class ImageMetaIn(BaseModel):
    title: str = "Untitled Image"
    description: str | None = None


class ImageStatusIn(BaseModel):
    status: Literal["approved", "rejected"]
    reason: str | None = None


class ImageVisibilityIn(BaseModel):
    is_public: bool

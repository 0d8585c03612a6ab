from pydantic import BaseModel, Field


class AlbumCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    is_public: bool = True


class AlbumUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    is_public: bool | None = None
    cover_image_id: int | None = None


class AlbumImageIn(BaseModel):
    image_id: int

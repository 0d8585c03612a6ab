from pydantic import BaseModel, Field


class ProfileUpdate(BaseModel):
    bio: str | None = Field(default=None, max_length=2000)
    profile_picture: str | None = Field(default=None, max_length=500)
    website: str | None = Field(default=None, max_length=500)
    social_links: dict[str, str] | str | None = None
    theme_preference: str | None = Field(default=None, max_length=40)


class UserRoleIn(BaseModel):
    is_moderator: bool | None = None
    is_admin: bool | None = None
    reason: str | None = Field(default=None, max_length=500)


class UserBanIn(BaseModel):
    is_banned: bool
    ban_reason: str | None = Field(default=None, max_length=500)

"""
Database Schemas for Game Zone

Each Pydantic model validates the payload for one MongoDB collection.
Stored field names are camelCase, matching what the website sends.
"""
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator


def not_blank(value: Optional[str]) -> Optional[str]:
    if value is not None:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
    return value


class Game(BaseModel):
    # Games carry arbitrary extra fields (description, playUrl, tags, ...)
    model_config = ConfigDict(extra="allow")

    title: str = Field(..., description="Game title")
    category: Optional[str] = Field(None, description="Category name, case preserved")
    thumbnail: Optional[str] = Field(None, description="Thumbnail image URL")

    @field_validator("title")
    @classmethod
    def check_title(cls, value):
        return not_blank(value)


class Ad(BaseModel):
    title: str = Field(..., description="Ad title")
    type: Literal["image", "code"] = Field(..., description="image | code")
    position: str = Field(..., description="Placement slot on the page")
    image: Optional[str] = Field(None, description="Image URL (type=image)")
    link: Optional[str] = Field(None, description="Click-through URL (type=image)")
    content: Optional[str] = Field(None, description="Embed code (type=code)")

    @field_validator("title", "position")
    @classmethod
    def check_required_text(cls, value):
        return not_blank(value)

    @model_validator(mode="after")
    def check_type_fields(self):
        if self.type == "image" and not (self.image and self.link):
            raise ValueError("image and link are required for image ads")
        if self.type == "code" and not self.content:
            raise ValueError("content is required for code ads")
        return self


class Subscriber(BaseModel):
    email: EmailStr = Field(..., description="Subscriber email address")


class User(BaseModel):
    name: Optional[str] = Field(None, description="Display name")
    email: EmailStr = Field(..., description="Unique email address")

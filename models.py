# Pydantic models
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# Records exchanged with the blog backend

class Role(BaseModel):
    id: int
    name: str


class User(BaseModel):
    id: int
    name: str = ""
    email: str = ""
    about: Optional[str] = None
    roleIds: List[int] = Field(default_factory=list)
    create_at: Optional[str] = None
    update_at: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "id": 2,
                "name": "writer123",
                "email": "writer@example.com",
                "about": "Writes about distributed systems.",
                "roleIds": [2],
            }
        }


class Category(BaseModel):
    id: int
    title: str = ""
    description: Optional[str] = None
    create_at: Optional[str] = None
    update_at: Optional[str] = None


class Series(BaseModel):
    id: int
    title: str = ""
    description: Optional[str] = None
    authorId: Optional[int] = None
    create_at: Optional[str] = None
    update_at: Optional[str] = None


class Block(BaseModel):
    id: Optional[str] = None
    type: str
    data: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        extra = "allow"


class BlockDocument(BaseModel):
    # Output of the block editor, kept as produced
    time: Optional[int] = None
    blocks: List[Block] = Field(default_factory=list)
    version: Optional[str] = None

    class Config:
        extra = "allow"
        json_schema_extra = {
            "example": {
                "time": 1700000000000,
                "blocks": [
                    {"id": "h1", "type": "header", "data": {"text": "Hello", "level": 2}},
                    {"id": "p1", "type": "paragraph", "data": {"text": "First post."}},
                ],
                "version": "2.30.7",
            }
        }


class Blog(BaseModel):
    id: int
    title: str = ""
    summary: Optional[str] = None
    content: Optional[BlockDocument] = None
    categoryIds: List[int] = Field(default_factory=list)
    seriesId: Optional[int] = None
    authorId: Optional[int] = None
    create_at: Optional[str] = None
    update_at: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "id": 7,
                "title": "The Future of AI",
                "categoryIds": [1, 3],
                "seriesId": 2,
                "authorId": 2,
                "create_at": "2024-12-01T10:00:00",
                "update_at": "2024-12-02T08:30:00",
            }
        }


# Auth payloads

class LoginRequest(BaseModel):
    email: str
    password: str

    class Config:
        json_schema_extra = {"example": {"email": "admin@example.com", "password": "admin@1."}}


class TokenResponse(BaseModel):
    token: str


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str


# Write payloads

class BlogPayload(BaseModel):
    title: str
    content: Dict[str, Any]
    categoryIds: List[int] = Field(default_factory=list)
    seriesId: Optional[int] = None
    authorId: Optional[int] = None


class SeriesPayload(BaseModel):
    title: str
    description: str = ""
    authorId: Optional[int] = None


class CategoryPayload(BaseModel):
    title: str
    description: str = ""


class UserCreatePayload(BaseModel):
    name: str
    email: str
    password: str
    about: str = ""
    roleIds: List[int] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "name": "writer123",
                "email": "writer@example.com",
                "password": "writer@123",
                "about": "",
                "roleIds": [2],
            }
        }


class UserUpdatePayload(BaseModel):
    # password and email are never written back from the edit form
    name: str
    about: str = ""
    roleIds: List[int] = Field(default_factory=list)


class AccountUpdatePayload(BaseModel):
    name: str
    about: str = ""
    password: Optional[str] = None

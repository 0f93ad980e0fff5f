"""
Plain records shared by the store, the synchronizer and the HTTP layer.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Identity:
    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class RecipeSummary:
    """Read-only projection of a recipe as seen by the feed."""

    id: str
    title: str
    published_at: float
    is_public: bool
    author_name: Optional[str] = None
    owner_id: Optional[str] = None
    image_url: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "published_at": self.published_at,
            "is_public": self.is_public,
            "author_name": self.author_name,
            "owner_id": self.owner_id,
            "image_url": self.image_url,
        }


@dataclass(frozen=True)
class Recipe:
    id: str
    owner_id: str
    title: str
    ingredients: str
    instructions: str
    is_public: bool
    published_at: float
    image_url: Optional[str] = None
    author_name: Optional[str] = None

    def summary(self) -> RecipeSummary:
        return RecipeSummary(
            id=self.id,
            title=self.title,
            published_at=self.published_at,
            is_public=self.is_public,
            author_name=self.author_name,
            owner_id=self.owner_id,
            image_url=self.image_url,
        )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "ingredients": self.ingredients,
            "instructions": self.instructions,
            "is_public": self.is_public,
            "published_at": self.published_at,
            "image_url": self.image_url,
            "author_name": self.author_name,
        }


@dataclass
class UserRecord:
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    is_admin: bool = False


@dataclass
class RecipeDraft:
    """Fields a user submits when publishing a recipe."""

    title: str
    ingredients: str
    instructions: str
    is_public: bool = True
    created_at: float = field(default_factory=lambda: time.time())

"""
Pydantic schemas for the recipe feed API.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class RecipeSummaryModel(BaseModel):
    id: str
    title: str
    published_at: float
    is_public: bool
    author_name: Optional[str] = None
    owner_id: Optional[str] = None
    image_url: Optional[str] = None


class IndicatorModel(BaseModel):
    has_unseen: bool
    recipe_ids: list[str]


class FeedResponse(BaseModel):
    items: list[RecipeSummaryModel]
    indicator: IndicatorModel
    watermark: float
    search_term: str
    in_flight: bool


class TriggerOutcomeModel(BaseModel):
    source: Literal["timer", "manual_refresh", "search"]
    status: Literal["ran", "dropped", "coalesced", "failed", "session_expired"]
    watermark: float
    new_items: list[RecipeSummaryModel]
    error: Optional[str] = None


class TriggerResponse(BaseModel):
    outcome: TriggerOutcomeModel
    feed: FeedResponse


class SearchRequest(BaseModel):
    term: str = Field(default="", max_length=200)


class NotificationResponsePayload(BaseModel):
    # Arbitrary shape: malformed payloads are routed to no target.
    payload: Any = None


class NavigationTargetModel(BaseModel):
    recipe_id: str
    path: str


class RouteResponse(BaseModel):
    target: Optional[NavigationTargetModel] = None


class RecipeModel(BaseModel):
    id: str
    owner_id: str
    title: str
    ingredients: str
    instructions: str
    is_public: bool
    published_at: float
    image_url: Optional[str] = None
    author_name: Optional[str] = None


class RecipeDetailResponse(BaseModel):
    recipe: RecipeModel
    is_owner: bool
    is_admin: bool
    can_delete: bool


class PublishRecipeRequest(BaseModel):
    title: str = Field(default="", max_length=200)
    ingredients: str = Field(default="")
    instructions: str = Field(default="")
    is_public: bool = True
    image_base64: Optional[str] = None
    image_content_type: Optional[str] = None


class PublishRecipeResponse(BaseModel):
    recipe: RecipeModel
    message: str


class DeletionPreviewResponse(BaseModel):
    recipe_id: str
    is_owner: bool
    is_admin: bool
    allowed: bool
    acting_as: Literal["owner", "admin", "none"]
    confirmation_message: Optional[str] = None


class DeleteRecipeResponse(BaseModel):
    recipe_id: str
    acting_as: Literal["owner", "admin", "none"]
    message: str

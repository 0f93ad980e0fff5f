"""
Recipe operations outside the feed: publishing, listing, detail and deletion.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional, Union

from recipe_feed.errors import (
    PermissionDeniedError,
    RecipeNotFoundError,
    RecipeValidationError,
    SessionExpiredError,
    TransientStoreError,
)
from recipe_feed.models import Identity, Recipe, RecipeDraft, RecipeSummary
from recipe_feed.permissions import DeletionDecision, decide_deletion
from recipe_feed.storage import StorageClient
from recipe_feed.store import RecipeStore

logger = logging.getLogger(__name__)

IMAGE_PREFIX = "recipe-images"
MAX_IMAGE_BYTES = 5 * 1024 * 1024
IMAGE_EXTENSIONS = {"image/jpeg": "jpg", "image/png": "png"}

Confirm = Callable[[str], Union[bool, Awaitable[bool]]]


@dataclass(frozen=True)
class RecipeDetail:
    recipe: Recipe
    deletion: DeletionDecision

    def as_dict(self) -> dict:
        return {
            "recipe": self.recipe.as_dict(),
            "is_owner": self.deletion.is_owner,
            "is_admin": self.deletion.is_admin,
            "can_delete": self.deletion.allowed,
        }


@dataclass(frozen=True)
class PublishResult:
    recipe: Recipe
    message: str


@dataclass(frozen=True)
class DeletionResult:
    decision: DeletionDecision
    deleted: bool
    message: Optional[str] = None


def validate_draft(draft: RecipeDraft) -> RecipeDraft:
    title = (draft.title or "").strip()
    ingredients = (draft.ingredients or "").strip()
    instructions = (draft.instructions or "").strip()
    if not title:
        raise RecipeValidationError("title", "Please enter a title for your recipe.")
    if not ingredients:
        raise RecipeValidationError(
            "ingredients", "Please add the ingredients of your recipe."
        )
    if not instructions:
        raise RecipeValidationError(
            "instructions", "Please add the preparation instructions of your recipe."
        )
    return replace(draft, title=title, ingredients=ingredients, instructions=instructions)


def validate_image(data: bytes, content_type: str | None) -> str:
    """Return the file extension for an acceptable image."""
    if len(data) > MAX_IMAGE_BYTES:
        raise RecipeValidationError(
            "image", "The image is too large. Choose a smaller image (maximum 5MB)."
        )
    extension = IMAGE_EXTENSIONS.get((content_type or "").lower())
    if not extension:
        raise RecipeValidationError(
            "image", "Unsupported file type. Use JPG or PNG images only."
        )
    return extension


class RecipeService:
    def __init__(
        self,
        store: RecipeStore,
        storage: StorageClient,
        *,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.storage = storage
        self.clock = clock

    async def _require_identity(self) -> Identity:
        identity = await self.store.get_current_identity()
        if identity is None:
            raise SessionExpiredError()
        return identity

    async def _is_admin(self, identity: Identity) -> bool:
        user = await self.store.get_user(identity.id)
        return bool(user and user.is_admin)

    async def list_public(
        self, search_term: str | None = None, limit: int = 100
    ) -> list[RecipeSummary]:
        return await self.store.list_public(search_term, limit=limit)

    async def get_detail(self, recipe_id: str) -> RecipeDetail:
        identity = await self._require_identity()
        recipe = await self.store.get_recipe(recipe_id)
        if recipe is None:
            raise RecipeNotFoundError(recipe_id)
        decision = decide_deletion(identity, await self._is_admin(identity), recipe)
        if not recipe.is_public and not decision.allowed:
            raise RecipeNotFoundError(
                recipe_id, "This recipe is private or does not exist."
            )
        return RecipeDetail(recipe=recipe, deletion=decision)

    async def evaluate_deletion(self, recipe_id: str) -> DeletionDecision:
        """Fresh ownership/admin facts; never reuses an earlier lookup."""
        identity = await self._require_identity()
        recipe = await self.store.get_recipe(recipe_id)
        if recipe is None:
            raise RecipeNotFoundError(recipe_id)
        return decide_deletion(identity, await self._is_admin(identity), recipe)

    async def delete_recipe(
        self, recipe_id: str, confirm: Confirm | None = None
    ) -> DeletionResult:
        decision = await self.evaluate_deletion(recipe_id)
        if not decision.allowed:
            raise PermissionDeniedError("delete")

        if confirm is not None:
            answer = confirm(decision.confirmation_message)
            if inspect.isawaitable(answer):
                answer = await answer
            if not answer:
                return DeletionResult(decision=decision, deleted=False)

        if not await self.store.delete_recipe(recipe_id):
            raise RecipeNotFoundError(recipe_id)
        logger.info(
            "Recipe %s deleted by %s", recipe_id, decision.acting_as.value
        )
        return DeletionResult(
            decision=decision, deleted=True, message=decision.success_message
        )

    async def _upload_image(self, data: bytes, content_type: str | None) -> str:
        extension = validate_image(data, content_type)
        path = f"{IMAGE_PREFIX}/{int(self.clock() * 1000)}.{extension}"
        try:
            await asyncio.to_thread(
                self.storage.upload_bytes, path, data, content_type.lower()
            )
        except Exception as exc:
            logger.exception("Image upload to %s failed", path)
            raise TransientStoreError(
                "Error uploading the image. Please try again."
            ) from exc
        return path

    async def publish_recipe(
        self,
        draft: RecipeDraft,
        image: bytes | None = None,
        content_type: str | None = None,
    ) -> PublishResult:
        draft = validate_draft(draft)
        if image is not None:
            validate_image(image, content_type)
        identity = await self._require_identity()

        image_path = None
        image_url = None
        if image is not None:
            image_path = await self._upload_image(image, content_type)
            image_url = self.storage.public_url(image_path)

        try:
            recipe = await self.store.insert_recipe(identity.id, draft, image_url)
        except Exception:
            if image_path:
                try:
                    await asyncio.to_thread(self.storage.delete, image_path)
                except Exception:
                    logger.exception("Failed to remove orphaned image %s", image_path)
            raise

        visibility = (
            "It is visible to all users."
            if recipe.is_public
            else "It is private; only you can see it."
        )
        return PublishResult(
            recipe=recipe,
            message=f'Your recipe "{recipe.title}" was created successfully! {visibility}',
        )


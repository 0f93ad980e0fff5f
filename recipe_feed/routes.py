"""
HTTP routes the presentation layer calls.
"""

from __future__ import annotations

import base64
import binascii
import logging

from fastapi import APIRouter, Depends, HTTPException

from recipe_feed.dependencies import get_coordinator, get_recipe_service
from recipe_feed.errors import (
    FeedError,
    PermissionDeniedError,
    RecipeConflictError,
    RecipeNotFoundError,
    RecipeValidationError,
    SessionExpiredError,
    TransientStoreError,
)
from recipe_feed.models import RecipeDraft
from recipe_feed.navigation import route
from recipe_feed.recipes import RecipeService
from recipe_feed.schemas import (
    DeleteRecipeResponse,
    DeletionPreviewResponse,
    FeedResponse,
    NotificationResponsePayload,
    PublishRecipeRequest,
    PublishRecipeResponse,
    RecipeDetailResponse,
    RouteResponse,
    SearchRequest,
    TriggerResponse,
)
from recipe_feed.state import FeedCoordinator, TriggerOutcome, TriggerSource, TriggerStatus

logger = logging.getLogger(__name__)

router = APIRouter()


def _http_error(exc: FeedError) -> HTTPException:
    if isinstance(exc, SessionExpiredError):
        return HTTPException(
            status_code=401,
            detail={"message": exc.user_message, "redirect": exc.redirect},
        )
    if isinstance(exc, PermissionDeniedError):
        return HTTPException(status_code=403, detail=exc.user_message)
    if isinstance(exc, RecipeNotFoundError):
        return HTTPException(status_code=404, detail=exc.user_message)
    if isinstance(exc, RecipeValidationError):
        return HTTPException(
            status_code=400, detail={"field": exc.field, "message": exc.user_message}
        )
    if isinstance(exc, RecipeConflictError):
        return HTTPException(status_code=409, detail=exc.user_message)
    if isinstance(exc, TransientStoreError):
        return HTTPException(status_code=503, detail=exc.user_message)
    logger.error("Unmapped feed error: %s", exc)
    return HTTPException(status_code=500, detail=exc.user_message)


def _trigger_response(
    outcome: TriggerOutcome, coordinator: FeedCoordinator
) -> TriggerResponse:
    if outcome.status is TriggerStatus.SESSION_EXPIRED:
        raise _http_error(SessionExpiredError())
    return TriggerResponse(
        outcome=outcome.as_dict(), feed=coordinator.snapshot().as_dict()
    )


@router.get("/feed", response_model=FeedResponse)
def get_feed(coordinator: FeedCoordinator = Depends(get_coordinator)):
    return coordinator.snapshot().as_dict()


@router.post("/feed/refresh", response_model=TriggerResponse)
async def refresh_feed(coordinator: FeedCoordinator = Depends(get_coordinator)):
    """
    Pull-to-refresh. Waits for an in-flight cycle instead of starting a second one.
    """
    outcome = await coordinator.trigger(TriggerSource.MANUAL_REFRESH)
    return _trigger_response(outcome, coordinator)


@router.post("/feed/search", response_model=TriggerResponse)
async def search_feed(
    payload: SearchRequest,
    coordinator: FeedCoordinator = Depends(get_coordinator),
):
    outcome = await coordinator.trigger(TriggerSource.SEARCH, search_term=payload.term)
    return _trigger_response(outcome, coordinator)


@router.post("/feed/acknowledge", response_model=FeedResponse)
def acknowledge_feed(coordinator: FeedCoordinator = Depends(get_coordinator)):
    coordinator.acknowledge()
    return coordinator.snapshot().as_dict()


@router.post("/notifications/response", response_model=RouteResponse)
def route_notification_response(payload: NotificationResponsePayload):
    target = route(payload.payload)
    return RouteResponse(target=target.as_dict() if target else None)


@router.get("/recipes/{recipe_id}", response_model=RecipeDetailResponse)
async def get_recipe(
    recipe_id: str, service: RecipeService = Depends(get_recipe_service)
):
    try:
        detail = await service.get_detail(recipe_id)
    except FeedError as exc:
        raise _http_error(exc)
    return detail.as_dict()


@router.post("/recipes", response_model=PublishRecipeResponse, status_code=201)
async def publish_recipe(
    payload: PublishRecipeRequest,
    service: RecipeService = Depends(get_recipe_service),
):
    image = None
    if payload.image_base64:
        try:
            image = base64.b64decode(payload.image_base64, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(
                status_code=400,
                detail={
                    "field": "image",
                    "message": "The image could not be processed. Check that the file is not corrupted.",
                },
            )
    draft = RecipeDraft(
        title=payload.title,
        ingredients=payload.ingredients,
        instructions=payload.instructions,
        is_public=payload.is_public,
    )
    try:
        result = await service.publish_recipe(
            draft, image=image, content_type=payload.image_content_type
        )
    except FeedError as exc:
        raise _http_error(exc)
    return PublishRecipeResponse(recipe=result.recipe.as_dict(), message=result.message)


@router.get("/recipes/{recipe_id}/deletion", response_model=DeletionPreviewResponse)
async def preview_deletion(
    recipe_id: str, service: RecipeService = Depends(get_recipe_service)
):
    try:
        decision = await service.evaluate_deletion(recipe_id)
    except FeedError as exc:
        raise _http_error(exc)
    return decision.as_dict()


@router.delete("/recipes/{recipe_id}", response_model=DeleteRecipeResponse)
async def delete_recipe(
    recipe_id: str, service: RecipeService = Depends(get_recipe_service)
):
    """
    Delete after the client confirmed. Ownership and admin status are re-read here.
    """
    try:
        result = await service.delete_recipe(recipe_id)
    except FeedError as exc:
        raise _http_error(exc)
    return DeleteRecipeResponse(
        recipe_id=recipe_id,
        acting_as=result.decision.acting_as.value,
        message=result.message,
    )

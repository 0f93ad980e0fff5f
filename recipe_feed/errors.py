"""
Error taxonomy for the recipe feed.

Transient failures are retried by the next natural trigger, permission and
session failures are surfaced to the user, and malformed notification
payloads never reach this module (the router drops them).
"""

from __future__ import annotations


class FeedError(Exception):
    """Base class for errors raised by the feed and recipe layers."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.user_message)
        self.user_message = message or self.user_message


class TransientStoreError(FeedError):
    """The remote store is unreachable, timed out or failed mid-query."""

    user_message = "Connection error. Check your internet connection and try again."


class SessionExpiredError(FeedError):
    """No identity is attached to the current session."""

    user_message = "Your session has expired. Please sign in again."
    redirect = "/login"


class PermissionDeniedError(FeedError):
    """The current identity may not perform ``action`` on the target."""

    def __init__(self, action: str, message: str | None = None):
        self.action = action
        super().__init__(
            message or f"You do not have permission to {action} this recipe."
        )


class RecipeNotFoundError(FeedError):
    """The recipe does not exist or is private to another user."""

    def __init__(self, recipe_id: str, message: str | None = None):
        self.recipe_id = recipe_id
        super().__init__(
            message
            or "Recipe not found. It may have been deleted by another user."
        )


class RecipeValidationError(FeedError):
    """A recipe draft is missing a required field or carries a bad image."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class RecipeConflictError(FeedError):
    """The store rejected a write because of a constraint."""

    user_message = "The recipe could not be saved. Please try again."

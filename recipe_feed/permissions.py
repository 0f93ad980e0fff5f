"""
Who may delete a recipe, and how the prompt and confirmation read.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from recipe_feed.models import Identity, Recipe

OWNER_CONFIRMATION = (
    "Are you sure you want to delete this recipe? This action cannot be undone."
)
ADMIN_CONFIRMATION = (
    "You are an administrator. Are you sure you want to delete this recipe "
    "from another user? This action cannot be undone."
)
OWNER_SUCCESS = "Recipe deleted successfully!"
ADMIN_SUCCESS = "Recipe deleted successfully! (as administrator)"


class ActingAs(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    NONE = "none"


@dataclass(frozen=True)
class DeletionDecision:
    recipe_id: str
    is_owner: bool
    is_admin: bool

    @property
    def allowed(self) -> bool:
        return self.is_owner or self.is_admin

    @property
    def acting_as(self) -> ActingAs:
        if self.is_owner:
            return ActingAs.OWNER
        if self.is_admin:
            return ActingAs.ADMIN
        return ActingAs.NONE

    @property
    def confirmation_message(self) -> Optional[str]:
        if self.acting_as is ActingAs.ADMIN:
            return ADMIN_CONFIRMATION
        if self.acting_as is ActingAs.OWNER:
            return OWNER_CONFIRMATION
        return None

    @property
    def success_message(self) -> Optional[str]:
        if self.acting_as is ActingAs.ADMIN:
            return ADMIN_SUCCESS
        if self.acting_as is ActingAs.OWNER:
            return OWNER_SUCCESS
        return None

    def as_dict(self) -> dict:
        return {
            "recipe_id": self.recipe_id,
            "is_owner": self.is_owner,
            "is_admin": self.is_admin,
            "allowed": self.allowed,
            "acting_as": self.acting_as.value,
            "confirmation_message": self.confirmation_message,
        }


def decide_deletion(
    identity: Optional[Identity], is_admin: bool, recipe: Recipe
) -> DeletionDecision:
    is_owner = identity is not None and identity.id == recipe.owner_id
    return DeletionDecision(
        recipe_id=recipe.id,
        is_owner=is_owner,
        is_admin=bool(identity is not None and is_admin),
    )

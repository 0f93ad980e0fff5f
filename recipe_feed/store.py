"""
Remote data store abstraction for recipes and users, with an in-memory
implementation for development and tests.

Every operation is a coroutine: the feed engine treats each store call as a
suspension point. The SQLAlchemy implementation runs its blocking session
work in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, Optional, Protocol

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    select,
)
from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from recipe_feed.errors import (
    PermissionDeniedError,
    RecipeConflictError,
    TransientStoreError,
)
from recipe_feed.models import Identity, Recipe, RecipeDraft, RecipeSummary, UserRecord

logger = logging.getLogger(__name__)

DUPLICATE_TITLE_MESSAGE = (
    "A recipe with this title already exists. Choose another title."
)
INCOMPLETE_DATA_MESSAGE = "Incomplete data. Check that every field is filled in."
IN_USE_MESSAGE = (
    "This recipe cannot be deleted because it is used by other resources."
)


class RecipeStore(Protocol):
    """Operations the feed and recipe service need from the remote store."""

    async def get_current_identity(self) -> Optional[Identity]:
        ...

    async def fetch_public_since(self, watermark: float) -> list[RecipeSummary]:
        ...

    async def list_public(
        self, search_term: str | None = None, limit: int = 100
    ) -> list[RecipeSummary]:
        ...

    async def get_recipe(self, recipe_id: str) -> Optional[Recipe]:
        ...

    async def insert_recipe(
        self, owner_id: str, draft: RecipeDraft, image_url: str | None = None
    ) -> Recipe:
        ...

    async def delete_recipe(self, recipe_id: str) -> bool:
        ...

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    async def save_user(self, user: UserRecord) -> None:
        ...


def _matches(title: str, search_term: str | None) -> bool:
    term = (search_term or "").strip()
    if not term:
        return True
    return term.casefold() in (title or "").casefold()


def _escape_like(term: str) -> str:
    """Make LIKE wildcards in a user search term match literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class InMemoryRecipeStore:
    """Simple in-memory store for development and tests."""

    def __init__(self):
        self.recipes: Dict[str, Recipe] = {}
        self.users: Dict[str, UserRecord] = {}
        self.current_identity: Optional[Identity] = None
        self.queries: list[float] = []

    def sign_in(self, user_id: str) -> Identity:
        user = self.users.get(user_id)
        self.current_identity = Identity(id=user_id, email=user.email if user else None)
        return self.current_identity

    def sign_out(self) -> None:
        self.current_identity = None

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.recipes.clear()
        self.users.clear()
        self.queries.clear()
        self.current_identity = None

    def add_recipe(self, recipe: Recipe) -> Recipe:
        """Insert a fully formed row, bypassing validation (test seeding)."""
        self.recipes[recipe.id] = recipe
        return recipe

    def _with_author(self, recipe: Recipe) -> Recipe:
        author = self.users.get(recipe.owner_id)
        return replace(recipe, author_name=author.name if author else None)

    async def get_current_identity(self) -> Optional[Identity]:
        return self.current_identity

    async def fetch_public_since(self, watermark: float) -> list[RecipeSummary]:
        self.queries.append(watermark)
        rows = [
            self._with_author(r).summary()
            for r in self.recipes.values()
            if r.is_public and r.published_at > watermark
        ]
        return sorted(rows, key=lambda r: (r.published_at, r.id))

    async def list_public(
        self, search_term: str | None = None, limit: int = 100
    ) -> list[RecipeSummary]:
        rows = [
            self._with_author(r).summary()
            for r in self.recipes.values()
            if r.is_public and _matches(r.title, search_term)
        ]
        rows.sort(key=lambda r: r.published_at, reverse=True)
        return rows[:limit]

    async def get_recipe(self, recipe_id: str) -> Optional[Recipe]:
        recipe = self.recipes.get(recipe_id)
        return self._with_author(recipe) if recipe else None

    async def insert_recipe(
        self, owner_id: str, draft: RecipeDraft, image_url: str | None = None
    ) -> Recipe:
        for existing in self.recipes.values():
            if existing.owner_id == owner_id and existing.title == draft.title:
                raise RecipeConflictError(DUPLICATE_TITLE_MESSAGE)
        recipe = Recipe(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            title=draft.title,
            ingredients=draft.ingredients,
            instructions=draft.instructions,
            is_public=draft.is_public,
            published_at=draft.created_at,
            image_url=image_url,
        )
        self.recipes[recipe.id] = recipe
        return self._with_author(recipe)

    async def delete_recipe(self, recipe_id: str) -> bool:
        recipe = self.recipes.get(recipe_id)
        if not recipe:
            return False
        # Row-level policy: owner or administrator.
        identity = self.current_identity
        user = self.users.get(identity.id) if identity else None
        if not identity or (
            identity.id != recipe.owner_id and not (user and user.is_admin)
        ):
            raise PermissionDeniedError("delete")
        del self.recipes[recipe_id]
        return True

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self.users.get(user_id)

    async def save_user(self, user: UserRecord) -> None:
        self.users[user.id] = user


class SqlRecipeStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str, session_user_id: str | None = None):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlRecipeStore")
        engine_kwargs: dict = {}
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # One shared connection so worker threads see the same database.
            engine_kwargs = {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
            **engine_kwargs,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)
        self.session_user_id = session_user_id

    def sign_in(self, user_id: str) -> None:
        self.session_user_id = user_id

    def sign_out(self) -> None:
        self.session_user_id = None

    @contextmanager
    def _translate_errors(self):
        try:
            yield
        except sa_exc.IntegrityError as exc:
            text = str(exc.orig or exc).lower()
            if "unique" in text or "duplicate" in text:
                raise RecipeConflictError(DUPLICATE_TITLE_MESSAGE) from exc
            if "not null" in text or "not-null" in text:
                raise RecipeConflictError(INCOMPLETE_DATA_MESSAGE) from exc
            if "foreign key" in text:
                raise RecipeConflictError(IN_USE_MESSAGE) from exc
            raise RecipeConflictError() from exc
        except (sa_exc.DBAPIError, sa_exc.TimeoutError) as exc:
            logger.warning("Store call failed: %s", exc)
            raise TransientStoreError() from exc

    def _recipe_query(self):
        return select(RecipeRow, UserRow.name).outerjoin(
            UserRow, UserRow.id == RecipeRow.user_id
        )

    def _to_recipe(self, row: "RecipeRow", author_name: str | None) -> Recipe:
        return Recipe(
            id=row.id,
            owner_id=row.user_id,
            title=row.title,
            ingredients=row.ingredients,
            instructions=row.instructions,
            is_public=bool(row.is_public),
            published_at=row.created_at,
            image_url=row.image_url,
            author_name=author_name,
        )

    def _to_user(self, row: "UserRow") -> UserRecord:
        return UserRecord(
            id=row.id,
            email=row.email,
            name=row.name,
            avatar_url=row.avatar_url,
            is_admin=bool(row.is_admin),
        )

    def _current_identity(self) -> Optional[Identity]:
        if not self.session_user_id:
            return None
        with self._translate_errors(), self.Session() as session:
            user = session.get(UserRow, self.session_user_id)
            if not user:
                return None
            return Identity(id=user.id, email=user.email)

    def _fetch_public_since(self, watermark: float) -> list[RecipeSummary]:
        stmt = (
            self._recipe_query()
            .where(RecipeRow.is_public.is_(True), RecipeRow.created_at > watermark)
            .order_by(RecipeRow.created_at.asc(), RecipeRow.id.asc())
        )
        with self._translate_errors(), self.Session() as session:
            return [
                self._to_recipe(row, name).summary()
                for row, name in session.execute(stmt).all()
            ]

    def _list_public(self, search_term: str | None, limit: int) -> list[RecipeSummary]:
        stmt = self._recipe_query().where(RecipeRow.is_public.is_(True))
        term = (search_term or "").strip()
        if term:
            stmt = stmt.where(
                RecipeRow.title.ilike(f"%{_escape_like(term)}%", escape="\\")
            )
        stmt = stmt.order_by(RecipeRow.created_at.desc()).limit(limit)
        with self._translate_errors(), self.Session() as session:
            return [
                self._to_recipe(row, name).summary()
                for row, name in session.execute(stmt).all()
            ]

    def _get_recipe(self, recipe_id: str) -> Optional[Recipe]:
        stmt = self._recipe_query().where(RecipeRow.id == recipe_id)
        with self._translate_errors(), self.Session() as session:
            result = session.execute(stmt).first()
            if not result:
                return None
            row, name = result
            return self._to_recipe(row, name)

    def _insert_recipe(
        self, owner_id: str, draft: RecipeDraft, image_url: str | None
    ) -> Recipe:
        with self._translate_errors(), self.Session() as session:
            row = RecipeRow(
                id=uuid.uuid4().hex,
                user_id=owner_id,
                title=draft.title,
                ingredients=draft.ingredients,
                instructions=draft.instructions,
                image_url=image_url,
                is_public=draft.is_public,
                created_at=draft.created_at,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            author = session.get(UserRow, owner_id)
            return self._to_recipe(row, author.name if author else None)

    def _delete_recipe(self, recipe_id: str) -> bool:
        with self._translate_errors(), self.Session() as session:
            row = session.get(RecipeRow, recipe_id)
            if not row:
                return False
            # Row-level policy: owner or administrator.
            actor = (
                session.get(UserRow, self.session_user_id)
                if self.session_user_id
                else None
            )
            if not actor or (actor.id != row.user_id and not actor.is_admin):
                raise PermissionDeniedError("delete")
            session.delete(row)
            session.commit()
            return True

    def _get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._translate_errors(), self.Session() as session:
            row = session.get(UserRow, user_id)
            return self._to_user(row) if row else None

    def _save_user(self, user: UserRecord) -> None:
        with self._translate_errors(), self.Session() as session:
            existing = session.get(UserRow, user.id)
            if existing:
                existing.email = user.email
                existing.name = user.name
                existing.avatar_url = user.avatar_url
                existing.is_admin = user.is_admin
                existing.updated_at = time.time()
            else:
                session.add(
                    UserRow(
                        id=user.id,
                        email=user.email,
                        name=user.name,
                        avatar_url=user.avatar_url,
                        is_admin=user.is_admin,
                        updated_at=time.time(),
                    )
                )
            session.commit()

    async def get_current_identity(self) -> Optional[Identity]:
        return await asyncio.to_thread(self._current_identity)

    async def fetch_public_since(self, watermark: float) -> list[RecipeSummary]:
        return await asyncio.to_thread(self._fetch_public_since, watermark)

    async def list_public(
        self, search_term: str | None = None, limit: int = 100
    ) -> list[RecipeSummary]:
        return await asyncio.to_thread(self._list_public, search_term, limit)

    async def get_recipe(self, recipe_id: str) -> Optional[Recipe]:
        return await asyncio.to_thread(self._get_recipe, recipe_id)

    async def insert_recipe(
        self, owner_id: str, draft: RecipeDraft, image_url: str | None = None
    ) -> Recipe:
        return await asyncio.to_thread(self._insert_recipe, owner_id, draft, image_url)

    async def delete_recipe(self, recipe_id: str) -> bool:
        return await asyncio.to_thread(self._delete_recipe, recipe_id)

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        return await asyncio.to_thread(self._get_user, user_id)

    async def save_user(self, user: UserRecord) -> None:
        await asyncio.to_thread(self._save_user, user)


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=True, index=True)
    name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    updated_at = Column(Float, nullable=True)


class RecipeRow(Base):
    __tablename__ = "recipes"
    __table_args__ = (UniqueConstraint("user_id", "title", name="recipes_user_title_key"),)

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    ingredients = Column(Text, nullable=False)
    instructions = Column(Text, nullable=False)
    image_url = Column(String, nullable=True)
    is_public = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(Float, nullable=False, index=True)

import unittest
from unittest.mock import patch

from sqlalchemy import exc as sa_exc

from recipe_feed.errors import (
    PermissionDeniedError,
    RecipeConflictError,
    TransientStoreError,
)
from recipe_feed.models import RecipeDraft, UserRecord
from recipe_feed.store import SqlRecipeStore


class SqlRecipeStoreTests(unittest.IsolatedAsyncioTestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the store logic.
    """

    async def asyncSetUp(self):
        self.store = SqlRecipeStore("sqlite+pysqlite:///:memory:")
        await self.store.save_user(UserRecord(id="u1", email="u1@test", name="Ana"))
        await self.store.save_user(
            UserRecord(id="boss", email="boss@test", name="Boss", is_admin=True)
        )
        await self.store.save_user(UserRecord(id="u2", email="u2@test", name="Rui"))

    async def _publish(self, owner, title, created_at, is_public=True):
        draft = RecipeDraft(
            title=title,
            ingredients="rice",
            instructions="cook",
            is_public=is_public,
            created_at=created_at,
        )
        return await self.store.insert_recipe(owner, draft)

    async def test_identity_follows_session_user(self):
        self.assertIsNone(await self.store.get_current_identity())
        self.store.sign_in("u1")
        identity = await self.store.get_current_identity()
        self.assertEqual((identity.id, identity.email), ("u1", "u1@test"))
        self.store.sign_in("ghost")
        self.assertIsNone(await self.store.get_current_identity())

    async def test_fetch_public_since_is_ascending_and_strict(self):
        await self._publish("u1", "Late", 30.0)
        await self._publish("u1", "Edge", 10.0)
        await self._publish("u2", "Early", 20.0)
        await self._publish("u2", "Hidden", 25.0, is_public=False)

        rows = await self.store.fetch_public_since(10.0)

        self.assertEqual([r.title for r in rows], ["Early", "Late"])
        self.assertEqual(rows[0].author_name, "Rui")

    async def test_list_public_search_is_case_insensitive(self):
        await self._publish("u1", "Chocolate Cake", 1.0)
        await self._publish("u1", "Carrot CAKE", 2.0)
        await self._publish("u1", "Soup", 3.0)

        rows = await self.store.list_public("cake")
        self.assertEqual([r.title for r in rows], ["Carrot CAKE", "Chocolate Cake"])
        self.assertEqual(len(await self.store.list_public()), 3)

    async def test_search_wildcards_match_literally(self):
        await self._publish("u1", "100% Juice", 1.0)
        await self._publish("u1", "1000 Juice", 2.0)
        await self._publish("u1", "Bolo_de_milho", 3.0)
        await self._publish("u1", "Bolo de milho", 4.0)

        self.assertEqual(
            [r.title for r in await self.store.list_public("100%")], ["100% Juice"]
        )
        self.assertEqual(
            [r.title for r in await self.store.list_public("o_d")], ["Bolo_de_milho"]
        )

    async def test_duplicate_title_is_conflict(self):
        await self._publish("u1", "Soup", 1.0)
        with self.assertRaises(RecipeConflictError):
            await self._publish("u1", "Soup", 2.0)

    async def test_delete_policy(self):
        recipe = await self._publish("u1", "Soup", 1.0)
        self.store.sign_in("u2")
        with self.assertRaises(PermissionDeniedError):
            await self.store.delete_recipe(recipe.id)

        self.store.sign_in("boss")
        self.assertTrue(await self.store.delete_recipe(recipe.id))
        self.assertIsNone(await self.store.get_recipe(recipe.id))
        self.assertFalse(await self.store.delete_recipe(recipe.id))

    async def test_user_roundtrip(self):
        await self.store.save_user(UserRecord(id="u1", name="Ana Maria", is_admin=True))
        user = await self.store.get_user("u1")
        self.assertEqual(user.name, "Ana Maria")
        self.assertTrue(user.is_admin)

    async def test_operational_error_is_transient(self):
        error = sa_exc.OperationalError("SELECT 1", {}, Exception("connection refused"))
        with patch.object(self.store, "Session", side_effect=error):
            with self.assertRaises(TransientStoreError):
                await self.store.fetch_public_since(0.0)


if __name__ == "__main__":
    unittest.main()

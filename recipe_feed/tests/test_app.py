import base64
import time
import unittest

from fastapi.testclient import TestClient

from recipe_feed.app import create_app
from recipe_feed.config import get_settings
from recipe_feed.dependencies import (
    get_coordinator,
    get_notification_gateway,
    get_store,
    reset_dependencies,
)
from recipe_feed.models import Recipe, UserRecord
from recipe_feed.store import InMemoryRecipeStore


class FeedApiTests(unittest.TestCase):
    def setUp(self):
        reset_dependencies()
        self.client = TestClient(create_app())
        store = get_store()
        if not isinstance(store, InMemoryRecipeStore):
            self.skipTest("API tests run against the in-memory store")
        store.reset()
        self.store = store
        self.store.users["u1"] = UserRecord(id="u1", name="Ana")
        self.store.users["admin"] = UserRecord(id="admin", name="Root", is_admin=True)
        self.store.sign_in("u1")
        self.coordinator = get_coordinator()

    def tearDown(self):
        reset_dependencies()

    def _seed(self, recipe_id, title, owner_id="u1", offset=1.0):
        return self.store.add_recipe(
            Recipe(
                id=recipe_id,
                owner_id=owner_id,
                title=title,
                ingredients="x",
                instructions="y",
                is_public=True,
                published_at=self.coordinator.state.watermark + offset,
            )
        )

    def test_refresh_then_acknowledge(self):
        self._seed("r1", "Tapioca")

        response = self.client.post("/api/feed/refresh")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["outcome"]["status"], "ran")
        self.assertEqual([i["id"] for i in payload["outcome"]["new_items"]], ["r1"])
        self.assertTrue(payload["feed"]["indicator"]["has_unseen"])
        self.assertEqual(payload["feed"]["indicator"]["recipe_ids"], ["r1"])
        self.assertEqual(len(get_notification_gateway().sent), 1)

        ack = self.client.post("/api/feed/acknowledge")
        self.assertEqual(ack.status_code, 200)
        self.assertFalse(ack.json()["indicator"]["has_unseen"])

        again = self.client.post("/api/feed/refresh").json()
        self.assertEqual(again["outcome"]["new_items"], [])
        self.assertFalse(again["feed"]["indicator"]["has_unseen"])
        self.assertEqual(len(get_notification_gateway().sent), 1)

    def test_search_filters_visible_list(self):
        self._seed("r1", "Pudim de Leite")
        self._seed("r2", "Coxinha", offset=2.0)

        response = self.client.post("/api/feed/search", json={"term": "pudim"})
        self.assertEqual(response.status_code, 200)
        feed = response.json()["feed"]
        self.assertEqual(feed["search_term"], "pudim")
        self.assertEqual([i["id"] for i in feed["items"]], ["r1"])

        current = self.client.get("/api/feed").json()
        self.assertEqual([i["id"] for i in current["items"]], ["r1"])

    def test_refresh_without_session_redirects_to_login(self):
        self.store.sign_out()
        response = self.client.post("/api/feed/refresh")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["detail"]["redirect"], "/login")

    def test_notification_response_routing(self):
        ok = self.client.post(
            "/api/notifications/response",
            json={"payload": {"type": "new_recipe", "recipeId": "r42"}},
        )
        self.assertEqual(ok.status_code, 200)
        self.assertEqual(ok.json()["target"], {"recipe_id": "r42", "path": "/recipes/r42"})

        ignored = self.client.post(
            "/api/notifications/response", json={"payload": {"recipeId": "r42"}}
        )
        self.assertEqual(ignored.status_code, 200)
        self.assertIsNone(ignored.json()["target"])

    def test_publish_and_detail(self):
        response = self.client.post(
            "/api/recipes",
            json={
                "title": "Brigadeiro",
                "ingredients": "condensed milk, cocoa",
                "instructions": "stir",
                "is_public": False,
                "image_base64": base64.b64encode(b"\xff\xd8\xff").decode(),
                "image_content_type": "image/jpeg",
            },
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertIn("private", body["message"])
        self.assertTrue(body["recipe"]["image_url"].endswith(".jpg"))

        detail = self.client.get(f"/api/recipes/{body['recipe']['id']}")
        self.assertEqual(detail.status_code, 200)
        self.assertTrue(detail.json()["is_owner"])
        self.assertTrue(detail.json()["can_delete"])

    def test_publish_validation_error(self):
        response = self.client.post(
            "/api/recipes", json={"title": "", "ingredients": "a", "instructions": "b"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"]["field"], "title")

    def test_admin_delete_flow(self):
        self._seed("r1", "Acarajé", owner_id="u1")
        self.store.sign_in("admin")

        preview = self.client.get("/api/recipes/r1/deletion")
        self.assertEqual(preview.status_code, 200)
        self.assertEqual(preview.json()["acting_as"], "admin")
        self.assertIn("administrator", preview.json()["confirmation_message"])

        deleted = self.client.delete("/api/recipes/r1")
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(deleted.json()["message"], "Recipe deleted successfully! (as administrator)")
        self.assertEqual(self.client.get("/api/recipes/r1").status_code, 404)

    def test_delete_forbidden_for_other_users(self):
        self._seed("r1", "Acarajé", owner_id="admin")
        response = self.client.delete("/api/recipes/r1")
        self.assertEqual(response.status_code, 403)


class AppPollLoopTests(unittest.TestCase):
    def setUp(self):
        reset_dependencies()
        store = get_store()
        if not isinstance(store, InMemoryRecipeStore):
            self.skipTest("API tests run against the in-memory store")
        if not get_settings().poll_in_app:
            self.skipTest("poll loop disabled with POLL_IN_APP")
        store.reset()
        store.sign_in("u1")
        self.store = store
        self.coordinator = get_coordinator()

    def tearDown(self):
        reset_dependencies()

    def _wait_for_unseen(self, client, timeout=5.0):
        deadline = time.monotonic() + timeout
        feed = client.get("/api/feed").json()
        while not feed["indicator"]["has_unseen"] and time.monotonic() < deadline:
            time.sleep(0.02)
            feed = client.get("/api/feed").json()
        return feed

    def test_timer_ticks_reach_the_api_coordinator(self):
        self.store.add_recipe(
            Recipe(
                id="r1",
                owner_id="u1",
                title="Feijoada",
                ingredients="beans",
                instructions="simmer",
                is_public=True,
                published_at=self.coordinator.state.watermark + 1,
            )
        )

        with TestClient(create_app(poll_interval_seconds=0.01)) as client:
            feed = self._wait_for_unseen(client)
            self.assertEqual(feed["indicator"]["recipe_ids"], ["r1"])

            refresh = client.post("/api/feed/refresh").json()
            self.assertEqual(refresh["outcome"]["new_items"], [])

        sent = [n.payload["recipeId"] for n in get_notification_gateway().sent]
        self.assertEqual(sent, ["r1"])
        self.assertIs(get_coordinator(), self.coordinator)


if __name__ == "__main__":
    unittest.main()

import asyncio
import unittest

from recipe_feed.navigation import (
    NavigationTarget,
    handle_response,
    route,
    run_response_loop,
)
from recipe_feed.notifications import InMemoryResponseQueue, new_recipe_payload


class RouteTests(unittest.TestCase):
    def test_new_recipe_payload_routes_to_detail(self):
        target = route({"type": "new_recipe", "recipeId": "r42"})
        self.assertEqual(target, NavigationTarget("r42"))
        self.assertEqual(target.path, "/recipes/r42")

    def test_missing_discriminator_is_ignored(self):
        self.assertIsNone(route({"recipeId": "r42"}))

    def test_malformed_payloads_are_ignored(self):
        for payload in (
            None,
            "r42",
            ["new_recipe", "r42"],
            {"type": "comment", "recipeId": "r42"},
            {"type": "new_recipe"},
            {"type": "new_recipe", "recipeId": ""},
            {"type": "new_recipe", "recipeId": "   "},
            {"type": "new_recipe", "recipeId": 42},
        ):
            with self.subTest(payload=payload):
                self.assertIsNone(route(payload))

    def test_routing_is_idempotent(self):
        payload = new_recipe_payload("r7")
        self.assertEqual(route(payload), route(payload))
        self.assertEqual(payload, {"type": "new_recipe", "recipeId": "r7"})


class ResponseDispatchTests(unittest.IsolatedAsyncioTestCase):
    async def test_navigate_failure_is_contained(self):
        def navigate(target):
            raise RuntimeError("screen stack gone")

        target = await handle_response(new_recipe_payload("r1"), navigate)
        self.assertEqual(target, NavigationTarget("r1"))

    async def test_loop_routes_each_payload_once(self):
        queue = InMemoryResponseQueue()
        queue.publish(new_recipe_payload("r1"))
        queue.publish({"unexpected": True})
        queue.publish(new_recipe_payload("r2"))

        visited = []
        stop = asyncio.Event()

        async def navigate(target):
            visited.append(target.recipe_id)
            if len(visited) == 2:
                stop.set()

        routed = await asyncio.wait_for(
            run_response_loop(queue, navigate, stop, idle_sleep=0.01), timeout=5
        )

        self.assertEqual(routed, 2)
        self.assertEqual(visited, ["r1", "r2"])
        self.assertEqual(queue.items, [])


if __name__ == "__main__":
    unittest.main()

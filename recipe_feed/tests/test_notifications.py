import json
import unittest
from unittest.mock import MagicMock, patch

from redis import exceptions as redis_exceptions

from recipe_feed.notifications import (
    RedisNotificationGateway,
    RedisResponseQueue,
    new_recipe_payload,
)


class RedisChannelTests(unittest.IsolatedAsyncioTestCase):
    def _clients(self):
        stale, fresh = MagicMock(), MagicMock()
        stale.rpush.side_effect = redis_exceptions.ConnectionError("connection reset")
        return stale, fresh

    def test_publish_reconnects_after_dropped_connection(self):
        stale, fresh = self._clients()
        with patch(
            "recipe_feed.notifications.redis.Redis.from_url", side_effect=[stale, fresh]
        ):
            queue = RedisResponseQueue(url="redis://localhost:6379/0")
            queue.publish(new_recipe_payload("r42"))

        fresh.rpush.assert_called_once_with(
            "recipe_feed:responses", json.dumps({"type": "new_recipe", "recipeId": "r42"})
        )
        self.assertIs(queue.client, fresh)

    def test_receive_drops_undecodable_payload(self):
        client = MagicMock()
        client.blpop.return_value = (b"recipe_feed:responses", b"not json")
        with patch("recipe_feed.notifications.redis.Redis.from_url", return_value=client):
            queue = RedisResponseQueue(url="redis://localhost:6379/0")
            self.assertIsNone(queue.receive(timeout=1))

    async def test_display_reconnects_after_dropped_connection(self):
        stale, fresh = self._clients()
        with patch(
            "recipe_feed.notifications.redis.Redis.from_url", side_effect=[stale, fresh]
        ):
            gateway = RedisNotificationGateway(url="redis://localhost:6379/0")
            await gateway.display("New public recipe!", "Ana added", new_recipe_payload("r1"))

        key, body = fresh.rpush.call_args.args
        self.assertEqual(key, "recipe_feed:notifications")
        self.assertEqual(json.loads(body)["data"], {"type": "new_recipe", "recipeId": "r1"})


if __name__ == "__main__":
    unittest.main()

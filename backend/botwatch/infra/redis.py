"""Redis connection shared by the reputation store.

`redis_client` is a proxy so modules can import it once while tests swap the
underlying connection for fakeredis.
"""

from __future__ import annotations

from typing import Optional

import redis.asyncio as redis

from botwatch.settings import settings


class RedisProxy:
	"""Forwards attribute access to the current client, creating it from settings on first use."""

	def __init__(self, client: Optional[redis.Redis] = None):
		self._client: Optional[redis.Redis] = client

	def set_client(self, client: Optional[redis.Redis]) -> None:
		self._client = client

	@property
	def client(self) -> redis.Redis:
		if self._client is None:
			self._client = redis.from_url(settings.redis_url, decode_responses=True)
		return self._client

	def __getattr__(self, item):
		return getattr(self.client, item)


redis_client = RedisProxy()


def set_redis_client(client: Optional[redis.Redis]) -> None:
	redis_client.set_client(client)

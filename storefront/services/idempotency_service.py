# storefront/services/idempotency_service.py
import json
import uuid
from typing import Any, Dict

import redis

from storefront.utils.retry import redis_retry
from storefront.utils.settings import IDEMPOTENCY_TTL_SECONDS, REDIS_URL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

#compare-and-delete, atomic inside redis (lua runs single threaded)
#only the request that claimed the key may release it
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

PENDING_PREFIX = "pending:"


class IdempotencyClaim:
    def __init__(self, key: str, token: str | None, stored: Dict[str, Any] | None):
        self.key = key
        self.token = token
        self.stored = stored

    @property
    def acquired(self) -> bool:
        return self.token is not None


class IdempotencyService:
    """
    Idempotency keys for order placement.

    - claim: SET NX EX with a pending marker; the winner places the order
    - complete: overwrite the marker with the serialized response
    - release: drop a pending marker after a failed placement so the client can retry
    """

    def __init__(self, url: str | None = None, ttl: int = IDEMPOTENCY_TTL_SECONDS):
        self.redis = redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )
        self.ttl = ttl

    @staticmethod
    def _key(user_id: int, idempotency_key: str) -> str:
        return f"order:idempotency:{user_id}:{idempotency_key}"

    @redis_retry()
    def claim(self, user_id: int, idempotency_key: str) -> IdempotencyClaim:
        key = self._key(user_id, idempotency_key)
        token = PENDING_PREFIX + uuid.uuid4().hex

        #SET order:idempotency:7:abc "pending:..." NX EX 86400
        if self.redis.set(name=key, value=token, nx=True, ex=self.ttl):
            logger.info(f"Claimed idempotency key {key}")
            return IdempotencyClaim(key, token, None)

        current = self.redis.get(key)
        if current is None or current.startswith(PENDING_PREFIX):
            return IdempotencyClaim(key, None, None)

        logger.info(f"Replaying stored response for idempotency key {key}")
        return IdempotencyClaim(key, None, json.loads(current))

    @redis_retry()
    def complete(self, claim: IdempotencyClaim, response: Dict[str, Any]) -> None:
        self.redis.set(name=claim.key, value=json.dumps(response, default=str), ex=self.ttl)

    @redis_retry()
    def release(self, claim: IdempotencyClaim) -> bool:
        logger.info(f"Release idempotency key {claim.key}")
        res = self.redis.eval(_RELEASE_LUA, 1, claim.key, claim.token)
        return bool(res)

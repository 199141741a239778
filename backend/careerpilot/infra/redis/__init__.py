from careerpilot.infra.redis.redis_denylist_store import RedisTokenDenylistStore
from careerpilot.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore

__all__ = ["RedisRefreshTokenStore", "RedisTokenDenylistStore"]

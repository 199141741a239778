from careerpilot.infra.sql.sql_refresh_token_store import SQLRefreshTokenStore

__all__ = ["SQLRefreshTokenStore"]

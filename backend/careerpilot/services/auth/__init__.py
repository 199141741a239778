from careerpilot.services.auth.dto import (
    LoginIn,
    LogoutIn,
    LogoutOut,
    OAuthProfileIn,
    RefreshIn,
    SignupIn,
    TokenPairOut,
    UserPublicOut,
)
from careerpilot.services.auth.service import AuthService

__all__ = [
    "AuthService",
    "LoginIn",
    "LogoutIn",
    "LogoutOut",
    "OAuthProfileIn",
    "RefreshIn",
    "SignupIn",
    "TokenPairOut",
    "UserPublicOut",
]

from careerpilot.models.refresh_token import RefreshToken
from careerpilot.models.user import User

__all__ = ["RefreshToken", "User"]

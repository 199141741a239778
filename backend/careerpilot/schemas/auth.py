"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate


class SignupSchema(Schema):
    """Input payload for account creation."""

    class Meta:
        unknown = EXCLUDE

    email = fields.Email(required=True, validate=validate.Length(max=254))
    username = fields.String(required=True, validate=validate.Length(min=3, max=50))
    password = fields.String(required=True, validate=validate.Length(min=8, max=128))


class LoginSchema(Schema):
    """Input payload for authenticating a user."""

    class Meta:
        unknown = EXCLUDE

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class RefreshSchema(Schema):
    """Optional body for clients that cannot send the ``refreshToken`` cookie."""

    class Meta:
        unknown = EXCLUDE

    refresh_token = fields.String(load_default=None, validate=validate.Length(min=1))


class LogoutSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    all_sessions = fields.Boolean(load_default=False)


class UserPublicSchema(Schema):
    """Public representation of the session owner."""

    id = fields.Integer(required=True)
    email = fields.Email(required=True)
    username = fields.String(required=True)
    is_verified = fields.Boolean(required=True)


class SessionResponseSchema(Schema):
    """Response body of signup, login and refresh.

    The tokens themselves travel in httpOnly cookies; the body only carries
    non-secret metadata.
    """

    user = fields.Nested(UserPublicSchema, required=True)
    refresh_expires_at = fields.DateTime(required=True)

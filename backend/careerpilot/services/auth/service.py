# careerpilot/services/auth/service.py
from __future__ import annotations

import logging
import secrets

from careerpilot.models.user import USERNAME_MAX_LENGTH, User
from careerpilot.services._shared.base import BaseService, ServiceContext
from careerpilot.services._shared.errors import (
    ConflictError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    ReplayDetectedError,
    UserNotFoundError,
)
from careerpilot.services._shared.ports import (
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationResult,
    TokenDenylistStore,
    TokenProvider,
)
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

logger = logging.getLogger(__name__)


class AuthService(BaseService):
    """
    Session lifecycle service (signup / login / OAuth login / refresh / logout).

    Every successful authentication appends one refresh token record to the
    user's collection; a refresh consumes exactly one record and appends its
    successor. Presenting a refresh token whose record is unknown, consumed or
    expired is treated as theft: every refresh token of the user is revoked.
    """

    def __init__(
        self,
        *,
        token_provider: TokenProvider,
        refresh_store: RefreshTokenStore,
        denylist_store: TokenDenylistStore,
        ctx: ServiceContext | None = None,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param token_provider: Adapter for issuing/decoding JWTs.
        :param refresh_store: Per-user refresh token records (atomic rotation).
        :param denylist_store: Denylist for access tokens (JTI-based).
        :param ctx: Optional request-scoped context.
        """
        super().__init__(ctx=ctx)
        self.tokens = token_provider
        self.refresh_store = refresh_store
        self.denylist = denylist_store

    # ------------------------------------------------------------------ #
    # Initial issuance
    # ------------------------------------------------------------------ #

    def signup(self, dto: SignupIn) -> TokenPairOut:
        """
        Create an account and open its first session.

        :raises ConflictError: If the email or username is already registered.
        """
        with self.ro_uow() as uow:
            if uow.users.exists_by_email(dto.email):
                raise ConflictError("User", "email already registered")
            if uow.users.exists_by_username(dto.username):
                raise ConflictError("User", "username already taken")

        with self.rw_uow() as uow:
            user = User(email=dto.email, username=dto.username, is_verified=True)
            user.password = dto.password
            uow.users.add(user)
            profile = UserPublicOut.from_model(user)

        logger.info("auth.signup.ok", extra={"user_id": profile.id})
        return self._issue_pair(profile, fresh=True)

    def login(self, dto: LoginIn) -> TokenPairOut:
        """
        Authenticate credentials and issue a fresh token pair.

        Existing sessions of the user are left untouched.

        :param dto: Login input.
        :returns: Access/Refresh token pair.
        :raises InvalidCredentialsError: If the email or password is wrong.
        """
        with self.ro_uow() as uow:
            user = uow.users.authenticate(dto.email, dto.password)
            if user is None:
                raise InvalidCredentialsError()
            profile = UserPublicOut.from_model(user)

        logger.info("auth.login.ok", extra=self.log_extra(user_id=profile.id))
        return self._issue_pair(profile, fresh=True)

    def login_with_oauth(self, dto: OAuthProfileIn) -> TokenPairOut:
        """
        Open a session for an identity vouched for by an OAuth provider.

        The account is found by provider subject, then by email. Unknown
        identities get an account with a random password. A known account is
        marked verified and linked to the subject unless it is already linked
        to another one.
        """
        with self.rw_uow() as uow:
            user = uow.users.get_by_google_id(dto.subject) or uow.users.get_by_email(dto.email)
            if user is None:
                user = User(
                    email=dto.email,
                    username=self._free_username(uow.users, dto.name or dto.email.split("@")[0]),
                    is_verified=True,
                    google_id=dto.subject,
                )
                user.password = secrets.token_urlsafe(32)
                uow.users.add(user)
                created = True
            else:
                changes: dict[str, object] = {"is_verified": True}
                if user.google_id is None:
                    changes["google_id"] = dto.subject
                name = (dto.name or "").strip()[:USERNAME_MAX_LENGTH].rstrip()
                if name and name != user.username and not uow.users.exists_by_username(name):
                    changes["username"] = name
                uow.users.update(user, **changes)
                created = False
            profile = UserPublicOut.from_model(user)

        logger.info(
            "auth.oauth.ok",
            extra={"user_id": profile.id, "result": "created" if created else "linked"},
        )
        return self._issue_pair(profile, fresh=True)

    # ------------------------------------------------------------------ #
    # Refresh with atomic rotation
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn) -> TokenPairOut:
        """
        Rotate a refresh token and emit a new token pair.

        Security
        --------
        - The presented token must verify with the refresh secret.
        - Its record is consumed by a single compare-and-set in the store;
          the successor record is appended in the same step.
        - Any other outcome (unknown, consumed or expired record) revokes
          every refresh token of the user.

        :raises InvalidTokenError: Bad signature, expiry or claims.
        :raises UserNotFoundError: The token's user no longer exists.
        :raises ReplayDetectedError: Reuse detected; all sessions revoked.
        """
        claims = self.tokens.decode_refresh_token(dto.refresh_token)
        user_id = self._coerce_user_id(claims.user_id)

        with self.ro_uow() as uow:
            user = uow.users.get(user_id)
            if user is None:
                raise UserNotFoundError(user_id)
            profile = UserPublicOut.from_model(user)

        # Minted before the swap; discarded unless the swap succeeds
        issued = self.tokens.issue_refresh_token(profile.id)
        result = self.refresh_store.rotate(
            user_id=str(profile.id),
            old_jti=claims.jti,
            now=self.now_utc(),
            new_record=RefreshTokenRecord(
                jti=issued.jti,
                created_at=issued.issued_at,
                expires_at=issued.expires_at,
            ),
        )

        if result is not RotationResult.OK:
            revoked = self.refresh_store.revoke_all_for_user(str(profile.id))
            logger.warning(
                "auth.refresh.replay_detected",
                extra=self.log_extra(
                    user_id=profile.id, result=result.name.lower(), revoked=revoked
                ),
            )
            raise ReplayDetectedError(profile.id, revoked)

        access = self.tokens.issue_access_token(profile, fresh=False)
        logger.info("auth.refresh.rotated", extra={"user_id": profile.id})
        return TokenPairOut(
            access_token=access,
            refresh_token=issued.token,
            refresh_expires_at=issued.expires_at,
            user=profile,
        )

    # ------------------------------------------------------------------ #
    # Logout / identity
    # ------------------------------------------------------------------ #

    def logout(self, dto: LogoutIn) -> LogoutOut:
        """
        Best-effort logout: revoke whatever presented credential verifies.

        Tokens that fail verification are ignored; logging out must work for
        a client holding an expired access token.
        """
        user_id: int | None = None
        revoked = 0

        if dto.access_token:
            try:
                access = self.tokens.decode_access_token(dto.access_token)
                access_user = self._coerce_user_id(access.user_id)
            except InvalidTokenError as exc:
                logger.debug("auth.logout.access_ignored", extra={"result": str(exc)})
            else:
                self.denylist.revoke_jti(jti=access.jti, expires_at=access.expires_at)
                user_id = access_user

        if dto.refresh_token:
            try:
                refresh = self.tokens.decode_refresh_token(dto.refresh_token)
                refresh_user = self._coerce_user_id(refresh.user_id)
            except InvalidTokenError as exc:
                logger.debug("auth.logout.refresh_ignored", extra={"result": str(exc)})
            else:
                if self.refresh_store.revoke(user_id=str(refresh_user), jti=refresh.jti):
                    revoked += 1
                user_id = user_id if user_id is not None else refresh_user

        if dto.all_sessions and user_id is not None:
            revoked += self.refresh_store.revoke_all_for_user(str(user_id))

        logger.info(
            "auth.logout",
            extra={
                "user_id": user_id,
                "revoked": revoked,
                "result": "all" if dto.all_sessions else "one",
            },
        )
        return LogoutOut(revoked=revoked)

    def whoami(self, user_id: int | str) -> UserPublicOut:
        """
        Return the profile behind a verified access token.

        :raises UserNotFoundError: If the user was deleted since issuance.
        """
        uid = self._coerce_user_id(user_id)
        with self.ro_uow() as uow:
            user = uow.users.get(uid)
            if user is None:
                raise UserNotFoundError(uid)
            return UserPublicOut.from_model(user)

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    def revoke_all_sessions(self, email: str) -> int:
        """
        Mass-revoke the refresh tokens of the account behind ``email``.

        :returns: Number of records that were still valid.
        :raises NotFoundError: If no account uses that email.
        """
        with self.ro_uow() as uow:
            user = uow.users.get_by_email(email)
            if user is None:
                raise NotFoundError("User", email)
            user_id = user.id
        revoked = self.refresh_store.revoke_all_for_user(str(user_id))
        logger.info("auth.sessions.revoked", extra={"user_id": user_id, "revoked": revoked})
        return revoked

    def prune_sessions(self) -> int:
        """Delete invalidated and expired refresh records of every user."""
        pruned = self.refresh_store.prune(now=self.now_utc())
        logger.info("auth.sessions.pruned", extra={"pruned": pruned})
        return pruned

    # ------------------------------------------------------------------ #
    # Utilities
    # ------------------------------------------------------------------ #

    def _issue_pair(self, user: UserPublicOut, *, fresh: bool) -> TokenPairOut:
        """
        Mint a token pair and record the refresh token for the user.

        The record is stored before the tokens are returned, so a client
        never holds a refresh token the server does not know about.
        """
        issued = self.tokens.issue_refresh_token(user.id)
        self.refresh_store.register(
            user_id=str(user.id),
            record=RefreshTokenRecord(
                jti=issued.jti,
                created_at=issued.issued_at,
                expires_at=issued.expires_at,
            ),
        )
        access = self.tokens.issue_access_token(user, fresh=fresh)
        return TokenPairOut(
            access_token=access,
            refresh_token=issued.token,
            refresh_expires_at=issued.expires_at,
            user=user,
        )

    @staticmethod
    def _coerce_user_id(subject: int | str) -> int:
        """Ensure the JWT subject can be treated as an integer user id."""
        if isinstance(subject, int):
            return subject
        if isinstance(subject, str) and subject.isdigit():
            return int(subject)
        raise InvalidTokenError("Invalid token subject.")

    @staticmethod
    def _free_username(users, base: str) -> str:
        """Return ``base`` or ``base-xxxxxx`` when the name is taken."""
        # Room for the "-xxxxxx" suffix
        stem = base.strip()[: USERNAME_MAX_LENGTH - 7].rstrip() or "user"
        candidate = stem
        while users.exists_by_username(candidate):
            candidate = f"{stem}-{secrets.token_hex(3)}"
        return candidate

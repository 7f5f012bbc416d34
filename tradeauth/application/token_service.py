"""Token lifecycle service.

Issues, validates, rotates and revokes credentials:
    - access tokens: short-lived signed JWTs, verified statelessly
    - refresh tokens: opaque values persisted per device, rotated on use

Rotation flow:
    1. Reject empty input (VALIDATION_FAILED)
    2. Look the token up (TOKEN_INVALID if unknown)
    3. Already rotated -> replay of a stolen token: revoke per ReusePolicy,
       log a critical security event, TOKEN_REUSE_DETECTED
    4. Revoked, expired or bound to another device -> TOKEN_REVOKED,
       TOKEN_EXPIRED, DEVICE_MISMATCH
    5. Owner missing or inactive -> TOKEN_INVALID (same message as unknown)
    6. Conditional UPDATE + successor INSERT in one transaction; a caller
       that loses the race gets TOKEN_REVOKED

Access token revocation goes through the cache blacklist, keyed by jti and
kept at least as long as the token could still verify.
"""

from datetime import UTC, datetime, timedelta
from uuid import UUID

from tradeauth.application.token_blacklist import TokenBlacklist
from tradeauth.core.enums import ErrorCode
from tradeauth.core.result import Failure, Result, Success
from tradeauth.domain.entities import AccessClaims, Principal, TokenPair
from tradeauth.domain.enums import ReusePolicy
from tradeauth.domain.errors import TokenError, TokenErrorMessage
from tradeauth.domain.protocols import (
    LoggerProtocol,
    NewRefreshToken,
    RefreshTokenData,
    RefreshTokenRepository,
    UserRepository,
    mask_token,
)
from tradeauth.infrastructure.security import JWTService, RefreshTokenGenerator


class RevocationReason:
    """Values written to refresh_tokens.revoked_reason."""

    LOGOUT = "logout"
    REUSE_DETECTED = "reuse_detected"
    DEVICE_LIMIT = "device_limit"
    CASCADE = "cascade"
    REVOKE_ALL = "revoke_all"


def _failure(code: ErrorCode, message: str, user_id: UUID | None = None) -> Failure[TokenError]:
    return Failure(
        error=TokenError(
            code=code,
            message=message,
            user_id=str(user_id) if user_id else None,
        )
    )


class TokenService:
    """Access/refresh token lifecycle.

    One instance per unit of work: the repositories it receives share a
    database session.
    """

    def __init__(
        self,
        *,
        refresh_tokens: RefreshTokenRepository,
        users: UserRepository,
        jwt_service: JWTService,
        token_generator: RefreshTokenGenerator,
        blacklist: TokenBlacklist,
        logger: LoggerProtocol,
        max_active_devices: int = 5,
        reuse_policy: ReusePolicy = ReusePolicy.CHAIN,
        revoke_descendants: bool = True,
        retention: timedelta = timedelta(days=7),
    ) -> None:
        """Initialize the service.

        Args:
            refresh_tokens: Refresh token persistence.
            users: Principal lookup.
            jwt_service: Access token signer/verifier.
            token_generator: Refresh token value generator.
            blacklist: Access token blacklist (cache-backed).
            logger: Structured logger.
            max_active_devices: Active refresh tokens allowed per principal
                (0 disables the limit).
            reuse_policy: Revocation scope on refresh token replay.
            revoke_descendants: Revoking a token also revokes its successors.
            retention: How long expired refresh tokens are kept before cleanup.
        """
        self._refresh_tokens = refresh_tokens
        self._users = users
        self._jwt = jwt_service
        self._generator = token_generator
        self._blacklist = blacklist
        self._logger = logger
        self._max_active_devices = max_active_devices
        self._reuse_policy = reuse_policy
        self._revoke_descendants = revoke_descendants
        self._retention = retention

    # ------------------------------------------------------------------
    # Issuance and validation
    # ------------------------------------------------------------------

    async def issue_pair(
        self,
        principal: Principal,
        device_id: str,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Result[TokenPair, TokenError]:
        """Issue an access token and a device-bound refresh token.

        The principal's oldest active refresh tokens are revoked first so
        that at most max_active_devices remain active, the new one included.

        Args:
            principal: Authenticated principal.
            device_id: Client device identifier.
            ip_address: Originating IP (stored for audit).
            user_agent: Originating user agent (stored for audit).

        Returns:
            Success with the TokenPair, or VALIDATION_FAILED for an empty device id.
        """
        if not device_id or not device_id.strip():
            return _failure(ErrorCode.VALIDATION_FAILED, TokenErrorMessage.EMPTY_DEVICE)

        await self._enforce_device_limit(principal.id)

        refresh = await self._refresh_tokens.save(
            NewRefreshToken(
                user_id=principal.id,
                token=self._generator.generate_token(),
                device_id=device_id,
                expires_at=self._generator.calculate_expiration(),
                ip_address=ip_address,
                user_agent=user_agent,
            )
        )
        self._logger.info(
            "Token pair issued", user_id=str(principal.id), device_id=device_id
        )
        return Success(value=self._pair(principal, refresh))

    def validate(self, access_token: str) -> Result[AccessClaims, TokenError]:
        """Verify an access token cryptographically.

        Does not consult the blacklist; see is_blacklisted.

        Returns:
            Success with claims, or TOKEN_EXPIRED / TOKEN_INVALID.
        """
        return self._jwt.validate_access_token(access_token)

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    async def rotate(
        self,
        refresh_token: str,
        device_id: str,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Result[TokenPair, TokenError]:
        """Exchange a refresh token for a new pair.

        Args:
            refresh_token: Presented refresh token value.
            device_id: Device presenting it.
            ip_address: Originating IP for the successor.
            user_agent: Originating user agent for the successor.

        Returns:
            Success with the new TokenPair, or Failure with VALIDATION_FAILED,
            TOKEN_INVALID, TOKEN_REUSE_DETECTED, TOKEN_REVOKED, TOKEN_EXPIRED
            or DEVICE_MISMATCH.
        """
        if not refresh_token or not refresh_token.strip():
            return _failure(ErrorCode.VALIDATION_FAILED, TokenErrorMessage.EMPTY_TOKEN)
        if not device_id or not device_id.strip():
            return _failure(ErrorCode.VALIDATION_FAILED, TokenErrorMessage.EMPTY_DEVICE)

        record = await self._refresh_tokens.find_by_token(refresh_token)
        if record is None:
            self._logger.warning(
                "Unknown refresh token presented", token=mask_token(refresh_token)
            )
            return _failure(ErrorCode.TOKEN_INVALID, TokenErrorMessage.INVALID)

        if record.is_rotated:
            await self._handle_reuse(record, device_id)
            return _failure(
                ErrorCode.TOKEN_REUSE_DETECTED,
                TokenErrorMessage.REUSE_DETECTED,
                record.user_id,
            )
        if record.is_revoked:
            return _failure(
                ErrorCode.TOKEN_REVOKED, TokenErrorMessage.REVOKED, record.user_id
            )
        if record.is_expired():
            return _failure(
                ErrorCode.TOKEN_EXPIRED, TokenErrorMessage.EXPIRED, record.user_id
            )
        if record.device_id != device_id:
            self._logger.warning(
                "Refresh token presented from another device",
                user_id=str(record.user_id),
                expected_device=record.device_id,
                presented_device=device_id,
            )
            return _failure(
                ErrorCode.DEVICE_MISMATCH,
                TokenErrorMessage.DEVICE_MISMATCH,
                record.user_id,
            )

        principal = await self._users.find_by_id(record.user_id)
        if principal is None or not principal.is_active:
            return _failure(ErrorCode.TOKEN_INVALID, TokenErrorMessage.INVALID)

        successor = await self._refresh_tokens.rotate(
            record.id,
            NewRefreshToken(
                user_id=record.user_id,
                token=self._generator.generate_token(),
                device_id=device_id,
                expires_at=self._generator.calculate_expiration(),
                ip_address=ip_address,
                user_agent=user_agent,
            ),
        )
        if successor is None:
            self._logger.warning(
                "Refresh token rotated concurrently",
                user_id=str(record.user_id),
                device_id=device_id,
            )
            return _failure(
                ErrorCode.TOKEN_REVOKED, TokenErrorMessage.REVOKED, record.user_id
            )

        self._logger.info(
            "Refresh token rotated", user_id=str(record.user_id), device_id=device_id
        )
        return Success(value=self._pair(principal, successor))

    async def _handle_reuse(self, record: RefreshTokenData, device_id: str) -> None:
        if self._reuse_policy == ReusePolicy.ALL_SESSIONS:
            revoked = await self._refresh_tokens.revoke_all_for_user(
                record.user_id, RevocationReason.REUSE_DETECTED
            )
        else:
            chain = await self._rotation_chain(record)
            revoked = await self._refresh_tokens.revoke(
                [token.id for token in chain], RevocationReason.REUSE_DETECTED
            )

        self._logger.critical(
            "Refresh token reuse detected",
            user_id=str(record.user_id),
            token_device=record.device_id,
            presented_device=device_id,
            policy=self._reuse_policy.value,
            revoked=revoked,
        )

    async def _rotation_chain(self, record: RefreshTokenData) -> list[RefreshTokenData]:
        """The token followed by every successor produced from it."""
        chain = [record]
        seen = {record.id}
        current = record
        while current.replaced_by_token is not None:
            successor = await self._refresh_tokens.find_by_token(
                current.replaced_by_token
            )
            if successor is None or successor.id in seen:
                break
            chain.append(successor)
            seen.add(successor.id)
            current = successor
        return chain

    # ------------------------------------------------------------------
    # Revocation
    # ------------------------------------------------------------------

    async def revoke(
        self,
        refresh_token: str,
        reason: str = RevocationReason.LOGOUT,
        *,
        revoked_by: str | None = None,
    ) -> bool:
        """Revoke a refresh token (idempotent).

        With revoke_descendants enabled, successors produced by rotating this
        token are revoked too.

        Args:
            refresh_token: Token value.
            reason: Revocation reason.
            revoked_by: Actor requesting the revocation.

        Returns:
            False only if the token is unknown.
        """
        record = await self._refresh_tokens.find_by_token(refresh_token)
        if record is None:
            return False

        revoked = await self._refresh_tokens.revoke([record.id], reason, revoked_by)
        if self._revoke_descendants and record.is_rotated:
            descendants = (await self._rotation_chain(record))[1:]
            revoked += await self._refresh_tokens.revoke(
                [token.id for token in descendants],
                RevocationReason.CASCADE,
                revoked_by,
            )

        if revoked:
            self._logger.info(
                "Refresh token revoked",
                user_id=str(record.user_id),
                reason=reason,
                revoked=revoked,
            )
        return True

    async def revoke_all(
        self, user_id: UUID, reason: str = RevocationReason.REVOKE_ALL
    ) -> int:
        """Revoke every refresh token of a principal.

        Returns:
            Number of tokens revoked.
        """
        revoked = await self._refresh_tokens.revoke_all_for_user(user_id, reason)
        self._logger.info(
            "All refresh tokens revoked",
            user_id=str(user_id),
            reason=reason,
            revoked=revoked,
        )
        return revoked

    async def list_active(self, user_id: UUID) -> list[RefreshTokenData]:
        """Active refresh tokens of a principal, oldest first."""
        return await self._refresh_tokens.list_active(user_id)

    async def logout(
        self, refresh_token: str, *, access_claims: AccessClaims | None = None
    ) -> bool:
        """Revoke the refresh token and blacklist the current access token.

        Returns:
            Whether the refresh token was known.
        """
        known = await self.revoke(refresh_token, RevocationReason.LOGOUT)
        if access_claims is not None:
            await self.blacklist_claims(access_claims)
        return known

    async def _enforce_device_limit(self, user_id: UUID) -> None:
        if self._max_active_devices <= 0:
            return
        active = await self._refresh_tokens.list_active(user_id)
        excess = len(active) - self._max_active_devices + 1
        if excess <= 0:
            return
        revoked = await self._refresh_tokens.revoke(
            [token.id for token in active[:excess]], RevocationReason.DEVICE_LIMIT
        )
        self._logger.info(
            "Device limit reached, oldest sessions revoked",
            user_id=str(user_id),
            limit=self._max_active_devices,
            revoked=revoked,
        )

    # ------------------------------------------------------------------
    # Access token blacklist
    # ------------------------------------------------------------------

    async def blacklist(self, jti: str, ttl: int) -> bool:
        """Blacklist an access token id for ttl seconds.

        ttl must cover the token's remaining lifetime; blacklist_claims
        computes it from the token itself.

        Returns:
            True if the entry was written.
        """
        return await self._blacklist.add(jti, ttl)

    async def blacklist_claims(self, claims: AccessClaims) -> bool:
        """Blacklist a verified access token until it expires (plus leeway).

        Already-expired tokens are skipped: verification rejects them anyway.
        """
        return await self._blacklist.add_claims(claims)

    async def is_blacklisted(self, jti: str) -> bool:
        """Whether an access token id is blacklisted (False on cache failure)."""
        return await self._blacklist.contains(jti)

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    async def cleanup_expired(self) -> int:
        """Delete refresh tokens expired longer than the retention window.

        Returns:
            Number of rows removed.
        """
        cutoff = datetime.now(UTC) - self._retention
        removed = await self._refresh_tokens.delete_expired(cutoff)
        self._logger.info(
            "Expired refresh tokens purged", removed=removed, cutoff=cutoff.isoformat()
        )
        return removed

    def _pair(self, principal: Principal, refresh: RefreshTokenData) -> TokenPair:
        access_token, access_expires_at = self._jwt.generate_access_token(
            principal, refresh.device_id
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh.token,
            access_expires_at=access_expires_at,
            refresh_expires_at=refresh.expires_at,
            expires_in=int(self._jwt.lifetime.total_seconds()),
            device_id=refresh.device_id,
        )

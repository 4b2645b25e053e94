"""
Identity Reconciler.

Orchestrates login, refresh, profile update, logout and the explicit
phone request across the three identity sources:

- the host platform (via ``PermissionGateway``),
- the authoritative remote record (via ``RemoteProfileStore``),
- the on-device cache (via ``LocalCacheStore``).

Precedence policy
-----------------
All flows resolve their result through :func:`resolve_profile`:

    remote  >  freshly gathered platform data  >  local cache

The first present source wins wholesale, and only sources whose ``id``
matches the platform's active identity are eligible.  A cache holding a
different identity is stale and gets discarded.

Failure policy
--------------
- Login: a remote upsert failure is logged; the gathered profile is
  cached and returned.
- Refresh: remote failure or a missing record falls back to the cache and
  never raises.
- Update: remote failure is raised; nothing local changes.
- Logout: never raises.

Steps within one call run strictly in order.  Calls are not coalesced;
concurrent callers get last-write-wins on the cache.
"""

from __future__ import annotations

from typing import Callable, Optional

from storefront_identity.exceptions import (
    IdentityUnavailable,
    LoginDeclined,
    NoActiveSession,
    PermissionDenied,
    RemoteUnavailable,
)
from storefront_identity.logger import StructuredLogger
from storefront_identity.models.auth_models import (
    PhoneResolution,
    UpdateProfileRequest,
)
from storefront_identity.models.enums import PlatformErrorKind
from storefront_identity.models.user import UserProfile
from storefront_identity.repositories.profile_repository import RemoteProfileStore
from storefront_identity.services.base_service import BaseService
from storefront_identity.services.local_cache import LocalCacheStore
from storefront_identity.services.permission_gateway import PermissionGateway
from storefront_identity.services.phone_resolver import TokenToPhoneResolver
from storefront_identity.utils.audit import log_audit_event, utc_now_iso


def resolve_profile(
    expected_id: Optional[str],
    *,
    remote: Optional[UserProfile] = None,
    gathered: Optional[UserProfile] = None,
    cached: Optional[UserProfile] = None,
    touched_at: Optional[str] = None,
) -> Optional[UserProfile]:
    """Pick the profile to adopt according to remote > gathered > cached.

    Args:
        expected_id: The platform's active identity.  Sources with a
            different ``id`` are ignored.  ``None`` disables the check.
        remote: Record returned by the remote store.
        gathered: Profile assembled from platform reads.
        cached: Profile loaded from the local cache.
        touched_at: When given, replaces ``last_login`` on the result.

    Returns:
        The winning profile, or ``None`` if no eligible source exists.
    """
    for candidate in (remote, gathered, cached):
        if candidate is None:
            continue
        if expected_id is not None and candidate.id != expected_id:
            continue
        if touched_at is not None:
            return candidate.with_last_login(touched_at)
        return candidate
    return None


class IdentityReconciler(BaseService):
    """Login / refresh / update / logout flows over the three identity sources.

    Parameters
    ----------
    gateway:
        Host-platform permission gateway.
    remote_store:
        Authoritative profile repository.
    cache:
        On-device profile cache.
    phone_resolver:
        Token-to-phone exchange used by :meth:`request_phone`.
    logger:
        Structured logger.
    clock:
        Returns the current timestamp string; injectable for tests.
    """

    def __init__(
        self,
        gateway: PermissionGateway,
        remote_store: RemoteProfileStore,
        cache: LocalCacheStore,
        phone_resolver: TokenToPhoneResolver,
        logger: StructuredLogger,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        super().__init__(logger)
        self._gateway: PermissionGateway = gateway
        self._remote: RemoteProfileStore = remote_store
        self._cache: LocalCacheStore = cache
        self._phone_resolver: TokenToPhoneResolver = phone_resolver
        self._clock: Callable[[], str] = clock

    @property
    def cache(self) -> LocalCacheStore:
        return self._cache

    # ==================================================================
    # Login
    # ==================================================================

    def login(self) -> UserProfile:
        """Log the user in and return the resolved profile.

        The phone number is deliberately not fetched here: the upsert sends
        ``phone=None`` so a number already stored remotely is preserved.

        Raises:
            IdentityUnavailable: No usable platform identity.
            LoginDeclined: The user declined the login dialog.
        """
        self._logger.info("Starting login.")

        platform_id: str = self._gateway.fetch_platform_id()
        basic_info = self._gateway.fetch_basic_info(platform_id)
        if basic_info.id != platform_id:
            self._logger.warning(
                "Basic info id %s differs from platform id %s; using platform id.",
                basic_info.id,
                platform_id,
            )

        login_at: str = self._clock()
        gathered = UserProfile(
            id=platform_id,
            name=basic_info.name,
            avatar=basic_info.avatar,
            last_login=login_at,
        )

        remote: Optional[UserProfile] = None
        try:
            remote = self._remote.upsert_by_platform_id(
                platform_id,
                name=gathered.name,
                avatar=gathered.avatar,
                phone=None,
                last_login=login_at,
            )
        except RemoteUnavailable as exc:
            self._logger.warning(
                "Remote sync failed during login for %s; keeping platform data: %s",
                platform_id,
                exc.original_error or exc,
            )

        resolved = resolve_profile(platform_id, remote=remote, gathered=gathered) or gathered

        self._cache.save(resolved)

        log_audit_event(
            logger=self._logger,
            action="LOGIN",
            entity_type="UserProfile",
            entity_id=resolved.id,
            user_id=resolved.id,
            details={
                "remote_synced": remote is not None,
                "basic_info_degraded": basic_info.is_degraded,
            },
        )
        return resolved

    # ==================================================================
    # Refresh
    # ==================================================================

    def refresh(self) -> Optional[UserProfile]:
        """Re-read the authoritative record, falling back to the cache.

        Never raises for remote failures.  A cached profile that belongs
        to a different platform identity is cleared instead of returned.
        """
        cached: Optional[UserProfile] = self._cache.load()

        try:
            platform_id: str = self._gateway.fetch_platform_id()
        except (IdentityUnavailable, LoginDeclined) as exc:
            self._logger.warning(
                "Platform identity unavailable during refresh; serving cache: %s", exc,
            )
            return cached

        remote: Optional[UserProfile] = None
        try:
            remote = self._remote.fetch_by_platform_id(platform_id)
        except RemoteUnavailable as exc:
            self._logger.warning(
                "Remote read failed during refresh for %s; serving cache: %s",
                platform_id,
                exc.original_error or exc,
            )

        if cached is not None and cached.id != platform_id:
            self._logger.warning(
                "Cached profile %s does not match platform identity %s; discarding.",
                cached.id,
                platform_id,
            )
            self._cache.clear()
            cached = None

        resolved = resolve_profile(platform_id, remote=remote, cached=cached)
        if resolved is not None and resolved is remote:
            self._cache.save(remote)
            self._logger.info("Profile %s refreshed from remote store.", platform_id)
        elif resolved is not None:
            self._logger.info("Serving cached profile for %s.", platform_id)
        return resolved

    # ==================================================================
    # Update
    # ==================================================================

    def update_profile(
        self,
        request: UpdateProfileRequest,
        current: Optional[UserProfile] = None,
    ) -> UserProfile:
        """Persist user-edited fields remotely, then locally.

        Args:
            request: Fields to change; ``None`` leaves a field untouched.
            current: The session's user.  Falls back to the cached profile,
                which is only used if it belongs to the active platform
                identity.

        Raises:
            NoActiveSession: Nobody is logged in.
            IdentityUnavailable: The cached profile could not be checked
                against the platform identity.
            LoginDeclined: The user declined the login dialog.
            RemoteUnavailable: The remote store did not confirm the change.
        """
        base: Optional[UserProfile] = current or self._cached_profile_for_active_identity()
        if base is None:
            raise NoActiveSession()

        if request.email is not None:
            self._logger.info(
                "Email updates are not persisted remotely; ignoring for %s.", base.id,
            )

        remote = self._remote.update_profile(
            base.id, name=request.name, phone=request.phone,
        )

        touched_at: str = self._clock()
        resolved = resolve_profile(
            base.id, remote=remote, gathered=base, touched_at=touched_at,
        ) or base.with_last_login(touched_at)

        self._cache.save(resolved)

        changed: list[str] = [
            field for field in ("name", "phone") if getattr(request, field) is not None
        ]
        log_audit_event(
            logger=self._logger,
            action="PROFILE_UPDATE",
            entity_type="UserProfile",
            entity_id=resolved.id,
            user_id=resolved.id,
            details={"fields": ",".join(changed)},
        )
        return resolved

    def _cached_profile_for_active_identity(self) -> Optional[UserProfile]:
        """Return the cached profile if it belongs to the platform's user.

        A cache naming another identity is cleared and ``None`` returned.
        """
        cached: Optional[UserProfile] = self._cache.load()
        if cached is None:
            return None

        platform_id: str = self._gateway.fetch_platform_id()
        if cached.id != platform_id:
            self._logger.warning(
                "Cached profile %s does not match platform identity %s; "
                "discarding instead of updating.",
                cached.id,
                platform_id,
            )
            self._cache.clear()
            return None
        return cached

    # ==================================================================
    # Logout
    # ==================================================================

    def logout(self, current: Optional[UserProfile] = None) -> None:
        """Clear the local cache and login flag.  The remote record is kept."""
        user_id: str = current.id if current is not None else "unknown"
        self._cache.clear()
        log_audit_event(
            logger=self._logger,
            action="LOGOUT",
            entity_type="UserProfile",
            entity_id=user_id,
            user_id=user_id,
        )

    # ==================================================================
    # Phone
    # ==================================================================

    def request_phone(self) -> PhoneResolution:
        """Run the explicit, user-triggered phone permission flow.

        The returned number is not persisted; callers save it through
        :meth:`update_profile`.  Check ``is_placeholder`` before trusting
        it.

        Raises:
            PermissionDenied: The user refused the phone permission.
            PlatformError: Any other platform failure.
        """
        token: Optional[str] = self._gateway.fetch_phone_token()
        if token is None:
            raise PermissionDenied(
                "Phone number permission was not granted.",
                kind=PlatformErrorKind.SCOPE_DENIED,
            )
        resolution = self._phone_resolver.resolve(token)
        self._logger.info(
            "Phone token resolved (placeholder=%s).", resolution.is_placeholder,
        )
        return resolution

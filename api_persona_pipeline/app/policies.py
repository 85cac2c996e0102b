"""
Access capabilities: authentication, authorization and rate limiting.

Each capability takes a RequestDescriptor (a framework-free view of the
incoming request) and returns a decision object. main.py adapts FastAPI
requests to descriptors and decisions to HTTP responses; the analyzer never
sees any of this.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import jwt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestDescriptor:
    client_key: str
    path: str
    method: str
    authorization: Optional[str] = None
    resource_id: Optional[str] = None


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str = "authenticated"
    blocked: bool = False
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role.lower() == "admin"


@dataclass(frozen=True)
class AuthDecision:
    allowed: bool
    identity: Optional[Identity] = None
    reason: str = ""


UserLookup = Callable[[str], Optional[Identity]]
OwnerLookup = Callable[[str], Optional[str]]


class BearerTokenAuthenticator:
    """
    Verifies `Authorization: Bearer <jwt>` headers signed with HS256.

    user_lookup resolves the token's user id to an Identity (the user store);
    without one, the identity is read from the token claims.
    """

    def __init__(self, secret: str, user_lookup: Optional[UserLookup] = None, algorithms=("HS256",)):
        self.secret = secret
        self.user_lookup = user_lookup
        self.algorithms = list(algorithms)

    @staticmethod
    def identity_from_claims(claims: Dict[str, Any]) -> Optional[Identity]:
        user_id = claims.get("id", claims.get("sub"))
        if user_id is None:
            return None
        return Identity(
            user_id=str(user_id),
            role=str(claims.get("role") or "authenticated"),
            blocked=bool(claims.get("blocked", False)),
            email=claims.get("email"),
        )

    def authenticate(self, request: RequestDescriptor) -> AuthDecision:
        header = request.authorization
        if not header:
            logger.warning(f"Authentication failed: No authorization header (path={request.path}, ip={request.client_key})")
            return AuthDecision(False, reason="No authorization header")

        if not header.startswith("Bearer "):
            logger.warning(f"Authentication failed: Invalid authorization header format (path={request.path}, ip={request.client_key})")
            return AuthDecision(False, reason="Invalid authorization header format")

        token = header[len("Bearer "):].strip()
        try:
            claims = jwt.decode(token, self.secret, algorithms=self.algorithms)
        except jwt.PyJWTError as e:
            logger.warning(f"Authentication failed: Invalid or expired token ({e}, path={request.path})")
            return AuthDecision(False, reason="Invalid or expired token")

        user_id = claims.get("id", claims.get("sub"))
        if user_id is None:
            return AuthDecision(False, reason="Token has no user id")

        if self.user_lookup is None:
            identity = self.identity_from_claims(claims)
        else:
            identity = self.user_lookup(str(user_id))

        if identity is None:
            logger.warning(f"Authentication failed: User not found (user_id={user_id}, path={request.path})")
            return AuthDecision(False, reason="User not found")

        if identity.blocked:
            logger.warning(f"Authentication failed: User is blocked (user_id={identity.user_id}, path={request.path})")
            return AuthDecision(False, reason="User is blocked")

        logger.info(f"User authenticated successfully (user_id={identity.user_id}, role={identity.role}, path={request.path})")
        return AuthDecision(True, identity=identity)


class OwnerOrAdminAuthorizer:
    """
    Admins may access anything; other users only resources they own.

    Requests that name no resource are decided by `allow_without_resource`
    (callers are expected to filter by user further down).
    """

    def __init__(self, owner_lookup: Optional[OwnerLookup] = None, allow_without_resource: bool = True):
        self.owner_lookup = owner_lookup
        self.allow_without_resource = allow_without_resource

    def authorize(self, request: RequestDescriptor, identity: Optional[Identity]) -> AuthDecision:
        if identity is None:
            logger.warning(f"Access denied: User not authenticated (path={request.path}, ip={request.client_key})")
            return AuthDecision(False, reason="User not authenticated")

        if identity.is_admin:
            logger.info(f"Access granted: Admin user (user_id={identity.user_id}, path={request.path})")
            return AuthDecision(True, identity=identity)

        if not request.resource_id:
            if not self.allow_without_resource:
                logger.warning(f"Access denied: no resource id and open access disabled (path={request.path})")
            return AuthDecision(self.allow_without_resource, identity=identity,
                                reason="" if self.allow_without_resource else "Resource id required")

        if self.owner_lookup is None:
            logger.warning(f"Access denied: no resource store configured (path={request.path})")
            return AuthDecision(False, identity=identity, reason="Resource not found")

        try:
            owner_id = self.owner_lookup(request.resource_id)
        except Exception as e:
            logger.error(f"Error checking resource ownership: {e} (resource_id={request.resource_id}, path={request.path})")
            return AuthDecision(False, identity=identity, reason="Ownership check failed")

        if owner_id is None:
            logger.warning(f"Access denied: Resource not found (resource_id={request.resource_id}, path={request.path})")
            return AuthDecision(False, identity=identity, reason="Resource not found")

        if str(owner_id) == identity.user_id:
            logger.info(f"Access granted: Resource owner (resource_id={request.resource_id}, user_id={identity.user_id})")
            return AuthDecision(True, identity=identity)

        logger.warning(f"Access denied: User does not own resource (resource_id={request.resource_id}, user_id={identity.user_id})")
        return AuthDecision(False, identity=identity, reason="User does not own resource")


@dataclass(frozen=True)
class Tier:
    name: str
    max_requests: int
    window_seconds: float
    skip_successful: bool = False


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    tier: str
    limit: int = 0
    remaining: int = 0
    reset_after: float = 0.0
    delay_seconds: float = 0.0

    @property
    def retry_after(self) -> int:
        return int(round(self.reset_after))


@dataclass
class _Window:
    started: float
    length: float
    hits: int = 0

    def expired(self, now: float) -> bool:
        return now - self.started >= self.length


SKIP_PATHS = ("/health", "/favicon.ico", "/documentation", "/_health")
STRICT_MARKERS = ("/auth/", "/users-permissions/", "/webhook/")
AUTH_MARKERS = ("/auth/local", "/auth/register")


class RateLimiter:
    """
    Fixed-window request counting per (tier, client key), plus a gradual
    slow-down once a client passes `delay_after` requests in a window.

    Counters live in memory and are guarded by a lock; expired windows are
    swept at most once per shortest window length. `clock` is injectable for
    tests.
    """

    def __init__(
        self,
        window_seconds: float = 15 * 60,
        general_max: int = 100,
        strict_max: int = 5,
        auth_max: int = 10,
        delay_after: int = 50,
        delay_step: float = 0.5,
        max_delay: float = 20.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.tiers = {
            "general": Tier("general", general_max, window_seconds),
            "strict": Tier("strict", strict_max, 15 * 60, skip_successful=True),
            "auth": Tier("auth", auth_max, 15 * 60, skip_successful=True),
        }
        self.window_seconds = window_seconds
        self.delay_after = delay_after
        self.delay_step = delay_step
        self.max_delay = max_delay
        self.clock = clock
        self._windows: Dict[Tuple[str, str], _Window] = {}
        self._lock = threading.Lock()
        self._sweep_every = min([window_seconds] + [t.window_seconds for t in self.tiers.values()])
        self._next_sweep = clock() + self._sweep_every

    @staticmethod
    def tier_for(path: str) -> Optional[str]:
        if any(path.startswith(p) for p in SKIP_PATHS):
            return None
        if any(m in path for m in AUTH_MARKERS):
            return "auth"
        if any(m in path for m in STRICT_MARKERS):
            return "strict"
        return "general"

    def _window(self, key: Tuple[str, str], window_seconds: float, now: float) -> _Window:
        window = self._windows.get(key)
        if window is None or window.expired(now):
            window = _Window(started=now, length=window_seconds)
            self._windows[key] = window
        return window

    def _sweep(self, now: float) -> None:
        if now < self._next_sweep:
            return
        stale = [key for key, window in self._windows.items() if window.expired(now)]
        for key in stale:
            del self._windows[key]
        self._next_sweep = now + self._sweep_every
        if stale:
            logger.debug(f"Dropped {len(stale)} expired rate limit windows")

    def _slow_down(self, client_key: str, now: float) -> float:
        window = self._window(("speed", client_key), self.window_seconds, now)
        window.hits += 1
        over = window.hits - self.delay_after
        if over <= 0:
            return 0.0
        return min(over * self.delay_step, self.max_delay)

    def check(self, client_key: str, path: str, method: str) -> RateLimitDecision:
        tier_name = self.tier_for(path)
        if tier_name is None:
            return RateLimitDecision(True, tier="skip")

        tier = self.tiers[tier_name]
        now = self.clock()
        with self._lock:
            self._sweep(now)
            window = self._window((tier.name, client_key), tier.window_seconds, now)
            reset_after = max(0.0, tier.window_seconds - (now - window.started))
            if window.hits >= tier.max_requests:
                logger.warning(f"Rate limit exceeded (tier={tier.name}, client={client_key}, {method} {path})")
                return RateLimitDecision(False, tier=tier.name, limit=tier.max_requests,
                                         remaining=0, reset_after=reset_after)
            window.hits += 1
            remaining = tier.max_requests - window.hits
            delay = self._slow_down(client_key, now)

        return RateLimitDecision(
            True,
            tier=tier.name,
            limit=tier.max_requests,
            remaining=remaining,
            reset_after=reset_after,
            delay_seconds=delay,
        )

    def release(self, client_key: str, path: str) -> None:
        """Refund one hit for a successful request on tiers that skip those."""
        tier_name = self.tier_for(path)
        if tier_name is None or not self.tiers[tier_name].skip_successful:
            return
        with self._lock:
            window = self._windows.get((tier_name, client_key))
            if window is not None and window.hits > 0:
                window.hits -= 1

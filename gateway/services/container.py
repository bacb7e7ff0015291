"""Gateway service container.

All stateful collaborators of the request pipeline are built here, once per
application, from ``Settings``. Request dependencies reach them through
``request.app.state.gateway``; nothing is held in module globals, so every
test app gets fresh limiter windows, cache and blocklist.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx

from gateway.adapters.rate_limit import AbstractRateLimiter, FixedWindowRateLimiter
from gateway.adapters.storage import JsonFileBlocklistStore
from gateway.adapters.upstream import create_upstream_client
from gateway.core.config import Settings
from gateway.services.blocklist import Blocklist
from gateway.services.proxy_service import ProxyForwarder
from gateway.services.scheduler import PeriodicTask
from gateway.services.violations import NoopViolationSink, ViolationSink, ViolationTracker
from gateway.utils.response_cache import ResponseCache

logger = logging.getLogger(__name__)

GENERAL = "general"
PROXY = "proxy"
AUTH = "auth"


@dataclass
class GatewayServices:
    """Everything the request pipeline needs, with lifecycle hooks.

    Attributes:
        settings: Settings the container was built from.
        blocklist: Persistent blocklist.
        violations: Sink receiving rate limit breaches (tracker or no-op).
        limiters: One fixed-window limiter per route class.
        cache: Response cache for upstream GET calls.
        forwarder: Upstream proxy forwarder.
        tasks: Periodic jobs started on startup and cancelled on shutdown.
    """

    settings: Settings
    blocklist: Blocklist
    violations: ViolationSink
    limiters: dict[str, AbstractRateLimiter]
    cache: ResponseCache
    forwarder: ProxyForwarder
    tasks: list[PeriodicTask] = field(default_factory=list)

    @property
    def tracker(self) -> ViolationTracker | None:
        if isinstance(self.violations, ViolationTracker):
            return self.violations
        return None

    def housekeeping(self) -> dict[str, int]:
        """Expire cache entries, violation records and stale rate limit windows."""
        tracker = self.tracker
        return {
            "cache_expired": self.cache.purge_expired(),
            "violations_expired": tracker.purge_expired() if tracker else 0,
            "windows_swept": sum(limiter.sweep() for limiter in self.limiters.values()),
        }

    def cleanup_blocklist(self) -> int:
        tracker = self.tracker
        if tracker is None:
            return 0
        return self.blocklist.cleanup(tracker)

    async def startup(self) -> None:
        for task in self.tasks:
            task.start()
        logger.info(
            "gateway.started",
            extra={
                "app_env": self.settings.app_env,
                "blocked_count": len(self.blocklist),
                "blocking_enabled": self.tracker is not None,
                "cache_enabled": self.settings.cache.enabled,
            },
        )

    async def shutdown(self) -> None:
        for task in self.tasks:
            await task.stop()
        await self.forwarder.close()
        logger.info("gateway.stopped")


def build_gateway_services(
    settings: Settings,
    *,
    upstream_transport: httpx.AsyncBaseTransport | None = None,
) -> GatewayServices:
    """Build the service container from configuration.

    Args:
        settings: Application settings.
        upstream_transport: Optional httpx transport for the upstream client
            (tests pass ``httpx.MockTransport``).

    Returns:
        GatewayServices: Container with periodic tasks registered but not started.
    """
    blocklist = Blocklist(
        JsonFileBlocklistStore(settings.blocklist.file_path),
        block_duration_seconds=settings.blocklist.block_duration_seconds,
    )

    violations: ViolationSink
    if settings.blocklist.enabled:
        violations = ViolationTracker(
            blocklist,
            threshold=settings.blocklist.threshold,
            ttl_seconds=settings.blocklist.violation_ttl_seconds,
            exempt_loopback=not settings.is_production,
        )
    else:
        violations = NoopViolationSink()

    limits = settings.rate_limit
    limiters: dict[str, AbstractRateLimiter] = {
        GENERAL: FixedWindowRateLimiter(
            limit=limits.general_max_requests,
            window_seconds=limits.general_window_seconds,
            name=GENERAL,
        ),
        PROXY: FixedWindowRateLimiter(
            limit=limits.proxy_max_requests,
            window_seconds=limits.proxy_window_seconds,
            name=PROXY,
        ),
        AUTH: FixedWindowRateLimiter(
            limit=limits.auth_max_requests,
            window_seconds=limits.auth_window_seconds,
            name=AUTH,
        ),
    }

    cache = ResponseCache(
        ttl_seconds=settings.cache.ttl_seconds,
        max_entries=settings.cache.max_entries,
    )

    forwarder = ProxyForwarder(
        create_upstream_client(settings.upstream, transport=upstream_transport),
        base_url=settings.upstream.base_url,
        secret_token=settings.upstream.secret_token,
        expose_error_detail=not settings.is_production,
    )

    services = GatewayServices(
        settings=settings,
        blocklist=blocklist,
        violations=violations,
        limiters=limiters,
        cache=cache,
        forwarder=forwarder,
    )
    services.tasks.append(
        PeriodicTask(
            "housekeeping",
            services.housekeeping,
            interval_seconds=settings.cache.check_period_seconds,
        )
    )
    if services.tracker is not None:
        services.tasks.append(
            PeriodicTask(
                "blocklist_cleanup",
                services.cleanup_blocklist,
                interval_seconds=settings.blocklist.cleanup_interval_seconds,
            )
        )
    return services

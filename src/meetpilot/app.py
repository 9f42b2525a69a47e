"""Summary: Application factory wiring core services.

Importance: Centralizes dependency creation for CLI and API layers.
Alternatives: Instantiate services manually in each entrypoint.
"""

from __future__ import annotations

from dataclasses import dataclass

from meetpilot.availability import AvailabilityEngine
from meetpilot.config import AppConfig
from meetpilot.coordinator import ConcurrencyCoordinator
from meetpilot.detector import KeywordMeetingDetector
from meetpilot.notifications import LogNotifier, NotificationDispatcher, Notifier
from meetpilot.preferences import PreferenceCache
from meetpilot.services import (
    AvailabilityService,
    CalendarSyncService,
    FriendshipService,
    ProposalService,
    UserService,
)
from meetpilot.storage.sqlite_store import SqliteStore


@dataclass(frozen=True)
class AppServices:
    """Summary: Bundle of core services for MeetPilot.

    Importance: All services share one store, one coordinator, and one cache, so
    critical sections hold across every entrypoint in the process.
    Alternatives: Use a dependency injection container.
    """

    users: UserService
    availability: AvailabilityService
    proposals: ProposalService
    friendships: FriendshipService
    calendar_sync: CalendarSyncService
    coordinator: ConcurrencyCoordinator
    notifications: NotificationDispatcher
    store: SqliteStore
    config: AppConfig


def build_services(config: AppConfig, notifier: Notifier | None = None) -> AppServices:
    """Summary: Build core services from configuration.

    Importance: Provides a single construction path for the application.
    Alternatives: Instantiate services directly within the CLI entrypoint.
    """

    store = SqliteStore(config.db_path)
    store.initialize()
    coordinator = ConcurrencyCoordinator(
        external_pool_size=config.external_call_pool_size,
        default_lock_timeout=config.lock_timeout_seconds,
    )
    preferences = PreferenceCache(ttl_seconds=config.preference_cache_ttl_seconds)
    notifications = NotificationDispatcher(notifier or LogNotifier())
    availability = AvailabilityService(
        store=store,
        engine=AvailabilityEngine(skip_weekends=config.skip_weekends),
        preferences=preferences,
        window_days=config.availability_window_days,
        default_duration_minutes=config.default_duration_minutes,
    )
    return AppServices(
        users=UserService(store=store),
        availability=availability,
        proposals=ProposalService(
            store=store,
            availability=availability,
            coordinator=coordinator,
            notifications=notifications,
            default_locations=tuple(config.default_locations),
            lock_timeout=config.lock_timeout_seconds,
        ),
        friendships=FriendshipService(
            store=store,
            coordinator=coordinator,
            notifications=notifications,
            lock_timeout=config.lock_timeout_seconds,
            invitation_ttl_days=config.invitation_ttl_days,
            app_url=config.app_url,
        ),
        calendar_sync=CalendarSyncService(
            store=store,
            coordinator=coordinator,
            detector=KeywordMeetingDetector(tuple(config.meeting_keywords)),
            debounce_ms=config.sync_debounce_ms,
            lock_timeout=config.sync_lock_timeout_seconds,
        ),
        coordinator=coordinator,
        notifications=notifications,
        store=store,
        config=config,
    )

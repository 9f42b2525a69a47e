"""Summary: Notification interfaces for meeting and friendship events.

Importance: Decouples the scheduling core from outbound delivery channels.
Alternatives: Call an email SDK directly from the services.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Summary: Abstract interface for outbound notifications.

    Importance: Services treat delivery as best-effort and never wait on its success.
    Alternatives: Push notifications through a message queue only.
    """

    @abstractmethod
    def send_meeting_proposal(
        self, to_email: str, proposer_name: str, time: datetime, location: str | None
    ) -> None:
        """Summary: Tell the invitee about a new proposal.

        Importance: Prompts the counterpart to respond.
        Alternatives: Let the invitee poll for pending proposals.
        """

    @abstractmethod
    def send_meeting_accepted(
        self, to_email: str, accepter_name: str, time: datetime, location: str | None
    ) -> None:
        """Summary: Tell the proposer that the meeting was confirmed.

        Importance: Closes the negotiation loop for the proposer.
        Alternatives: Show confirmation only in the UI.
        """

    @abstractmethod
    def send_friend_invitation(
        self, to_email: str, inviter_name: str, invitation_url: str
    ) -> None:
        """Summary: Invite someone without an account to join.

        Importance: Lets friend requests reach people who have not signed up yet.
        Alternatives: Require both users to be registered.
        """


class LogNotifier(Notifier):
    """Summary: Notifier that writes notifications to the application log.

    Importance: Default for local runs where no delivery channel is configured.
    Alternatives: Drop notifications silently.
    """

    def send_meeting_proposal(
        self, to_email: str, proposer_name: str, time: datetime, location: str | None
    ) -> None:
        logger.info(
            "Meeting proposal for %s from %s at %s (%s).",
            to_email,
            proposer_name,
            time.isoformat(),
            location or "location to be decided",
        )

    def send_meeting_accepted(
        self, to_email: str, accepter_name: str, time: datetime, location: str | None
    ) -> None:
        logger.info(
            "Meeting accepted by %s for %s at %s (%s).",
            accepter_name,
            to_email,
            time.isoformat(),
            location or "location to be decided",
        )

    def send_friend_invitation(
        self, to_email: str, inviter_name: str, invitation_url: str
    ) -> None:
        logger.info("Friend invitation for %s from %s: %s", to_email, inviter_name, invitation_url)


class NotificationDispatcher:
    """Summary: Runs notifier calls as fire-and-forget background tasks.

    Importance: Keeps delivery outside critical sections and off the success path.
    Alternatives: Await notifications inline and ignore their errors.
    """

    def __init__(self, notifier: Notifier) -> None:
        self._notifier = notifier
        self._pending: set[asyncio.Task] = set()

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    def dispatch(self, name: str, *args: Any) -> asyncio.Task:
        """Summary: Schedule notifier.<name>(*args) in a worker thread.

        Importance: Failures are logged and never reach the caller.
        Alternatives: Push onto a durable outbound queue.
        """

        method = getattr(self._notifier, name)
        return self._schedule(name, method, args)

    def dispatch_deferred(
        self, name: str, resolve: Callable[[], tuple[Any, ...] | None]
    ) -> asyncio.Task:
        """Summary: Like dispatch, but build the arguments inside the background task.

        Importance: Lookups that feed a notification (recipient rows, display names)
        can fail without affecting the already committed operation.
        Alternatives: Resolve arguments on the caller's path.
        """

        method = getattr(self._notifier, name)

        def deliver() -> None:
            args = resolve()
            if args is not None:
                method(*args)

        return self._schedule(name, deliver, ())

    def _schedule(
        self, name: str, method: Callable[..., None], args: tuple[Any, ...]
    ) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._deliver(name, method, args))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled notification to finish."""

        while self._pending:
            await asyncio.gather(*list(self._pending))

    @staticmethod
    async def _deliver(name: str, method: Callable[..., None], args: tuple[Any, ...]) -> None:
        try:
            await asyncio.to_thread(method, *args)
        except Exception:
            logger.exception("Notification %s failed.", name)

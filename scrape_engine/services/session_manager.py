"""Session manager for tracking session lifecycle."""
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Union
import uuid

import psutil

from ..config import settings
from ..exceptions import CapacityError, InvalidTransitionError, SessionNotFoundError
from ..models import (
    EventSubscription,
    EventType,
    MemorySnapshot,
    MemoryUsage,
    PerformanceMetrics,
    ProgressTracker,
    RawRecord,
    ScrapingEvent,
    Session,
    SessionConfig,
    SessionMetadata,
    SessionStatus,
)
from ..utils.logger import logger
from ..utils.periodic import PeriodicTask

EventCallback = Callable[[ScrapingEvent], None]

# Allowed moves for set_status. Terminal states have no way out.
TRANSITIONS: Dict[SessionStatus, frozenset] = {
    SessionStatus.CREATED: frozenset(
        {SessionStatus.CONFIGURING, SessionStatus.RUNNING, SessionStatus.FAILED}
    ),
    SessionStatus.CONFIGURING: frozenset(
        {SessionStatus.CONFIGURING, SessionStatus.RUNNING, SessionStatus.FAILED}
    ),
    SessionStatus.RUNNING: frozenset(
        {SessionStatus.PAUSED, SessionStatus.COMPLETED, SessionStatus.FAILED}
    ),
    SessionStatus.PAUSED: frozenset(
        {SessionStatus.RUNNING, SessionStatus.COMPLETED, SessionStatus.FAILED}
    ),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.FAILED: frozenset(),
    SessionStatus.EXPIRED: frozenset(),
}


def is_expired(session: Session, now: datetime) -> bool:
    """True once the fixed deadline has passed, whatever the stored status."""
    return now > session.expires_at


def memory_snapshot() -> MemorySnapshot:
    info = psutil.Process().memory_info()
    return MemorySnapshot(rss=info.rss, vms=info.vms)


class SessionManager:
    """Owns every session: configuration, progress, data buffers and status.

    Expiry is evaluated lazily on every read. A session past its deadline is
    flipped to ``expired`` and reported as absent, but stays in the map until
    the periodic sweep (or an explicit ``cleanup()``) deletes it.
    """

    def __init__(
        self,
        max_sessions: Optional[int] = None,
        session_timeout: Optional[timedelta] = None,
        cleanup_interval: Optional[float] = None,
        retention: Optional[timedelta] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the session manager.

        Args:
            max_sessions: Ceiling on live sessions. Defaults to settings.max_sessions
            session_timeout: Lifetime of a session from creation
            cleanup_interval: Seconds between background sweeps
            retention: How long finished sessions are kept after their last update
            clock: Source of the current time
        """
        self.max_sessions = max_sessions if max_sessions is not None else settings.max_sessions
        self.session_timeout = (
            session_timeout
            if session_timeout is not None
            else timedelta(seconds=settings.session_timeout_seconds)
        )
        self.retention = (
            retention
            if retention is not None
            else timedelta(hours=settings.session_retention_hours)
        )
        self.clock = clock
        self._sessions: Dict[str, Session] = {}
        self._subscriptions: Dict[str, EventSubscription] = {}
        self._sweeper = PeriodicTask(
            "session cleanup",
            cleanup_interval if cleanup_interval is not None else settings.cleanup_interval_seconds,
            self.cleanup,
        )

    def generate_session_id(self) -> str:
        """Generate a unique session ID with timestamp.

        Returns:
            Session ID in format: YYYYMMDD_HHMMSS_{uuid}
        """
        timestamp = self.clock().strftime("%Y%m%d_%H%M%S")
        return f"{timestamp}_{uuid.uuid4().hex[:8]}"

    def create_session(
        self,
        config: Optional[Union[SessionConfig, Dict[str, Any]]] = None,
        description: Optional[str] = None,
        tags: Optional[List[str]] = None,
        user_id: Optional[str] = None,
    ) -> Session:
        """Create a new session in ``created`` state.

        Raises:
            CapacityError: If the live session count has reached max_sessions
        """
        now = self.clock()
        live = sum(1 for s in self._sessions.values() if not self._check_expiry(s, now))
        if live >= self.max_sessions:
            raise CapacityError(f"Maximum session limit reached ({self.max_sessions})")

        if not isinstance(config, SessionConfig):
            config = SessionConfig(**(config or {}))

        memory = memory_snapshot()
        session = Session(
            id=self.generate_session_id(),
            configuration=config,
            progress=ProgressTracker(
                last_update=now,
                performance=PerformanceMetrics(
                    start_time=now,
                    memory_usage=MemoryUsage(start=memory, peak=memory, current=memory),
                ),
            ),
            metadata=SessionMetadata(
                user_id=user_id,
                user_agent=config.user_agent or settings.user_agent,
                start_time=now,
                tags=tags or [],
                description=description,
                version=settings.engine_version,
                environment=settings.environment,
            ),
            created_at=now,
            updated_at=now,
            expires_at=now + self.session_timeout,
        )

        self._sessions[session.id] = session
        logger.info(f"Created session {session.id}")
        self.publish(EventType.SESSION_CREATED, session.id, {"session_id": session.id})
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        """Get a live session.

        Returns:
            The session, or None if it is unknown or has expired
        """
        session = self._sessions.get(session_id)
        if session is None or self._check_expiry(session, self.clock()):
            return None
        return session

    def _check_expiry(self, session: Session, now: datetime) -> bool:
        if not is_expired(session, now):
            return False
        if session.status != SessionStatus.EXPIRED:
            session.status = SessionStatus.EXPIRED
            session.updated_at = now
            logger.info(f"Session {session.id} expired")
        return True

    def _require(self, session_id: str) -> Session:
        session = self.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def update_config(
        self, session_id: str, config: Union[SessionConfig, Dict[str, Any]]
    ) -> Session:
        """Merge a partial configuration into the session.

        A ``created`` session moves to ``configuring``.
        """
        session = self._require(session_id)
        updates = config.model_dump(exclude_unset=True) if isinstance(config, SessionConfig) else config
        session.configuration = SessionConfig.model_validate(
            {**session.configuration.model_dump(), **updates}
        )
        session.updated_at = self.clock()
        if session.status == SessionStatus.CREATED:
            session.status = SessionStatus.CONFIGURING
        return session

    def update_progress(self, session_id: str, updates: Dict[str, Any]) -> Session:
        """Merge progress counters and recompute performance metrics.

        Performance metrics are only recomputed when ``pages_processed`` is
        part of the update.
        """
        session = self._require(session_id)
        now = self.clock()
        session.progress = ProgressTracker.model_validate(
            {**session.progress.model_dump(), **updates, "last_update": now}
        )
        session.updated_at = now

        if "pages_processed" in updates:
            self._update_performance(session, now)

        self.publish(
            EventType.PROGRESS_UPDATED,
            session_id,
            {"progress": session.progress.model_dump(mode="json")},
        )
        return session

    def _update_performance(self, session: Session, now: datetime) -> None:
        progress = session.progress
        performance = progress.performance
        minutes = (now - performance.start_time).total_seconds() / 60

        performance.throughput_per_minute = (
            progress.pages_processed / minutes if minutes > 0 else 0.0
        )
        performance.success_rate = (
            progress.pages_successful / progress.pages_processed
            if progress.pages_processed > 0
            else 0.0
        )

        current = memory_snapshot()
        memory = performance.memory_usage
        memory.current = current
        if current.rss > memory.peak.rss:
            memory.peak = current

    def set_status(self, session_id: str, status: Union[SessionStatus, str]) -> Session:
        """Move a session through its lifecycle.

        Raises:
            SessionNotFoundError: If the session is absent or expired
            InvalidTransitionError: If the move is not allowed from the current state
        """
        session = self._require(session_id)
        status = SessionStatus(status)
        previous = session.status

        if status == SessionStatus.EXPIRED:
            raise InvalidTransitionError("Sessions expire on their own; expired cannot be set")
        if status != previous and status not in TRANSITIONS[previous]:
            raise InvalidTransitionError(
                f"Cannot move session {session_id} from {previous.value} to {status.value}"
            )

        self._apply_status(session, status)

        if status == SessionStatus.RUNNING and previous in (
            SessionStatus.CREATED,
            SessionStatus.CONFIGURING,
        ):
            self.publish(EventType.SESSION_STARTED, session_id, {"session_id": session_id})
        elif status == SessionStatus.COMPLETED and previous != status:
            self.publish(
                EventType.SESSION_COMPLETED,
                session_id,
                {"session_id": session_id, "duration": session.metadata.duration},
            )
        elif status == SessionStatus.FAILED and previous != status:
            self.publish(
                EventType.SESSION_FAILED,
                session_id,
                {"session_id": session_id, "duration": session.metadata.duration},
            )
        return session

    def _apply_status(self, session: Session, status: SessionStatus) -> None:
        now = self.clock()
        if status.is_terminal and session.status != status:
            session.metadata.end_time = now
            session.metadata.duration = (now - session.metadata.start_time).total_seconds()
        session.status = status
        session.updated_at = now
        logger.info(f"Session {session.id} -> {status.value}")

    def add_extracted_data(
        self, session_id: str, record: Union[RawRecord, Dict[str, Any]]
    ) -> RawRecord:
        """Append one raw record to the session's buffer.

        Does not run the pipeline.
        """
        session = self._require(session_id)
        if not isinstance(record, RawRecord):
            record = RawRecord.model_validate(record)

        session.data.raw_data.append(record)
        session.progress.data_points_extracted += 1
        session.updated_at = self.clock()
        self.publish(
            EventType.DATA_EXTRACTED,
            session_id,
            {"data_count": len(session.data.raw_data)},
        )
        return record

    def record_error(self, session_id: str, error: str, fatal: bool = False) -> Session:
        """Count an error against the session; a fatal one fails the session."""
        session = self._require(session_id)
        session.progress.errors_encountered += 1
        if fatal and not session.status.is_terminal:
            self._apply_status(session, SessionStatus.FAILED)
        session.updated_at = self.clock()
        self.publish(EventType.ERROR_OCCURRED, session_id, {"error": error, "fatal": fatal})
        return session

    def get_active_sessions(self) -> List[Session]:
        now = self.clock()
        return [
            s
            for s in self._sessions.values()
            if not is_expired(s, now) and not s.status.is_terminal
        ]

    def get_active_session_count(self) -> int:
        return len(self.get_active_sessions())

    def get_session_statistics(self) -> Dict[str, Any]:
        now = self.clock()
        stats: Dict[str, Any] = {
            "total": len(self._sessions),
            "active": 0,
            "completed": 0,
            "failed": 0,
            "expired": 0,
            "by_status": {status.value: 0 for status in SessionStatus},
        }

        for session in self._sessions.values():
            stats["by_status"][session.status.value] += 1
            if is_expired(session, now):
                stats["expired"] += 1
            elif session.status == SessionStatus.COMPLETED:
                stats["completed"] += 1
            elif session.status == SessionStatus.FAILED:
                stats["failed"] += 1
            else:
                stats["active"] += 1

        return stats

    def list_sessions(self) -> List[Session]:
        """List all tracked sessions, newest first.

        Expired sessions are included until they are swept.
        """
        now = self.clock()
        for session in self._sessions.values():
            self._check_expiry(session, now)
        return sorted(self._sessions.values(), key=lambda s: s.created_at, reverse=True)

    def delete_session(self, session_id: str) -> bool:
        """Delete a session.

        Returns:
            True if deleted, False if the session didn't exist
        """
        return self._sessions.pop(session_id, None) is not None

    def subscribe(
        self,
        session_id: Optional[str],
        event_types: Optional[Iterable[Union[EventType, str]]],
        callback: EventCallback,
    ) -> str:
        """Register a callback for one session, or all sessions when session_id is None.

        ``event_types=None`` subscribes to every event type.
        """
        types = list(EventType) if event_types is None else [EventType(t) for t in event_types]
        subscription = EventSubscription(
            session_id=session_id,
            event_types=types,
            callback=callback,
            created=self.clock(),
        )
        self._subscriptions[subscription.id] = subscription
        return subscription.id

    def unsubscribe(self, subscription_id: str) -> bool:
        return self._subscriptions.pop(subscription_id, None) is not None

    def publish(
        self, event_type: EventType, session_id: str, data: Optional[Dict[str, Any]] = None
    ) -> ScrapingEvent:
        """Deliver an event synchronously to every matching subscriber.

        A failing subscriber is logged and does not affect the others.
        """
        event = ScrapingEvent(
            session_id=session_id,
            type=event_type,
            data=data,
            timestamp=self.clock(),
            severity=event_type.severity,
        )

        for subscription in list(self._subscriptions.values()):
            if not subscription.matches(event):
                continue
            try:
                subscription.callback(event)
            except Exception as e:
                logger.error(f"Error in event subscription {subscription.id} callback: {e}")

        return event

    def cleanup(self, now: Optional[datetime] = None) -> int:
        """Delete expired sessions and finished sessions idle past the retention window.

        Returns:
            Number of sessions deleted
        """
        now = now or self.clock()
        stale = [
            session_id
            for session_id, session in self._sessions.items()
            if is_expired(session, now)
            or (
                session.status in (SessionStatus.COMPLETED, SessionStatus.FAILED)
                and now - session.updated_at > self.retention
            )
        ]
        for session_id in stale:
            self.delete_session(session_id)

        if stale:
            logger.info(f"Cleaned up {len(stale)} expired sessions")
        return len(stale)

    def start(self) -> None:
        self._sweeper.start()

    async def shutdown(self) -> None:
        """Stop the sweep, run a final cleanup and drop all subscriptions."""
        await self._sweeper.stop()
        self.cleanup()
        self._subscriptions.clear()
        logger.info("SessionManager shutdown complete")

    def __len__(self) -> int:
        return len(self._sessions)

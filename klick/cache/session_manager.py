import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from config.settings import get_session_config
from config.validators import SessionConfig
from .cache_layer import BlurCacheLayer
from ..utils.exceptions import SessionError
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class EditingSession:
    session_id: str
    fingerprint: str
    started_at: float

    def age(self, now: float) -> float:
        return now - self.started_at


class SessionManager:
    """Ties cache retention to the image currently being edited.

    Two states: no active session, or one active session for a fingerprint.
    A periodic check expires sessions older than ``max_session_age_s`` and
    prunes entries belonging to other images.
    """

    def __init__(
            self,
            cache: BlurCacheLayer,
            config: Optional[SessionConfig] = None,
            clock: Callable[[], float] = time.monotonic,
    ):
        self.cache = cache
        self.config = config or get_session_config()
        self.clock = clock

        self._lock = threading.RLock()
        self._session: Optional[EditingSession] = None

        self._stop_event = threading.Event()
        self._monitor: Optional[threading.Thread] = None

    @property
    def active_session(self) -> Optional[EditingSession]:
        with self._lock:
            return self._session

    @property
    def current_session_id(self) -> Optional[str]:
        session = self.active_session
        return session.session_id if session else None

    def is_expired(self, now: Optional[float] = None) -> bool:
        """True when there is no session or it outlived its maximum age"""
        with self._lock:
            if self._session is None:
                return True
            now = self.clock() if now is None else now
            return self._session.age(now) > self.config.max_session_age_s

    def start_session(self, fingerprint: str) -> EditingSession:
        """Begin editing ``fingerprint``; a session for another image is force-cleared.

        An expired session for the same image is replaced by a fresh one
        without clearing that image's cache entries.
        """
        if not fingerprint:
            raise SessionError("session needs an image fingerprint")

        with self._lock:
            previous = self._session
            same_image = previous is not None and previous.fingerprint == fingerprint
            if same_image and not self.is_expired():
                return previous

            if same_image:
                logger.info("editing_session_renewed", previous_session=previous.session_id)
            elif previous is not None:
                self.cache.clear_for_image(previous.fingerprint)
                logger.info(
                    "editing_session_replaced",
                    previous_session=previous.session_id,
                    previous_fingerprint=previous.fingerprint,
                )

            session = EditingSession(
                session_id=uuid.uuid4().hex,
                fingerprint=fingerprint,
                started_at=self.clock(),
            )
            self._session = session

        logger.info(
            "editing_session_started",
            session_id=session.session_id,
            fingerprint=fingerprint,
        )
        return session

    def end_session(self, clear_all: bool = True) -> None:
        """Close the session, clearing everything or keeping only its image"""
        with self._lock:
            session = self._session
            if clear_all or session is None:
                self.cache.clear_all()
            else:
                self.cache.retain_only(session.fingerprint)
            self._session = None

        logger.info(
            "editing_session_ended",
            session_id=session.session_id if session else None,
            clear_all=clear_all,
        )

    def check_expiry(self, now: Optional[float] = None) -> bool:
        """
        Periodic maintenance.

        Returns:
            True if the caches were cleared because no session is active or
            the session expired; False if only other images were pruned.
        """
        with self._lock:
            session = self._session
            if session is None or self.is_expired(now):
                self.cache.clear_all()
                self._session = None
                if session is not None:
                    logger.info("editing_session_expired", session_id=session.session_id)
                return True

            self.cache.retain_only(session.fingerprint)
            return False

    # =========================================================================
    # Background monitor
    # =========================================================================

    def start_monitor(self) -> None:
        if self._monitor is not None and self._monitor.is_alive():
            return

        self._stop_event.clear()
        self._monitor = threading.Thread(
            target=self._monitor_loop,
            name="session-monitor",
            daemon=True,
        )
        self._monitor.start()
        logger.debug("session_monitor_started", interval_s=self.config.check_interval_s)

    def stop_monitor(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._monitor is not None:
            self._monitor.join(timeout)
            self._monitor = None
        logger.debug("session_monitor_stopped")

    @property
    def monitor_running(self) -> bool:
        return self._monitor is not None and self._monitor.is_alive()

    def _monitor_loop(self) -> None:
        while not self._stop_event.wait(self.config.check_interval_s):
            try:
                self.check_expiry()
            except Exception as e:
                logger.error("session_check_failed", exception=e)

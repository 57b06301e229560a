"""Request expiry sweeper.

``expire_stale_requests`` moves every ``pending`` request whose ``expires_at``
has passed to ``expired``. Each row is transitioned with a conditional update
on ``status = 'pending'``, so a request accepted or declined moments before
the sweep is left alone and running the sweep twice is a no-op the second
time. A transient store failure retries the whole pass.

``RequestExpiryWorker`` runs the sweep periodically inside the API process.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from .. import db, repository
from ..config import request_sweep_interval_seconds
from ..db_errors import is_transient_error
from ..models import RequestStatus
from ..time_utils import utcnow

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


@retry(
    retry=retry_if_exception(is_transient_error),
    wait=wait_exponential_jitter(multiplier=0.5, max=5, jitter=0.5),
    stop=stop_after_attempt(3),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def expire_stale_requests(
    session_factory: Optional[SessionFactory] = None,
    now: Optional[datetime] = None,
) -> int:
    """Expire lapsed pending requests and return how many were transitioned."""

    factory = session_factory or db.get_sessionmaker()
    now = now or utcnow()
    async with factory() as session:
        try:
            candidates = await repository.get_pending_expired_requests(session, now)
            expired = 0
            for request_id in candidates:
                if await repository.update_request_status(
                    session,
                    request_id,
                    RequestStatus.PENDING,
                    RequestStatus.EXPIRED,
                    updated_at=now,
                ):
                    expired += 1
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    if expired:
        logger.info("Expired %d match request(s)", expired)
    return expired


class RequestExpiryWorker:
    """Background task that sweeps expired requests on a fixed interval."""

    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        session_factory: Optional[SessionFactory] = None,
    ):
        self.interval_seconds = (
            request_sweep_interval_seconds()
            if interval_seconds is None
            else interval_seconds
        )
        self._session_factory = session_factory
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    def start(self) -> None:
        if self.interval_seconds <= 0:
            logger.info("Request expiry worker disabled")
            return
        if not self.running:
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._poll_loop())
            logger.info(
                "Request expiry worker started (every %ss)", self.interval_seconds
            )

    async def stop(self) -> None:
        self._stop_event.set()
        if self.running:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            logger.info("Request expiry worker stopped")
        self._worker_task = None

    async def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await expire_stale_requests(self._session_factory)
            except Exception:
                logger.error("Error in request expiry worker", exc_info=True)

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.interval_seconds
                )
                break
            except asyncio.TimeoutError:
                pass

import asyncio
import importlib
import warnings
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError
from tenacity import wait_none

from courtmatch import repository
from courtmatch.models import MatchRequest, RequestStatus
from courtmatch.services import expiry
from courtmatch.services import requests as request_service
from courtmatch.time_utils import utcnow

from factories import create_profile, future


async def _lapsed_and_live(session_factory):
    alice = await create_profile(session_factory, "alice")
    bob = await create_profile(session_factory, "bob")
    carol = await create_profile(session_factory, "carol")
    earlier = utcnow() - timedelta(days=4)

    async with session_factory() as session:
        lapsed = await request_service.send_request(
            session, alice.id, bob.id, earlier + timedelta(hours=1), now=earlier
        )
        live = await request_service.send_request(session, alice.id, carol.id, future())
        answered = await request_service.send_request(
            session, carol.id, bob.id, earlier + timedelta(hours=1), now=earlier
        )
        # Accepted moments before its deadline; the sweep must leave it alone.
        await request_service.respond_to_request(
            session, answered.id, bob.id, accept=True, now=earlier
        )
    return lapsed, live, answered


async def _status(session_factory, request_id):
    async with session_factory() as session:
        return (await session.get(MatchRequest, request_id)).status


@pytest.mark.anyio
async def test_sweep_expires_only_lapsed_pending_requests(session_factory):
    lapsed, live, answered = await _lapsed_and_live(session_factory)

    assert await expiry.expire_stale_requests(session_factory) == 1

    assert await _status(session_factory, lapsed.id) == RequestStatus.EXPIRED
    assert await _status(session_factory, live.id) == RequestStatus.PENDING
    assert await _status(session_factory, answered.id) == RequestStatus.ACCEPTED


@pytest.mark.anyio
async def test_sweep_is_idempotent(session_factory):
    await _lapsed_and_live(session_factory)

    assert await expiry.expire_stale_requests(session_factory) == 1
    assert await expiry.expire_stale_requests(session_factory) == 0


@pytest.mark.anyio
async def test_sweep_honours_explicit_now(session_factory):
    _, live, _ = await _lapsed_and_live(session_factory)

    assert await expiry.expire_stale_requests(session_factory, now=utcnow() + timedelta(days=30)) == 2
    assert await _status(session_factory, live.id) == RequestStatus.EXPIRED


@pytest.mark.anyio
async def test_transient_failure_is_retried(session_factory, monkeypatch):
    lapsed, _, _ = await _lapsed_and_live(session_factory)
    real = repository.get_pending_expired_requests
    calls = []

    async def flaky(session, now):
        calls.append(now)
        if len(calls) == 1:
            raise OperationalError("SELECT", {}, Exception("database is locked"))
        return await real(session, now)

    monkeypatch.setattr(repository, "get_pending_expired_requests", flaky)
    sweep = expiry.expire_stale_requests.retry_with(wait=wait_none())

    assert await sweep(session_factory) == 1
    assert len(calls) == 2
    assert await _status(session_factory, lapsed.id) == RequestStatus.EXPIRED


@pytest.mark.anyio
async def test_other_failures_are_not_retried(session_factory, monkeypatch):
    calls = []

    async def broken(session, now):
        calls.append(now)
        raise ValueError("bad query")

    monkeypatch.setattr(repository, "get_pending_expired_requests", broken)
    sweep = expiry.expire_stale_requests.retry_with(wait=wait_none())

    with pytest.raises(ValueError):
        await sweep(session_factory)
    assert len(calls) == 1


@pytest.mark.anyio
async def test_worker_sweeps_until_stopped(session_factory):
    lapsed, _, _ = await _lapsed_and_live(session_factory)
    worker = expiry.RequestExpiryWorker(interval_seconds=0.05, session_factory=session_factory)

    worker.start()
    assert worker.running
    # Only the worker touches the database while it runs.
    await asyncio.sleep(0.3)
    await worker.stop()

    assert not worker.running
    assert await _status(session_factory, lapsed.id) == RequestStatus.EXPIRED


@pytest.mark.anyio
async def test_worker_disabled_with_zero_interval(session_factory):
    worker = expiry.RequestExpiryWorker(interval_seconds=0, session_factory=session_factory)
    worker.start()
    assert not worker.running
    await worker.stop()


def test_retry_policy_uses_current_backoff_keywords():
    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        reloaded = importlib.reload(expiry)

    wait = reloaded.expire_stale_requests.retry.wait
    assert wait.multiplier == 0.5
    assert wait.max == 5

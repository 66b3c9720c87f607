# /*
# Copyright 2026 The Solo Manager Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Tests for the lease lock."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from solo_manager.errors import LockAcquisitionError, LockRelinquishmentError, LockRenewalError
from solo_manager.lock import IntervalLock, LockHolder

NAMESPACE = "solo"
LEASE = ("solo", "solo-lease-solo")


def _holder(pid: int = 1000, hostname: str = "laptop", username: str = "ops") -> LockHolder:
    return LockHolder(username, hostname, pid)


def _seed_lease(k8, holder: LockHolder, renewed: datetime) -> None:
    stamp = renewed.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    k8.leases[LEASE] = {
        "metadata": {"name": LEASE[1], "namespace": NAMESPACE},
        "spec": {
            "holderIdentity": holder.to_json(),
            "leaseDurationSeconds": 20,
            "acquireTime": stamp,
            "renewTime": stamp,
        },
    }


def test_acquire_creates_namespace_and_lease(k8_factory, settings) -> None:
    k8 = k8_factory.default()
    lock = IntervalLock(k8, NAMESPACE, settings, _holder())

    async def _run() -> bool:
        await lock.acquire()
        held = await lock.is_acquired()
        await lock.release()
        return held

    assert asyncio.run(_run())
    assert NAMESPACE in k8.namespaces
    assert LEASE not in k8.leases


def test_lease_held_by_live_holder_is_not_taken(k8_factory, settings) -> None:
    k8 = k8_factory.default()
    _seed_lease(k8, _holder(pid=1, hostname="other-host", username="alice"), datetime.now(timezone.utc))
    lock = IntervalLock(k8, NAMESPACE, settings, _holder())

    with pytest.raises(LockAcquisitionError, match="lock already acquired by 'alice' on the 'other-host' machine"):
        asyncio.run(lock.acquire())
    assert asyncio.run(lock.try_acquire()) is False


def test_expired_lease_is_taken_over(k8_factory, settings) -> None:
    k8 = k8_factory.default()
    _seed_lease(k8, _holder(pid=1, hostname="other-host"), datetime.now(timezone.utc) - timedelta(minutes=5))
    me = _holder()
    lock = IntervalLock(k8, NAMESPACE, settings, me)

    async def _run() -> dict:
        await lock.acquire()
        lease = dict(k8.leases[LEASE])
        await lock.release()
        return lease

    lease = asyncio.run(_run())
    assert LockHolder.from_json(lease["spec"]["holderIdentity"]) == me
    assert lease["spec"]["leaseTransitions"] == 1


def test_lease_of_dead_process_on_same_machine_is_taken_over(k8_factory, settings, monkeypatch) -> None:
    k8 = k8_factory.default()
    stale = _holder(pid=424242)
    _seed_lease(k8, stale, datetime.now(timezone.utc))
    monkeypatch.setattr(LockHolder, "is_process_alive", lambda self: False)
    lock = IntervalLock(k8, NAMESPACE, settings, _holder(pid=1000))

    async def _run() -> bool:
        await lock.acquire()
        held = await lock.is_acquired()
        await lock.release()
        return held

    assert asyncio.run(_run())


def test_reacquire_by_same_holder_renews(k8_factory, settings) -> None:
    k8 = k8_factory.default()
    me = _holder()
    _seed_lease(k8, me, datetime.now(timezone.utc) - timedelta(seconds=5))
    before = k8.leases[LEASE]["spec"]["renewTime"]
    lock = IntervalLock(k8, NAMESPACE, settings, me)

    async def _run() -> str:
        await lock.acquire()
        renewed = k8.leases[LEASE]["spec"]["renewTime"]
        await lock.release()
        return renewed

    assert asyncio.run(_run()) > before


def test_release_refuses_to_delete_foreign_lease(k8_factory, settings) -> None:
    k8 = k8_factory.default()
    _seed_lease(k8, _holder(pid=1, hostname="other-host"), datetime.now(timezone.utc))
    lock = IntervalLock(k8, NAMESPACE, settings, _holder())

    with pytest.raises(LockRelinquishmentError):
        asyncio.run(lock.release())
    assert LEASE in k8.leases


def test_context_manager_releases_on_error(k8_factory, settings) -> None:
    k8 = k8_factory.default()
    lock = IntervalLock(k8, NAMESPACE, settings, _holder())

    async def _run() -> None:
        async with lock:
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        asyncio.run(_run())
    assert LEASE not in k8.leases


def test_holder_identity_round_trip() -> None:
    holder = _holder()
    assert LockHolder.from_json(holder.to_json()) == holder
    assert LockHolder.from_json("not json") is None
    assert LockHolder.current().is_process_alive()


def test_ensure_held_fails_once_another_holder_owns_the_lease(k8_factory, settings) -> None:
    k8 = k8_factory.default()
    lock = IntervalLock(k8, NAMESPACE, settings, _holder())

    async def _run() -> None:
        await lock.acquire()
        await lock.ensure_held()
        _seed_lease(k8, _holder(pid=2, hostname="other-host"), datetime.now(timezone.utc))
        try:
            await lock.ensure_held()
        finally:
            await lock._stop_renewal()

    with pytest.raises(LockRenewalError):
        asyncio.run(_run())
    assert not asyncio.run(lock.is_acquired())


def test_ensure_held_fails_after_renewal_stopped(k8_factory, settings) -> None:
    k8 = k8_factory.default()
    lock = IntervalLock(k8, NAMESPACE, settings.model_copy(update={"lease_duration": 2}), _holder())

    async def _run() -> None:
        await lock.acquire()
        del k8.leases[LEASE]
        await asyncio.sleep(1.2)
        await lock.ensure_held()

    with pytest.raises(LockRenewalError):
        asyncio.run(_run())

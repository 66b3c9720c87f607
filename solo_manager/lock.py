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

"""Distributed lease lock serializing remote config mutation."""

from __future__ import annotations

import asyncio
import contextlib
import getpass
import json
import logging
import os
import socket
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from solo_manager import logger as package_logger
from solo_manager.config import SoloSettings
from solo_manager.constants import LEASE_NAME_PREFIX
from solo_manager.errors import (
    LockAcquisitionError,
    LockRelinquishmentError,
    LockRenewalError,
    ResourceError,
)
from solo_manager.kube import K8, K8Factory


def _micro_time(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _parse_micro_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass(frozen=True)
class LockHolder:
    """Identity of a lease holder: user, machine and process."""

    username: str
    hostname: str
    pid: int

    @classmethod
    def current(cls) -> LockHolder:
        return cls(getpass.getuser(), socket.gethostname(), os.getpid())

    def to_json(self) -> str:
        return json.dumps(asdict(self), sort_keys=True)

    @classmethod
    def from_json(cls, raw: str | None) -> LockHolder | None:
        if not raw:
            return None
        try:
            data = json.loads(raw)
            return cls(str(data["username"]), str(data["hostname"]), int(data["pid"]))
        except (ValueError, KeyError, TypeError):
            return None

    def is_same_machine(self, other: LockHolder) -> bool:
        return self.hostname == other.hostname

    def is_process_alive(self) -> bool:
        try:
            os.kill(self.pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        return True


class IntervalLock:
    """A Kubernetes Lease held by this process and renewed in the background.

    The lease is renewed every half lease duration while held. An expired
    lease, or one whose holder process died on this machine, is taken over.
    """

    def __init__(
        self,
        k8: K8,
        namespace: str,
        settings: SoloSettings | None = None,
        holder: LockHolder | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._k8 = k8
        self.namespace = namespace
        self.lease_name = f"{LEASE_NAME_PREFIX}-{namespace}"
        self._settings = settings or SoloSettings()
        self.holder = holder or LockHolder.current()
        self._logger = logger or package_logger
        self._renewal: asyncio.Task | None = None
        self._held = False

    @property
    def duration(self) -> int:
        return self._settings.lease_duration

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    async def acquire(self) -> None:
        """Acquire the lease, retrying while somebody else holds it.

        Raises:
            LockAcquisitionError: If the lease is still held by another process
                after all attempts.
        """

        @retry(
            stop=stop_after_attempt(self._settings.lock_acquire_attempts),
            wait=wait_fixed(self._settings.lock_acquire_wait),
            retry=retry_if_exception_type(LockAcquisitionError),
            reraise=True,
        )
        async def _attempt() -> None:
            await self._acquire_once()

        await _attempt()

    async def try_acquire(self) -> bool:
        """Single acquisition attempt; returns False instead of raising when held elsewhere."""
        try:
            await self._acquire_once()
        except LockAcquisitionError as err:
            self._logger.debug("Lease %s not acquired: %s", self.lease_name, err)
            return False
        return True

    async def _acquire_once(self) -> None:
        try:
            if not await self._k8.has_namespace(self.namespace):
                await self._k8.create_namespace(self.namespace)
            lease = await self._k8.read_lease(self.namespace, self.lease_name)
            if lease is None:
                await self._k8.create_lease(self.namespace, self.lease_name, self._new_spec())
            else:
                current = LockHolder.from_json(lease.get("spec", {}).get("holderIdentity"))
                if current == self.holder:
                    await self._write(lease, transfer=False)
                elif current is None or self._expired(lease):
                    await self._write(lease, transfer=True)
                elif current.is_same_machine(self.holder) and not current.is_process_alive():
                    self._logger.info("Taking over lease %s from dead process %d", self.lease_name, current.pid)
                    await self._write(lease, transfer=True)
                else:
                    raise LockAcquisitionError(
                        f"lock already acquired by '{current.username}' on the '{current.hostname}' "
                        f"machine (PID: '{current.pid}')"
                    )
        except ResourceError as err:
            raise LockAcquisitionError(f"failed to acquire lease {self.lease_name}: {err}", err) from err
        self._held = True
        self._start_renewal()
        self._logger.debug("Acquired lease %s in %s", self.lease_name, self.namespace)

    def _new_spec(self) -> dict:
        now = _micro_time(datetime.now(timezone.utc))
        return {
            "holderIdentity": self.holder.to_json(),
            "leaseDurationSeconds": self.duration,
            "acquireTime": now,
            "renewTime": now,
        }

    async def _write(self, lease: dict, transfer: bool) -> dict:
        spec = dict(lease.get("spec") or {})
        now = _micro_time(datetime.now(timezone.utc))
        spec["renewTime"] = now
        spec["leaseDurationSeconds"] = self.duration
        if transfer:
            spec["holderIdentity"] = self.holder.to_json()
            spec["acquireTime"] = now
            spec["leaseTransitions"] = int(spec.get("leaseTransitions", 0)) + 1
        return await self._k8.replace_lease(self.namespace, self.lease_name, {**lease, "spec": spec})

    @staticmethod
    def _expired(lease: dict) -> bool:
        spec = lease.get("spec") or {}
        renewed = _parse_micro_time(spec.get("renewTime") or spec.get("acquireTime"))
        if renewed is None:
            return True
        duration = int(spec.get("leaseDurationSeconds") or 0)
        return renewed + timedelta(seconds=duration) < datetime.now(timezone.utc)

    # ------------------------------------------------------------------
    # Renewal and release
    # ------------------------------------------------------------------

    async def renew(self) -> None:
        """Extend the lease held by this process.

        Raises:
            LockRenewalError: If the lease is gone or held by someone else.
        """
        try:
            lease = await self._k8.read_lease(self.namespace, self.lease_name)
            if lease is None:
                raise LockRenewalError(f"lease {self.lease_name} no longer exists")
            current = LockHolder.from_json(lease.get("spec", {}).get("holderIdentity"))
            if current != self.holder:
                raise LockRenewalError(f"lease {self.lease_name} is held by another process")
            await self._write(lease, transfer=False)
        except ResourceError as err:
            raise LockRenewalError(f"failed to renew lease {self.lease_name}: {err}", err) from err

    def _start_renewal(self) -> None:
        if self._renewal is None or self._renewal.done():
            self._renewal = asyncio.create_task(self._renew_forever())

    async def _renew_forever(self) -> None:
        while True:
            await asyncio.sleep(self.duration / 2)
            try:
                await self.renew()
            except LockRenewalError as err:
                self._logger.error("Stopping renewal of lease %s: %s", self.lease_name, err)
                self._held = False
                return

    async def _stop_renewal(self) -> None:
        if self._renewal is not None:
            self._renewal.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._renewal
            self._renewal = None

    async def release(self) -> None:
        """Stop renewing and delete the lease.

        Raises:
            LockRelinquishmentError: If another live holder owns the lease.
        """
        await self._stop_renewal()
        self._held = False
        try:
            lease = await self._k8.read_lease(self.namespace, self.lease_name)
            if lease is None:
                return
            current = LockHolder.from_json(lease.get("spec", {}).get("holderIdentity"))
            if current != self.holder and not self._expired(lease):
                raise LockRelinquishmentError(
                    f"lease {self.lease_name} is held by another process and cannot be released")
            await self._k8.delete_lease(self.namespace, self.lease_name)
        except ResourceError as err:
            raise LockRelinquishmentError(f"failed to release lease {self.lease_name}: {err}", err) from err
        self._logger.debug("Released lease %s", self.lease_name)

    async def ensure_held(self) -> None:
        """Check that this process still owns the lease.

        Raises:
            LockRenewalError: If renewal stopped or another holder owns the lease.
        """
        if not self._held:
            raise LockRenewalError(f"lease {self.lease_name} was lost; renewal stopped")
        try:
            acquired = await self.is_acquired()
        except ResourceError as err:
            raise LockRenewalError(f"failed to read lease {self.lease_name}: {err}", err) from err
        if not acquired or await self.is_expired():
            self._held = False
            raise LockRenewalError(f"lease {self.lease_name} is no longer held by this process")

    async def is_acquired(self) -> bool:
        if not self._held:
            return False
        lease = await self._k8.read_lease(self.namespace, self.lease_name)
        return lease is not None and LockHolder.from_json(lease["spec"].get("holderIdentity")) == self.holder

    async def is_expired(self) -> bool:
        lease = await self._k8.read_lease(self.namespace, self.lease_name)
        return lease is None or self._expired(lease)

    async def __aenter__(self) -> IntervalLock:
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.release()


class LockManager:
    """Creates namespace-scoped lease locks for a context."""

    def __init__(self, k8_factory: K8Factory, settings: SoloSettings | None = None,
                 logger: logging.Logger | None = None) -> None:
        self._k8_factory = k8_factory
        self._settings = settings or SoloSettings()
        self._logger = logger or package_logger

    def create(self, namespace: str, context: str | None = None) -> IntervalLock:
        return IntervalLock(self._k8_factory.get_k8(context), namespace, self._settings, logger=self._logger)

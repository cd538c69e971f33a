"""Capacity-bounded shared resources with all-or-nothing acquisition.

Build actions that touch a scarce facility (a linker that eats all memory, a
tool that must not run twice at once) declare a request set such as
``{linker_slots: 1}``. :meth:`ResourceRegistry.hold` waits until every
requested resource has enough free units, deducts them in one step and gives
them back when the protected block exits, however it exits.

All bookkeeping happens on the event loop thread without suspension between
the capacity check and the deduction, so acquisition is atomic. Requests are
always processed in resource-name order.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass

from buildcore.errors import ValidationError
from buildcore.models import Resource, ResourceRequestSet, normalize_requests


@dataclass(slots=True)
class ResourceGuard:
    """Units held by one successful :meth:`ResourceRegistry.acquire` call."""

    units: tuple[tuple[str, int], ...]
    released: bool = False

    @property
    def held(self) -> dict[str, int]:
        return dict(self.units)


class ResourceRegistry:
    def __init__(self, resources: Iterable[Resource] = ()) -> None:
        self._capacity: dict[str, int] = {}
        self._free: dict[str, int] = {}
        self._waiters: list[asyncio.Future[None]] = []
        for resource in resources:
            self.register(resource)

    def register(self, resource: Resource) -> None:
        known = self._capacity.get(resource.name)
        if known is None:
            self._capacity[resource.name] = resource.capacity
            self._free[resource.name] = resource.capacity
            return
        if known != resource.capacity:
            raise ValidationError(
                "Conflicting capacities declared for the same resource.",
                context={
                    "resource": resource.name,
                    "registered": str(known),
                    "declared": str(resource.capacity),
                },
            )

    def available(self, resource: Resource | str) -> int:
        name = resource if isinstance(resource, str) else resource.name
        if name not in self._free:
            if isinstance(resource, Resource):
                return resource.capacity
            raise ValidationError("Unknown resource.", context={"resource": name})
        return self._free[name]

    def in_use(self, resource: Resource | str) -> int:
        name = resource if isinstance(resource, str) else resource.name
        return self._capacity.get(name, 0) - self._free.get(name, 0)

    async def acquire(self, requests: ResourceRequestSet | None) -> ResourceGuard:
        """Wait until the whole request set fits, then take it in one step."""
        normalized = normalize_requests(requests)
        for resource in sorted(normalized, key=lambda item: item.name):
            self.register(resource)
        ordered = tuple(sorted((resource.name, units) for resource, units in normalized.items()))
        if not ordered:
            return ResourceGuard(units=())

        loop = asyncio.get_running_loop()
        while not self._fits(ordered):
            waiter: asyncio.Future[None] = loop.create_future()
            self._waiters.append(waiter)
            try:
                await waiter
            finally:
                self._waiters.remove(waiter)

        for name, units in ordered:
            self._free[name] -= units
        return ResourceGuard(units=ordered)

    def release(self, guard: ResourceGuard) -> None:
        if guard.released:
            raise ValidationError(
                "Resource guard released twice.",
                context={"resources": ", ".join(name for name, _ in guard.units)},
            )
        guard.released = True
        if not guard.units:
            return
        for name, units in guard.units:
            self._free[name] += units
        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_result(None)

    @asynccontextmanager
    async def hold(self, requests: ResourceRequestSet | None) -> AsyncIterator[ResourceGuard]:
        guard = await self.acquire(requests)
        try:
            yield guard
        finally:
            self.release(guard)

    def _fits(self, ordered: tuple[tuple[str, int], ...]) -> bool:
        return all(self._free[name] >= units for name, units in ordered)

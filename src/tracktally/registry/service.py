"""Registry loading service: one load in flight, bounded wait, atomic swap.

The only asynchronous boundary in tracktally is fetching the registry
from its source.  :class:`RegistryService` guarantees:

* **At most one load in flight.**  The first caller of
  :meth:`RegistryService.initialize` starts a single task; every
  concurrent caller awaits that same task and observes the same
  snapshot.
* **Bounded wait.**  A caller waits at most ``timeout_seconds``; after
  that it proceeds with the current snapshot (the built-in default
  before the first successful load).  The load itself is shielded and
  keeps running, swapping its snapshot in when it finishes.
* **Degrade, never raise.**  A source that fails yields the default
  registry, or keeps the current snapshot if one was already loaded.
* **Atomic replacement.**  Readers only ever see a whole snapshot;
  edits go through :meth:`RegistryService.replace`.

Usage::

    service = RegistryService(FileRegistrySource(Path("data/registry.yaml")))
    registry = await service.initialize()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from tracktally.core.defaults import DEFAULT_REGISTRY_LOAD_TIMEOUT_SECONDS
from tracktally.registry.snapshot import Registry, RegistryPayload, default_registry
from tracktally.registry.store import load_registry_payload

logger = logging.getLogger(__name__)


@runtime_checkable
class RegistrySource(Protocol):
    """Anything that can fetch raw registry contents asynchronously."""

    async def fetch(self) -> RegistryPayload: ...


class StaticRegistrySource:
    """Serves an in-memory payload (tests, embedding callers)."""

    def __init__(self, payload: RegistryPayload | Mapping[str, Any]) -> None:
        if isinstance(payload, RegistryPayload):
            self._payload = payload
        else:
            self._payload = RegistryPayload.model_validate(dict(payload))

    async def fetch(self) -> RegistryPayload:
        return self._payload


class FileRegistrySource:
    """Reads a YAML/JSON registry file off the event loop thread."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    async def fetch(self) -> RegistryPayload:
        return await asyncio.to_thread(load_registry_payload, self._path)

    def __repr__(self) -> str:
        return f"FileRegistrySource({str(self._path)!r})"


class RegistryService:
    """Owns the current registry snapshot and its loading lifecycle.

    Construct one per application and pass it (or the snapshots it
    hands out) to call sites explicitly.

    Args:
        source: Where registry contents come from.
        timeout_seconds: Longest a caller waits for a load before
            proceeding with the current snapshot.
    """

    def __init__(
        self,
        source: RegistrySource,
        *,
        timeout_seconds: float = DEFAULT_REGISTRY_LOAD_TIMEOUT_SECONDS,
    ) -> None:
        self._source = source
        self._timeout = timeout_seconds
        self._snapshot: Registry = default_registry()
        self._loaded = False
        self._pending: asyncio.Task[Registry] | None = None
        self._generation = 0

    @property
    def snapshot(self) -> Registry:
        """The current snapshot (built-in default until a load completes)."""
        return self._snapshot

    @property
    def loaded(self) -> bool:
        """True once a load (or :meth:`replace`) has produced a snapshot."""
        return self._loaded

    def replace(self, registry: Registry) -> None:
        """Swap in an edited snapshot.

        An in-flight load started before this call will not overwrite it.
        """
        self._generation += 1
        self._snapshot = registry
        self._loaded = True

    async def initialize(self) -> Registry:
        """Return the loaded snapshot, loading it first if necessary."""
        if self._loaded:
            return self._snapshot
        return await self._wait(self._start_load())

    async def reload(self) -> Registry:
        """Fetch the source again and swap the snapshot when done.

        If a load is already in flight this waits for it instead of
        starting a second one.
        """
        return await self._wait(self._start_load())

    def _start_load(self) -> asyncio.Task[Registry]:
        if self._pending is None:
            task = asyncio.get_running_loop().create_task(self._load(self._generation))
            task.add_done_callback(self._clear_pending)
            self._pending = task
        return self._pending

    def _clear_pending(self, task: asyncio.Task[Registry]) -> None:
        if self._pending is task:
            self._pending = None

    async def _wait(self, task: asyncio.Task[Registry]) -> Registry:
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self._timeout)
        except TimeoutError:
            logger.warning(
                "Registry load from %r still pending after %.1fs; proceeding with %s registry",
                self._source,
                self._timeout,
                "current" if self._loaded else "built-in default",
            )
            return self._snapshot

    async def _load(self, generation: int) -> Registry:
        try:
            payload = await self._source.fetch()
            registry = Registry.build(
                payload.categories, payload.app_mappings, payload.url_mappings,
            )
        except Exception as exc:
            logger.warning(
                "Registry load from %r failed (%s); keeping %s registry",
                self._source,
                exc,
                "current" if self._loaded else "built-in default",
            )
            registry = self._snapshot if self._loaded else default_registry()

        if generation != self._generation:
            logger.info("Discarding registry load superseded by a newer snapshot")
            return self._snapshot

        self._snapshot = registry
        self._loaded = True
        logger.info("Registry ready: %r", registry)
        return registry

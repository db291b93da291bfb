"""
Surface Broadcaster - pushes history and targeted events to the chat surfaces
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Protocol

from loja.models.base import CamelModel

logger = logging.getLogger(__name__)


class SurfaceKind(str, Enum):
    """The two presentation endpoints sharing one history"""

    PANEL = "panel"
    DETACHED = "detached"


class Surface(Protocol):
    """Anything that accepts JSON frames (a FastAPI WebSocket in production)"""

    async def send_json(self, data: Any) -> None: ...


class SurfaceBroadcaster:
    """Fan-out to whichever surfaces are currently connected.

    A surface that is not connected is skipped silently; a surface whose send
    fails or stalls past SEND_TIMEOUT is detached.
    """

    SEND_TIMEOUT = 1.0  # seconds before dropping a stalled surface
    READY_DELAY = 0.25  # best-effort wait for a surface that is still opening

    def __init__(self) -> None:
        self._surfaces: dict[SurfaceKind, Surface] = {}
        self._lock = asyncio.Lock()

    def attach(self, kind: SurfaceKind, surface: Surface) -> None:
        if kind in self._surfaces:
            logger.info(f"[Broadcaster] Replacing existing {kind.value} surface")
        self._surfaces[kind] = surface
        logger.info(f"[Broadcaster] {kind.value} surface attached")

    def detach(self, kind: SurfaceKind, surface: Surface | None = None) -> None:
        """Drop a surface; with ``surface`` given, only if it is still the live one"""
        current = self._surfaces.get(kind)
        if current is None or (surface is not None and current is not surface):
            return
        del self._surfaces[kind]
        logger.info(f"[Broadcaster] {kind.value} surface detached")

    def is_live(self, kind: SurfaceKind) -> bool:
        return kind in self._surfaces

    @property
    def live_kinds(self) -> list[SurfaceKind]:
        return [kind for kind in SurfaceKind if kind in self._surfaces]

    async def _deliver(self, kind: SurfaceKind, payload: dict[str, Any]) -> bool:
        surface = self._surfaces.get(kind)
        if surface is None:
            return False
        try:
            await asyncio.wait_for(surface.send_json(payload), timeout=self.SEND_TIMEOUT)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"[Broadcaster] {kind.value} surface stalled, dropping it")
        except Exception as e:
            logger.warning(f"[Broadcaster] Send to {kind.value} surface failed: {e}")
        self.detach(kind, surface)
        return False

    async def send(self, kind: SurfaceKind, event: CamelModel) -> bool:
        """Send one event to a single surface; False when it is not live"""
        async with self._lock:
            return await self._deliver(kind, event.to_payload())

    async def broadcast(self, event: CamelModel) -> None:
        """Send one event to every live surface"""
        payload = event.to_payload()
        async with self._lock:
            for kind in self.live_kinds:
                await self._deliver(kind, payload)

    async def first_live(self, preferred: list[SurfaceKind]) -> SurfaceKind | None:
        """First live surface in ``preferred`` order, waiting once if none is up yet"""
        for attempt in range(2):
            for kind in preferred:
                if self.is_live(kind):
                    return kind
            if attempt == 0:
                await asyncio.sleep(self.READY_DELAY)
        return None

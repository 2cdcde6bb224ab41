"""
Engine Initialization
=====================

Process-wide bootstrap of the layout and raster engines.

Each engine's bootstrap runs at most once per process: concurrent callers
await the same in-flight task. Engines start in parallel and a failing engine
never cancels its sibling. A failed bootstrap is dropped from the memo once it
settles, so the next call retries only the engines that failed.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from ogify.config.logging import get_logger
from ogify.core.exceptions import EngineInitError
from ogify.core.rendering.layout_engine import LayoutEngine
from ogify.core.rendering.raster_engine import RasterEngine

logger = get_logger(__name__)

EngineBootstrap = Callable[[], Awaitable[None]]

LAYOUT_ENGINE = "layout"
RASTER_ENGINE = "raster"


class EngineInitializer:
    """Memoized, concurrency-safe bootstrap of named engines."""

    def __init__(self, engines: Mapping[str, EngineBootstrap]):
        self._engines: Dict[str, EngineBootstrap] = dict(engines)
        self._pending: Dict[str, "asyncio.Task[None]"] = {}
        self._last_errors: Dict[str, BaseException] = {}
        self.logger: Any = logger.bind(component="engine_initializer")  # structlog.BoundLoggerBase

    def _get_task(self, name: str) -> "asyncio.Task[None]":
        task = self._pending.get(name)
        if task is None:
            task = asyncio.ensure_future(self._run(name))
            self._pending[name] = task
        return task

    async def _run(self, name: str) -> None:
        self.logger.info("Bootstrapping engine", engine=name)
        try:
            await self._engines[name]()
        except Exception as e:
            self._last_errors[name] = e
            # Waiters already hold the task; later calls start over
            if self._pending.get(name) is asyncio.current_task():
                del self._pending[name]
            self.logger.error("Engine bootstrap failed", engine=name, error=str(e))
            raise

        self._last_errors.pop(name, None)
        self.logger.info("Engine ready", engine=name)

    async def ensure_ready(self) -> None:
        """
        Make sure every engine is bootstrapped.

        Safe to call concurrently and repeatedly.

        Raises:
            EngineInitError: If any engine failed to bootstrap
        """
        names = list(self._engines)
        tasks = [self._get_task(name) for name in names]

        # Shielded so a cancelled caller does not abort a shared bootstrap
        results = await asyncio.gather(
            *(asyncio.shield(task) for task in tasks), return_exceptions=True
        )

        failures = {
            name: result
            for name, result in zip(names, results)
            if isinstance(result, BaseException)
        }
        if failures:
            failed_engines = tuple(failures)
            cause = next(iter(failures.values()))
            raise EngineInitError(
                f"Engine initialization failed: {', '.join(failed_engines)} ({cause})",
                failed_engines=failed_engines,
            ) from cause

    def reset(self) -> None:
        """Forget all bootstrap results; the next call runs every bootstrap again."""
        self._pending.clear()
        self._last_errors.clear()

    def states(self) -> Dict[str, str]:
        """Bootstrap state of each engine, without triggering a bootstrap."""
        states = {}
        for name in self._engines:
            task = self._pending.get(name)
            if task is None:
                states[name] = "failed" if name in self._last_errors else "not_initialized"
            elif not task.done():
                states[name] = "initializing"
            elif task.cancelled() or task.exception() is not None:
                states[name] = "failed"
            else:
                states[name] = "ready"
        return states


# Global engine instances
_layout_engine: Optional[LayoutEngine] = None
_raster_engine: Optional[RasterEngine] = None
_engine_initializer: Optional[EngineInitializer] = None


def get_layout_engine() -> LayoutEngine:
    """Get or create the global layout engine."""
    global _layout_engine
    if _layout_engine is None:
        _layout_engine = LayoutEngine()
    return _layout_engine


def get_raster_engine() -> RasterEngine:
    """Get or create the global raster engine."""
    global _raster_engine
    if _raster_engine is None:
        _raster_engine = RasterEngine()
    return _raster_engine


def get_engine_initializer() -> EngineInitializer:
    """Get or create the global engine initializer."""
    global _engine_initializer
    if _engine_initializer is None:
        _engine_initializer = EngineInitializer(
            {
                LAYOUT_ENGINE: get_layout_engine().initialize,
                RASTER_ENGINE: get_raster_engine().initialize,
            }
        )
    return _engine_initializer


async def close_engines() -> None:
    """Shut down the global engines and forget their bootstrap state."""
    global _layout_engine, _raster_engine, _engine_initializer
    if _layout_engine:
        await _layout_engine.close()
        _layout_engine = None
    if _raster_engine:
        _raster_engine.close()
        _raster_engine = None
    _engine_initializer = None

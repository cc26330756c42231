"""
Cooperative cancellation and orderly shutdown.

A CancellationToken is passed explicitly to every stage, which polls it at
each loop boundary (entry, page, record). The ShutdownCoordinator is the only
place that listens to process signals; a signal merely trips the token.

Shutdown order once the token is tripped:
    1. stages stop pulling new work
    2. the buffered batch is flushed before the stage returns
    3. every registered store is closed
    4. the runner maps the outcome to an exit status

In-flight worker tasks are abandoned, not drained: their processes are
terminated and the records are counted as abandoned. They are still absent
from the destination store, so the next run picks them up.
"""

import asyncio
import signal
from typing import List, Optional

import logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2


class CancellationToken:
    """One-shot cancellation flag that can also be awaited"""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled"):
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self):
        await self._event.wait()


class ShutdownCoordinator:
    """
    Bind process signals to a cancellation token and close stores on exit.

    Usage:
        async with ShutdownCoordinator() as coordinator:
            store = coordinator.manage(await RecordStore(path, XmlRecord).open())
            stats = await stage.run(coordinator.token)
    """

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self, token: Optional[CancellationToken] = None, install_signal_handlers: bool = True):
        self.token = token or CancellationToken()
        self.install_signal_handlers = install_signal_handlers
        self._stores: List = []
        self._installed: List[int] = []

    def request_shutdown(self, signame: str = "SIGINT"):
        if self.token.cancelled:
            logger.warning(f"{signame} received again, shutdown already in progress")
            return
        logger.warning(f"{signame} received. Finishing current batch and cleaning up...")
        self.token.cancel(reason=signame)

    def install(self):
        loop = asyncio.get_running_loop()
        for sig in self.SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig.name)
            except (NotImplementedError, RuntimeError):
                # Event loops without signal support (Windows, non-main thread)
                logger.debug(f"Signal handler for {sig.name} not installed")
                continue
            self._installed.append(sig)

    def uninstall(self):
        loop = asyncio.get_running_loop()
        for sig in self._installed:
            loop.remove_signal_handler(sig)
        self._installed = []

    def manage(self, store):
        """Register a store to be closed on shutdown; returns it"""
        self._stores.append(store)
        return store

    async def close_stores(self):
        while self._stores:
            store = self._stores.pop()
            await store.close()

    async def __aenter__(self) -> "ShutdownCoordinator":
        if self.install_signal_handlers:
            self.install()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        try:
            await self.close_stores()
        finally:
            self.uninstall()
        if self.token.cancelled:
            logger.info("Cleanup complete. Stores closed.")

"""
Bounded pool of isolated worker processes for CPU-bound transforms.

Each task runs in its own process and talks to the event loop only through
a one-way pipe: payload in via the process arguments, one result or error
message back. A semaphore caps the number of live worker processes. The
wait for a result is a reader on the event loop, so a task's timeout clock
starts with its process and no executor thread is held while it runs.

Per task:
    - result message      -> returned to the caller
    - error message       -> ParseError
    - no message in time  -> process terminated, WorkerTimeoutError
    - exit without result -> WorkerCrash
    - caller cancelled    -> process terminated (abandoned on shutdown)

A failing or hanging task never affects the other tasks in flight.
"""

import asyncio
import multiprocessing
from multiprocessing.connection import Connection
from typing import Any, Callable, Optional, Set

from core.exceptions import ParseError, WorkerCrash, WorkerTimeoutError
import logging

logger = logging.getLogger(__name__)

_JOIN_TIMEOUT_SECONDS = 5.0


def _worker_main(target: Callable[[Any], Any], payload: Any, conn: Connection):
    """Body of a worker process: run target once and report back"""
    try:
        result = target(payload)
    except Exception as e:
        message = getattr(e, "message", str(e))
        conn.send(("error", type(e).__name__, message))
    else:
        conn.send(("ok", result))
    finally:
        conn.close()


class TransformWorkerPool:
    """
    Run a picklable callable in isolated processes with a per-task timeout.

    Args:
        target: Module-level function (or functools.partial of one) applied to each payload
        max_workers: Maximum number of concurrently running worker processes
        timeout: Seconds before a task is terminated
        start_method: multiprocessing start method; None uses the platform default
    """

    def __init__(
        self,
        target: Callable[[Any], Any],
        max_workers: int = 2,
        timeout: float = 10.0,
        start_method: Optional[str] = None
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.target = target
        self.max_workers = max_workers
        self.timeout = timeout
        self._context = multiprocessing.get_context(start_method)
        self._slots = asyncio.Semaphore(max_workers)
        self._active: Set[multiprocessing.process.BaseProcess] = set()

    @property
    def active_count(self) -> int:
        return len(self._active)

    async def submit(self, payload: Any, task_id: str = "") -> Any:
        """
        Run target(payload) in a worker process.

        Raises:
            ParseError: If target raised inside the worker
            WorkerTimeoutError: If the task exceeded the timeout
            WorkerCrash: If the worker exited without a result
        """
        async with self._slots:
            return await self._run_isolated(payload, task_id)

    async def _run_isolated(self, payload: Any, task_id: str) -> Any:
        receiver, sender = self._context.Pipe(duplex=False)
        process = self._context.Process(
            target=_worker_main,
            args=(self.target, payload, sender),
            daemon=True,
        )
        process.start()
        sender.close()
        self._active.add(process)
        try:
            ready = await self._wait_readable(receiver)
            if not ready:
                self._terminate(process)
                raise WorkerTimeoutError(
                    "Worker timed out",
                    context={"record_id": task_id, "timeout_seconds": self.timeout}
                )
            try:
                message = await asyncio.to_thread(receiver.recv)
            except EOFError:
                await asyncio.to_thread(process.join, _JOIN_TIMEOUT_SECONDS)
                raise WorkerCrash(
                    "Worker stopped without a result",
                    context={"record_id": task_id, "exit_code": process.exitcode}
                )
        finally:
            if process.is_alive():
                self._terminate(process)
            receiver.close()
            self._active.discard(process)

        if message[0] == "ok":
            await asyncio.to_thread(process.join, _JOIN_TIMEOUT_SECONDS)
            return message[1]

        _, error_type, error_message = message
        raise ParseError(
            error_message,
            context={"record_id": task_id, "error_type": error_type}
        )

    async def _wait_readable(self, receiver: Connection) -> bool:
        """Wait on the event loop until the pipe has data or EOF; False on timeout"""
        loop = asyncio.get_running_loop()
        readable = loop.create_future()
        fd = receiver.fileno()

        def on_readable():
            if not readable.done():
                readable.set_result(True)

        loop.add_reader(fd, on_readable)
        try:
            return await asyncio.wait_for(readable, self.timeout)
        except asyncio.TimeoutError:
            return False
        finally:
            loop.remove_reader(fd)

    @staticmethod
    def _terminate(process):
        process.terminate()
        process.join(_JOIN_TIMEOUT_SECONDS)
        if process.is_alive():
            process.kill()
            process.join()

    def abandon(self) -> int:
        """Terminate every live worker process; returns how many were killed"""
        abandoned = 0
        for process in list(self._active):
            if process.is_alive():
                self._terminate(process)
                abandoned += 1
            self._active.discard(process)
        if abandoned:
            logger.warning(f"Abandoned {abandoned} in-flight worker tasks")
        return abandoned

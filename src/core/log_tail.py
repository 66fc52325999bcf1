"""Follow growing log files for live streaming.

Every subscriber gets its own ``tail -F`` subprocess. The subprocess is
owned by the async generator returned from :meth:`LogFollower.events`, so
closing or cancelling that generator (a client disconnecting) always
terminates it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from ..utils import epoch_ms

logger = logging.getLogger(__name__)

FOLLOW_COMMAND = ("tail", "-n", "0", "-F")
KEEPALIVE_SECONDS = 15.0
TERMINATE_GRACE_SECONDS = 5.0
PATH_WAIT_ATTEMPTS = 120
PATH_WAIT_INTERVAL_SECONDS = 1.0
READ_CHUNK_BYTES = 64 * 1024

TailEventType = Literal["line", "ping", "error"]


@dataclass
class TailEvent:
    """One unit pushed to a subscriber.

    ``terminal`` marks an error after which the stream ends.
    """

    type: TailEventType
    data: str
    terminal: bool = False


class LogFollower:
    """Stream lines appended to ``path`` from the moment of subscription."""

    def __init__(
        self,
        path: Path,
        keepalive_interval: float = KEEPALIVE_SECONDS,
        command: tuple[str, ...] = FOLLOW_COMMAND,
    ):
        self.path = path
        self.keepalive_interval = keepalive_interval
        self.command = command

    async def events(self) -> AsyncGenerator[TailEvent, None]:
        """Yield new lines, keepalive pings and errors until closed.

        Pings come from a fixed-interval ticker, so they keep flowing while
        lines are being delivered too.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command,
                str(self.path),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as exc:
            yield TailEvent("error", f"Cannot follow {self.path}: {exc}", terminal=True)
            return

        logger.debug("Following %s (pid %s)", self.path, proc.pid)
        queue: asyncio.Queue[TailEvent | None] = asyncio.Queue()
        readers = [
            asyncio.create_task(self._pump(proc.stdout, "line", queue)),
            asyncio.create_task(self._pump(proc.stderr, "error", queue)),
        ]
        ticker = asyncio.create_task(self._tick(queue))

        try:
            open_streams = len(readers)
            while True:
                item = await queue.get()
                if item is not None:
                    yield item
                    if item.terminal:
                        return
                    continue

                open_streams -= 1
                if open_streams == 0:
                    break

            returncode = await proc.wait()
            yield TailEvent(
                "error",
                f"Log follower for {self.path} exited with code {returncode}.",
                terminal=True,
            )
        finally:
            ticker.cancel()
            for reader in readers:
                reader.cancel()
            await _terminate(proc)
            logger.debug("Stopped following %s", self.path)

    async def _tick(self, queue: asyncio.Queue[TailEvent | None]) -> None:
        while True:
            await asyncio.sleep(self.keepalive_interval)
            await queue.put(TailEvent("ping", str(epoch_ms())))

    @staticmethod
    async def _pump(
        stream: asyncio.StreamReader | None,
        event_type: TailEventType,
        queue: asyncio.Queue[TailEvent | None],
    ) -> None:
        """Split raw chunks into lines; there is no upper bound on line length."""
        # Pieces of the current, not yet terminated line.
        partial: list[bytes] = []
        try:
            while stream is not None:
                chunk = await stream.read(READ_CHUNK_BYTES)
                if not chunk:
                    break
                if b"\n" not in chunk:
                    partial.append(chunk)
                    continue
                first, *rest = chunk.split(b"\n")
                await _put_line(queue, event_type, b"".join(partial) + first)
                for raw in rest[:-1]:
                    await _put_line(queue, event_type, raw)
                partial = [rest[-1]]
            await _put_line(queue, event_type, b"".join(partial))
        except OSError as exc:
            await queue.put(TailEvent("error", f"Log follower read failed: {exc}", terminal=True))
        finally:
            await queue.put(None)


async def _put_line(queue: asyncio.Queue[TailEvent | None], event_type: TailEventType, raw: bytes) -> None:
    line = raw.decode("utf-8", errors="replace").rstrip("\r").strip()
    if line:
        await queue.put(TailEvent(event_type, line))


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.terminate()
    except ProcessLookupError:
        # Already exited; still reap it.
        await proc.wait()
        return
    try:
        await asyncio.wait_for(proc.wait(), timeout=TERMINATE_GRACE_SECONDS)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()


async def wait_for_path(
    resolve: Callable[[], Path],
    attempts: int = PATH_WAIT_ATTEMPTS,
    interval: float = PATH_WAIT_INTERVAL_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Path:
    """Retry ``resolve`` until it returns a path or the attempts run out.

    ``resolve`` signals "not there yet" by raising FileNotFoundError. It does
    blocking filesystem calls, so it runs in a worker thread. After the last
    attempt a FileNotFoundError is raised whose message says how long we
    waited; this is the terminal not-found condition.
    """
    last_error: FileNotFoundError | None = None
    for attempt in range(attempts):
        try:
            return await asyncio.to_thread(resolve)
        except FileNotFoundError as exc:
            last_error = exc
        if attempt + 1 < attempts:
            await sleep(interval)

    waited = int(attempts * interval)
    raise FileNotFoundError(
        f"Output log not found yet (waited {waited}s). "
        "Start a new task or wait for the job to produce output logs."
    ) from last_error

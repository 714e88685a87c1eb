"""
Engine process supervision.

One child process per job, spawned with asyncio so waiting on it never
blocks the event loop.

Design rules:
- stdout is the progress channel, stderr the diagnostic channel
- both channels are delivered line by line, split on \\n and \\r
- the child leads its own process group; signals go to the whole group
- cancel() sends SIGTERM, escalating to SIGKILL after a grace period
- the timeout timer calls cancel() and marks the outcome as timed out
- on_exit fires exactly once, when the child exits; the channels then get
  a bounded drain, after which descendants still holding them are killed
"""

import asyncio
import logging
import os
import re
import signal
from dataclasses import dataclass
from typing import Callable, List, Optional

from ffmpeg_jobs.jobs.errors import EngineLaunchError

logger = logging.getLogger(__name__)

LineCallback = Callable[[str], None]
ExitCallback = Callable[["ProcessOutcome"], None]

READ_CHUNK_SIZE = 64 * 1024
LINE_BREAK = re.compile(r"\r\n|\r|\n")
EXIT_POLL_INTERVAL = 0.05
DRAIN_TIMEOUT = 1.0


@dataclass(frozen=True)
class ProcessOutcome:
    """How a supervised process ended."""

    exit_code: Optional[int]
    # Killed by our timeout timer
    timed_out: bool = False
    # Killed by an explicit cancel() (deletion, shutdown)
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.timed_out and not self.cancelled


class SupervisedProcess:
    """Handle on one running engine process."""

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        on_progress_line: LineCallback,
        on_diagnostic_line: LineCallback,
        on_exit: Optional[ExitCallback] = None,
        timeout: Optional[float] = None,
        kill_grace: float = 5.0,
        drain_timeout: float = DRAIN_TIMEOUT,
    ):
        self._process = process
        self._on_progress_line = on_progress_line
        self._on_diagnostic_line = on_diagnostic_line
        self._on_exit = on_exit
        self._kill_grace = kill_grace
        self._drain_timeout = drain_timeout

        self._terminating = False
        self._cancelled = False
        self._timed_out = False
        self._outcome: Optional[ProcessOutcome] = None

        self._loop = asyncio.get_running_loop()
        self._kill_handle: Optional[asyncio.TimerHandle] = None
        self._timeout_handle: Optional[asyncio.TimerHandle] = None
        if timeout is not None:
            self._timeout_handle = self._loop.call_later(timeout, self._on_timeout)

        self._task = asyncio.create_task(self._supervise())

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def running(self) -> bool:
        return self._outcome is None

    @property
    def outcome(self) -> Optional[ProcessOutcome]:
        return self._outcome

    def cancel(self) -> None:
        """Ask the process to stop. Idempotent; no-op once it has exited."""
        if self._outcome is not None or self._terminating:
            return
        if self._process.returncode is not None:
            return
        self._terminating = True
        self._cancelled = True
        if not self._signal_group(signal.SIGTERM):
            return
        self._kill_handle = self._loop.call_later(self._kill_grace, self._kill)

    async def wait(self) -> ProcessOutcome:
        # Shielded: a caller being cancelled must not abort supervision.
        return await asyncio.shield(self._task)

    def _on_timeout(self) -> None:
        self._timeout_handle = None
        if self._outcome is not None or self._terminating:
            return
        if self._process.returncode is not None:
            return
        logger.warning(f"Process {self.pid} exceeded its timeout, terminating")
        self._timed_out = True
        self.cancel()

    def _kill(self) -> None:
        self._kill_handle = None
        if self._process.returncode is None:
            logger.warning(f"Process {self.pid} ignored SIGTERM, killing")
        self._signal_group(signal.SIGKILL)

    def _signal_group(self, sig: int) -> bool:
        """Signal the child's process group. False if nothing is left in it."""
        try:
            os.killpg(self.pid, sig)
        except ProcessLookupError:
            return False
        return True

    async def _wait_for_exit(self) -> int:
        # Process.wait() may also wait for the pipes to close, which a
        # descendant of the engine can hold open long after the engine exits.
        while self._process.returncode is None:
            await asyncio.sleep(EXIT_POLL_INTERVAL)
        return self._process.returncode

    async def _supervise(self) -> ProcessOutcome:
        pumps = [
            asyncio.create_task(_pump(self._process.stdout, self._on_progress_line)),
            asyncio.create_task(_pump(self._process.stderr, self._on_diagnostic_line)),
        ]
        try:
            exit_code = await self._wait_for_exit()
            try:
                await asyncio.wait_for(asyncio.gather(*pumps), timeout=self._drain_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Process {self.pid} exited but its output is still held open, "
                    f"killing its process group"
                )
                self._signal_group(signal.SIGKILL)
        finally:
            for pump in pumps:
                pump.cancel()
            if self._timeout_handle is not None:
                self._timeout_handle.cancel()
                self._timeout_handle = None
            if self._kill_handle is not None:
                self._kill_handle.cancel()
                self._kill_handle = None

        self._outcome = ProcessOutcome(
            exit_code=exit_code,
            timed_out=self._timed_out,
            cancelled=self._cancelled and not self._timed_out,
        )
        if self._on_exit is not None:
            try:
                self._on_exit(self._outcome)
            except Exception:
                logger.exception(f"on_exit callback failed for process {self.pid}")
        return self._outcome


async def _pump(stream: Optional[asyncio.StreamReader], callback: LineCallback) -> None:
    """Deliver every non-blank line of stream to callback until EOF."""
    if stream is None:
        return
    pending = ""
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        pending += chunk.decode("utf-8", errors="replace")
        lines = LINE_BREAK.split(pending)
        pending = lines.pop()
        for line in lines:
            _deliver(line, callback)
    _deliver(pending, callback)


def _deliver(line: str, callback: LineCallback) -> None:
    # Terminators are already split off; the rest is passed through verbatim.
    if not line.strip():
        return
    try:
        callback(line)
    except Exception:
        logger.exception("Line callback failed")


class ProcessSupervisor:
    """Spawns engine processes and wraps them in SupervisedProcess handles."""

    def __init__(self, timeout: Optional[float] = None, kill_grace: float = 5.0):
        self._timeout = timeout
        self._kill_grace = kill_grace

    async def start(
        self,
        argv: List[str],
        on_progress_line: LineCallback,
        on_diagnostic_line: LineCallback,
        on_exit: Optional[ExitCallback] = None,
    ) -> SupervisedProcess:
        """Launch argv. Raises EngineLaunchError if the OS cannot start it."""
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            raise EngineLaunchError(f"Failed to start {argv[0]}: {exc}") from exc

        return SupervisedProcess(
            process,
            on_progress_line=on_progress_line,
            on_diagnostic_line=on_diagnostic_line,
            on_exit=on_exit,
            timeout=self._timeout,
            kill_grace=self._kill_grace,
        )


async def probe(binary: str, timeout: float = 1.0) -> bool:
    """Return True if `<binary> -version` exits 0 within timeout."""
    try:
        process = await asyncio.create_subprocess_exec(
            binary,
            "-version",
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError:
        return False

    try:
        return await asyncio.wait_for(process.wait(), timeout=timeout) == 0
    except asyncio.TimeoutError:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        await process.wait()
        return False

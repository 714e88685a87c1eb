"""Job lifecycle manager: a bounded pool of asyncio workers driving engine processes.

Submission only stores the queued record and enqueues its id, so callers
never wait on the engine. Each worker takes one job at a time:

    queued -> processing -> completed | failed

and every terminal transition releases the job's inputs (and, on failure,
its output directory). Jobs beyond max_workers stay queued until a worker
frees up.
"""

import asyncio
import logging
import os
import re
from typing import Any, Dict, List, Optional, Sequence, Set

from ffmpeg_jobs.jobs.dispatcher import JobDispatcher
from ffmpeg_jobs.jobs.models import DeletedFiles, JobRecord, JobStatus
from ffmpeg_jobs.jobs.progress import ProgressTracker
from ffmpeg_jobs.jobs.store import JobStore
from ffmpeg_jobs.jobs.supervisor import ProcessOutcome, ProcessSupervisor, SupervisedProcess
from ffmpeg_jobs.storage.staging import StagingArea

logger = logging.getLogger(__name__)

# {{field_name}} -> path of the file uploaded under field_name
PLACEHOLDER_PATTERN = re.compile(r"^\{\{(.*)\}\}$")

TIMEOUT_ERROR = "Processing timeout"
CANCELLED_ERROR = "Job cancelled"


def resolve_command(tokens: Sequence[str], file_mapping: Dict[str, str]) -> List[str]:
    """Substitute placeholder tokens with uploaded file paths.

    A placeholder naming no upload is passed through as a literal token.
    """
    resolved = []
    for token in tokens:
        match = PLACEHOLDER_PATTERN.match(token)
        if match and match.group(1) in file_mapping:
            resolved.append(file_mapping[match.group(1)])
        else:
            resolved.append(token)
    return resolved


class JobManager(JobDispatcher):
    """Runs submitted jobs against the engine with at most max_workers at once."""

    def __init__(
        self,
        store: JobStore,
        staging: StagingArea,
        supervisor: ProcessSupervisor,
        engine_binary: str = "ffmpeg",
        engine_flags: Sequence[str] = ("-y", "-progress", "pipe:1"),
        max_workers: int = 4,
    ):
        self._store = store
        self._staging = staging
        self._supervisor = supervisor
        self._engine_binary = engine_binary
        self._engine_flags = list(engine_flags)
        self._max_workers = max(1, max_workers)

        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._workers: List[asyncio.Task] = []
        self._running = False

        # Jobs currently in the processing phase
        self._active: Dict[str, SupervisedProcess] = {}
        self._finished: Dict[str, asyncio.Event] = {}
        self._cancel_requested: Set[str] = set()

    async def submit(self, job: JobRecord) -> str:
        self._store.put(job)
        self._queue.put_nowait(job.id)
        logger.info(f"[{job.id}] Job queued")
        return job.id

    async def get_status(self, job_id: str) -> Optional[JobRecord]:
        return self._store.get(job_id)

    async def list_jobs(self) -> List[Dict[str, Any]]:
        return self._store.list()

    async def delete(self, job_id: str) -> Optional[DeletedFiles]:
        """Remove a job, terminating its engine process first if it has one.

        A processing job is signalled to stop and its own exit handling
        finishes before the record and files are released.
        """
        if self._store.get(job_id) is None:
            return None

        done = self._finished.get(job_id)
        if done is not None:
            self._cancel_requested.add(job_id)
            handle = self._active.get(job_id)
            if handle is not None:
                logger.info(f"[{job_id}] Cancelling running process {handle.pid}")
                handle.cancel()
            await done.wait()

        removed = self._store.delete(job_id)
        if removed is None:
            return None
        logger.info(f"[{job_id}] Job deleted")
        return removed[1]

    async def delete_all(self) -> int:
        count = 0
        for job in self._store.records():
            if await self.delete(job.id) is not None:
                count += 1
        return count

    async def start(self) -> None:
        self._running = True
        self._workers = [
            asyncio.create_task(self._worker_loop(), name=f"job-worker-{i}")
            for i in range(self._max_workers)
        ]

    async def stop(self) -> None:
        """Cancel running processes, let them finalize, then stop the workers."""
        self._running = False
        self._cancel_requested.update(self._finished)
        for handle in list(self._active.values()):
            handle.cancel()
        pending = [done.wait() for done in self._finished.values()]
        if pending:
            await asyncio.gather(*pending)

        for task in self._workers:
            task.cancel()
        for task in self._workers:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._workers = []

    def build_argv(self, job: JobRecord) -> List[str]:
        """Full engine command line; the output path is always the last argument."""
        resolved = resolve_command(job.command, job.file_mapping)
        return [self._engine_binary, *self._engine_flags, *resolved, job.output_path]

    async def _worker_loop(self) -> None:
        """Process jobs one at a time from the queue."""
        while self._running:
            try:
                job_id = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break
            if not self._running:
                break

            job = self._store.get(job_id)
            if job is None or job.status != JobStatus.QUEUED:
                # Deleted while queued; store.delete already released its files
                continue

            try:
                await self._execute(job)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception(f"[{job_id}] Unexpected error in job worker")

    async def _execute(self, job: JobRecord) -> None:
        done = asyncio.Event()
        self._finished[job.id] = done
        try:
            await self._run(job)
        finally:
            self._active.pop(job.id, None)
            self._cancel_requested.discard(job.id)
            self._finished.pop(job.id, None)
            done.set()

    async def _run(self, job: JobRecord) -> None:
        job.mark_processing()
        self._store.update(job)
        logger.info(f"[{job.id}] Starting job processing")

        tracker = ProgressTracker()
        try:
            self._staging.job_output_dir(job.id)
            argv = self.build_argv(job)
            logger.info(f"[{job.id}] Running engine with args: {argv}")
            handle = await self._supervisor.start(
                argv,
                on_progress_line=lambda line: self._on_progress_line(job, tracker, line),
                on_diagnostic_line=lambda line: self._on_diagnostic_line(job, tracker, line),
                on_exit=lambda outcome: self._on_exit(job, outcome),
            )
        except Exception as exc:
            logger.error(f"[{job.id}] Processing error: {exc}")
            self._fail(job, str(exc) or type(exc).__name__)
            return

        self._active[job.id] = handle
        if job.id in self._cancel_requested:
            handle.cancel()
        await handle.wait()

    def _on_progress_line(self, job: JobRecord, tracker: ProgressTracker, line: str) -> None:
        percent = tracker.feed_progress(line)
        if percent is not None and percent > job.progress:
            job.advance_progress(percent)
            self._store.update(job)

    def _on_diagnostic_line(self, job: JobRecord, tracker: ProgressTracker, line: str) -> None:
        job.append_log(line)
        tracker.feed_diagnostic(line)

    def _on_exit(self, job: JobRecord, outcome: ProcessOutcome) -> None:
        if outcome.succeeded and os.path.isfile(job.output_path):
            self._staging.remove_inputs(job.input_files)
            job.mark_completed()
            self._store.update(job)
            logger.info(f"[{job.id}] Job completed successfully")
            return

        if outcome.timed_out:
            job.append_log("Process terminated after processing timeout")
            error = TIMEOUT_ERROR
        elif outcome.cancelled:
            job.append_log("Process terminated by cancellation")
            error = CANCELLED_ERROR
        elif outcome.exit_code != 0:
            job.append_log(f"Process exited with code {outcome.exit_code}")
            error = f"Engine exited with code {outcome.exit_code}"
        else:
            error = "Engine exited without producing an output file"
        logger.error(f"[{job.id}] {error}")
        self._fail(job, error)

    def _fail(self, job: JobRecord, error: str) -> None:
        """Mark failed and leave nothing behind: no inputs, no partial output."""
        job.mark_failed(error)
        self._staging.remove_inputs(job.input_files)
        self._staging.remove_output_dir(job.output_dir)
        self._store.update(job)

"""Staging areas for uploaded inputs and per-job outputs, with best-effort removal."""

import logging
import os
import shutil
import uuid
from typing import Iterable

from ffmpeg_jobs.jobs.models import DeletedFiles, JobRecord

logger = logging.getLogger(__name__)


class StagingArea:
    """Owns the upload and output directories on local disk.

    Inputs live flat in upload_dir; every job gets output_dir/<job_id>/.
    Removal never raises: a missing file is fine, anything else is a warning.
    """

    def __init__(self, upload_dir: str, output_dir: str):
        self._upload_dir = upload_dir
        self._output_dir = output_dir

    @property
    def upload_dir(self) -> str:
        return self._upload_dir

    @property
    def output_dir(self) -> str:
        return self._output_dir

    def ensure_dirs(self) -> None:
        os.makedirs(self._upload_dir, exist_ok=True)
        os.makedirs(self._output_dir, exist_ok=True)

    def dirs_exist(self) -> bool:
        return os.path.isdir(self._upload_dir) and os.path.isdir(self._output_dir)

    def job_output_dir(self, job_id: str) -> str:
        """Get or create directory for a job's output file."""
        job_dir = os.path.join(self._output_dir, job_id)
        os.makedirs(job_dir, exist_ok=True)
        return job_dir

    def new_upload_path(self, suffix: str = "") -> str:
        os.makedirs(self._upload_dir, exist_ok=True)
        return os.path.join(self._upload_dir, f"{uuid.uuid4().hex}{suffix}")

    def remove_file(self, path: str) -> bool:
        """Delete one file. Returns True if it existed and was removed."""
        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning(f"Failed to delete file {path}: {exc}")
            return False

    def remove_inputs(self, paths: Iterable[str]) -> int:
        return sum(1 for path in paths if self.remove_file(path))

    def remove_output_dir(self, job_dir: str) -> None:
        """Recursively delete a job's output directory."""
        if not job_dir:
            return
        try:
            shutil.rmtree(job_dir)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning(f"Failed to delete output directory {job_dir}: {exc}")

    def release(self, job: JobRecord) -> DeletedFiles:
        """Remove every file backing a job.

        The counts describe the files the job owned, whether or not an
        earlier lifecycle step already removed them.
        """
        self.remove_inputs(job.input_files)
        if job.output_path:
            self.remove_file(job.output_path)
            self.remove_output_dir(job.output_dir)
        return DeletedFiles(
            input_files=len(job.input_files),
            output_file=1 if job.output_path else 0,
        )

"""Process Runner - executes external tools (ffmpeg, ffprobe) from structured argument lists."""

import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Any, Optional

from reel_assembler.core.errors import AssemblyTimeoutError, JobCancelledError, ProcessError

# How often a running child is checked for cancellation.
POLL_INTERVAL_SECONDS = 0.2

# Lines of stderr kept in error messages.
STDERR_TAIL_LINES = 20


@dataclass
class ProcessResult:
    """Captured output of a finished process."""

    args: list[str]
    returncode: int
    stdout: str
    stderr: str
    elapsed_seconds: float


def stderr_tail(stderr: str, lines: int = STDERR_TAIL_LINES) -> str:
    """Return the last few lines of a process's stderr."""
    return "\n".join(stderr.strip().splitlines()[-lines:])


def quote_concat_path(path: str) -> str:
    """
    Quote a path for an ffmpeg concat manifest line.

    The concat demuxer reads single-quoted strings; an embedded quote is
    closed, escaped and reopened.

    Args:
        path: Filesystem path

    Returns:
        Quoted path, e.g. 'a'\\''b.jpg'
    """
    return "'" + path.replace("'", "'\\''") + "'"


class ProcessRunner:
    """Runs external commands with a timeout and cooperative cancellation."""

    def __init__(self, logger: Any):
        """
        Initialize process runner.

        Args:
            logger: Logger instance
        """
        self.logger = logger

    def run(
        self,
        args: list[str],
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        description: str = "process",
    ) -> ProcessResult:
        """
        Run a command to completion.

        The command is never passed through a shell. On timeout or
        cancellation the child is killed before the error is raised.

        Args:
            args: Program and arguments
            timeout: Seconds before the child is killed (None = no limit)
            cancel_event: Event that, once set, kills the child
            description: Short name used in logs and errors

        Returns:
            ProcessResult of a zero-exit run

        Raises:
            AssemblyTimeoutError: If the timeout elapsed
            JobCancelledError: If cancel_event was set
            ProcessError: If the command exited non-zero or could not start
        """
        args = [str(a) for a in args]
        self.logger.debug(f"Running {description}: {' '.join(args)}")
        start_time = time.time()

        try:
            process = subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise ProcessError(f"{description} could not start: {e}", args, -1, str(e)) from e

        # One reader per pipe so a chatty child never blocks on a full pipe
        output: dict[str, str] = {}
        readers = [
            threading.Thread(target=self._drain, args=(process.stdout, "stdout", output), daemon=True),
            threading.Thread(target=self._drain, args=(process.stderr, "stderr", output), daemon=True),
        ]
        for reader in readers:
            reader.start()

        deadline = start_time + timeout if timeout else None
        try:
            while True:
                try:
                    process.wait(timeout=POLL_INTERVAL_SECONDS)
                    break
                except subprocess.TimeoutExpired:
                    pass
                if cancel_event is not None and cancel_event.is_set():
                    self._kill(process)
                    raise JobCancelledError(f"{description} cancelled", {"command": args[0]})
                if deadline is not None and time.time() > deadline:
                    self._kill(process)
                    raise AssemblyTimeoutError(
                        f"{description} exceeded {timeout:.0f}s timeout", command=args, timeout=timeout
                    )
        except BaseException:
            if process.poll() is None:
                self._kill(process)
            raise
        finally:
            for reader in readers:
                reader.join(timeout=5)

        elapsed = time.time() - start_time
        stdout = output.get("stdout", "")
        stderr = output.get("stderr", "")

        if process.returncode != 0:
            self.logger.debug(f"{description} failed after {elapsed:.2f}s (exit {process.returncode})")
            raise ProcessError(
                f"{description} exited with status {process.returncode}: {stderr_tail(stderr, 3)}",
                args,
                process.returncode,
                stderr,
            )

        self.logger.debug(f"{description} completed in {elapsed:.2f}s")
        return ProcessResult(args, process.returncode, stdout, stderr, elapsed)

    @staticmethod
    def _drain(stream: Any, key: str, output: dict[str, str]) -> None:
        try:
            output[key] = stream.read()
        finally:
            stream.close()

    def _kill(self, process: subprocess.Popen) -> None:
        self.logger.warning(f"Killing process {process.pid}")
        process.kill()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            self.logger.error(f"Process {process.pid} did not exit after kill")

"""Asset Fetcher - downloads optional audio assets (music, sound effects) into a job workspace."""

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlparse

import requests

from reel_assembler.core.config import Settings
from reel_assembler.core.errors import AssetRetrievalError, JobCancelledError
from reel_assembler.utils.parallel_executor import ParallelExecutor
from reel_assembler.utils.rate_limiter import get_download_limiter

CHUNK_SIZE = 64 * 1024


@dataclass
class AssetDownload:
    """One optional asset to fetch."""

    label: str
    url: str
    destination: Path


class AssetFetcher:
    """Fetches remote assets with a bounded worker pool; each download fails independently."""

    def __init__(self, settings: Settings, logger: Any, parallel_executor: Optional[ParallelExecutor] = None):
        """
        Initialize asset fetcher.

        Args:
            settings: Application settings
            logger: Logger instance
            parallel_executor: Optional executor (created from settings when omitted)
        """
        self.settings = settings
        self.logger = logger
        self.parallel_executor = parallel_executor or ParallelExecutor(settings, logger)
        self.timeout = getattr(settings, "download_timeout_seconds", 60.0)
        self.max_bytes = getattr(settings, "max_download_bytes", 100 * 1024 * 1024)

    def fetch(self, download: AssetDownload, cancel_event: Optional[threading.Event] = None) -> Path:
        """
        Download one asset.

        A network timeout is reported as AssetRetrievalError, not as
        AssemblyTimeoutError: the asset is optional, so the job drops the
        track and goes on. Only timeouts of ffmpeg/ffprobe steps are fatal.

        Args:
            download: Asset description
            cancel_event: Optional cancellation token, checked between chunks

        Returns:
            Path of the downloaded file

        Raises:
            AssetRetrievalError: If the asset cannot be fetched, is empty or too large
            JobCancelledError: If the job was cancelled mid-download
        """
        parsed = urlparse(download.url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise AssetRetrievalError(
                f"Unsupported asset URL for {download.label}: {download.url}", {"label": download.label}
            )

        if getattr(self.settings, "enable_rate_limiting", True):
            limiter = get_download_limiter(max_calls=getattr(self.settings, "download_rate_limit", 30))
            limiter.wait_if_needed(parsed.netloc, cancel_event)

        self.logger.info(f"Downloading {download.label} from {download.url}")
        download.destination.parent.mkdir(parents=True, exist_ok=True)
        written = 0
        try:
            with requests.get(download.url, stream=True, timeout=self.timeout) as response:
                if response.status_code != 200:
                    raise AssetRetrievalError(
                        f"Failed to download {download.label}: status {response.status_code} {response.reason}",
                        {"label": download.label, "status": response.status_code},
                    )
                with open(download.destination, "wb") as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if cancel_event is not None and cancel_event.is_set():
                            raise JobCancelledError(f"Download of {download.label} cancelled")
                        if not chunk:
                            continue
                        written += len(chunk)
                        if written > self.max_bytes:
                            raise AssetRetrievalError(
                                f"{download.label} exceeds {self.max_bytes} bytes", {"label": download.label}
                            )
                        f.write(chunk)
        except requests.exceptions.RequestException as e:
            download.destination.unlink(missing_ok=True)
            raise AssetRetrievalError(
                f"Network error downloading {download.label}: {e}", {"label": download.label}
            ) from e
        except (AssetRetrievalError, JobCancelledError):
            download.destination.unlink(missing_ok=True)
            raise

        if written == 0:
            download.destination.unlink(missing_ok=True)
            raise AssetRetrievalError(f"Downloaded {download.label} is empty", {"label": download.label})

        self.logger.info(f"Saved {download.label} ({written} bytes) to {download.destination.name}")
        return download.destination

    def fetch_all(
        self,
        downloads: list[AssetDownload],
        job_id: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> dict[str, "Path | Exception"]:
        """
        Fetch several assets concurrently and join before returning.

        Args:
            downloads: Assets to fetch
            job_id: Optional job ID for logging context
            cancel_event: Optional cancellation token

        Returns:
            Mapping label -> downloaded Path, or the exception that made it fail

        Raises:
            JobCancelledError: If the job was cancelled during the downloads
        """
        if not downloads:
            return {}

        tasks = [lambda d=d: self.fetch(d, cancel_event) for d in downloads]
        results = self.parallel_executor.execute_tasks(
            tasks,
            task_names=[d.label for d in downloads],
            job_id=job_id,
        )

        outcome: dict[str, "Path | Exception"] = {}
        for download, (path, error) in zip(downloads, results):
            if isinstance(error, JobCancelledError):
                raise error
            outcome[download.label] = error if error is not None else path
        return outcome

"""Parallel Executor - bounded fan-out/fan-in for independent external calls."""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Optional

from reel_assembler.core.config import Settings


class ParallelExecutor:
    """Runs independent tasks on a small worker pool and joins them."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize parallel executor.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.max_parallel_downloads = max(1, getattr(settings, "max_parallel_downloads", 4))

    def execute_tasks(
        self,
        tasks: list[Callable],
        task_names: Optional[list[str]] = None,
        job_id: Optional[str] = None,
        max_workers: Optional[int] = None,
    ) -> list[tuple[Any, Optional[Exception]]]:
        """
        Execute a batch of tasks with controlled concurrency.

        A failing task never affects its siblings; its exception is returned
        in its slot. Results keep the order of ``tasks``.

        Args:
            tasks: List of callable tasks to execute (each should respect RateLimiter internally)
            task_names: Optional list of task names for logging
            job_id: Optional job ID for logging context
            max_workers: Maximum number of parallel workers (defaults to max_parallel_downloads)

        Returns:
            List of tuples: (result, exception) for each task
        """
        if not tasks:
            return []

        max_workers = max_workers or self.max_parallel_downloads
        log_prefix = f"[{job_id}] " if job_id else ""

        def name_of(i: int) -> str:
            return task_names[i] if task_names and i < len(task_names) else f"task_{i+1}"

        # If max_workers is 1, execute sequentially
        if max_workers == 1:
            results = []
            for i, task in enumerate(tasks):
                try:
                    results.append((task(), None))
                except Exception as e:
                    self.logger.warning(f"{log_prefix}❌ {name_of(i)} failed: {e}")
                    results.append((None, e))
            return results

        self.logger.debug(
            f"{log_prefix}Parallel tasks: {len(tasks)} tasks with max {max_workers} workers"
        )
        start_time = time.time()
        results: list[tuple[Any, Optional[Exception]]] = [(None, None)] * len(tasks)
        completed_count = 0

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_index = {executor.submit(task): i for i, task in enumerate(tasks)}

            for future in as_completed(future_to_index):
                index = future_to_index[future]
                completed_count += 1
                try:
                    result = future.result()
                    elapsed = time.time() - start_time
                    self.logger.debug(
                        f"{log_prefix}✅ {name_of(index)} completed ({completed_count}/{len(tasks)}) in {elapsed:.2f}s"
                    )
                    results[index] = (result, None)
                except Exception as e:
                    elapsed = time.time() - start_time
                    self.logger.warning(
                        f"{log_prefix}❌ {name_of(index)} failed ({completed_count}/{len(tasks)}) after {elapsed:.2f}s: {e}"
                    )
                    results[index] = (None, e)

        total_elapsed = time.time() - start_time
        successful = sum(1 for _, error in results if error is None)
        self.logger.debug(
            f"{log_prefix}Batch complete: {successful}/{len(tasks)} successful in {total_elapsed:.2f}s"
        )

        return results

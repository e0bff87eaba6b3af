# geobench/benchmark/orchestrator.py
"""
Benchmark Orchestrator

Launches and supervises the external benchmark process:
- At most one run is active; start() rejects a second one
- Output is streamed chunk by chunk, published and parsed for progress
- On exit the run is finalized, archived and handed to the aggregator

Run lifecycle: pending -> running -> {completed, failed}. A run that
cannot be spawned goes straight from pending to failed.
"""

import asyncio
import copy
import json
import os
from collections import deque
from datetime import datetime
from typing import Any, AsyncIterator, Optional

from geobench.api.websocket.manager import BroadcastHub
from geobench.benchmark.history import HistoricalAggregator
from geobench.benchmark.models import BenchmarkResults, BenchmarkRun, TimeSeriesSample
from geobench.benchmark.parser import apply_signals, parse_chunk
from geobench.benchmark.results import (
    coerce_overall,
    compare_to_baseline,
    config_mix,
    config_regions,
    derive_regions,
    derive_transaction_types,
    finalize_results,
)
from geobench.config.settings import Settings
from geobench.core.constants import EventType, OutputStream, RunStatus, Topic
from geobench.core.exceptions import (
    BenchmarkAlreadyRunningError,
    BenchmarkNotRunningError,
    ProcessRuntimeError,
    ProcessSpawnError,
)
from geobench.metrics.estimation import MetricEstimator
from geobench.utils.logger import log_benchmark_event, log_exception, logger

CONFIG_ENV_VAR = "GEOBENCH_BENCHMARK_CONFIG"


def _local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Run timestamps are naive local time; convert aware ones."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class BenchmarkOrchestrator:
    """Runs one benchmark at a time and keeps the bounded run history."""

    def __init__(
        self,
        settings: Settings,
        hub: BroadcastHub,
        aggregator: HistoricalAggregator,
        estimator: Optional[MetricEstimator] = None,
    ):
        self.settings = settings
        self.hub = hub
        self.aggregator = aggregator
        if estimator is None and settings.benchmark.estimate_missing_results:
            estimator = MetricEstimator(settings.benchmark.seed)
        self.estimator = estimator

        self._lock = asyncio.Lock()
        self._current: Optional[BenchmarkRun] = None
        self._process: Optional[asyncio.subprocess.Process] = None
        self._task: Optional[asyncio.Task] = None
        self._cancel_requested = False
        self._history: deque[BenchmarkRun] = deque(maxlen=settings.history.max_runs)

    @property
    def current(self) -> Optional[BenchmarkRun]:
        return self._current

    @property
    def is_running(self) -> bool:
        return self._current is not None

    # ------------------------------------------------------------------
    # Start / cancel
    # ------------------------------------------------------------------

    async def start(self, config: Optional[dict[str, Any]] = None) -> str:
        """
        Start a benchmark run in the background.

        Args:
            config: Run configuration, merged over the configured defaults

        Returns:
            The new run ID

        Raises:
            BenchmarkAlreadyRunningError: If a run is already active
        """
        async with self._lock:
            if self._current is not None:
                raise BenchmarkAlreadyRunningError(run_id=self._current.id)

            run = BenchmarkRun(config={**self.settings.benchmark.default_config, **(config or {})})
            self._current = run
            self._cancel_requested = False
            self._task = asyncio.create_task(self._execute(run), name=f"benchmark-{run.id}")

        log_benchmark_event(run.id, "start", run.status.value)
        return run.id

    async def cancel(self) -> str:
        """
        Stop the active run. It ends as failed with partial results kept.

        Raises:
            BenchmarkNotRunningError: If nothing is running
        """
        run = self._current
        if run is None:
            raise BenchmarkNotRunningError()

        self._cancel_requested = True
        run.error = "Cancelled by request"
        if self._process is not None:
            await self._stop_process(self._process)
        log_benchmark_event(run.id, "cancel", run.status.value)
        return run.id

    async def wait_current(self, timeout: Optional[float] = None) -> Optional[BenchmarkRun]:
        """Wait for the active run (if any) to finish and return its archived record."""
        task = self._task
        if task is None:
            return None
        await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        return self._history[-1] if self._history else None

    async def shutdown(self) -> None:
        """Stop any active run and wait for its task to settle."""
        if self._current is not None:
            logger.info(f"Stopping benchmark {self._current.id} for shutdown...")
            try:
                await self.cancel()
            except BenchmarkNotRunningError:
                pass

        task = self._task
        if task is not None and not task.done():
            try:
                await asyncio.wait_for(task, timeout=self.settings.benchmark.stop_timeout)
            except asyncio.TimeoutError:
                logger.warning("Benchmark task did not settle in time - cancelling.")
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    # ------------------------------------------------------------------
    # Process supervision
    # ------------------------------------------------------------------

    def _command(self) -> list[str]:
        return [str(part) for part in self.settings.benchmark.command]

    def _environment(self, run: BenchmarkRun) -> dict[str, str]:
        env = os.environ.copy()
        env[CONFIG_ENV_VAR] = json.dumps(run.config, default=str)
        return env

    def _total_rounds(self, run: BenchmarkRun) -> int:
        rounds = run.config.get("rounds")
        if isinstance(rounds, int) and rounds > 0:
            return rounds
        return self.settings.benchmark.total_rounds

    async def _execute(self, run: BenchmarkRun) -> None:
        try:
            await self._supervise(run)
        except Exception as exc:
            log_exception(exc, {"run_id": run.id})
            run.error = run.error or f"Benchmark supervision failed: {type(exc).__name__}: {exc}"
        finally:
            if self._current is run:
                await self._abandon(run)

    async def _supervise(self, run: BenchmarkRun) -> None:
        command = self._command()
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=self.settings.benchmark.workdir,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._environment(run),
            )
        except (OSError, ValueError) as exc:
            error = ProcessSpawnError(" ".join(command), str(exc), run_id=run.id)
            logger.error(str(error))
            run.error = str(error)
            await self._finalize(run, RunStatus.FAILED, estimate=False)
            return

        self._process = process
        if self._cancel_requested:
            # Cancelled while spawning: never enters running.
            await self._stop_process(process)
            run.exit_code = process.returncode
            await self._finalize(run, RunStatus.FAILED, estimate=False)
            return

        run.status = RunStatus.RUNNING
        log_benchmark_event(run.id, "running", run.status.value, f"pid={process.pid}")
        await self.hub.publish(
            Topic.BENCHMARK,
            EventType.BENCHMARK_STARTED,
            {"id": run.id, "config": run.config, "message": "Benchmark initiated"},
        )

        try:
            await asyncio.gather(
                self._consume_stdout(run, process.stdout),
                self._consume_stderr(run, process.stderr),
            )
            exit_code = await process.wait()
        except asyncio.CancelledError:
            await self._stop_process(process)
            run.error = run.error or "Benchmark task cancelled"
            await self._finalize(run, RunStatus.FAILED)
            raise

        run.exit_code = exit_code
        if exit_code == 0 and not self._cancel_requested:
            status = RunStatus.COMPLETED
        else:
            status = RunStatus.FAILED
            if run.error is None:
                run.error = str(ProcessRuntimeError(exit_code, run_id=run.id))
        await self._finalize(run, status)

    async def _iter_chunks(self, stream: Optional[asyncio.StreamReader]) -> AsyncIterator[str]:
        """Yield decoded output chunks until EOF."""
        if stream is None:
            return
        size = self.settings.benchmark.read_chunk_size
        while True:
            data = await stream.read(size)
            if not data:
                break
            yield data.decode("utf-8", errors="replace")

    async def _consume_stdout(self, run: BenchmarkRun, stream: Optional[asyncio.StreamReader]) -> None:
        total_rounds = self._total_rounds(run)
        async for chunk in self._iter_chunks(stream):
            await self._publish_output(run, chunk, OutputStream.INFO)

            signals = parse_chunk(chunk)
            if signals.empty:
                continue
            if apply_signals(run, signals, total_rounds):
                await self.hub.publish(
                    Topic.BENCHMARK,
                    EventType.BENCHMARK_PROGRESS,
                    {"id": run.id, "progress": run.progress, "round": run.round},
                )

    async def _consume_stderr(self, run: BenchmarkRun, stream: Optional[asyncio.StreamReader]) -> None:
        async for chunk in self._iter_chunks(stream):
            logger.warning(f"[BENCHMARK] {run.id} stderr: {chunk.rstrip()}")
            await self._publish_output(run, chunk, OutputStream.ERROR)

    async def _publish_output(self, run: BenchmarkRun, chunk: str, stream: OutputStream) -> None:
        await self.hub.publish(
            Topic.BENCHMARK,
            EventType.BENCHMARK_OUTPUT,
            {"id": run.id, "data": chunk, "type": stream.value},
        )

    async def _stop_process(self, process: asyncio.subprocess.Process) -> None:
        """Terminate, then kill if it does not exit within stop_timeout."""
        if process.returncode is not None:
            return

        timeout = self.settings.benchmark.stop_timeout
        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout=timeout)
        except ProcessLookupError:
            return
        except asyncio.TimeoutError:
            logger.warning(f"Benchmark process did not stop within {timeout}s - killing.")
            try:
                process.kill()
                await process.wait()
            except ProcessLookupError:
                pass

    async def _abandon(self, run: BenchmarkRun) -> None:
        """Release the slot of a run whose supervision broke off; it is archived as failed."""
        process = self._process
        if process is not None:
            await self._stop_process(process)
            run.exit_code = process.returncode

        run.status = RunStatus.FAILED
        run.end_time = run.end_time or datetime.now()
        run.error = run.error or "Benchmark supervision ended unexpectedly"
        self._current = None
        self._process = None

        if not any(r.id == run.id for r in self._history):
            record = copy.deepcopy(run)
            self._history.append(record)
            self.aggregator.ingest(copy.deepcopy(record))

        message = f"Benchmark {run.status.value}: {run.error}"
        log_benchmark_event(run.id, "abandon", run.status.value, message)
        await self.hub.publish(
            Topic.BENCHMARK,
            EventType.BENCHMARK_COMPLETED,
            {"id": run.id, "status": run.status.value, "results": run.results.to_dict(), "message": message},
        )

    async def _finalize(self, run: BenchmarkRun, status: RunStatus, estimate: bool = True) -> None:
        run.status = status
        run.end_time = datetime.now()
        run.results = finalize_results(run, self.estimator if estimate else None)

        record = copy.deepcopy(run)
        self._history.append(record)
        self.aggregator.ingest(copy.deepcopy(record))

        self._current = None
        self._process = None

        if run.exit_code is not None:
            message = f"Benchmark {status.value} with exit code {run.exit_code}"
        else:
            message = f"Benchmark {status.value}: {run.error}"
        log_benchmark_event(run.id, "complete", status.value, message)

        await self.hub.publish(
            Topic.BENCHMARK,
            EventType.BENCHMARK_COMPLETED,
            {
                "id": run.id,
                "status": status.value,
                "results": record.results.to_dict(),
                "message": message,
            },
        )

    # ------------------------------------------------------------------
    # Imported runs
    # ------------------------------------------------------------------

    def import_run(self, payload: dict[str, Any]) -> str:
        """
        Record an externally produced result as a completed run.

        The payload may carry `config`, `start_time`/`end_time` (datetimes)
        and `results` with any of `overall`, `by_region`,
        `by_transaction_type`, `time_series`, `consensus`, `resources`.
        A fresh run ID is always assigned.

        Returns:
            The ID under which the run was stored
        """
        run = BenchmarkRun(config=dict(payload.get("config") or {}))
        run.start_time = _local_naive(payload.get("start_time")) or run.start_time
        run.end_time = _local_naive(payload.get("end_time")) or datetime.now()
        run.status = RunStatus.COMPLETED
        run.progress = 100.0

        raw = payload.get("results") or {}
        if not isinstance(raw, dict):
            raw = {}
        samples = raw.get("time_series") or []
        run.results.time_series = [TimeSeriesSample.from_dict(s) for s in samples if isinstance(s, dict)]

        if isinstance(raw.get("overall"), dict) and raw["overall"]:
            overall = coerce_overall(raw["overall"], run.duration)
            by_region = raw.get("by_region")
            if not (isinstance(by_region, dict) and by_region):
                by_region = derive_regions(overall, config_regions(run.config))
            by_type = raw.get("by_transaction_type")
            if not (isinstance(by_type, dict) and by_type):
                by_type = derive_transaction_types(overall, config_mix(run.config))
            consensus = raw.get("consensus")
            resources = raw.get("resources")

            run.results = BenchmarkResults(
                overall=overall,
                by_region=dict(by_region),
                by_transaction_type=dict(by_type),
                time_series=run.results.time_series,
                consensus=dict(consensus) if isinstance(consensus, dict) else {},
                resources=dict(resources) if isinstance(resources, dict) else {},
                comparison=compare_to_baseline(overall),
            )
        else:
            run.results = finalize_results(run)

        self._history.append(run)
        self.aggregator.ingest(copy.deepcopy(run))
        log_benchmark_event(run.id, "import", run.status.value)
        return run.id

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_run(self, run_id: str) -> Optional[BenchmarkRun]:
        """Active run or archived copy with this ID."""
        if self._current is not None and self._current.id == run_id:
            return self._current
        for run in reversed(self._history):
            if run.id == run_id:
                return run
        return None

    def history(self) -> list[BenchmarkRun]:
        """Archived runs, oldest first."""
        return list(self._history)

"""Run-loop coordinator.

Two units of execution share one SchedulerState:
- CommandListener (daemon thread): reads start/stop/quit from the console and
  flips the phase / cancellation events. It never touches the fetcher,
  converter, snapshot file or database.
- CycleDriver (calling thread): on every tick checks the phase, runs one
  Fetch -> Convert+Stamp -> Snapshot -> Store cycle when running, then waits
  one interval on the cancellation event.

A command typed mid-cycle takes effect at the next phase check. quit
interrupts the interval wait immediately but lets an in-flight cycle finish.
"""

from __future__ import annotations

import logging
import sys
import threading
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, Iterable, Iterator, Optional

import converter
import db
import fetcher
import snapshot
from reading import Reading
from settings import IngestConfig

logger = logging.getLogger("scheduler")


class Phase(str, Enum):
    PAUSED = "paused"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"


class Command(str, Enum):
    START = "start"
    STOP = "stop"
    QUIT = "quit"
    UNKNOWN = "unknown"


_COMMANDS = {
    "start": Command.START,
    "stop": Command.STOP,
    "quit": Command.QUIT,
    "q": Command.QUIT,
}


def parse_command(line: str) -> Command:
    return _COMMANDS.get((line or "").strip().lower(), Command.UNKNOWN)


class SchedulerState:
    """Phase + cancellation, as two events.

    Both are written only by the listener (and the entrypoint on Ctrl+C)
    and read by the driver, so no lock is needed.
    """

    def __init__(self, running: bool = False):
        self.running = threading.Event()
        self.cancelled = threading.Event()
        if running:
            self.running.set()

    @property
    def phase(self) -> Phase:
        if self.cancelled.is_set():
            return Phase.SHUTTING_DOWN
        return Phase.RUNNING if self.running.is_set() else Phase.PAUSED

    def start(self) -> None:
        self.running.set()

    def stop(self) -> None:
        self.running.clear()

    def shutdown(self) -> None:
        self.cancelled.set()


class CommandListener:
    def __init__(self, state: SchedulerState, stream=None):
        self.state = state
        self.stream = stream if stream is not None else sys.stdin
        self._thread: Optional[threading.Thread] = None

    def handle(self, line: str) -> Command:
        if not (line or "").strip():
            return Command.UNKNOWN

        cmd = parse_command(line)
        if cmd is Command.START:
            if self.state.phase is Phase.RUNNING:
                logger.info("already running")
            else:
                self.state.start()
                logger.info("started: cycles run every interval")
        elif cmd is Command.STOP:
            if self.state.phase is Phase.PAUSED:
                logger.info("already paused")
            else:
                self.state.stop()
                logger.info("stopped: cycles paused")
        elif cmd is Command.QUIT:
            self.state.shutdown()
            logger.info("quit requested, shutting down")
        else:
            logger.warning("unknown command: %s (use start, stop, quit)", line.strip())
        return cmd

    def _lines(self) -> Iterator[str]:
        # undecodable bytes become U+FFFD instead of killing the reader
        if hasattr(self.stream, "reconfigure"):
            try:
                self.stream.reconfigure(errors="replace")
            except (ValueError, OSError) as e:
                logger.debug("could not reconfigure console input: %s", e)

        it = iter(self.stream)
        while True:
            try:
                yield next(it)
            except StopIteration:
                return
            except UnicodeDecodeError as e:
                logger.warning("ignoring undecodable console input: %s", e)

    def run(self) -> None:
        for line in self._lines():
            if self.handle(line) is Command.QUIT:
                return
            if self.state.cancelled.is_set():
                return
        logger.warning("console input closed; commands are no longer read")

    def _run_logged(self) -> None:
        try:
            self.run()
        except Exception:
            logger.exception("command listener stopped; only Ctrl+C can end the process now")

    def start_thread(self) -> threading.Thread:
        # daemon: a blocked console read must not keep the process alive
        self._thread = threading.Thread(target=self._run_logged, name="command-listener", daemon=True)
        self._thread.start()
        return self._thread


FetchFn = Callable[[str], str]
ConvertFn = Callable[[str], Dict[str, Any]]
WriteFn = Callable[[Dict[str, Any]], Any]
AppendFn = Callable[[Reading], Any]


class CycleDriver:
    def __init__(
        self,
        state: SchedulerState,
        config: IngestConfig,
        *,
        fetch: Optional[FetchFn] = None,
        convert: Optional[ConvertFn] = None,
        write: Optional[WriteFn] = None,
        append: Optional[AppendFn] = None,
        interval_seconds: Optional[float] = None,
    ):
        self.state = state
        self.config = config
        self.source_url = fetcher.normalize_url(config.source_url)
        self.fetch = fetch or partial(fetcher.fetch_xml, timeout_seconds=config.http_timeout_seconds)
        self.convert = convert or converter.convert
        self.write = write or partial(snapshot.write_snapshot, config.snapshot_path)
        self.append = append or partial(db.append_reading, config.db_path)
        self.interval_seconds = float(interval_seconds if interval_seconds is not None else config.interval_seconds)
        self.cycles_run = 0

    def _build_reading(self) -> Reading:
        try:
            xml_text = self.fetch(self.source_url)
            payload = converter.stamp(self.convert(xml_text))
            return Reading.success(self.source_url, payload)
        except (fetcher.FetchError, converter.ConvertError) as e:
            return Reading.failure(self.source_url, str(e))
        except Exception as e:
            logger.exception("unexpected error during fetch/convert")
            return Reading.failure(self.source_url, f"unexpected error: {e}")

    def run_cycle(self) -> Reading:
        reading = self._build_reading()

        if reading.is_available:
            logger.info("reading ok at %s from %s", reading.timestamp, reading.source_url)
        else:
            logger.warning("reading unavailable at %s: %s", reading.timestamp, reading.error_message)

        try:
            self.write(reading.snapshot_document())
            logger.info("snapshot written to %s", self.config.snapshot_path)
        except snapshot.SnapshotError as e:
            logger.warning("snapshot not written: %s", e)

        try:
            row_id = self.append(reading)
            logger.info("reading stored (id=%s)", row_id)
        except db.StoreError as e:
            logger.warning("reading not stored: %s", e)

        self.cycles_run += 1
        return reading

    def tick(self) -> Optional[Reading]:
        if self.state.phase is not Phase.RUNNING:
            if self.state.phase is Phase.PAUSED:
                logger.info("paused; type 'start' to resume")
            return None
        return self.run_cycle()

    def run(self) -> None:
        while not self.state.cancelled.is_set():
            self.tick()
            # returns early once quit sets the event
            if self.state.cancelled.wait(self.interval_seconds):
                break
        logger.info("run loop stopped after %d cycle(s)", self.cycles_run)


class Coordinator:
    def __init__(self, config: IngestConfig, stream: Optional[Iterable[str]] = None, **driver_kwargs):
        self.state = SchedulerState(running=config.start_running)
        self.listener = CommandListener(self.state, stream)
        self.driver = CycleDriver(self.state, config, **driver_kwargs)

    def run(self) -> None:
        logger.info(
            "ingest loop ready (phase=%s, interval=%s min); commands: start, stop, quit",
            self.state.phase.value,
            self.driver.config.poll_interval_minutes,
        )
        self.listener.start_thread()
        self.driver.run()

    def shutdown(self) -> None:
        self.state.shutdown()

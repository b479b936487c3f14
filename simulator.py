import logging
import random
from collections import deque
from enum import Enum
from typing import Dict, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

# default tick ceiling, also the width of the per-core run trace
MAX_TICKS = 50000

IDLE = -1


class SimulationError(Exception):
    """Base class for errors raised before or around a simulation run"""


class ConfigurationError(SimulationError, ValueError):
    pass


class AdmissionError(SimulationError, ValueError):
    pass


class InvariantViolation(AssertionError):
    """Engine defect: a thread ended up in two places or a core was double bound"""


class ThreadState(Enum):
    NEW = "new"
    READY = "ready"
    RUNNING = "running"
    WAITING = "waiting"
    FINISHED = "finished"


def _check_int(name, value):
    # bool is an int subclass but never a valid tick count
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise AdmissionError(f"{name} must be an integer, got {value!r}")
    return int(value)


class Thread:
    def __init__(self, thread_id, arrival_time, burst_time):
        thread_id = _check_int("thread id", thread_id)
        arrival_time = _check_int("arrival_time", arrival_time)
        burst_time = _check_int("burst_time", burst_time)
        if thread_id < 0:
            raise AdmissionError(f"thread id must be >= 0, got {thread_id}")
        if arrival_time < 0:
            raise AdmissionError(f"thread {thread_id}: arrival_time must be >= 0, got {arrival_time}")
        if burst_time <= 0:
            raise AdmissionError(f"thread {thread_id}: burst_time must be > 0, got {burst_time}")

        self.thread_id = thread_id
        self.arrival_time = arrival_time
        self.burst_time = burst_time
        self.remaining = burst_time
        self.state = ThreadState.NEW
        self.start_time: Optional[int] = None
        self.finish_time: Optional[int] = None
        self.wait_time = 0
        self.unblock_time: Optional[int] = None
        self.core_id: Optional[int] = None  # last core it ran on

        # whichever queue or core array currently owns this thread
        self.holder = None

    @property
    def turnaround(self):
        if self.finish_time is None:
            return None
        return self.finish_time - self.arrival_time

    @property
    def response(self):
        if self.start_time is None:
            return None
        return self.start_time - self.arrival_time

    def _take(self, holder):
        if self.holder is not None:
            raise InvariantViolation(f"thread {self.thread_id} is already held by {self.holder!r}")
        self.holder = holder

    def _release(self, holder):
        if self.holder is not holder:
            raise InvariantViolation(f"thread {self.thread_id} is not held by {holder!r}")
        self.holder = None

    def __repr__(self):
        return (f"Thread({self.thread_id}, arrival={self.arrival_time}, burst={self.burst_time}, "
                f"remaining={self.remaining}, state={self.state.name})")


class ThreadQueue:
    """FIFO queue of threads with O(n) scan-based selection variants.

    A thread pushed here is owned by this queue until it is popped; pushing a
    thread that is still held elsewhere raises InvariantViolation.
    """

    def __init__(self, name="queue"):
        self.name = name
        self._items = deque()

    def push(self, thread: Thread):
        thread._take(self)
        self._items.append(thread)

    def pop(self) -> Optional[Thread]:
        if not self._items:
            return None
        thread = self._items.popleft()
        thread._release(self)
        return thread

    def pop_min_burst(self) -> Optional[Thread]:
        return self._pop_min(lambda t: t.burst_time)

    def pop_min_remaining(self) -> Optional[Thread]:
        return self._pop_min(lambda t: t.remaining)

    def _pop_min(self, key):
        if not self._items:
            return None
        best_index = 0
        best_key = key(self._items[0])
        for index in range(1, len(self._items)):
            # strict comparison keeps the first-encountered thread on ties
            value = key(self._items[index])
            if value < best_key:
                best_index, best_key = index, value
        thread = self._items[best_index]
        del self._items[best_index]
        thread._release(self)
        return thread

    def thread_ids(self) -> List[int]:
        return [t.thread_id for t in self._items]

    def __len__(self):
        return len(self._items)

    def __bool__(self):
        return bool(self._items)

    def __iter__(self):
        return iter(list(self._items))

    def __contains__(self, thread):
        return thread.holder is self

    def __repr__(self):
        return f"ThreadQueue({self.name!r}, {self.thread_ids()})"


class CoreArray:
    """Fixed bank of core slots; each slot is idle (None) or holds one running thread."""

    def __init__(self, num_cores):
        if isinstance(num_cores, bool) or not isinstance(num_cores, (int, np.integer)) or num_cores < 1:
            raise ConfigurationError(f"core count must be an integer >= 1, got {num_cores!r}")
        self._slots: List[Optional[Thread]] = [None] * int(num_cores)
        self.busy_time = np.zeros(int(num_cores), dtype=np.int64)

    @property
    def num_cores(self):
        return len(self._slots)

    def __len__(self):
        return len(self._slots)

    def __getitem__(self, core_index) -> Optional[Thread]:
        return self._slots[core_index]

    def __iter__(self):
        return iter(list(self._slots))

    def running(self):
        """(core_index, thread) pairs for every occupied core, in core order"""
        return [(i, t) for i, t in enumerate(self._slots) if t is not None]

    def bind(self, core_index, thread: Thread, now):
        if self._slots[core_index] is not None:
            raise InvariantViolation(
                f"core {core_index} already runs thread {self._slots[core_index].thread_id}, "
                f"cannot bind thread {thread.thread_id}")
        thread._take(self)
        self._slots[core_index] = thread
        thread.state = ThreadState.RUNNING
        thread.core_id = core_index
        if thread.start_time is None:
            thread.start_time = now

    def bind_first_idle(self, thread: Thread, now):
        core_index = self.first_idle()
        if core_index is None:
            raise InvariantViolation(f"no idle core for thread {thread.thread_id}")
        self.bind(core_index, thread, now)
        return core_index

    def unbind(self, core_index) -> Thread:
        thread = self._slots[core_index]
        if thread is None:
            raise InvariantViolation(f"core {core_index} is already idle")
        self._slots[core_index] = None
        thread._release(self)
        return thread

    def preempt(self, core_index, ready: ThreadQueue) -> Thread:
        thread = self.unbind(core_index)
        thread.state = ThreadState.READY
        ready.push(thread)
        return thread

    def first_idle(self) -> Optional[int]:
        for i, thread in enumerate(self._slots):
            if thread is None:
                return i
        return None

    def any_idle(self):
        return any(t is None for t in self._slots)

    def all_idle(self):
        return all(t is None for t in self._slots)

    def largest_remaining_above(self, threshold) -> Optional[int]:
        best_core, best_remaining = None, None
        for i, thread in enumerate(self._slots):
            if thread is None or thread.remaining <= threshold:
                continue
            if best_remaining is None or thread.remaining > best_remaining:
                best_core, best_remaining = i, thread.remaining
        return best_core

    def step(self):
        for i, thread in enumerate(self._slots):
            if thread is None:
                continue
            if thread.remaining > 0:
                thread.remaining -= 1
            self.busy_time[i] += 1

    def occupant_ids(self) -> List[int]:
        return [IDLE if t is None else t.thread_id for t in self._slots]


class InterruptConfig:
    def __init__(self, enabled=False, probability_percent=10, min_duration=2, max_duration=6):
        for name, value in (("probability_percent", probability_percent),
                            ("min_duration", min_duration),
                            ("max_duration", max_duration)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        if not 0 <= probability_percent <= 100:
            raise ConfigurationError(f"probability_percent must be within [0, 100], got {probability_percent}")
        if min_duration <= 0:
            raise ConfigurationError(f"min_duration must be > 0, got {min_duration}")
        if max_duration < min_duration:
            raise ConfigurationError(
                f"max_duration ({max_duration}) must be >= min_duration ({min_duration})")
        self.enabled = bool(enabled)
        self.probability_percent = probability_percent
        self.min_duration = min_duration
        self.max_duration = max_duration

    def __repr__(self):
        return (f"InterruptConfig(enabled={self.enabled}, probability_percent={self.probability_percent}, "
                f"min_duration={self.min_duration}, max_duration={self.max_duration})")


def block_to_waiting(cores: CoreArray, core_index, waiting: ThreadQueue, unblock_time):
    thread = cores.unbind(core_index)
    thread.state = ThreadState.WAITING
    thread.unblock_time = unblock_time
    waiting.push(thread)
    return thread


def inject_interrupts(config: InterruptConfig, cores: CoreArray, waiting: ThreadQueue, now, rng):
    """Sample an I/O interrupt for every running core; returns (core, thread, duration, unblock) events"""
    events = []
    if config is None or not config.enabled:
        return events
    for core_index, thread in cores.running():
        if rng.randrange(100) >= config.probability_percent:
            continue
        duration = rng.randint(config.min_duration, config.max_duration)
        unblock_time = now + duration
        block_to_waiting(cores, core_index, waiting, unblock_time)
        events.append((core_index, thread, duration, unblock_time))
    return events


def resolve_waiting(waiting: ThreadQueue, ready: ThreadQueue, now):
    """Move every due waiting thread to ready, keeping the rest in their original order"""
    resolved = []
    for _ in range(len(waiting)):
        thread = waiting.pop()
        if thread.unblock_time is not None and thread.unblock_time <= now:
            thread.state = ThreadState.READY
            thread.unblock_time = None
            ready.push(thread)
            resolved.append(thread)
        else:
            waiting.push(thread)
    return resolved


class Simulator:
    def __init__(self, num_cores, scheduling_policy, interrupts: Optional[InterruptConfig] = None,
                 rng=None, log=None, max_ticks=MAX_TICKS, verbose=False):
        if isinstance(max_ticks, bool) or not isinstance(max_ticks, int) or max_ticks < 1:
            raise ConfigurationError(f"max_ticks must be an integer >= 1, got {max_ticks!r}")
        self.cores = CoreArray(num_cores)
        self.policy = scheduling_policy
        self.interrupts = interrupts or InterruptConfig(enabled=False)
        self.rng = rng if rng is not None else random.Random()
        self.log = log
        self.max_ticks = max_ticks
        self.verbose = verbose

        self.time = 0
        self.pending: List[Thread] = []
        self.ready = ThreadQueue("ready")
        self.waiting = ThreadQueue("waiting")
        self.finished = ThreadQueue("finished")
        self.threads: Dict[int, Thread] = {}

        # run_trace[core, tick] = thread id, IDLE when the core did nothing
        self.run_trace = np.full((self.cores.num_cores, max_ticks), IDLE, dtype=np.int64)

        self.total_preemptions = 0
        self.total_interrupts = 0
        self.total_dispatches = 0
        self._started = False

    def load_threads(self, threads):
        """Queue NEW threads for admission; entries may be Thread objects or (id, arrival, burst) tuples"""
        if self._started:
            raise SimulationError("cannot load threads after the simulation has started")
        for entry in threads:
            thread = entry if isinstance(entry, Thread) else Thread(*entry)
            if thread.state is not ThreadState.NEW or thread.holder is not None:
                raise AdmissionError(f"thread {thread.thread_id} is not a fresh NEW thread")
            if thread.thread_id in self.threads:
                raise AdmissionError(f"duplicate thread id {thread.thread_id}")
            self.threads[thread.thread_id] = thread
            self.pending.append(thread)
        if self.log is not None:
            self.log.workload("Workload before simulation", self.pending)

    def admit(self):
        """Move every pending thread whose arrival equals the clock into ready, in workload order"""
        keep = []
        for thread in self.pending:
            if thread.arrival_time == self.time:
                thread.state = ThreadState.READY
                self.ready.push(thread)
            else:
                keep.append(thread)
        self.pending = keep

    def done(self):
        return (not self.pending and not self.ready and not self.waiting
                and self.cores.all_idle())

    def tick(self):
        """Advance the simulation by exactly one tick. Returns True once all work is finished."""
        if not self._started:
            self._started = True
            if self.log is not None:
                self.log.interrupts_config(self.interrupts)
        now = self.time

        self.admit()

        for thread in resolve_waiting(self.waiting, self.ready, now):
            if self.log is not None:
                self.log.io_complete(now, thread)

        for core_index, thread, duration, unblock_time in inject_interrupts(
                self.interrupts, self.cores, self.waiting, now, self.rng):
            self.total_interrupts += 1
            logger.debug("t=%d I/O interrupt on core %d: thread %d blocked until %d",
                         now, core_index, thread.thread_id, unblock_time)
            if self.log is not None:
                self.log.io_event(now, core_index, thread, duration, unblock_time)

        actions = self.policy.dispatch(self.cores, self.ready, now)
        for action, core_index, thread_id in actions:
            if action == "bind":
                self.total_dispatches += 1
            elif action == "preempt":
                self.total_preemptions += 1
            if self.verbose:
                logger.debug("t=%d %s thread %d on core %d", now, action, thread_id, core_index)

        for thread in self.ready:
            thread.wait_time += 1

        if self.log is not None:
            self.log.snapshot(now, self.ready, self.waiting, self.cores, self.finished)

        if now < self.max_ticks:
            self.run_trace[:, now] = self.cores.occupant_ids()
        self.cores.step()
        self.time = now + 1

        self._collect_completions()
        return self.done()

    def _collect_completions(self):
        for core_index, thread in self.cores.running():
            if thread.remaining != 0:
                continue
            self.cores.unbind(core_index)
            thread.state = ThreadState.FINISHED
            if thread.finish_time is None:
                thread.finish_time = self.time
            self.finished.push(thread)
            if self.verbose:
                logger.debug("t=%d thread %d finished on core %d", self.time, thread.thread_id, core_index)

    def run(self, max_time=None):
        limit = self.max_ticks if max_time is None else min(max_time, self.max_ticks)
        while self.time < limit:
            if self.tick():
                break
        if not self.done():
            logger.warning("tick ceiling %d reached with %d threads unfinished",
                           limit, len(self.threads) - len(self.finished))

        if self.log is not None:
            self.log.snapshot(self.time, self.ready, self.waiting, self.cores, self.finished)
            self.log.final_averages(list(self.finished))

        results = self.evaluate()
        logger.info("%s: %d/%d threads finished in %d ticks",
                    getattr(self.policy, "label", type(self.policy).__name__),
                    results["num_completed"], len(self.threads), results["total_ticks"])
        return results

    @property
    def ticks_traced(self):
        return min(self.time, self.max_ticks)

    def evaluate(self):
        finished = list(self.finished)
        waits = [t.wait_time for t in finished]
        responses = [t.response for t in finished]
        turnarounds = [t.turnaround for t in finished]

        utilizations = self.cores.busy_time / self.time if self.time else np.zeros(self.cores.num_cores)

        return {
            "avg_wait": float(np.mean(waits)) if waits else 0.0,
            "avg_response": float(np.mean(responses)) if responses else 0.0,
            "avg_turnaround": float(np.mean(turnarounds)) if turnarounds else 0.0,
            "num_completed": len(finished),
            "total_ticks": self.time,
            "core_utilization": [float(u) for u in utilizations],
            "avg_utilization": float(np.mean(utilizations)),
            "total_preemptions": self.total_preemptions,
            "total_interrupts": self.total_interrupts,
            "context_switches": self.total_dispatches,
        }

    def finish_times(self):
        return {t.thread_id: t.finish_time for t in self.threads.values()}

import logging

from simulator import CoreArray, ThreadQueue

logger = logging.getLogger(__name__)


class SrtcfPolicy:
    """Preemptive shortest remaining time to completion across N cores.

    Idle cores are filled first. Then the best ready thread keeps displacing
    the running thread with the largest remaining time strictly above its own,
    until no running thread is worse than the best ready one.
    """

    name = "srtcf"
    label = "SRTCF (preemptive SRTF)"

    def dispatch(self, cores: CoreArray, ready: ThreadQueue, current_time):
        actions = []

        while cores.any_idle():
            thread = ready.pop_min_remaining()
            if thread is None:
                break
            core_index = cores.bind_first_idle(thread, current_time)
            actions.append(("bind", core_index, thread.thread_id))

        while True:
            best = ready.pop_min_remaining()
            if best is None:
                break

            idle = cores.first_idle()
            if idle is not None:
                cores.bind(idle, best, current_time)
                actions.append(("bind", idle, best.thread_id))
                continue

            victim = cores.largest_remaining_above(best.remaining)
            if victim is None:
                # every running thread is at least as short as the best candidate
                ready.push(best)
                break

            displaced = cores.preempt(victim, ready)
            cores.bind(victim, best, current_time)
            logger.debug("t=%d thread %d (remaining %d) preempts thread %d (remaining %d) on core %d",
                         current_time, best.thread_id, best.remaining,
                         displaced.thread_id, displaced.remaining, victim)
            actions.append(("preempt", victim, displaced.thread_id))
            actions.append(("bind", victim, best.thread_id))

        return actions

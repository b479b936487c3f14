from simulator import CoreArray, ThreadQueue


class FifoPolicy:
    """First come, first served: ready queue head goes to the first idle core."""

    name = "fifo"
    label = "FIFO"

    def dispatch(self, cores: CoreArray, ready: ThreadQueue, current_time):
        actions = []
        while cores.any_idle():
            thread = ready.pop()
            if thread is None:
                break
            core_index = cores.bind_first_idle(thread, current_time)
            actions.append(("bind", core_index, thread.thread_id))
        return actions


class SjfPolicy:
    """Non-preemptive shortest job first.

    Each idle core takes the ready thread with the smallest burst time, ties
    going to the earliest queued. A bound thread keeps its core until it
    finishes or an interrupt blocks it.
    """

    name = "sjf"
    label = "SJF (non-preemptive)"

    def dispatch(self, cores: CoreArray, ready: ThreadQueue, current_time):
        actions = []
        while cores.any_idle():
            thread = ready.pop_min_burst()
            if thread is None:
                break
            core_index = cores.bind_first_idle(thread, current_time)
            actions.append(("bind", core_index, thread.thread_id))
        return actions

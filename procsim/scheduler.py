"""CPU scheduling simulator: FCFS, SJF, priority and round-robin."""

from __future__ import annotations

import enum
import json
import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Iterator

logger = logging.getLogger(__name__)

MAX_PROCESSES = 20
MAX_QUEUE_SIZE = 50
NAME_LEN = 50
ALGORITHM_LEN = 20
DEFAULT_QUANTUM = 2
DEFAULT_ALGORITHM = "FCFS"
ALGORITHMS = ("FCFS", "SJF", "Priority", "RR")


class ProcessState(enum.Enum):
    """Lifecycle state of a simulated process."""

    NEW = "NEW"
    READY = "READY"
    RUNNING = "RUNNING"
    WAITING = "WAITING"
    TERMINATED = "TERMINATED"

    def display_name(self) -> str:
        """Human-readable label used in the console table."""
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    ProcessState.NEW: "新建",
    ProcessState.READY: "就绪",
    ProcessState.RUNNING: "运行",
    ProcessState.WAITING: "等待",
    ProcessState.TERMINATED: "终止",
}


class QueueFull(Exception):
    """Raised when a process is put into a full ready queue."""


class TableFull(Exception):
    """Raised when the process table has no room for another process."""


class UnknownAlgorithm(Exception):
    """Raised when a step is run with an algorithm the scheduler does not know."""


def _truncate(text: str, size: int) -> str:
    """Fit text into a fixed-size field, keeping whole characters."""
    return text.encode("utf-8")[: size - 1].decode("utf-8", errors="ignore")


@dataclass(eq=False)
class Process:
    """A simulated process and its timing statistics."""

    id: int
    name: str
    priority: int
    burst_time: int
    remaining_time: int
    arrival_time: int
    time_slice: int
    waiting_time: int = 0
    turnaround_time: int = 0
    completion_time: int = 0
    state: ProcessState = ProcessState.NEW

    def to_dict(self) -> dict:
        """Wire representation of this process."""
        return {
            "id": self.id,
            "name": self.name,
            "priority": self.priority,
            "burstTime": self.burst_time,
            "remainingTime": self.remaining_time,
            "arrivalTime": self.arrival_time,
            "waitingTime": self.waiting_time,
            "turnaroundTime": self.turnaround_time,
            "completionTime": self.completion_time,
            "state": self.state.value,
            "timeSlice": self.time_slice,
        }


class ReadyQueue:
    """Bounded FIFO of processes waiting for the CPU."""

    def __init__(self, capacity: int = MAX_QUEUE_SIZE) -> None:
        self.capacity = capacity
        self._items: deque[Process] = deque()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Process]:
        return iter(list(self._items))

    def enqueue(self, process: Process) -> None:
        """Append a process and mark it ready; raise QueueFull at capacity."""
        if len(self._items) >= self.capacity:
            raise QueueFull(f"ready queue is full ({self.capacity} entries)")
        self._items.append(process)
        process.state = ProcessState.READY

    def dequeue(self) -> Process | None:
        """Remove and return the front process, or None when empty."""
        return self._items.popleft() if self._items else None

    def peek(self) -> Process | None:
        """Return the front process without removing it, or None when empty."""
        return self._items[0] if self._items else None

    def move_to_front(self, key: Callable[[Process], object]) -> Process | None:
        """Move the first process with the smallest key to the front.

        The relative order of the other processes is kept.
        """
        if not self._items:
            return None
        index, chosen = min(enumerate(self._items), key=lambda item: key(item[1]))
        if index:
            del self._items[index]
            self._items.appendleft(chosen)
        return chosen


class Scheduler:
    """Discrete-time scheduler over a bounded process table."""

    def __init__(self, algorithm: str = DEFAULT_ALGORITHM, quantum: int = DEFAULT_QUANTUM) -> None:
        self.algorithm = DEFAULT_ALGORITHM
        self.quantum = DEFAULT_QUANTUM
        self.set_algorithm(algorithm)
        self.set_quantum(quantum)
        self.processes: list[Process] = []
        self.ready_queue = ReadyQueue()
        self.current_process: Process | None = None
        self.system_time = 0

    def create_process(
        self, name: str, priority: int, burst_time: int, arrival_time: int
    ) -> Process:
        """Add a new process in the NEW state; raise TableFull at capacity."""
        if len(self.processes) >= MAX_PROCESSES:
            raise TableFull(f"process table is full ({MAX_PROCESSES} entries)")
        process = Process(
            id=len(self.processes) + 1,
            name=_truncate(name, NAME_LEN),
            priority=priority,
            burst_time=burst_time,
            remaining_time=burst_time,
            arrival_time=arrival_time,
            time_slice=self.quantum,
        )
        self.processes.append(process)
        logger.info(
            "created process %s (id %d): priority %d, burst %d, arrival %d",
            process.name, process.id, priority, burst_time, arrival_time,
        )
        return process

    def update_process_state(self, process_id: int, state: ProcessState) -> None:
        """Set the state of the process with this id; unknown ids are ignored."""
        process = next((p for p in self.processes if p.id == process_id), None)
        if process is not None:
            process.state = state

    def step(self) -> Process | None:
        """Advance the simulation by one time unit; return the running process."""
        schedule = {
            "FCFS": self._fcfs,
            "SJF": self._sjf,
            "Priority": self._priority,
            "RR": self._round_robin,
        }.get(self.algorithm)
        if schedule is None:
            raise UnknownAlgorithm(f"unknown scheduling algorithm: {self.algorithm}")
        logger.info("system time %d", self.system_time)
        schedule()
        self.system_time += 1
        return self.current_process

    def reset(self) -> None:
        """Clear all processes and restart the clock; settings are kept."""
        self.processes = []
        self.ready_queue = ReadyQueue()
        self.current_process = None
        self.system_time = 0

    def set_algorithm(self, algorithm: str) -> None:
        """Choose the algorithm used by later steps."""
        self.algorithm = _truncate(algorithm, ALGORITHM_LEN)

    def set_quantum(self, quantum: int) -> None:
        """Set the round-robin time slice; it must be positive."""
        if quantum <= 0:
            raise ValueError("quantum must be greater than 0")
        self.quantum = quantum

    def all_terminated(self) -> bool:
        """True when there is at least one process and every one has terminated."""
        return bool(self.processes) and all(
            p.state is ProcessState.TERMINATED for p in self.processes
        )

    def processes_dict(self) -> dict:
        """Wire representation of the process table."""
        return {"processes": [p.to_dict() for p in self.processes]}

    def state_dict(self) -> dict:
        """Wire representation of the scheduler state and statistics."""
        current = self.current_process
        running = None
        if current is not None:
            running = {
                "id": current.id,
                "name": current.name,
                "remainingTime": current.remaining_time,
                "timeSlice": current.time_slice,
            }

        def count(state: ProcessState) -> int:
            return sum(1 for p in self.processes if p.state is state)

        return {
            "systemTime": self.system_time,
            "algorithm": self.algorithm,
            "quantum": self.quantum,
            "runningProcess": running,
            "readyQueue": [
                {
                    "id": p.id,
                    "name": p.name,
                    "priority": p.priority,
                    "remainingTime": p.remaining_time,
                }
                for p in self.ready_queue
            ],
            "statistics": {
                "total": len(self.processes),
                "new": count(ProcessState.NEW),
                "ready": len(self.ready_queue),
                "running": 1 if current is not None else 0,
                "waiting": count(ProcessState.WAITING),
                "terminated": count(ProcessState.TERMINATED),
            },
        }

    def state_message(self) -> str:
        """Compact JSON state-update message sent to clients."""
        message = {
            "type": "state_update",
            "data": {**self.processes_dict(), **self.state_dict()},
        }
        return json.dumps(message, separators=(",", ":"), ensure_ascii=False)

    def format_table(self) -> str:
        """Render the process table and scheduler summary as text."""
        lines = [
            "",
            "======================= 进程表 =======================",
            "%-4s %-15s %-8s %-6s %-12s %-12s %-8s %-8s %-12s %-8s"
            % ("ID", "名称", "状态", "优先级", "执行时间", "剩余时间", "到达时间",
               "等待时间", "周转时间", "完成时间"),
            "----------------------------------------------------------",
        ]
        for p in self.processes:
            lines.append(
                "%-4d %-15s %-8s %-6d %-12d %-12d %-8d %-8d %-12d %-8d"
                % (p.id, p.name, p.state.display_name(), p.priority, p.burst_time,
                   p.remaining_time, p.arrival_time, p.waiting_time,
                   p.turnaround_time, p.completion_time)
            )
        lines.append("")
        lines.append(f"系统时间: {self.system_time}")
        lines.append(f"当前算法: {self.algorithm}")
        lines.append(f"时间片大小: {self.quantum}")
        if self.current_process is not None:
            lines.append(
                f"当前运行进程: {self.current_process.name} (ID:{self.current_process.id})"
            )
        else:
            lines.append("当前运行进程: 无")
        lines.append(f"就绪队列大小: {len(self.ready_queue)}")
        return "\n".join(lines) + "\n"

    def _tick_current(self) -> Process | None:
        """Run the current process for one unit; finish it if it is done."""
        process = self.current_process
        if process is None:
            return None
        process.remaining_time -= 1
        if process.remaining_time <= 0:
            logger.info("process %s (id %d) finished", process.name, process.id)
            process.state = ProcessState.TERMINATED
            process.completion_time = self.system_time
            process.turnaround_time = process.completion_time - process.arrival_time
            process.waiting_time = process.turnaround_time - process.burst_time
            self.current_process = None
        return process

    def _admit_arrivals(self) -> None:
        for process in self.processes:
            if process.arrival_time == self.system_time and process.state is ProcessState.NEW:
                logger.info("process %s (id %d) arrived", process.name, process.id)
                self.ready_queue.enqueue(process)

    def _dispatch(self, key: Callable[[Process], object] | None = None) -> None:
        if self.current_process is not None or not len(self.ready_queue):
            return
        if key is not None:
            self.ready_queue.move_to_front(key)
        process = self.ready_queue.dequeue()
        process.state = ProcessState.RUNNING
        self.current_process = process
        logger.info("process %s (id %d) started", process.name, process.id)

    def _fcfs(self) -> None:
        self._tick_current()
        self._dispatch()
        self._admit_arrivals()

    def _sjf(self) -> None:
        self._tick_current()
        self._admit_arrivals()
        self._dispatch(key=lambda p: p.remaining_time)

    def _priority(self) -> None:
        self._tick_current()
        self._admit_arrivals()
        self._dispatch(key=lambda p: -p.priority)

    def _round_robin(self) -> None:
        if self.current_process is not None:
            self.current_process.time_slice -= 1
        process = self._tick_current()
        if (
            process is not None
            and self.current_process is process
            and process.time_slice <= 0
        ):
            logger.info("process %s (id %d) used its time slice", process.name, process.id)
            process.time_slice = self.quantum
            self.ready_queue.enqueue(process)
            self.current_process = None
        self._admit_arrivals()
        self._dispatch()
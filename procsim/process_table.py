"""A bounded table of process control blocks."""

from __future__ import annotations

import enum
import json
import time
from dataclasses import dataclass, field
from typing import Iterator

MAX_PROCESSES = 100
PROCESS_NAME_LEN = 50


class ProcessState(enum.Enum):
    """Lifecycle state of a tracked process."""

    READY = "READY"
    RUNNING = "RUNNING"
    WAITING = "WAITING"
    TERMINATED = "TERMINATED"

    def display_name(self) -> str:
        """Human-readable label used in the console table."""
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    ProcessState.READY: "就绪",
    ProcessState.RUNNING: "运行",
    ProcessState.WAITING: "等待",
    ProcessState.TERMINATED: "终止",
}


def _truncate_name(name: str) -> str:
    """Limit a name to the size of the fixed name field, keeping whole characters."""
    raw = name.encode("utf-8")[: PROCESS_NAME_LEN - 1]
    return raw.decode("utf-8", errors="ignore")


class ProcessTableFull(Exception):
    """Raised when a process is added to a table that has no room left."""


@dataclass
class ProcessControlBlock:
    """Bookkeeping record for one process."""

    pid: int
    name: str
    state: ProcessState
    priority: int
    ppid: int
    creation_time: int = field(default_factory=lambda: int(time.time()))
    return_value: int = -1

    def __post_init__(self) -> None:
        self.name = _truncate_name(self.name)

    def to_dict(self) -> dict:
        """Wire representation of this record."""
        return {
            "pid": self.pid,
            "name": self.name,
            "state": self.state.value,
            "priority": self.priority,
            "ppid": self.ppid,
            "returnValue": self.return_value,
            "creationTime": self.creation_time,
        }


class ProcessTable:
    """Ordered, bounded collection of process control blocks keyed by pid."""

    def __init__(self, capacity: int = MAX_PROCESSES) -> None:
        self.capacity = capacity
        self._entries: list[ProcessControlBlock] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ProcessControlBlock]:
        return iter(list(self._entries))

    def add(
        self,
        pid: int,
        name: str,
        state: ProcessState,
        priority: int,
        ppid: int,
    ) -> ProcessControlBlock:
        """Append a new record; raise ProcessTableFull when at capacity."""
        if len(self._entries) >= self.capacity:
            raise ProcessTableFull(f"process table is full ({self.capacity} entries)")
        pcb = ProcessControlBlock(pid, name, state, priority, ppid)
        self._entries.append(pcb)
        return pcb

    def find(self, pid: int) -> ProcessControlBlock | None:
        """Return the first record with this pid, or None."""
        return next((p for p in self._entries if p.pid == pid), None)

    def update_state(self, pid: int, state: ProcessState) -> None:
        """Set the state of a process; unknown pids are ignored."""
        pcb = self.find(pid)
        if pcb is not None:
            pcb.state = state

    def update_return_value(self, pid: int, return_value: int) -> None:
        """Record the exit value of a process; unknown pids are ignored."""
        pcb = self.find(pid)
        if pcb is not None:
            pcb.return_value = return_value

    def remove(self, pid: int) -> None:
        """Drop a process from the table, keeping the order of the rest."""
        pcb = self.find(pid)
        if pcb is not None:
            self._entries.remove(pcb)

    def to_json(self) -> str:
        """Compact JSON document listing every process."""
        document = {"processes": [p.to_dict() for p in self._entries]}
        return json.dumps(document, separators=(",", ":"), ensure_ascii=False)

    def format_table(self) -> str:
        """Render the table as fixed-width text."""
        lines = [
            "",
            "======================= 进程表 =======================",
            "%-6s %-15s %-10s %-6s %-10s %-10s %-20s"
            % ("PID", "名称", "状态", "优先级", "父PID", "返回值", "创建时间"),
            "----------------------------------------------------------",
        ]
        for p in self._entries:
            created = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(p.creation_time))
            lines.append(
                "%-6d %-15s %-10s %-6d %-10d %-10d %-20s"
                % (
                    p.pid,
                    p.name,
                    p.state.display_name(),
                    p.priority,
                    p.ppid,
                    p.return_value,
                    created,
                )
            )
        lines.append(f"进程总数: {len(self._entries)}")
        lines.append("========================================================")
        return "\n".join(lines) + "\n"
"""Classic synchronization problems described as resources and processes."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

MAX_PROCESSES = 20
MAX_RESOURCES = 10
MAX_STEPS = 100
DEFAULT_SPEED_MS = 1000


class ProblemType(enum.Enum):
    PRODUCER_CONSUMER = enum.auto()
    READERS_WRITERS = enum.auto()
    DINING_PHILOSOPHERS = enum.auto()
    SLEEPING_BARBER = enum.auto()
    SMOKERS = enum.auto()


class ProcessState(enum.Enum):
    RUNNING = enum.auto()
    WAITING = enum.auto()
    BLOCKED = enum.auto()
    TERMINATED = enum.auto()


class ProcessRole(enum.Enum):
    PRODUCER = enum.auto()
    CONSUMER = enum.auto()
    READER = enum.auto()
    WRITER = enum.auto()
    PHILOSOPHER = enum.auto()
    BARBER = enum.auto()
    CUSTOMER = enum.auto()
    SMOKER = enum.auto()
    AGENT = enum.auto()


class ResourceType(enum.Enum):
    BUFFER = enum.auto()
    DATABASE = enum.auto()
    FORK = enum.auto()
    CHAIR = enum.auto()
    TOBACCO = enum.auto()
    PAPER = enum.auto()
    MATCH = enum.auto()


class StepType(enum.Enum):
    ACQUIRE = enum.auto()
    RELEASE = enum.auto()
    COMPUTE = enum.auto()
    WAIT = enum.auto()
    MESSAGE = enum.auto()


@dataclass
class Resource:
    """A shared resource with a capacity and a usage count."""

    id: int
    name: str
    type: ResourceType
    capacity: int
    used: int = 0
    allocation: dict[int, int] = field(default_factory=dict)
    owner_process: int | None = None
    is_mutex: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.name,
            "capacity": self.capacity,
            "used": self.used,
            "allocation": {str(pid): n for pid, n in self.allocation.items()},
            "ownerProcess": self.owner_process,
            "isMutex": self.is_mutex,
        }


@dataclass
class SyncProcess:
    """A participant in a synchronization problem."""

    id: int
    name: str
    role: ProcessRole
    state: ProcessState = ProcessState.RUNNING
    resources: list[int] = field(default_factory=list)
    waiting_resource: int | None = None
    steps: list[tuple[StepType, int, int]] = field(default_factory=list)
    current_step: int = 0
    message: str = ""

    def __post_init__(self) -> None:
        if len(self.resources) > MAX_RESOURCES:
            raise ValueError(f"a process can hold at most {MAX_RESOURCES} resources")
        if len(self.steps) > MAX_STEPS:
            raise ValueError(f"a process can have at most {MAX_STEPS} steps")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role.name,
            "state": self.state.name,
            "resources": list(self.resources),
            "waitingResource": self.waiting_resource,
            "steps": [[kind.name, rid, amount] for kind, rid, amount in self.steps],
            "currentStep": self.current_step,
            "message": self.message,
        }


@dataclass
class SynchronizationProblem:
    """A configured synchronization problem and its simulation settings."""

    type: ProblemType
    name: str = ""
    description: str = ""
    resources: list[Resource] = field(default_factory=list)
    processes: list[SyncProcess] = field(default_factory=list)
    simulation_step: int = 0
    is_running: bool = False
    speed: int = DEFAULT_SPEED_MS

    def __post_init__(self) -> None:
        if len(self.resources) > MAX_RESOURCES:
            raise ValueError(f"at most {MAX_RESOURCES} resources are allowed")
        if len(self.processes) > MAX_PROCESSES:
            raise ValueError(f"at most {MAX_PROCESSES} processes are allowed")

    def to_dict(self) -> dict:
        """Wire representation of the whole problem."""
        return {
            "type": self.type.name,
            "name": self.name,
            "description": self.description,
            "resources": [r.to_dict() for r in self.resources],
            "processes": [p.to_dict() for p in self.processes],
            "simulationStep": self.simulation_step,
            "isRunning": self.is_running,
            "speed": self.speed,
        }


def _producer_consumer() -> SynchronizationProblem:
    return SynchronizationProblem(
        type=ProblemType.PRODUCER_CONSUMER,
        name="生产者-消费者问题",
        description="生产者向缓冲区生产数据，消费者从缓冲区消费数据",
        resources=[Resource(0, "缓冲区", ResourceType.BUFFER, capacity=5)],
        processes=[
            SyncProcess(0, "生产者", ProcessRole.PRODUCER),
            SyncProcess(1, "消费者", ProcessRole.CONSUMER),
        ],
    )


def _readers_writers() -> SynchronizationProblem:
    readers = [SyncProcess(i, f"读者{i + 1}", ProcessRole.READER) for i in range(3)]
    writers = [SyncProcess(i + 3, f"写者{i + 1}", ProcessRole.WRITER) for i in range(2)]
    return SynchronizationProblem(
        type=ProblemType.READERS_WRITERS,
        name="读者-写者问题",
        description="多个读者可以同时读取数据，但写者必须独占访问",
        resources=[
            Resource(0, "数据库", ResourceType.DATABASE, capacity=1, is_mutex=True)
        ],
        processes=readers + writers,
    )


_SETUPS = {
    ProblemType.PRODUCER_CONSUMER: _producer_consumer,
    ProblemType.READERS_WRITERS: _readers_writers,
}


def init_problem(problem_type: ProblemType) -> SynchronizationProblem:
    """Build a fresh problem of the given type; raise ValueError if it has no setup."""
    try:
        setup = _SETUPS[problem_type]
    except KeyError:
        raise ValueError(f"no setup is defined for {problem_type.name}") from None
    return setup()
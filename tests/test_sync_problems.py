import json

import pytest

from procsim.sync_problems import (
    ProblemType,
    ProcessRole,
    ProcessState,
    Resource,
    ResourceType,
    StepType,
    SynchronizationProblem,
    SyncProcess,
    init_problem,
)


def test_producer_consumer_setup():
    problem = init_problem(ProblemType.PRODUCER_CONSUMER)
    assert problem.name == "生产者-消费者问题"
    assert problem.speed == 1000
    assert problem.is_running is False
    assert len(problem.resources) == 1
    buffer = problem.resources[0]
    assert buffer.name == "缓冲区"
    assert buffer.type is ResourceType.BUFFER
    assert buffer.capacity == 5
    assert buffer.used == 0
    assert buffer.is_mutex is False
    assert [p.name for p in problem.processes] == ["生产者", "消费者"]
    assert [p.role for p in problem.processes] == [ProcessRole.PRODUCER, ProcessRole.CONSUMER]


def test_readers_writers_setup():
    problem = init_problem(ProblemType.READERS_WRITERS)
    assert problem.name == "读者-写者问题"
    database = problem.resources[0]
    assert database.name == "数据库"
    assert database.is_mutex is True
    assert database.capacity == 1
    assert [p.id for p in problem.processes] == [0, 1, 2, 3, 4]
    names = [p.name for p in problem.processes]
    assert names[:3] == ["读者1", "读者2", "读者3"]
    assert names[3:] == ["写者1", "写者2"]
    assert all(p.state is ProcessState.RUNNING for p in problem.processes)


def test_init_returns_independent_instances():
    first = init_problem(ProblemType.PRODUCER_CONSUMER)
    second = init_problem(ProblemType.PRODUCER_CONSUMER)
    first.resources[0].used = 3
    assert second.resources[0].used == 0


@pytest.mark.parametrize(
    "problem_type",
    [ProblemType.DINING_PHILOSOPHERS, ProblemType.SLEEPING_BARBER, ProblemType.SMOKERS],
)
def test_problems_without_setup_raise(problem_type):
    with pytest.raises(ValueError):
        init_problem(problem_type)


def test_to_dict_round_trips_through_json():
    problem = init_problem(ProblemType.READERS_WRITERS)
    document = json.loads(json.dumps(problem.to_dict(), ensure_ascii=False))
    assert document["type"] == "READERS_WRITERS"
    assert document["name"] == problem.name
    assert [p["name"] for p in document["processes"]] == [p.name for p in problem.processes]
    assert document["resources"][0]["isMutex"] is True
    assert document["speed"] == problem.speed


def test_process_to_dict_includes_steps():
    proc = SyncProcess(
        7, "worker", ProcessRole.AGENT, steps=[(StepType.ACQUIRE, 0, 1), (StepType.RELEASE, 0, 1)]
    )
    data = proc.to_dict()
    assert data["steps"] == [["ACQUIRE", 0, 1], ["RELEASE", 0, 1]]
    assert data["role"] == "AGENT"
    assert data["currentStep"] == 0


def test_too_many_processes_rejected():
    procs = [SyncProcess(i, "p", ProcessRole.READER) for i in range(21)]
    with pytest.raises(ValueError):
        SynchronizationProblem(ProblemType.READERS_WRITERS, processes=procs)


def test_too_many_resources_rejected():
    resources = [Resource(i, "r", ResourceType.FORK, 1) for i in range(11)]
    with pytest.raises(ValueError):
        SynchronizationProblem(ProblemType.DINING_PHILOSOPHERS, resources=resources)
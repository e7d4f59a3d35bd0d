import json

import pytest

from procsim.process_table import (
    ProcessControlBlock,
    ProcessState,
    ProcessTable,
    ProcessTableFull,
)


@pytest.fixture
def table():
    t = ProcessTable()
    t.add(1000, "main", ProcessState.RUNNING, 10, 1)
    t.add(1001, "child-a", ProcessState.READY, 5, 1000)
    t.add(1002, "child-b", ProcessState.READY, 3, 1000)
    return t


def test_display_names_match_console_labels():
    assert ProcessState.READY.display_name() == "就绪"
    assert ProcessState.RUNNING.display_name() == "运行"
    assert ProcessState.WAITING.display_name() == "等待"
    assert ProcessState.TERMINATED.display_name() == "终止"


def test_add_sets_defaults(table):
    pcb = table.find(1001)
    assert pcb.name == "child-a"
    assert pcb.ppid == 1000
    assert pcb.priority == 5
    assert pcb.return_value == -1
    assert len(table) == 3


def test_find_missing_returns_none(table):
    assert table.find(4242) is None


def test_default_capacity_is_enforced():
    t = ProcessTable()
    for pid in range(100):
        t.add(pid, "p", ProcessState.READY, 1, 0)
    with pytest.raises(ProcessTableFull):
        t.add(100, "p", ProcessState.READY, 1, 0)
    assert len(t) == 100


def test_small_capacity():
    t = ProcessTable(capacity=1)
    t.add(1, "a", ProcessState.READY, 1, 0)
    with pytest.raises(ProcessTableFull):
        t.add(2, "b", ProcessState.READY, 1, 0)


def test_update_state_and_return_value(table):
    table.update_state(1001, ProcessState.TERMINATED)
    table.update_return_value(1001, 7)
    pcb = table.find(1001)
    assert pcb.state is ProcessState.TERMINATED
    assert pcb.return_value == 7


def test_update_unknown_pid_changes_nothing(table):
    before = [p.to_dict() for p in table]
    table.update_state(9999, ProcessState.WAITING)
    table.update_return_value(9999, 3)
    assert [p.to_dict() for p in table] == before


def test_remove_keeps_order(table):
    table.remove(1001)
    assert [p.pid for p in table] == [1000, 1002]
    table.remove(9999)
    assert len(table) == 2


def test_long_name_is_truncated():
    pcb = ProcessControlBlock(1, "x" * 80, ProcessState.READY, 1, 0)
    assert len(pcb.name) == 49
    assert pcb.name == "x" * len(pcb.name)


def test_multibyte_name_is_not_split():
    pcb = ProcessControlBlock(1, "进" * 30, ProcessState.READY, 1, 0)
    assert len(pcb.name.encode("utf-8")) <= 49
    assert set(pcb.name) == {"进"}


def test_to_json_round_trip(table):
    table.update_return_value(1002, 4)
    document = json.loads(table.to_json())
    assert [p["pid"] for p in document["processes"]] == [1000, 1001, 1002]
    entry = document["processes"][2]
    assert entry["name"] == "child-b"
    assert entry["state"] == "READY"
    assert entry["returnValue"] == 4
    assert entry["ppid"] == 1000
    assert entry["creationTime"] == table.find(1002).creation_time


def test_to_json_is_compact(table):
    text = table.to_json()
    assert ", " not in text
    assert ": " not in text


def test_to_json_empty_table():
    assert json.loads(ProcessTable().to_json()) == {"processes": []}


def test_format_table_lists_processes(table):
    text = table.format_table()
    assert "进程表" in text
    assert "child-a" in text
    assert "child-b" in text
    assert "进程总数: 3" in text
    assert text.count("就绪") == 2
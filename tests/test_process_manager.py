import asyncio
import contextlib
import json
import os
import socket
import sys
import time

import pytest
import websockets

from procsim.process_manager import (
    MAX_ARGS,
    ProcessManager,
    extract_json,
    parse_command,
    serve,
)
from procsim.process_table import ProcessState, ProcessTable, ProcessTableFull


def wait_for(predicate, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


class Recorder:
    def __init__(self):
        self.messages = []

    def __call__(self, text):
        self.messages.append(text)


def test_extract_json_strips_noise():
    raw = 'noise {"type":"a","data":{"x":1}} trailing'
    assert extract_json(raw) == '{"type":"a","data":{"x":1}}'


def test_extract_json_without_start_raises():
    with pytest.raises(ValueError):
        extract_json('{"kind":"a"}')


def test_extract_json_without_end_raises():
    with pytest.raises(ValueError):
        extract_json('{"type":"a","data":{}')


def test_parse_command_splits_on_spaces():
    assert parse_command("echo  hello world") == ["echo", "hello", "world"]


def test_parse_command_limits_argument_count():
    tokens = parse_command(" ".join(f"a{i}" for i in range(100)))
    assert len(tokens) == MAX_ARGS
    assert tokens[0] == "a0"


def test_parse_command_empty():
    assert parse_command("   ") == []


def test_add_client_receives_snapshot():
    manager = ProcessManager()
    manager.table.add(42, "init", ProcessState.RUNNING, 10, 1)
    client = Recorder()
    manager.add_client(client)
    assert client.messages == [manager.snapshot()]
    assert json.loads(client.messages[0])["processes"][0]["pid"] == 42


def test_broadcast_without_clients_returns_none():
    manager = ProcessManager()
    assert manager.broadcast() is None


def test_broadcast_reaches_all_clients_until_removed():
    manager = ProcessManager()
    first, second = Recorder(), Recorder()
    manager.add_client(first)
    manager.add_client(second)
    message = manager.broadcast()
    assert first.messages[-1] == message
    assert second.messages[-1] == message
    manager.remove_client(first)
    manager.broadcast()
    assert len(first.messages) == 2
    assert len(second.messages) == 3


def test_create_process_records_exit_value():
    manager = ProcessManager()
    client = Recorder()
    manager.add_client(client)
    pid = manager.create_process("worker", 5, 7, delay=0.1)
    pcb = manager.table.find(pid)
    assert pcb.name == "worker"
    assert pcb.priority == 5
    assert pcb.ppid == os.getpid()
    announced = json.loads(client.messages[1])["processes"]
    assert announced[0]["state"] == "READY"
    assert wait_for(lambda: pcb.state is ProcessState.TERMINATED)
    assert pcb.return_value == 7


def test_create_process_moves_to_running():
    manager = ProcessManager()
    pid = manager.create_process("sleeper", 3, 0, delay=30)
    try:
        pcb = manager.table.find(pid)
        assert wait_for(lambda: pcb.state is ProcessState.RUNNING, timeout=5)
    finally:
        manager.terminate_process(pid)
    assert manager.table.find(pid).state is ProcessState.TERMINATED


def test_create_process_into_full_table_raises():
    manager = ProcessManager(ProcessTable(capacity=0))
    with pytest.raises(ProcessTableFull):
        manager.create_process("x", 1, 0, delay=30)
    assert len(manager.table) == 0


def test_execute_command_waits_for_exit():
    manager = ProcessManager()
    pid = manager.execute_command(
        f"{sys.executable} -c raise(SystemExit(3))", "cmd", 4, wait=True
    )
    pcb = manager.table.find(pid)
    assert pcb.state is ProcessState.TERMINATED
    assert pcb.return_value == 3


def test_execute_missing_program_raises():
    manager = ProcessManager()
    with pytest.raises(FileNotFoundError):
        manager.execute_command("definitely-not-a-real-program-xyz", "bad", 1)
    assert len(manager.table) == 0


def test_execute_empty_command_raises():
    manager = ProcessManager()
    with pytest.raises(ValueError):
        manager.execute_command("", "empty", 1)


def test_terminate_process_twice():
    manager = ProcessManager()
    pid = manager.create_process("victim", 1, 9, delay=30)
    assert manager.terminate_process(pid) is True
    pcb = manager.table.find(pid)
    assert pcb.state is ProcessState.TERMINATED
    assert pcb.return_value == 0
    assert manager.terminate_process(pid) is False


def test_terminate_unknown_pid_raises():
    manager = ProcessManager()
    with pytest.raises(LookupError):
        manager.terminate_process(999999)


def test_handle_message_create_process():
    manager = ProcessManager()
    message = 'garbage{"type":"createProcess","data":{"name":"web","priority":2,"returnValue":1}}xx'
    pid = manager.handle_message(message)
    try:
        pcb = manager.table.find(pid)
        assert pcb.name == "web"
        assert pcb.priority == 2
    finally:
        manager.terminate_process(pid)


def test_handle_message_missing_fields_is_ignored():
    manager = ProcessManager()
    result = manager.handle_message(
        '{"type":"createProcess","data":{"name":"web","priority":true,"returnValue":1}}'
    )
    assert result is None
    assert len(manager.table) == 0


def test_handle_message_terminate():
    manager = ProcessManager()
    pid = manager.create_process("target", 1, 0, delay=30)
    result = manager.handle_message(
        json.dumps({"type": "terminateProcess", "data": {"pid": pid}})
    )
    assert result is True
    assert manager.table.find(pid).state is ProcessState.TERMINATED


def test_handle_message_unknown_type_raises():
    manager = ProcessManager()
    with pytest.raises(ValueError):
        manager.handle_message('{"type":"bogus","data":{"a":1}}')


def test_handle_message_without_data_object_raises():
    manager = ProcessManager()
    with pytest.raises(ValueError):
        manager.handle_message('{"type":"createProcess","data":[1]}}')


def _free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def _connect(port):
    for _ in range(100):
        try:
            return await websockets.connect(f"ws://127.0.0.1:{port}")
        except OSError:
            await asyncio.sleep(0.05)
    raise RuntimeError("server did not start")


@pytest.mark.asyncio
async def test_serve_sends_initial_snapshot():
    manager = ProcessManager()
    manager.table.add(1234, "init", ProcessState.RUNNING, 10, 1)
    port = _free_port()
    server = asyncio.create_task(serve(manager, "127.0.0.1", port))
    try:
        connection = await _connect(port)
        try:
            first = await asyncio.wait_for(connection.recv(), 5)
        finally:
            await connection.close()
    finally:
        server.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await server
    assert json.loads(first) == json.loads(manager.snapshot())
"""Process manager: spawns child processes, tracks them and publishes the table over WebSocket."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import signal
import subprocess
import sys
import threading
from typing import Callable

import websockets
from websockets.exceptions import ConnectionClosed

from procsim.process_table import ProcessState, ProcessTable, ProcessTableFull

logger = logging.getLogger(__name__)

WS_PORT = 8888
COMMAND_LEN = 256
MAX_ARGS = 63
CHILD_DELAY = 2.0
RUNNING_DELAY = 1.0
KILL_GRACE = 1.0
PING_INTERVAL = 30

_JSON_START = '{"type"'
_JSON_END = "}}"
_SLEEP_AND_EXIT = (
    "import sys, time; time.sleep(float(sys.argv[1])); sys.exit(int(sys.argv[2]))"
)

Client = Callable[[str], object]


def extract_json(raw: str) -> str:
    """Cut the message object out of a raw frame that may carry surrounding noise.

    The object starts at the first '{"type"' and ends at the first '}}' after it.
    """
    start = raw.find(_JSON_START)
    if start < 0:
        raise ValueError(f"no JSON message start found in: {raw!r}")
    end = raw.find(_JSON_END, start)
    if end < 0:
        raise ValueError(f"no JSON message end found in: {raw!r}")
    return raw[start : end + len(_JSON_END)]


def parse_command(command: str) -> list[str]:
    """Split a command line on spaces, as a fixed-size buffer would hold it."""
    text = command.encode("utf-8")[: COMMAND_LEN - 1].decode("utf-8", errors="ignore")
    return [token for token in text.split(" ") if token][:MAX_ARGS]


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _exit_status(returncode: int) -> int:
    """Exit status of a finished child; a child killed by a signal reports 0."""
    return returncode if returncode >= 0 else 0


def _child_args(delay: float, return_value: int) -> list[str]:
    return [sys.executable, "-c", _SLEEP_AND_EXIT, str(delay), str(return_value)]


class ProcessManager:
    """Owns a process table, the child processes in it and the connected clients."""

    def __init__(self, table: ProcessTable | None = None) -> None:
        self.table = table if table is not None else ProcessTable()
        self._lock = threading.RLock()
        self._clients: list[Client] = []
        self._children: dict[int, subprocess.Popen] = {}

    def add_client(self, client: Client) -> None:
        """Register a client and send it the current table."""
        with self._lock:
            self._clients.append(client)
        self._send(client, self.snapshot())

    def remove_client(self, client: Client) -> None:
        """Forget a client; unknown clients are ignored."""
        with self._lock:
            if client in self._clients:
                self._clients.remove(client)

    def snapshot(self) -> str:
        """Compact JSON of the process table."""
        with self._lock:
            return self.table.to_json()

    def broadcast(self) -> str | None:
        """Send the table to every client; return the message, or None without clients."""
        with self._lock:
            clients = list(self._clients)
        if not clients:
            return None
        message = self.snapshot()
        logger.info("broadcasting process table: %s", message)
        for client in clients:
            self._send(client, message)
        return message

    def create_process(
        self,
        name: str,
        priority: int,
        return_value: int,
        delay: float = CHILD_DELAY,
    ) -> int:
        """Start a child that sleeps for `delay` seconds and exits with `return_value`."""
        logger.info(
            "creating process %s, priority %d, return value %d", name, priority, return_value
        )
        return self._launch(
            _child_args(delay, return_value),
            name,
            ProcessState.READY,
            priority,
            wait=False,
            running_after=RUNNING_DELAY,
        )

    def execute_command(
        self, command: str, name: str, priority: int, wait: bool = False
    ) -> int:
        """Run a command line as a child process and track it; return its pid."""
        logger.info("executing command %s as %s, priority %d", command, name, priority)
        args = parse_command(command)
        if not args:
            raise ValueError("empty command")
        return self._launch(args, name, ProcessState.RUNNING, priority, wait=wait)

    def terminate_process(self, pid: int) -> bool:
        """Stop a tracked process.

        Returns False when it had already terminated; raises LookupError for an
        unknown pid.
        """
        with self._lock:
            pcb = self.table.find(pid)
            if pcb is None:
                raise LookupError(f"no process with pid {pid}")
            if pcb.state is ProcessState.TERMINATED:
                logger.info("process %d has already terminated", pid)
                return False
            child = self._children.get(pid)

        if child is None:
            os.kill(pid, signal.SIGTERM)
            status = 0
        else:
            child.terminate()
            logger.info("sent SIGTERM to process %d", pid)
            try:
                returncode = child.wait(timeout=KILL_GRACE)
            except subprocess.TimeoutExpired:
                child.kill()
                logger.info("sent SIGKILL to process %d", pid)
                returncode = child.wait()
            status = _exit_status(returncode)

        with self._lock:
            self.table.update_state(pid, ProcessState.TERMINATED)
            self.table.update_return_value(pid, status)
        self.broadcast()
        return True

    def handle_message(self, message: str) -> int | bool | None:
        """Act on a client message.

        Returns the new pid, the result of a termination, or None when the
        message lacks the fields its type needs.
        """
        document = json.loads(extract_json(message))
        if not isinstance(document, dict):
            raise ValueError("invalid message: not an object")
        kind = document.get("type")
        data = document.get("data")
        if not isinstance(kind, str) or not isinstance(data, dict):
            raise ValueError("invalid message: missing type or data")

        if kind == "createProcess":
            name, priority, return_value = (
                data.get("name"),
                data.get("priority"),
                data.get("returnValue"),
            )
            if isinstance(name, str) and _is_int(priority) and _is_int(return_value):
                return self.create_process(name, priority, return_value)
            return None
        if kind == "executeCommand":
            command, name, priority = data.get("command"), data.get("name"), data.get("priority")
            if isinstance(command, str) and isinstance(name, str) and _is_int(priority):
                return self.execute_command(command, name, priority)
            return None
        if kind == "terminateProcess":
            pid = data.get("pid")
            if _is_int(pid):
                return self.terminate_process(pid)
            return None
        raise ValueError(f"unknown message type: {kind}")

    def _launch(
        self,
        args: list[str],
        name: str,
        state: ProcessState,
        priority: int,
        *,
        wait: bool,
        running_after: float | None = None,
    ) -> int:
        child = subprocess.Popen(args)
        try:
            with self._lock:
                self.table.add(child.pid, name, state, priority, os.getpid())
                self._children[child.pid] = child
        except ProcessTableFull:
            child.kill()
            child.wait()
            raise
        logger.info("started child process %d", child.pid)
        self.broadcast()

        if running_after is not None:
            threading.Thread(
                target=self._mark_running, args=(child.pid, running_after), daemon=True
            ).start()
        if wait:
            self._reap(child)
        else:
            threading.Thread(target=self._reap, args=(child,), daemon=True).start()
        return child.pid

    def _reap(self, child: subprocess.Popen) -> None:
        status = _exit_status(child.wait())
        logger.info("child process %d exited with %d", child.pid, status)
        with self._lock:
            self.table.update_state(child.pid, ProcessState.TERMINATED)
            self.table.update_return_value(child.pid, status)
            self._children.pop(child.pid, None)
        self.broadcast()

    def _mark_running(self, pid: int, delay: float) -> None:
        threading.Event().wait(delay)
        with self._lock:
            pcb = self.table.find(pid)
            if pcb is None or pcb.state is not ProcessState.READY:
                return
            pcb.state = ProcessState.RUNNING
        self.broadcast()

    @staticmethod
    def _send(client: Client, message: str) -> None:
        try:
            client(message)
        except Exception:
            logger.exception("failed to send to client")


async def serve(manager: ProcessManager, host: str = "0.0.0.0", port: int = WS_PORT) -> None:
    """Serve the manager to WebSocket clients until cancelled."""
    loop = asyncio.get_running_loop()
    pending: set[asyncio.Task] = set()

    async def deliver(websocket, text: str) -> None:
        try:
            await websocket.send(text)
        except ConnectionClosed:
            pass

    def sender_for(websocket) -> Client:
        def send(text: str) -> None:
            def schedule() -> None:
                task = loop.create_task(deliver(websocket, text))
                pending.add(task)
                task.add_done_callback(pending.discard)

            try:
                loop.call_soon_threadsafe(schedule)
            except RuntimeError:
                pass

        return send

    async def handler(websocket) -> None:
        logger.info("WebSocket connection established")
        client = sender_for(websocket)
        manager.add_client(client)
        try:
            async for raw in websocket:
                text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
                try:
                    await asyncio.to_thread(manager.handle_message, text)
                except (ValueError, LookupError, OSError, ProcessTableFull) as exc:
                    logger.warning("rejected message: %s", exc)
        except ConnectionClosed:
            pass
        finally:
            manager.remove_client(client)
            logger.info("WebSocket connection closed")

    async with websockets.serve(handler, host, port, ping_interval=PING_INTERVAL):
        logger.info("WebSocket server listening on port %d", port)
        await asyncio.Future()


def _ask_int(prompt: str) -> int | None:
    try:
        return int(input(prompt).strip())
    except ValueError:
        return None


def _report_exit(manager: ProcessManager, pid: int) -> None:
    pcb = manager.table.find(pid)
    if pcb is not None:
        print(f"[父进程] 子进程 {pid} 已退出，返回值: {pcb.return_value}")


def _menu(manager: ProcessManager) -> None:
    while True:
        print("\n=== 进程管理系统 ===")
        print("1. 创建新进程")
        print("2. 创建并执行新命令")
        print("3. 查看进程表")
        print("4. 退出")
        choice = _ask_int("请选择操作 (1-4): ")

        if choice == 1:
            name = input("输入进程名称: ")
            priority = _ask_int("输入优先级 (1-10): ")
            return_value = _ask_int("为子进程设置返回值: ")
            if priority is None or return_value is None:
                print("无效输入，请重试")
                continue
            try:
                pid = manager._launch(
                    _child_args(0, return_value), name, ProcessState.READY, priority, wait=True
                )
            except (OSError, ProcessTableFull) as exc:
                print(f"创建进程失败: {exc}")
                continue
            _report_exit(manager, pid)
        elif choice == 2:
            command = input("输入要执行的命令: ")
            name = input("输入进程名称: ")
            priority = _ask_int("输入优先级 (1-10): ")
            if priority is None:
                print("无效输入，请重试")
                continue
            try:
                pid = manager.execute_command(command, name, priority, wait=True)
            except (OSError, ValueError, ProcessTableFull) as exc:
                print(f"执行命令失败: {exc}")
                continue
            _report_exit(manager, pid)
        elif choice == 3:
            print(manager.table.format_table(), end="")
        elif choice == 4:
            print("正在退出进程管理系统...")
            return
        else:
            print("无效选择，请重试")


def main(argv: list[str] | None = None) -> int:
    """Run the interactive process manager with its WebSocket server."""
    parser = argparse.ArgumentParser(description="Process manager with a WebSocket view.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=WS_PORT)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    manager = ProcessManager()
    print("进程管理系统已启动")
    print(f"父进程PID: {os.getpid()}")
    manager.table.add(os.getpid(), "主进程", ProcessState.RUNNING, 10, os.getppid())

    server = threading.Thread(
        target=lambda: asyncio.run(serve(manager, args.host, args.port)), daemon=True
    )
    server.start()

    try:
        _menu(manager)
    except (KeyboardInterrupt, EOFError):
        print("\n正在退出...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
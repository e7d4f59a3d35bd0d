"""Scheduling simulator service: drives a Scheduler and publishes its state over WebSocket."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import threading
from typing import Callable

import websockets
from websockets.exceptions import ConnectionClosed

from procsim.scheduler import Process, Scheduler, TableFull, UnknownAlgorithm

logger = logging.getLogger(__name__)

WS_PORT = 8080
DEFAULT_SPEED_MS = 1000
PING_INTERVAL = 30

Client = Callable[[str], object]

_MENU_ALGORITHMS = {1: "FCFS", 2: "SJF", 3: "Priority", 4: "RR"}
_SAMPLE_PROCESSES = (
    ("进程A", 5, 8, 0),
    ("进程B", 3, 4, 1),
    ("进程C", 7, 6, 2),
    ("进程D", 2, 2, 3),
)


def _extract_json(raw: str) -> str:
    """Cut the text from the first '{' to the last '}' out of a raw frame."""
    start = raw.find("{")
    end = raw.rfind("}")
    if start < 0 or end < start:
        raise ValueError(f"no JSON object found in: {raw!r}")
    return raw[start : end + 1]


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class SchedulerService:
    """Serialises access to a scheduler and keeps its clients up to date."""

    def __init__(self, scheduler: Scheduler | None = None) -> None:
        self.scheduler = scheduler if scheduler is not None else Scheduler()
        self._lock = threading.RLock()
        self._clients: list[Client] = []
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    def add_client(self, client: Client) -> None:
        """Register a client and send the current state to every client."""
        with self._lock:
            self._clients.append(client)
        self.broadcast_state()

    def remove_client(self, client: Client) -> None:
        """Forget a client; unknown clients are ignored."""
        with self._lock:
            if client in self._clients:
                self._clients.remove(client)

    def broadcast_state(self) -> str | None:
        """Send the state message to every client; return it, or None without clients."""
        with self._lock:
            clients = list(self._clients)
            if not clients:
                return None
            message = self.scheduler.state_message()
        logger.info("broadcasting state: %s", message)
        for client in clients:
            self._send(client, message)
        return message

    def run_step(self) -> Process | None:
        """Advance the scheduler by one unit and broadcast; return the running process."""
        with self._lock:
            process = self.scheduler.step()
        self.broadcast_state()
        return process

    def start_simulation(self, speed: int = DEFAULT_SPEED_MS) -> threading.Thread:
        """Step the scheduler every `speed` milliseconds in a background thread.

        A non-positive speed falls back to the default. The thread ends when every
        process has terminated or when the service is stopped.
        """
        if speed <= 0:
            speed = DEFAULT_SPEED_MS
        logger.info("starting simulation, speed %d ms", speed)
        thread = threading.Thread(target=self._simulate, args=(speed,), daemon=True)
        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()
        return thread

    def stop(self) -> None:
        """Stop every running simulation thread and wait for it to finish."""
        self._stop.set()
        with self._lock:
            threads = list(self._threads)
            self._threads.clear()
        for thread in threads:
            if thread is not threading.current_thread():
                thread.join()

    def handle_message(self, message: str) -> object:
        """Act on a client message.

        Returns what the action produced (a new process, a running thread, the
        running process after a step), or None when the message was ignored.
        """
        document = json.loads(_extract_json(message))
        if not isinstance(document, dict):
            raise ValueError("invalid message: not an object")
        kind = document.get("type")
        data = document.get("data")
        if not isinstance(kind, str):
            raise ValueError("invalid message: missing type")

        if kind == "create_process":
            if not isinstance(data, dict):
                raise ValueError("create_process message has no data object")
            name = data.get("name")
            priority = data.get("priority")
            burst_time = data.get("burstTime")
            arrival_time = data.get("arrivalTime")
            if not (
                isinstance(name, str)
                and _is_int(priority)
                and _is_int(burst_time)
                and _is_int(arrival_time)
            ):
                return None
            with self._lock:
                process = self.scheduler.create_process(name, priority, burst_time, arrival_time)
            self.broadcast_state()
            return process

        if kind == "set_algorithm":
            if not isinstance(data, dict):
                raise ValueError("set_algorithm message has no data object")
            algorithm = data.get("algorithm")
            if not isinstance(algorithm, str):
                return None
            with self._lock:
                self.scheduler.set_algorithm(algorithm)
                chosen = self.scheduler.algorithm
            logger.info("scheduling algorithm set to %s", chosen)
            self.broadcast_state()
            return chosen

        if kind == "set_quantum":
            if not isinstance(data, dict):
                raise ValueError("set_quantum message has no data object")
            quantum = data.get("quantum")
            if not _is_int(quantum) or quantum <= 0:
                return None
            with self._lock:
                self.scheduler.set_quantum(quantum)
            logger.info("quantum set to %d", quantum)
            self.broadcast_state()
            return quantum

        if kind == "reset_simulation":
            with self._lock:
                self.scheduler.reset()
            logger.info("simulation reset")
            self.broadcast_state()
            return None

        if kind == "start_simulation":
            speed = data.get("speed") if isinstance(data, dict) else None
            return self.start_simulation(speed if _is_int(speed) else DEFAULT_SPEED_MS)

        if kind == "step_simulation":
            return self.run_step()

        raise ValueError(f"unknown message type: {kind}")

    def _simulate(self, speed: int) -> None:
        while not self._stop.is_set():
            with self._lock:
                finished = self.scheduler.all_terminated()
            if finished:
                logger.info("all processes have finished")
                return
            try:
                self.run_step()
            except UnknownAlgorithm as exc:
                logger.warning("%s", exc)
            if self._stop.wait(speed / 1000):
                return

    @staticmethod
    def _send(client: Client, message: str) -> None:
        try:
            client(message)
        except Exception:
            logger.exception("failed to send to client")


async def serve(service: SchedulerService, host: str = "0.0.0.0", port: int = WS_PORT) -> None:
    """Serve the scheduler to WebSocket clients until cancelled."""
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
        service.add_client(client)
        try:
            async for raw in websocket:
                text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
                try:
                    await asyncio.to_thread(service.handle_message, text)
                except (ValueError, TableFull, UnknownAlgorithm) as exc:
                    logger.warning("rejected message: %s", exc)
        except ConnectionClosed:
            pass
        finally:
            service.remove_client(client)
            logger.info("WebSocket connection closed")

    async with websockets.serve(handler, host, port, ping_interval=PING_INTERVAL):
        logger.info("WebSocket server listening on port %d", port)
        await asyncio.Future()


def _ask_int(prompt: str) -> int | None:
    try:
        return int(input(prompt).strip())
    except ValueError:
        return None


def _menu(service: SchedulerService) -> None:
    scheduler = service.scheduler
    while True:
        print("\n=== 进程调度模拟器 ===")
        print("1. 创建新进程")
        print("2. 显示进程表")
        print("3. 设置调度算法")
        print("4. 设置时间片大小")
        print("5. 单步执行调度")
        print("6. 自动执行调度")
        print("7. 重置模拟器")
        print("8. 退出")
        choice = _ask_int("请选择操作 (1-8): ")

        if choice == 1:
            name = input("输入进程名称: ")
            priority = _ask_int("输入优先级 (1-10): ")
            burst_time = _ask_int("输入执行时间: ")
            arrival_time = _ask_int("输入到达时间: ")
            if priority is None or burst_time is None or arrival_time is None:
                print("无效输入，请重试")
                continue
            try:
                with service._lock:
                    scheduler.create_process(name, priority, burst_time, arrival_time)
            except TableFull:
                print("进程表已满！")
            service.broadcast_state()
        elif choice == 2:
            with service._lock:
                print(scheduler.format_table(), end="")
        elif choice == 3:
            print("选择调度算法:")
            print("1. 先来先服务 (FCFS)")
            print("2. 短作业优先 (SJF)")
            print("3. 优先级调度 (Priority)")
            print("4. 时间片轮转 (RR)")
            selected = _MENU_ALGORITHMS.get(_ask_int("请选择 (1-4): "))
            with service._lock:
                if selected is None:
                    print(f"无效选择，保持当前算法: {scheduler.algorithm}")
                else:
                    scheduler.set_algorithm(selected)
                print(f"调度算法已设置为: {scheduler.algorithm}")
            service.broadcast_state()
        elif choice == 4:
            print(f"当前时间片大小: {scheduler.quantum}")
            quantum = _ask_int("输入新的时间片大小: ")
            if quantum is None or quantum <= 0:
                print("无效的时间片大小，必须大于0")
                continue
            with service._lock:
                scheduler.set_quantum(quantum)
            print(f"时间片大小已设置为: {quantum}")
            service.broadcast_state()
        elif choice == 5:
            try:
                service.run_step()
            except UnknownAlgorithm as exc:
                print(exc)
        elif choice == 6:
            speed = _ask_int("输入调度速度(毫秒): ")
            if speed is None or speed <= 0:
                speed = DEFAULT_SPEED_MS
            service.start_simulation(speed)
            print(f"自动调度已启动，速度: {speed} 毫秒")
        elif choice == 7:
            with service._lock:
                scheduler.reset()
            print("模拟器已重置")
            service.broadcast_state()
        elif choice == 8:
            print("正在退出...")
            return
        else:
            print("无效选择，请重试")


def main(argv: list[str] | None = None) -> int:
    """Run the interactive scheduling simulator with its WebSocket server."""
    parser = argparse.ArgumentParser(description="CPU scheduling simulator with a WebSocket view.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=WS_PORT)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    service = SchedulerService()
    print("进程调度模拟器已启动")
    for name, priority, burst_time, arrival_time in _SAMPLE_PROCESSES:
        service.scheduler.create_process(name, priority, burst_time, arrival_time)

    server = threading.Thread(
        target=lambda: asyncio.run(serve(service, args.host, args.port)), daemon=True
    )
    server.start()

    try:
        _menu(service)
    except (KeyboardInterrupt, EOFError):
        print("\n正在退出...")
    finally:
        service.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
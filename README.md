# procsim

Small simulators for studying how an operating system manages
processes. Each keeps its state in plain Python objects; the two
interactive ones also publish that state as JSON over a WebSocket, so a
browser front end can show it as it changes.

## What is included

- **Process table** (`procsim.process_table`): `ProcessTable`, a
  bounded, ordered table of `ProcessControlBlock` records keyed by pid,
  with `add`, `find`, `update_state`, `update_return_value`, `remove`,
  `to_json` and `format_table`.
- **Process manager** (`procsim.process_manager`): `ProcessManager`
  starts real child processes, tracks them in a `ProcessTable` and sends
  the table to registered clients after every change. A created child
  sleeps (2 seconds by default) and exits with a chosen return value; it
  is listed as `READY`, becomes `RUNNING` after one second and
  `TERMINATED` when it exits. A command line is split on spaces and run
  directly (not through a shell). `terminate_process` sends SIGTERM and,
  if the child is still alive after one second, SIGKILL.
- **CPU scheduler** (`procsim.scheduler`): `Scheduler`, a discrete-time
  scheduler with a bounded `ReadyQueue` and four algorithms: `FCFS`,
  `SJF`, `Priority` (a higher number means a higher priority) and `RR`
  (round robin with a configurable quantum). `step()` advances it one
  time unit.
- **Scheduler service** (`procsim.scheduler_server`): `SchedulerService`
  serialises access to a `Scheduler`, broadcasts its state to clients
  and can step it automatically in a background thread.
- **Synchronization problems** (`procsim.sync_problems`): data models
  (`SynchronizationProblem`, `Resource`, `SyncProcess`) of classic
  problems. `init_problem` builds the producer–consumer and the
  readers–writers problem.
- **Print queue** (`procsim.print_queue`): `PrintQueue`, a thread-safe
  bounded FIFO of task ids, and `PrintQueueSimulation`, which runs
  several producer threads submitting numbered tasks and one printer
  thread taking them.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Commands

```
procsim-manager [--host HOST] [--port PORT]
```

Starts the interactive process manager together with its WebSocket
server (`0.0.0.0`, port 8888 by default). The menu creates a child with
a chosen return value, runs a command as a child, or shows the process
table; it waits for each child to exit before returning to the menu.

```
procsim-scheduler [--host HOST] [--port PORT]
```

Starts the interactive scheduling simulator together with its WebSocket
server (`0.0.0.0`, port 8080 by default). Four sample processes are
created at start-up. The menu creates processes, shows the table, sets
the algorithm and quantum, steps once, starts automatic stepping, or
resets the simulation.

```
procsim-print-queue [--producers N] [--capacity N] [--duration SECONDS] [--report-interval SECONDS]
```

Runs the print-queue simulation (3 producers and a capacity of 10 by
default). Submissions and printed tasks are logged as they happen, and
the queue status is printed every `--report-interval` seconds (5 by
default). Without `--duration` it runs until interrupted.

## Using the library

```python
from procsim.scheduler import Scheduler

scheduler = Scheduler("RR", 2)
scheduler.create_process("A", 5, 8, 0)
scheduler.create_process("B", 3, 4, 1)

while not scheduler.all_terminated():
    scheduler.step()

print(scheduler.format_table())
```

The process table can be used on its own:

```python
from procsim.process_table import ProcessState, ProcessTable

table = ProcessTable(100)
table.add(1234, "worker", ProcessState.READY, 5, 1)
table.update_state(1234, ProcessState.TERMINATED)
table.update_return_value(1234, 0)
print(table.to_json())
```

`ProcessTable.add` raises `ProcessTableFull` once the table is at
capacity. The scheduler raises `TableFull` when its 20-process table is
full, `QueueFull` when the ready queue is full, `ValueError` for a
quantum that is not greater than zero, and `UnknownAlgorithm` when a
step is run with an algorithm name it does not know.

## WebSocket messages

The scheduler server accepts JSON messages with a `type` and, where
needed, a `data` object. The text from the first `{` to the last `}` of
a frame is parsed.

| type               | data                                                    |
|--------------------|---------------------------------------------------------|
| `create_process`   | `name`, `priority`, `burstTime`, `arrivalTime`          |
| `set_algorithm`    | `algorithm`                                             |
| `set_quantum`      | `quantum` (greater than zero)                           |
| `reset_simulation` | —                                                       |
| `start_simulation` | `speed` in milliseconds (1000 if omitted or not positive) |
| `step_simulation`  | —                                                       |

When a client connects and after every change, every client receives a
`state_update` message holding the process list, the system time, the
algorithm, the quantum, the running process, the ready queue and
per-state counts.

The process manager accepts `createProcess` (`name`, `priority`,
`returnValue`), `executeCommand` (`command`, `name`, `priority`) and
`terminateProcess` (`pid`), each with its fields in a `data` object. The
message is cut from the first `{"type"` to the first `}}` after it.
Clients receive the full process table on connecting and after every
change.

## What this package does not do

- The synchronization problems are models only: there is no simulation
  that steps them and no server or command for them. `init_problem`
  raises `ValueError` for the dining-philosophers, sleeping-barber and
  smokers problem types, which have no setup.
- The print queue runs as threads inside one Python process; it exposes
  its status through `PrintQueue.report()` and the command's periodic
  output, not as a system file.
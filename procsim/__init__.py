"""Operating-system teaching simulators: a process table and manager, CPU scheduling, synchronization problem models and a print queue."""

__version__ = "0.1.0"

__all__ = [
    "process_table",
    "sync_problems",
    "scheduler",
    "process_manager",
    "scheduler_server",
    "print_queue",
]
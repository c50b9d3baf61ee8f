"""Worker module - Background execution of replay jobs.

Contains:
- run_replay_worker: polling loop and worker pool of the replay supervisor
"""
from .replay_worker import run_replay_worker

__all__ = ["run_replay_worker"]

# app/services/pipeline_repository.py
"""
Storage for service pipelines and the lifecycle transition log.
The orchestrator only talks to this interface; InMemoryPipelineRepository backs a
single-process deployment and the tests. Each orchestrator gets its own instance.
"""

import threading
from collections import deque
from typing import Optional


class PipelineRepository:
    def get(self, vehicle_id: str):
        raise NotImplementedError

    def save(self, pipeline) -> None:
        raise NotImplementedError

    def all(self) -> list:
        raise NotImplementedError

    def append_event(self, event) -> None:
        raise NotImplementedError

    def events(self) -> list:
        """Oldest first."""
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class InMemoryPipelineRepository(PipelineRepository):
    def __init__(self, max_events: int = 200):
        self._pipelines: dict = {}
        self._events: deque = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def get(self, vehicle_id: str) -> Optional[object]:
        return self._pipelines.get(vehicle_id)

    def save(self, pipeline) -> None:
        with self._lock:
            self._pipelines[pipeline.vehicle_id] = pipeline

    def all(self) -> list:
        with self._lock:
            return list(self._pipelines.values())

    def append_event(self, event) -> None:
        with self._lock:
            self._events.append(event)

    def events(self) -> list:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._pipelines.clear()
            self._events.clear()


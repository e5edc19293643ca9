from __future__ import annotations

import threading
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QObject, QThread, Signal

from .handler import GenerationState, WorldHandler, run_generation_cycle
from .statistics import SimulationDatabase


class SimulationWorker(QThread):
    progressed = Signal(object)
    stopped = Signal()

    def __init__(
        self,
        handler: WorldHandler,
        database: SimulationDatabase,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._handler = handler
        self._database = database
        self._stop_flag = threading.Event()
        self.max_generations: Optional[int] = None

    def run(self) -> None:
        self._stop_flag.clear()
        done = 0
        while not self._stop_flag.is_set():
            state = run_generation_cycle(self._handler, self._database)
            self.progressed.emit(state)
            done += 1
            if state.extinct:
                break
            if self.max_generations is not None and done >= self.max_generations:
                break
        self.stopped.emit()

    def request_stop(self) -> None:
        self._stop_flag.set()


class SimulationController(QObject):
    parameters_changed = Signal(dict)
    state_updated = Signal(dict)
    simulation_started = Signal()
    simulation_stopped = Signal()
    log_emitted = Signal(str)

    def __init__(
        self,
        handler: WorldHandler,
        database: Optional[SimulationDatabase] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._handler = handler
        self._database = database or handler.create_database()
        self._worker = SimulationWorker(self._handler, self._database)
        self._worker.progressed.connect(self._on_progress)
        self._worker.stopped.connect(self._on_worker_stopped)

    @property
    def handler(self) -> WorldHandler:
        return self._handler

    @property
    def database(self) -> SimulationDatabase:
        return self._database

    def is_running(self) -> bool:
        return self._worker.isRunning()

    def set_parameter(self, name: str, value: float) -> float:
        """Queue a parameter change; it reaches the world before the next generation."""
        stored = self._handler.parameters.set_value(name, value)
        self.parameters_changed.emit(self._handler.parameters.values())
        return stored

    def start(self, max_generations: Optional[int] = None) -> None:
        if self._worker.isRunning():
            return
        self._worker.max_generations = max_generations
        self._worker.start()
        self.simulation_started.emit()
        self.log_emitted.emit("Simulation started.")

    def wait(self) -> None:
        """Block until the simulation thread has finished."""
        self._worker.wait()

    def stop(self) -> None:
        if not self._worker.isRunning():
            return
        self._worker.request_stop()
        self._worker.wait()

    def step(self) -> GenerationState:
        """Run one generation on the calling thread."""
        if self._worker.isRunning():
            raise RuntimeError("Cannot step while the simulation thread is running")
        state = run_generation_cycle(self._handler, self._database)
        self._on_progress(state)
        return state

    def reset(self) -> None:
        self.stop()
        self._handler.init_world()
        self._database.clear()
        self.log_emitted.emit("World reset.")

    def export_csv(self, path: Path) -> Path:
        self._database.write_csv(path)
        self.log_emitted.emit(f"Statistics written to {path}.")
        return Path(path)

    def _on_progress(self, state: GenerationState) -> None:
        self.state_updated.emit(asdict(state))

    def _on_worker_stopped(self) -> None:
        self.simulation_stopped.emit()
        self.log_emitted.emit("Simulation stopped.")

from __future__ import annotations

import sys
from typing import Any, Dict, Sequence

from loguru import logger
from PySide6.QtCore import QCoreApplication

from evosim.core.controller import SimulationController
from evosim.core.handler import GenerationState
from evosim.main import build_handler, build_parser, finish_run, log_generation


def create_application(argv: Sequence[str]) -> QCoreApplication:
    app = QCoreApplication.instance() or QCoreApplication(list(argv))
    app.setApplicationName("evosim")
    return app


def main(argv: Sequence[str] | None = None) -> int:
    """Run the simulation on the Qt worker thread and quit once it stops."""
    argv = list(argv if argv is not None else sys.argv)
    parser = build_parser("Evolutionary bush world simulation (Qt event loop)")
    args, qt_args = parser.parse_known_args(argv[1:])
    qt_argv = [argv[0] if argv else "evosim-qt", *qt_args]

    app = create_application(qt_argv)
    handler, state_manager = build_handler(args)
    controller = SimulationController(handler)

    def on_state(state: Dict[str, Any]) -> None:
        log_generation(GenerationState(**state))
        if state["extinct"]:
            logger.warning("population extinct after generation {}", state["generation"])

    controller.state_updated.connect(on_state)
    controller.log_emitted.connect(logger.info)
    controller.simulation_stopped.connect(app.quit)
    controller.start(max_generations=max(1, args.generations))
    app.exec()
    controller.wait()

    finish_run(args, handler, controller.database, state_manager)
    return 0


if __name__ == "__main__":
    sys.exit(main())

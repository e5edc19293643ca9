# SPDX-License-Identifier: MIT
"""
Host-facing services: configuration, parameters, statistics and logging.
"""

from .config import (
    BushConfig,
    EngineConfig,
    GeneticsConfig,
    LoggingConfig,
    SimulationConfig,
    load_config,
)  # noqa: F401
from .logger_setup import setup_logger  # noqa: F401
from .parameters import ParameterSet, WorldParameter  # noqa: F401
from .statistics import DataSeries, SimulationDatabase  # noqa: F401

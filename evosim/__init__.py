# SPDX-License-Identifier: MIT
"""
Evolutionary-simulation engine with a bush world of flies and wasps.

`evosim.sim` hosts the generic engine (genomes, agents, the world event loop
and the replica coordinator), `evosim.worlds` the bush world scenario, and
`evosim.core` the host-facing services. `evosim.main` is the headless entry
point.
"""

__all__ = ["main"]

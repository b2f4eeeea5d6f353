"""
errors.py - Exceptions raised by the simulator.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Inputs that cannot describe a valid run.

    Raised before any voxel is simulated: mismatched array shapes between
    the pulse, gradients, grid and per-voxel maps, or a grid axis with a
    non-positive sample count.  Nothing is computed when this is raised.
    """

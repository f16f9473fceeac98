"""
Physical constants, default values, and system-wide constants.
"""
from typing import Final

# Cut-bank zone marker for cells without a road or channel cut
NO_CUT: Final[int] = -1

# Flux averaging weight between the previous and the current timestep
PERCOLATION_AVERAGING_WEIGHT: Final[float] = 0.5

# Brooks-Corey conductivity exponent: 2 / lambda + 3
BROOKS_COREY_OFFSET: Final[float] = 3.0
BROOKS_COREY_SCALE: Final[float] = 2.0

# Default model timestep
DEFAULT_TIMESTEP_SECONDS: Final[int] = 3600

# Numerical stability
EPSILON: Final[float] = 1e-10

# Water balance closure (m of water)
WATER_BALANCE_TOLERANCE_M: Final[float] = 1e-9

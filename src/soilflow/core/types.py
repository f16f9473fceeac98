"""
Type definitions and type aliases for the soilflow system.
"""
from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from typing_extensions import TypeAlias
import numpy as np


# Type aliases for clarity
CellID: TypeAlias = str
Metres: TypeAlias = float  # depth of water or soil (m)
Seconds: TypeAlias = float
VolumetricMoisture: TypeAlias = float  # m³/m³

# Per-layer arrays; moisture and adjustment carry the deep layer at index N
LayerArray: TypeAlias = np.ndarray  # Shape: (n_layers,)
ProfileArray: TypeAlias = np.ndarray  # Shape: (n_layers + 1,)


class InfiltrationMode(str, Enum):
    """How surface infiltration is handled when the table reaches the surface"""
    STATIC = "static"
    DYNAMIC = "dynamic"  # reclaim infiltration on ponding


@dataclass
class DrainageResult:
    """Bookkeeping from one vertical drainage call (all in m of water)"""
    infiltration: Metres = 0.0  # after the dynamic-mode reclaim
    surface_runoff: Metres = 0.0
    roadbed_runoff: Metres = 0.0
    ponded_runoff: Metres = 0.0
    deep_drainage: Metres = 0.0
    percolation: List[float] = field(default_factory=list)

    @property
    def total_runoff(self) -> Metres:
        return self.surface_runoff + self.roadbed_runoff + self.ponded_runoff


@dataclass
class StepResult:
    """Results from one soil column timestep"""
    moisture: List[VolumetricMoisture]
    percolation: List[Metres]
    table_depth: Metres
    runoff: Metres  # produced during this step
    drainage: DrainageResult
    lateral_remainder: Metres = 0.0
    water_balance_error: Metres = 0.0
    timestep: Optional[int] = None
    fluxes: Dict[str, float] = None

    def __post_init__(self):
        if self.fluxes is None:
            self.fluxes = {}

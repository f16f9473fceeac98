"""
Soil column data model: static layer properties and persistent state.

A column holds N explicit layers (index 0 at the surface) plus one deep
layer below the deepest explicit layer. Arrays that describe the whole
profile (moisture, storage adjustment) have N + 1 entries with the deep
layer last; the deep layer is reached through the named accessors rather
than by indexing with the layer count.
"""
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from soilflow.core.constants import NO_CUT
from soilflow.core.types import LayerArray, Metres, ProfileArray
from soilflow.physics.cut_bank import adjust_storage, cut_bank_geometry


def _as_array(values) -> np.ndarray:
    return np.array(values, dtype=float, ndmin=1)


@dataclass
class SoilProfile:
    """
    Static hydraulic description of one grid cell's soil column.

    Units:
        - root_depths, total_depth, bank_height: m
        - vertical_ks: m/s
        - porosity, field_capacity: m³/m³
        - adjust, perc_area: dimensionless fractions in (0, 1]
    """
    root_depths: LayerArray
    vertical_ks: LayerArray
    pore_size_index: LayerArray  # Brooks-Corey lambda
    porosity: LayerArray
    field_capacity: LayerArray
    total_depth: Metres
    adjust: Optional[ProfileArray] = None  # N + 1, deep layer last
    perc_area: Optional[LayerArray] = None
    cut_bank_zone: int = NO_CUT
    bank_height: Metres = 0.0

    def __post_init__(self) -> None:
        self.root_depths = _as_array(self.root_depths)
        self.vertical_ks = _as_array(self.vertical_ks)
        self.pore_size_index = _as_array(self.pore_size_index)
        self.porosity = _as_array(self.porosity)
        self.field_capacity = _as_array(self.field_capacity)
        self.total_depth = float(self.total_depth)
        self.bank_height = float(self.bank_height)
        self.cut_bank_zone = int(self.cut_bank_zone)

        n = len(self.root_depths)
        if self.adjust is None:
            self.adjust = np.ones(n + 1)
        else:
            self.adjust = _as_array(self.adjust)
        if self.perc_area is None:
            self.perc_area = np.ones(n)
        else:
            self.perc_area = _as_array(self.perc_area)

    @classmethod
    def from_cut_geometry(
        cls,
        root_depths: Sequence[float],
        vertical_ks: Sequence[float],
        pore_size_index: Sequence[float],
        porosity: Sequence[float],
        field_capacity: Sequence[float],
        total_depth: float,
        bank_height: float = 0.0,
        cut_area: float = 0.0,
        dx: float = 1.0,
        dy: float = 1.0,
    ) -> "SoilProfile":
        """
        Build a profile whose storage corrections follow from a road or
        channel cut of plan area `cut_area` (m²) and depth `bank_height`
        in a `dx` by `dy` cell.
        """
        cut_fraction = cut_area / (dx * dy)
        adjust, zone = adjust_storage(root_depths, total_depth, bank_height, cut_fraction)
        perc_area = cut_bank_geometry(root_depths, bank_height, cut_fraction)

        return cls(
            root_depths=root_depths,
            vertical_ks=vertical_ks,
            pore_size_index=pore_size_index,
            porosity=porosity,
            field_capacity=field_capacity,
            total_depth=total_depth,
            adjust=adjust,
            perc_area=perc_area,
            cut_bank_zone=zone,
            bank_height=bank_height,
        )

    @property
    def n_layers(self) -> int:
        """Number of explicit layers (deep layer excluded)"""
        return len(self.root_depths)

    @property
    def deep_layer_depth(self) -> Metres:
        """Thickness of the layer below the deepest root layer (m)"""
        return self.total_depth - float(np.sum(self.root_depths))

    @property
    def deep_porosity(self) -> float:
        """The deep layer shares the deepest explicit layer's porosity"""
        return float(self.porosity[-1])

    @property
    def deep_field_capacity(self) -> float:
        return float(self.field_capacity[-1])

    @property
    def deep_adjust(self) -> float:
        return float(self.adjust[-1])

    @property
    def thicknesses(self) -> ProfileArray:
        """Layer thicknesses including the deep layer (m)"""
        return np.append(self.root_depths, self.deep_layer_depth)

    @property
    def porosities(self) -> ProfileArray:
        return np.append(self.porosity, self.deep_porosity)

    @property
    def field_capacities(self) -> ProfileArray:
        return np.append(self.field_capacity, self.deep_field_capacity)

    def storage(self, moisture: ProfileArray) -> Metres:
        """Total water held by the column for a moisture profile (m)"""
        return float(np.sum(np.asarray(moisture) * self.thicknesses * self.adjust))


@dataclass
class ColumnState:
    """
    Persistent state of one soil column, carried between timesteps.

    `moisture` has one entry per explicit layer plus the deep layer last.
    `perc` is the per-unit-area percolation flux out of each explicit layer
    during the previous timestep (m); it is averaged with the next
    timestep's drainage.
    """
    moisture: ProfileArray
    table_depth: Metres
    perc: Optional[LayerArray] = None
    runoff: Metres = 0.0

    def __post_init__(self) -> None:
        self.moisture = _as_array(self.moisture)
        self.table_depth = float(self.table_depth)
        self.runoff = float(self.runoff)
        if self.perc is None:
            self.perc = np.zeros(len(self.moisture) - 1)
        else:
            self.perc = _as_array(self.perc)

    @classmethod
    def at_field_capacity(cls, profile: SoilProfile) -> "ColumnState":
        """Every layer at field capacity, water table at the column base"""
        return cls(
            moisture=profile.field_capacities.copy(),
            table_depth=profile.total_depth,
            perc=np.zeros(profile.n_layers),
        )

    @property
    def deep_moisture(self) -> float:
        return float(self.moisture[-1])

    @deep_moisture.setter
    def deep_moisture(self, value: float):
        self.moisture[-1] = value

    @property
    def layer_moisture(self) -> LayerArray:
        """View of the explicit layers' moisture"""
        return self.moisture[:-1]

    def copy(self) -> "ColumnState":
        return ColumnState(
            moisture=self.moisture.copy(),
            table_depth=self.table_depth,
            perc=self.perc.copy(),
            runoff=self.runoff,
        )

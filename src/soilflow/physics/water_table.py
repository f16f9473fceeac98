"""
Water table depth from the soil moisture profile.

The saturated zone is built from the bottom of the column upward. Water in
excess of porosity is displaced into the layer above; the table sits at the
top of the contiguous saturated zone, lowered into the first unsaturated
layer above it by that layer's drainable fraction (θ - fc) / (φ - fc).
Surplus that reaches the surface is returned as a negative depth (ponding),
so the function conserves water exactly.
"""
import logging
from typing import Protocol

import numpy as np

from soilflow.core.constants import EPSILON
from soilflow.core.types import Metres, ProfileArray
from soilflow.physics.soil_column import ColumnState, SoilProfile

logger = logging.getLogger(__name__)


class WaterTableFunction(Protocol):
    """
    Computes table depth for a moisture profile and caps each layer's
    moisture at its porosity in place. More water must never give a deeper
    table.
    """

    def __call__(self, profile: SoilProfile, moisture: ProfileArray) -> Metres:
        ...


def water_table_depth(profile: SoilProfile, moisture: ProfileArray) -> Metres:
    """
    Depth of the water table below the surface (m, negative when ponding).

    Args:
        profile: Soil column description
        moisture: N + 1 moisture values, deep layer last; capped at
            porosity in place

    Returns:
        Water table depth (m)
    """
    thicknesses = profile.thicknesses
    porosities = profile.porosities
    field_capacities = profile.field_capacities
    adjust = profile.adjust

    table_depth = profile.total_depth
    bottom = profile.total_depth
    surplus = 0.0
    saturated_below = True

    for i in range(profile.n_layers, -1, -1):
        volume = thicknesses[i] * adjust[i]
        top = bottom - thicknesses[i]
        moisture[i] += surplus / volume

        if moisture[i] >= porosities[i]:
            surplus = (moisture[i] - porosities[i]) * volume
            moisture[i] = porosities[i]
            if saturated_below:
                table_depth = top
        else:
            surplus = 0.0
            if saturated_below and moisture[i] > field_capacities[i]:
                drainable = (moisture[i] - field_capacities[i]) / (porosities[i] - field_capacities[i])
                table_depth = bottom - drainable * thicknesses[i]
            saturated_below = False
        bottom = top

    if 0.0 < surplus <= EPSILON:
        # Rounding residue goes to the shallowest layers with room below porosity
        surplus = _store_residue(surplus, thicknesses * adjust, porosities, moisture)

    if surplus > 0.0:
        # Water left over at the surface ponds
        table_depth = -surplus

    return table_depth


def _store_residue(
    residue: Metres,
    volumes: ProfileArray,
    porosities: ProfileArray,
    moisture: ProfileArray
) -> Metres:
    """Fill layers top-down up to porosity; returns what could not be stored"""
    for i in range(len(moisture)):
        gap = (porosities[i] - moisture[i]) * volumes[i]
        if gap <= 0.0:
            continue
        stored = min(gap, residue)
        moisture[i] = min(moisture[i] + stored / volumes[i], porosities[i])
        residue -= stored
        if residue <= 0.0:
            return 0.0

    return residue


def apply_water_table(
    profile: SoilProfile,
    state: ColumnState,
    water_table: WaterTableFunction = water_table_depth
) -> Metres:
    """
    Recompute the table depth of `state`, turning ponded water into runoff.

    Returns:
        Ponded depth added to runoff (m)
    """
    state.table_depth = float(water_table(profile, state.moisture))

    ponded = 0.0
    if state.table_depth < 0.0:
        ponded = -state.table_depth
        state.runoff += ponded
        state.table_depth = 0.0
        logger.debug(f"Water table above surface; {ponded:.6f} m ponded to runoff")

    return ponded


def saturated_thickness(profile: SoilProfile, table_depth: Metres) -> Metres:
    """Thickness of the saturated zone above the column base (m)"""
    return float(np.clip(profile.total_depth - table_depth, 0.0, profile.total_depth))

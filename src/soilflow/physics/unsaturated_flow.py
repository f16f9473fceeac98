"""
Vertical drainage through the unsaturated zone of a layered soil column.

Follows Wigmosta et al. (1994): a unit hydraulic gradient is assumed in the
unsaturated zone, so each layer drains at its Brooks-Corey conductivity.
There is no drainage below field capacity and no upward (capillary)
movement. The drainage of a timestep is averaged with the previous
timestep's flux (eq. 42), which is why the per-layer flux is carried in the
column state.

Water a layer holds above porosity after drainage (e.g. from a large
infiltration pulse) is pushed through to the layer below. Percolation from
the deepest explicit layer feeds the deep layer, after which the water table
is recomputed and any water that ponds at the surface becomes runoff.

Storage corrections for road and channel cuts enter through the per-layer
adjustment factor (effective thickness) and the basal-area fraction of each
layer bottom.

References:
- Wigmosta, M.S., Vail, L.W. and Lettenmaier, D.P. (1994). A distributed
  hydrology-vegetation model for complex terrain. Water Resources Research,
  30(6):1665-1679.
- Bras, R.L. (1990). Hydrology: an introduction to hydrologic science.
  Addison-Wesley.
"""
import logging
from typing import Optional

from soilflow.core.constants import NO_CUT, PERCOLATION_AVERAGING_WEIGHT
from soilflow.core.exceptions import ColumnPreconditionError, ErrorContext
from soilflow.core.types import CellID, DrainageResult, InfiltrationMode, Metres, Seconds
from soilflow.physics.constraints import ColumnPreconditionChecker
from soilflow.physics.hydraulics import unsaturated_conductivity
from soilflow.physics.soil_column import ColumnState, SoilProfile
from soilflow.physics.water_table import (
    WaterTableFunction,
    apply_water_table,
    water_table_depth,
)

logger = logging.getLogger(__name__)


def _route_roadbed_infiltration(
    roadbed_infiltration: Metres,
    profile: SoilProfile,
    state: ColumnState,
    result: DrainageResult,
    cell_id: Optional[CellID]
) -> None:
    if roadbed_infiltration == 0.0:
        return

    if state.table_depth <= profile.bank_height:
        # Table above the road or channel bed: nothing infiltrates
        state.runoff += roadbed_infiltration
        result.roadbed_runoff = roadbed_infiltration
        return

    zone = profile.cut_bank_zone
    if zone == NO_CUT:
        raise ColumnPreconditionError(
            f"Roadbed infiltration of {roadbed_infiltration} m on a cell without a cut",
            precondition="roadbed_requires_cut",
            context=ErrorContext(cell_id=cell_id, component="unsaturated_flow"),
        )

    volume = profile.thicknesses[zone] * profile.adjust[zone]
    state.moisture[zone] += roadbed_infiltration / volume


def unsaturated_flow(
    dt: Seconds,
    profile: SoilProfile,
    state: ColumnState,
    infiltration: Metres,
    roadbed_infiltration: Metres = 0.0,
    infiltration_mode: InfiltrationMode = InfiltrationMode.STATIC,
    water_table: WaterTableFunction = water_table_depth,
    cell_id: Optional[CellID] = None,
    checker: Optional[ColumnPreconditionChecker] = None
) -> DrainageResult:
    """
    Drain the column for one timestep, updating `state` in place.

    Moisture, percolation, table depth and runoff of `state` are modified;
    the caller must hold the only reference to it for the duration of the
    call. Inputs are not validated unless a `checker` is given; a column that
    violates the preconditions (e.g. a zero basal area) yields non-finite
    moisture.

    Args:
        dt: Timestep (s)
        profile: Soil column description
        state: Column state, mutated in place
        infiltration: Water entering the top of the column (m)
        roadbed_infiltration: Water entering through the road or channel
            bed (m)
        infiltration_mode: In DYNAMIC mode the reported infiltration is
            reduced by water that ponds at the end of the step. Moisture is
            not corrected retroactively: the infiltrated water has already
            been added to the top layer and the ponded surplus is counted as
            runoff either way.
        water_table: Water table function
        cell_id: Identifier used in error reports
        checker: Preconditions to verify before the column is touched

    Returns:
        DrainageResult with the flux bookkeeping of the call
    """
    if checker is not None:
        checker.check(
            profile,
            state,
            cell_id=cell_id,
            dt=dt,
            infiltration=infiltration,
            roadbed_infiltration=roadbed_infiltration,
        )

    n = profile.n_layers
    result = DrainageResult()

    _route_roadbed_infiltration(roadbed_infiltration, profile, state, result, cell_id)

    if state.table_depth <= 0.0:
        # Table at or above the surface
        state.runoff += infiltration
        result.surface_runoff = infiltration
        if infiltration_mode == InfiltrationMode.DYNAMIC:
            infiltration = 0.0
    else:
        state.moisture[0] += infiltration / (profile.root_depths[0] * profile.adjust[0])

    moisture = state.moisture
    perc = state.perc
    for i in range(n):
        if moisture[i] > profile.field_capacity[i]:
            conductivity = unsaturated_conductivity(
                moisture[i],
                profile.porosity[i],
                profile.vertical_ks[i],
                profile.pore_size_index[i],
            )
            drainage = conductivity * dt
            perc[i] = PERCOLATION_AVERAGING_WEIGHT * (perc[i] + drainage) * profile.perc_area[i]

            volume = profile.root_depths[i] * profile.adjust[i]
            max_soil_water = volume * profile.porosity[i]
            soil_water = volume * moisture[i]
            field_capacity = volume * profile.field_capacity[i]

            if soil_water - perc[i] < field_capacity:
                perc[i] = soil_water - field_capacity

            soil_water -= perc[i]
            if soil_water > max_soil_water:
                perc[i] += soil_water - max_soil_water

            moisture[i] -= perc[i] / volume
            if i < n - 1:
                moisture[i + 1] += perc[i] / (profile.root_depths[i + 1] * profile.adjust[i + 1])
        else:
            perc[i] = 0.0

        # Back to a per-unit-area flux for the next timestep's average
        perc[i] /= profile.perc_area[i]

    result.deep_drainage = float(perc[n - 1] * profile.perc_area[n - 1])
    state.deep_moisture += result.deep_drainage / (profile.deep_layer_depth * profile.deep_adjust)

    result.ponded_runoff = apply_water_table(profile, state, water_table)
    if result.ponded_runoff > 0.0 and infiltration_mode == InfiltrationMode.DYNAMIC:
        infiltration = max(infiltration - result.ponded_runoff, 0.0)

    result.infiltration = infiltration
    result.percolation = perc.tolist()

    logger.debug(
        f"Drainage step: dt={dt}s, infiltration={infiltration:.6f}m, "
        f"deep drainage={result.deep_drainage:.6f}m, table={state.table_depth:.3f}m, "
        f"runoff={result.total_runoff:.6f}m"
    )

    return result

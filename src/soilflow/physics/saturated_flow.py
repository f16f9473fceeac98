"""
Redistribution of net lateral saturated-zone flow over the soil column.

Outflow (negative flow) is drawn from the top of the saturated zone
downward: each layer can give up its drainable water (φ - fc) over the part
of its thickness below the water table, and the deep layer is tapped last.
Drawing from the top avoids emptying the deep layer while the layers above
it are still saturated.

Inflow (positive flow) fills the column from the bottom up, deep layer
first, each layer up to porosity. Inflow the column cannot hold becomes
runoff. An outflow the column cannot supply is a fatal error.
"""
import logging
from typing import Optional

from soilflow.core.exceptions import ErrorContext, SaturatedFlowRemainderError
from soilflow.core.types import CellID, Metres
from soilflow.physics.constraints import ColumnPreconditionChecker
from soilflow.physics.soil_column import ColumnState, SoilProfile
from soilflow.physics.water_table import saturated_thickness

logger = logging.getLogger(__name__)


def _extract(sat_flow: Metres, profile: SoilProfile, state: ColumnState) -> Metres:
    """Top-down extraction; returns the flow still to be supplied (<= 0)"""
    n = profile.n_layers
    total_depth = profile.total_depth
    table_depth = state.table_depth
    moisture = state.moisture

    depth = 0.0
    for i in range(n):
        if depth >= total_depth:
            break
        thickness = profile.root_depths[i]
        depth = min(depth + thickness, total_depth)

        available = 0.0
        if depth > table_depth:
            below_table = min(depth - table_depth, thickness)
            available = (profile.porosity[i] - profile.field_capacity[i]) * below_table * profile.adjust[i]

        extracted = -available if -sat_flow > available else sat_flow
        moisture[i] += extracted / (thickness * profile.adjust[i])
        sat_flow -= extracted
        if sat_flow == 0.0:
            return sat_flow

    if sat_flow < 0.0:
        deep_depth = profile.deep_layer_depth
        available = 0.0
        if depth < total_depth:
            below_table = min(saturated_thickness(profile, table_depth), deep_depth)
            available = (profile.deep_porosity - profile.deep_field_capacity) * below_table * profile.deep_adjust

        extracted = -available if -sat_flow > available else sat_flow
        state.deep_moisture += extracted / (deep_depth * profile.deep_adjust)
        sat_flow -= extracted

    return sat_flow


def _inject(
    sat_flow: Metres,
    profile: SoilProfile,
    state: ColumnState,
    restrict_injection: bool
) -> Metres:
    """Bottom-up injection; returns the flow the column could not hold (>= 0)"""
    n = profile.n_layers
    moisture = state.moisture
    table_height = saturated_thickness(profile, state.table_depth)
    thicknesses = profile.thicknesses
    porosities = profile.porosities

    height = 0.0
    for i in range(n, -1, -1):
        thickness = thicknesses[i]
        volume = thickness * profile.adjust[i]
        height += thickness
        if restrict_injection and height <= table_height:
            # Layer lies wholly below the water table
            continue

        water_gap = max((porosities[i] - moisture[i]) * volume, 0.0)
        injected = water_gap if sat_flow > water_gap else sat_flow
        sat_flow -= injected
        moisture[i] += injected / volume
        if sat_flow == 0.0:
            break

    return sat_flow


def distribute_saturated_flow(
    sat_flow: Metres,
    profile: SoilProfile,
    state: ColumnState,
    restrict_injection: bool = False,
    cell_id: Optional[CellID] = None,
    checker: Optional[ColumnPreconditionChecker] = None
) -> Metres:
    """
    Distribute a net saturated-zone flow over the column layers.

    Moisture and runoff of `state` are updated in place; the table depth is
    read but not recomputed. Inputs are not validated unless a `checker` is
    given.

    Args:
        sat_flow: Net saturated flow (m); negative extracts, positive injects
        profile: Soil column description
        state: Column state, mutated in place
        restrict_injection: Skip layers lying wholly below the water table
            when injecting. Off by default, which fills every layer bottom-up
            and reproduces previously calibrated runs.
        cell_id: Identifier used in error reports
        checker: Preconditions to verify before the column is touched

    Returns:
        Inflow the column could not store, already added to runoff (m)

    Raises:
        ColumnPreconditionError: If `checker` rejects the column or the flow
        SaturatedFlowRemainderError: If an outflow could not be supplied
    """
    if checker is not None:
        checker.check(profile, state, cell_id=cell_id, sat_flow=sat_flow)

    if sat_flow < 0.0:
        sat_flow = _extract(sat_flow, profile, state)
    elif sat_flow > 0.0:
        sat_flow = _inject(sat_flow, profile, state, restrict_injection)

    if sat_flow > 0.0:
        state.runoff += sat_flow
        logger.debug(f"Column full; {sat_flow:.6f} m of saturated inflow to runoff")

    if sat_flow < 0.0:
        logger.error(
            f"Saturated outflow exceeds drainable storage by {-sat_flow:.6g} m "
            f"(table depth {state.table_depth:.3f} m)"
        )
        raise SaturatedFlowRemainderError(
            f"Negative saturated flow remainder {sat_flow:.6g} m",
            remainder=sat_flow,
            context=ErrorContext(
                cell_id=cell_id,
                component="saturated_flow",
                operation="distribute_saturated_flow",
                details={"table_depth": state.table_depth},
            ),
        )

    return sat_flow

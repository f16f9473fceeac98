"""
Precondition checks for soil column inputs.
Catches inputs that would otherwise produce physically implausible output
(negative moisture, divergent table depths) without any error.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import numpy as np

from soilflow.core.constants import NO_CUT
from soilflow.core.exceptions import ColumnPreconditionError, ErrorContext
from soilflow.core.types import CellID
from soilflow.physics.soil_column import ColumnState, SoilProfile

logger = logging.getLogger(__name__)


@dataclass
class ColumnPrecondition:
    """Definition of a column precondition"""
    name: str
    description: str
    check_function: Callable[[Dict], bool]


def _in_unit_interval(values: np.ndarray) -> bool:
    return bool(np.all((values > 0.0) & (values <= 1.0)))


def _finite_non_negative(value: float) -> bool:
    return bool(np.isfinite(value) and value >= 0.0)


class ColumnPreconditionChecker:
    """
    Validates a soil profile, its state and the step forcings before the
    flow routines run. The first violated precondition raises
    ColumnPreconditionError naming the check and the cell.
    """

    def __init__(self):
        self.preconditions = self._initialize_preconditions()

    def _initialize_preconditions(self) -> List[ColumnPrecondition]:
        return [
            ColumnPrecondition(
                name="layer_count",
                description="Column needs at least one explicit layer",
                check_function=lambda c: c["profile"].n_layers >= 1,
            ),
            ColumnPrecondition(
                name="array_lengths",
                description="Layer arrays must have N entries; adjustment and moisture N + 1",
                check_function=self._check_array_lengths,
            ),
            ColumnPrecondition(
                name="positive_thickness",
                description="Every layer must have a positive thickness",
                check_function=lambda c: bool(np.all(c["profile"].root_depths > 0.0)),
            ),
            ColumnPrecondition(
                name="deep_layer",
                description="Total depth must exceed the summed layer thicknesses",
                check_function=lambda c: c["profile"].deep_layer_depth > 0.0,
            ),
            ColumnPrecondition(
                name="storage_parameters",
                description="Field capacity must lie in [0, porosity) and porosity in (0, 1]",
                check_function=self._check_storage_parameters,
            ),
            ColumnPrecondition(
                name="pore_size_index",
                description="Brooks-Corey pore size index must be positive",
                check_function=lambda c: bool(np.all(c["profile"].pore_size_index > 0.0)),
            ),
            ColumnPrecondition(
                name="conductivity",
                description="Saturated conductivity must be non-negative",
                check_function=lambda c: bool(np.all(c["profile"].vertical_ks >= 0.0)),
            ),
            ColumnPrecondition(
                name="adjustment",
                description="Storage adjustment factors must lie in (0, 1]",
                check_function=lambda c: _in_unit_interval(c["profile"].adjust),
            ),
            ColumnPrecondition(
                name="basal_area",
                description="Basal-area fractions must lie in (0, 1]",
                check_function=lambda c: _in_unit_interval(c["profile"].perc_area),
            ),
            ColumnPrecondition(
                name="cut_bank_zone",
                description="Cut-bank zone must be NO_CUT or a layer index up to N",
                check_function=lambda c: NO_CUT <= c["profile"].cut_bank_zone <= c["profile"].n_layers,
            ),
            ColumnPrecondition(
                name="percolation",
                description="Stored percolation must be non-negative",
                check_function=lambda c: bool(np.all(c["state"].perc >= 0.0)),
            ),
            ColumnPrecondition(
                name="moisture",
                description="Moisture must be finite and non-negative",
                check_function=self._check_moisture,
            ),
            ColumnPrecondition(
                name="timestep",
                description="Timestep must be positive",
                check_function=lambda c: c.get("dt", 1.0) > 0.0,
            ),
            ColumnPrecondition(
                name="infiltration",
                description="Surface and roadbed infiltration must be finite and non-negative",
                check_function=lambda c: _finite_non_negative(c.get("infiltration", 0.0))
                and _finite_non_negative(c.get("roadbed_infiltration", 0.0)),
            ),
            ColumnPrecondition(
                name="sat_flow",
                description="Net saturated flow must be finite",
                check_function=lambda c: bool(np.isfinite(c.get("sat_flow", 0.0))),
            ),
        ]

    @staticmethod
    def _check_array_lengths(context: Dict) -> bool:
        profile: SoilProfile = context["profile"]
        state: ColumnState = context["state"]
        n = profile.n_layers
        layer_arrays = (
            profile.vertical_ks,
            profile.pore_size_index,
            profile.porosity,
            profile.field_capacity,
            profile.perc_area,
            state.perc,
        )
        return (
            all(len(values) == n for values in layer_arrays)
            and len(profile.adjust) == n + 1
            and len(state.moisture) == n + 1
        )

    @staticmethod
    def _check_storage_parameters(context: Dict) -> bool:
        profile: SoilProfile = context["profile"]
        return bool(
            np.all(profile.field_capacity >= 0.0)
            and np.all(profile.field_capacity < profile.porosity)
            and np.all(profile.porosity <= 1.0)
        )

    @staticmethod
    def _check_moisture(context: Dict) -> bool:
        moisture = context["state"].moisture
        return bool(np.all(np.isfinite(moisture)) and np.all(moisture >= 0.0))

    def check(
        self,
        profile: SoilProfile,
        state: ColumnState,
        cell_id: Optional[CellID] = None,
        **forcings: float
    ) -> None:
        """
        Run every precondition in order.

        Args:
            profile: Soil column description
            state: Column state
            cell_id: Identifier used in error reports
            **forcings: Optional dt, infiltration, roadbed_infiltration and sat_flow

        Raises:
            ColumnPreconditionError: On the first violated precondition
        """
        context = {"profile": profile, "state": state, **forcings}

        for precondition in self.preconditions:
            if not precondition.check_function(context):
                logger.error(
                    f"Cell {cell_id}: precondition '{precondition.name}' violated"
                )
                raise ColumnPreconditionError(
                    f"Violated precondition: {precondition.name} - {precondition.description}",
                    precondition=precondition.name,
                    context=ErrorContext(
                        cell_id=cell_id,
                        component="constraints",
                        operation="check",
                        details={k: v for k, v in forcings.items()},
                    ),
                )

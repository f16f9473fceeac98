"""
Single-cell soil column model.

Runs vertical drainage followed by lateral saturated-flow redistribution
for one grid cell per timestep, with precondition checks and water balance
closure. Basin routing and the scheduling of many cells belong to the
caller; one model instance owns one column state and is not meant to be
shared between threads.
"""
import logging
from typing import Dict, Optional

import numpy as np
import pandas as pd

from soilflow.core.config import SoilFlowConfig, get_config
from soilflow.core.exceptions import ErrorContext, WaterBalanceError
from soilflow.core.types import CellID, InfiltrationMode, Metres, StepResult
from soilflow.physics.constraints import ColumnPreconditionChecker
from soilflow.physics.saturated_flow import distribute_saturated_flow
from soilflow.physics.soil_column import ColumnState, SoilProfile
from soilflow.physics.unsaturated_flow import unsaturated_flow
from soilflow.physics.water_table import (
    WaterTableFunction,
    apply_water_table,
    water_table_depth,
)

logger = logging.getLogger(__name__)


class SoilColumnModel:
    """
    Soil moisture redistribution for one grid cell.

    Each step:
    1. Checks the column and forcings against the preconditions
    2. Drains the unsaturated zone (infiltration, percolation, water table)
    3. Distributes the net lateral saturated flow
    4. Recomputes the water table and checks water balance closure
    """

    def __init__(
        self,
        profile: SoilProfile,
        state: Optional[ColumnState] = None,
        config: Optional[SoilFlowConfig] = None,
        water_table: WaterTableFunction = water_table_depth,
        cell_id: Optional[CellID] = None
    ):
        """
        Initialize the column model.

        Args:
            profile: Soil column description
            state: Initial column state (defaults to field capacity)
            config: Configuration (defaults to the global configuration)
            water_table: Water table function
            cell_id: Identifier used in logs and error reports
        """
        self.profile = profile
        self.config = config or get_config()
        self.water_table = water_table
        self.cell_id = cell_id
        self._setup_logging()

        if state is None:
            self.state = ColumnState.at_field_capacity(profile)
        else:
            self.state = state

        self.checker = ColumnPreconditionChecker()
        self.cumulative_error = 0.0
        self.iteration_count = 0

    def _setup_logging(self):
        """Configure model-specific logging"""
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.logger.setLevel(self.config.monitoring.log_level)

    def _error_context(self, operation: str, **details) -> ErrorContext:
        return ErrorContext(
            cell_id=self.cell_id,
            timestep=self.iteration_count,
            component=self.__class__.__name__,
            operation=operation,
            details=details or None,
        )

    def total_storage(self) -> Metres:
        """Water held by all layers including the deep layer (m)"""
        return self.profile.storage(self.state.moisture)

    def step(
        self,
        infiltration: Metres,
        roadbed_infiltration: Metres = 0.0,
        sat_flow: Metres = 0.0,
        dt_seconds: Optional[float] = None,
        check_water_balance: bool = True
    ) -> StepResult:
        """
        Advance the column by one timestep.

        Args:
            infiltration: Surface infiltration (m)
            roadbed_infiltration: Infiltration through the road or channel bed (m)
            sat_flow: Net lateral saturated flow (m); negative extracts
            dt_seconds: Timestep (s); defaults to the configured timestep
            check_water_balance: Validate water balance closure

        Returns:
            StepResult with the updated column and the step's fluxes
        """
        dt = dt_seconds if dt_seconds is not None else self.config.unsaturated.timestep_seconds

        if self.config.validation.check_preconditions:
            self.checker.check(
                self.profile,
                self.state,
                cell_id=self.cell_id,
                dt=dt,
                infiltration=infiltration,
                roadbed_infiltration=roadbed_infiltration,
                sat_flow=sat_flow,
            )

        initial_storage = self.total_storage()
        initial_runoff = self.state.runoff

        drainage = unsaturated_flow(
            dt,
            self.profile,
            self.state,
            infiltration,
            roadbed_infiltration=roadbed_infiltration,
            infiltration_mode=InfiltrationMode(self.config.unsaturated.infiltration_mode),
            water_table=self.water_table,
            cell_id=self.cell_id,
        )

        remainder = 0.0
        if sat_flow != 0.0:
            remainder = distribute_saturated_flow(
                sat_flow,
                self.profile,
                self.state,
                restrict_injection=self.config.saturated.restrict_injection,
                cell_id=self.cell_id,
            )
            apply_water_table(self.profile, self.state, self.water_table)

        step_runoff = self.state.runoff - initial_runoff

        water_balance_error = 0.0
        if check_water_balance:
            inputs = infiltration + roadbed_infiltration + sat_flow
            water_balance_error = self._check_water_balance(
                initial_storage, step_runoff, inputs
            )

        self.iteration_count += 1

        result = StepResult(
            moisture=self.state.moisture.tolist(),
            percolation=self.state.perc.tolist(),
            table_depth=self.state.table_depth,
            runoff=step_runoff,
            drainage=drainage,
            lateral_remainder=remainder,
            water_balance_error=water_balance_error,
            timestep=self.iteration_count,
            fluxes={
                "infiltration": drainage.infiltration,
                "roadbed_infiltration": roadbed_infiltration,
                "sat_flow": sat_flow,
                "deep_drainage": drainage.deep_drainage,
                "runoff": step_runoff,
                "lateral_remainder": remainder,
            },
        )
        self.logger.debug(
            f"Step {self.iteration_count} complete: "
            f"table={result.table_depth:.3f}m, runoff={step_runoff:.6f}m, "
            f"WB_error={water_balance_error:.2e}m"
        )

        return result

    def _check_water_balance(
        self,
        initial_storage: Metres,
        step_runoff: Metres,
        inputs: Metres
    ) -> Metres:
        """
        Check water balance closure: ΔS + runoff = inputs.

        Returns:
            Water balance error in m (should be near zero)
        """
        final_storage = self.total_storage()
        delta_storage = final_storage - initial_storage
        water_balance_error = delta_storage + step_runoff - inputs

        self.cumulative_error += abs(water_balance_error)

        validation = self.config.validation
        tolerance = max(
            validation.water_balance_tolerance,
            validation.water_balance_relative_tolerance * abs(inputs),
        )
        if not np.isfinite(water_balance_error) or abs(water_balance_error) > tolerance:
            message = (
                f"Water balance error: {water_balance_error:.3e}m "
                f"(ΔS={delta_storage:.6f}m, runoff={step_runoff:.6f}m, inputs={inputs:.6f}m)"
            )
            if validation.raise_on_water_balance_error:
                self.logger.error(message)
                raise WaterBalanceError(
                    message,
                    context=self._error_context(
                        "check_water_balance", error=water_balance_error
                    ),
                )
            self.logger.warning(message)

        return water_balance_error

    def run_period(self, forcings: pd.DataFrame) -> pd.DataFrame:
        """
        Run the column through a time series of forcings.

        Args:
            forcings: DataFrame with columns:
                - infiltration_m (required)
                - roadbed_infiltration_m (optional)
                - sat_flow_m (optional)
                - dt_seconds (optional)

        Returns:
            DataFrame with one row per step, indexed like `forcings`
        """
        self.logger.info(f"Running soil column {self.cell_id} for {len(forcings)} steps")
        self._validate_forcings(forcings)

        records = []
        for _, row in forcings.iterrows():
            dt = row.get("dt_seconds")
            result = self.step(
                infiltration=float(row["infiltration_m"]),
                roadbed_infiltration=float(row.get("roadbed_infiltration_m", 0.0)),
                sat_flow=float(row.get("sat_flow_m", 0.0)),
                dt_seconds=None if dt is None or pd.isna(dt) else float(dt),
            )

            record = {
                "table_depth_m": result.table_depth,
                "runoff_m": result.runoff,
                "infiltration_m": result.drainage.infiltration,
                "deep_drainage_m": result.drainage.deep_drainage,
                "water_balance_error_m": result.water_balance_error,
            }
            for i, theta in enumerate(result.moisture[:-1]):
                record[f"theta_layer_{i}"] = theta
            record["theta_deep"] = result.moisture[-1]
            for i, perc in enumerate(result.percolation):
                record[f"perc_layer_{i}_m"] = perc
            records.append(record)

        results = pd.DataFrame(records, index=forcings.index)

        if self.iteration_count:
            self.logger.info(
                f"Run complete. Avg water balance error: "
                f"{self.cumulative_error / self.iteration_count:.3e}m"
            )

        return results

    def _validate_forcings(self, forcings: pd.DataFrame):
        """Validate input forcings DataFrame"""
        if "infiltration_m" not in forcings.columns:
            raise ValueError("Missing required column: infiltration_m")

        for col in ["infiltration_m", "roadbed_infiltration_m"]:
            if col in forcings.columns and (forcings[col] < 0).any():
                raise ValueError(f"Negative values found in {col}")

    def reset(self, state: Optional[ColumnState] = None):
        """Reset model to field capacity or to the given state"""
        if state is None:
            self.state = ColumnState.at_field_capacity(self.profile)
        else:
            self.state = state

        self.cumulative_error = 0.0
        self.iteration_count = 0

        self.logger.info("Model reset to initial state")

    def get_diagnostic_info(self) -> Dict:
        """Summary of the current column state"""
        saturation = self.state.moisture / self.profile.porosities
        return {
            "cell_id": self.cell_id,
            "n_layers": self.profile.n_layers,
            "table_depth_m": self.state.table_depth,
            "storage_m": self.total_storage(),
            "runoff_m": self.state.runoff,
            "saturation": saturation.tolist(),
            "max_saturation": float(np.max(saturation)),
            "iterations": self.iteration_count,
            "avg_water_balance_error_m": (
                self.cumulative_error / self.iteration_count if self.iteration_count else 0.0
            ),
        }

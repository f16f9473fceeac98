"""Soil column physics: vertical drainage and saturated-flow redistribution."""
from soilflow.physics.soil_column import (
    SoilProfile,
    ColumnState,
)
from soilflow.physics.unsaturated_flow import unsaturated_flow
from soilflow.physics.saturated_flow import distribute_saturated_flow
from soilflow.physics.water_table import (
    WaterTableFunction,
    water_table_depth,
    apply_water_table,
)
from soilflow.physics.column_model import SoilColumnModel
from soilflow.physics.cut_bank import (
    adjust_storage,
    cut_bank_geometry,
)

__all__ = [
    "SoilProfile",
    "ColumnState",
    "unsaturated_flow",
    "distribute_saturated_flow",
    # Water table
    "WaterTableFunction",
    "water_table_depth",
    "apply_water_table",
    "SoilColumnModel",
    # Cut-bank geometry
    "adjust_storage",
    "cut_bank_geometry",
]

"""
Tests for vertical drainage through the unsaturated zone.
Covers Brooks-Corey drainage, flux averaging across timesteps, field
capacity and porosity bounds, roadbed infiltration and ponding.
"""
import pytest
import numpy as np

from soilflow.core.exceptions import ColumnPreconditionError
from soilflow.core.types import InfiltrationMode
from soilflow.physics.constraints import ColumnPreconditionChecker
from soilflow.physics.soil_column import SoilProfile, ColumnState
from soilflow.physics.unsaturated_flow import unsaturated_flow
from soilflow.physics.water_table import water_table_depth

DT = 3600.0


def _single_layer_profile(ks=1e-6, **overrides):
    params = dict(
        root_depths=[0.5],
        vertical_ks=[ks],
        pore_size_index=[0.5],  # exponent 7
        porosity=[0.45],
        field_capacity=[0.20],
        total_depth=1.0,
    )
    params.update(overrides)
    return SoilProfile(**params)


class TestBrooksCoreyDrainage:
    """Drainage of a single layer into the deep layer"""

    @pytest.fixture
    def profile(self):
        return _single_layer_profile()

    @pytest.fixture
    def state(self):
        return ColumnState(moisture=[0.36, 0.10], table_depth=1.0)

    def test_no_drainage_at_field_capacity(self, profile):
        state = ColumnState(moisture=[0.20, 0.10], table_depth=1.0, perc=[0.004])

        unsaturated_flow(DT, profile, state, infiltration=0.0)

        assert state.perc[0] == 0.0
        assert state.moisture[0] == pytest.approx(0.20)
        assert state.deep_moisture == pytest.approx(0.10)

    def test_single_step_drainage(self, profile, state):
        drainage = 1e-6 * (0.36 / 0.45) ** 7 * DT
        expected_perc = 0.5 * (0.0 + drainage)

        result = unsaturated_flow(DT, profile, state, infiltration=0.0)

        assert state.perc[0] == pytest.approx(expected_perc, rel=1e-12)
        assert state.moisture[0] == pytest.approx(0.36 - expected_perc / 0.5, rel=1e-12)
        assert state.deep_moisture == pytest.approx(0.10 + expected_perc / 0.5, rel=1e-12)
        assert result.deep_drainage == pytest.approx(expected_perc, rel=1e-12)
        # Deep layer still below field capacity
        assert state.table_depth == pytest.approx(1.0)

    def test_flux_averaged_over_consecutive_steps(self, profile, state):
        unsaturated_flow(DT, profile, state, infiltration=0.0)
        perc_first = state.perc[0]
        theta_first = state.moisture[0]

        unsaturated_flow(DT, profile, state, infiltration=0.0)

        drainage_second = 1e-6 * (theta_first / 0.45) ** 7 * DT
        expected = 0.5 * (perc_first + drainage_second)
        assert state.perc[0] == pytest.approx(expected, rel=1e-12)
        assert state.perc[0] != pytest.approx(0.5 * drainage_second, rel=1e-6)
        assert state.moisture[0] == pytest.approx(theta_first - expected / 0.5, rel=1e-12)

    def test_basal_area_scaling(self, state):
        profile = _single_layer_profile(perc_area=[0.5])
        drainage = 1e-6 * (0.36 / 0.45) ** 7 * DT

        result = unsaturated_flow(DT, profile, state, infiltration=0.0)

        # Volume leaving the layer is scaled by the basal area, stored flux is not
        assert result.deep_drainage == pytest.approx(0.5 * drainage * 0.5, rel=1e-12)
        assert state.perc[0] == pytest.approx(0.5 * drainage, rel=1e-12)

    def test_drainage_clamped_at_field_capacity(self, state):
        profile = _single_layer_profile(ks=1e-2)

        unsaturated_flow(DT, profile, state, infiltration=0.0)

        assert state.moisture[0] == pytest.approx(0.20, abs=1e-12)
        assert state.perc[0] == pytest.approx((0.36 - 0.20) * 0.5, rel=1e-12)
        assert state.deep_moisture == pytest.approx(0.26, rel=1e-12)
        # Deep layer drainable fraction (0.26 - 0.20) / (0.45 - 0.20)
        assert state.table_depth == pytest.approx(1.0 - 0.24 * 0.5, rel=1e-9)

    def test_water_above_porosity_pushed_through(self):
        profile = _single_layer_profile(ks=1e-12)
        state = ColumnState(moisture=[0.40, 0.10], table_depth=1.0)

        unsaturated_flow(DT, profile, state, infiltration=0.15)

        assert state.moisture[0] == pytest.approx(0.45, abs=1e-12)
        assert state.perc[0] == pytest.approx(0.125, rel=1e-6)
        assert state.deep_moisture == pytest.approx(0.35, rel=1e-6)
        assert state.table_depth == pytest.approx(0.7, rel=1e-6)

    def test_drainage_cascades_between_layers(self):
        profile = SoilProfile(
            root_depths=[0.3, 0.3],
            vertical_ks=[1e-2, 1e-2],
            pore_size_index=[0.4, 0.4],
            porosity=[0.45, 0.45],
            field_capacity=[0.20, 0.20],
            total_depth=1.2,
        )
        state = ColumnState(moisture=[0.40, 0.20, 0.05], table_depth=1.2)

        unsaturated_flow(DT, profile, state, infiltration=0.0)

        # Both layers end at field capacity; all excess reaches the deep layer
        assert state.moisture[0] == pytest.approx(0.20, abs=1e-12)
        assert state.moisture[1] == pytest.approx(0.20, abs=1e-12)
        assert state.deep_moisture == pytest.approx(0.05 + 0.2 * 0.3 / 0.6, rel=1e-9)


class TestInfiltrationRouting:
    """Surface and roadbed infiltration"""

    @pytest.fixture
    def cut_profile(self):
        return SoilProfile(
            root_depths=[0.5, 1.0],
            vertical_ks=[0.0, 0.0],
            pore_size_index=[0.5, 0.5],
            porosity=[0.45, 0.40],
            field_capacity=[0.20, 0.25],
            total_depth=2.0,
            adjust=[0.8, 1.0, 1.0],
            cut_bank_zone=0,
            bank_height=0.3,
        )

    def test_surface_infiltration_enters_top_layer(self, cut_profile):
        state = ColumnState(moisture=[0.20, 0.25, 0.25], table_depth=2.0)

        unsaturated_flow(DT, cut_profile, state, infiltration=0.02)

        assert state.moisture[0] == pytest.approx(0.20 + 0.02 / (0.5 * 0.8))
        assert state.runoff == 0.0

    def test_infiltration_to_runoff_when_table_at_surface(self, cut_profile):
        state = ColumnState(moisture=[0.20, 0.25, 0.25], table_depth=0.0)

        result = unsaturated_flow(DT, cut_profile, state, infiltration=0.03)

        assert state.runoff == pytest.approx(0.03)
        assert result.surface_runoff == pytest.approx(0.03)
        assert state.moisture[0] == pytest.approx(0.20)
        assert state.table_depth == pytest.approx(2.0)

    def test_roadbed_infiltration_into_cut_layer(self, cut_profile):
        state = ColumnState(moisture=[0.20, 0.25, 0.25], table_depth=2.0)

        unsaturated_flow(DT, cut_profile, state, infiltration=0.0, roadbed_infiltration=0.05)

        assert state.moisture[0] == pytest.approx(0.20 + 0.05 / (0.5 * 0.8))
        assert state.runoff == 0.0

    def test_roadbed_infiltration_into_deep_layer(self, cut_profile):
        profile = SoilProfile(
            root_depths=cut_profile.root_depths,
            vertical_ks=cut_profile.vertical_ks,
            pore_size_index=cut_profile.pore_size_index,
            porosity=cut_profile.porosity,
            field_capacity=cut_profile.field_capacity,
            total_depth=2.0,
            adjust=[0.8, 0.8, 0.9],
            cut_bank_zone=2,
            bank_height=1.7,
        )
        state = ColumnState(moisture=[0.20, 0.25, 0.10], table_depth=2.0)

        unsaturated_flow(DT, profile, state, infiltration=0.0, roadbed_infiltration=0.009)

        assert state.deep_moisture == pytest.approx(0.10 + 0.009 / (0.5 * 0.9))

    def test_roadbed_to_runoff_when_table_above_cut(self, cut_profile):
        with_road = ColumnState(moisture=[0.30, 0.30, 0.30], table_depth=0.2)
        without_road = with_road.copy()

        unsaturated_flow(DT, cut_profile, with_road, infiltration=0.01, roadbed_infiltration=0.04)
        unsaturated_flow(DT, cut_profile, without_road, infiltration=0.01)

        assert with_road.runoff - without_road.runoff == pytest.approx(0.04)
        np.testing.assert_allclose(with_road.moisture, without_road.moisture)
        np.testing.assert_allclose(with_road.perc, without_road.perc)

    def test_roadbed_without_cut_rejected(self):
        profile = _single_layer_profile()
        state = ColumnState(moisture=[0.30, 0.10], table_depth=1.0)

        with pytest.raises(ColumnPreconditionError) as excinfo:
            unsaturated_flow(DT, profile, state, 0.0, roadbed_infiltration=0.01, cell_id="c7")

        assert excinfo.value.precondition == "roadbed_requires_cut"
        assert "c7" in str(excinfo.value)

    def test_checker_rejects_column_before_draining(self):
        profile = _single_layer_profile(perc_area=[0.0])
        state = ColumnState(moisture=[0.36, 0.10], table_depth=1.0)
        before = state.copy()

        with pytest.raises(ColumnPreconditionError) as excinfo:
            unsaturated_flow(
                DT, profile, state, 0.01, checker=ColumnPreconditionChecker(), cell_id="c8"
            )

        assert excinfo.value.precondition == "basal_area"
        np.testing.assert_array_equal(state.moisture, before.moisture)
        np.testing.assert_array_equal(state.perc, before.perc)


class TestPonding:
    """Table rise above the surface"""

    @pytest.fixture
    def profile(self):
        return _single_layer_profile()

    def test_ponded_water_becomes_runoff(self, profile):
        state = ColumnState(moisture=[0.45, 0.45], table_depth=0.1)

        result = unsaturated_flow(DT, profile, state, infiltration=0.05)

        assert state.runoff == pytest.approx(0.05, rel=1e-9)
        assert result.ponded_runoff == pytest.approx(0.05, rel=1e-9)
        assert state.table_depth == 0.0
        np.testing.assert_allclose(state.moisture, [0.45, 0.45])

    def test_dynamic_mode_reclaims_reported_infiltration(self, profile):
        static = ColumnState(moisture=[0.45, 0.40], table_depth=0.1)
        dynamic = static.copy()

        static_result = unsaturated_flow(DT, profile, static, 0.05)
        dynamic_result = unsaturated_flow(
            DT, profile, dynamic, 0.05, infiltration_mode=InfiltrationMode.DYNAMIC
        )

        # Ponding of 0.025 m: deep layer takes 0.025 m, the rest ponds
        assert static.runoff == pytest.approx(0.025, rel=1e-9)
        assert static_result.infiltration == pytest.approx(0.05)
        assert dynamic_result.infiltration == pytest.approx(0.025, rel=1e-9)
        # No retroactive correction of the column itself
        np.testing.assert_allclose(dynamic.moisture, static.moisture)
        assert dynamic.runoff == pytest.approx(static.runoff)

    def test_dynamic_mode_zeroes_infiltration_when_table_at_surface(self, profile):
        state = ColumnState(moisture=[0.20, 0.10], table_depth=0.0)

        result = unsaturated_flow(
            DT, profile, state, 0.02, infiltration_mode=InfiltrationMode.DYNAMIC
        )

        assert result.infiltration == 0.0
        assert state.runoff == pytest.approx(0.02)


class TestDrainageInvariants:
    """Properties that hold for any valid column"""

    def test_zero_input_leaves_column_unchanged(self):
        profile = SoilProfile(
            root_depths=[0.2, 0.4, 0.6],
            vertical_ks=[1e-5, 5e-6, 1e-6],
            pore_size_index=[0.3, 0.4, 0.5],
            porosity=[0.48, 0.44, 0.40],
            field_capacity=[0.30, 0.27, 0.22],
            total_depth=2.0,
        )
        state = ColumnState.at_field_capacity(profile)
        before = state.copy()

        unsaturated_flow(DT, profile, state, infiltration=0.0, roadbed_infiltration=0.0)

        np.testing.assert_array_equal(state.moisture, before.moisture)
        np.testing.assert_array_equal(state.perc, before.perc)
        assert state.table_depth == before.table_depth
        assert state.runoff == before.runoff

    @pytest.mark.parametrize("seed", range(10))
    def test_drained_layers_stay_at_or_above_field_capacity(self, seed):
        rng = np.random.default_rng(seed)
        n = int(rng.integers(1, 4))
        root_depths = rng.uniform(0.1, 0.6, n)
        porosity = rng.uniform(0.35, 0.50, n)
        field_capacity = porosity * rng.uniform(0.4, 0.7, n)
        profile = SoilProfile(
            root_depths=root_depths,
            vertical_ks=10 ** rng.uniform(-7, -3, n),
            pore_size_index=rng.uniform(0.2, 0.8, n),
            porosity=porosity,
            field_capacity=field_capacity,
            total_depth=root_depths.sum() + rng.uniform(0.2, 1.0),
        )
        moisture = rng.uniform(profile.field_capacities, profile.porosities)
        state = ColumnState(moisture=moisture, table_depth=profile.total_depth)

        unsaturated_flow(DT, profile, state, infiltration=float(rng.uniform(0.0, 0.05)))

        drained = state.perc > 0.0
        assert np.all(state.perc >= 0.0)
        assert np.all(state.layer_moisture[drained] >= profile.field_capacity[drained] - 1e-12)
        assert np.all(state.moisture <= profile.porosities + 1e-12)
        assert state.table_depth >= 0.0

    def test_custom_water_table_function_is_used(self):
        profile = _single_layer_profile()
        state = ColumnState(moisture=[0.30, 0.10], table_depth=1.0)
        calls = []

        def recording_table(profile, moisture):
            calls.append(moisture.copy())
            return water_table_depth(profile, moisture)

        unsaturated_flow(DT, profile, state, 0.0, water_table=recording_table)

        assert len(calls) == 1

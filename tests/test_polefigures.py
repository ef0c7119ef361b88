"""> CPO Analyzer: Tests for pole figure assembly."""

import numpy as np
import pytest
from numpy import testing as nt

from cpoanalyzer import core as _core
from cpoanalyzer import exceptions as _err
from cpoanalyzer import geometry as _geo
from cpoanalyzer import io as _io
from cpoanalyzer import polefigures as _pf


def _grains(euler_angles):
    return _io.GrainRecords(
        particle_id=0, euler_angles=np.asarray(euler_angles), path="test.dat"
    )


def test_share_color_scale():
    """Test that all pole figures of a mineral share the largest maximum."""
    olivine, enstatite = _core.MineralPhase
    figures = [
        [
            _pf.PoleFigure(olivine, _core.CrystalAxis.a, np.zeros((3, 3)), 3.0),
            _pf.PoleFigure(enstatite, _core.CrystalAxis.a, np.zeros((3, 3)), 1.0),
        ],
        [
            _pf.PoleFigure(olivine, _core.CrystalAxis.c, np.zeros((3, 3)), 7.0),
            _pf.PoleFigure(enstatite, _core.CrystalAxis.c, np.zeros((3, 3)), 0.5),
        ],
    ]
    shared = _pf.share_color_scale(figures)
    assert [[f.max_count for f in row] for row in shared] == [[7.0, 1.0], [7.0, 1.0]]
    # The input is not modified.
    assert [[f.max_count for f in row] for row in figures] == [[3.0, 1.0], [7.0, 0.5]]
    assert shared[1][0].crystal_axis == _core.CrystalAxis.c
    assert _pf.share_color_scale([]) == []


def test_make_pole_figures(seed):
    """Test the layout and color scales of a pole figure grid."""
    rng = np.random.default_rng(seed=seed)
    grains = _grains(rng.uniform(0, 1, size=(30, 2, 3)) * [360.0, 180.0, 360.0])
    grid = _geo.build_grid(11)
    axes = [_core.CrystalAxis.a, _core.CrystalAxis.b, _core.CrystalAxis.c]
    minerals = [_core.MineralPhase.enstatite, _core.MineralPhase.olivine]
    figures = _pf.make_pole_figures(grains, grid, axes, minerals)

    assert len(figures) == 3
    assert all(len(row) == 2 for row in figures)
    for axis, row in zip(axes, figures, strict=True):
        for mineral, figure in zip(minerals, row, strict=True):
            assert figure.crystal_axis == axis
            assert figure.mineral == mineral
            assert figure.counts.shape == (11, 11)
    for m in range(2):
        expected_max = max(row[m].counts.max() for row in figures)
        for row in figures:
            assert row[m].max_count == expected_max
            assert row[m].counts.max() <= row[m].max_count


def test_make_pole_figures_single_orientation():
    """Test that a single repeated orientation gives peaks along the crystal axes."""
    # Orientation with the crystal c-axis along the view direction (sample y axis).
    grains = _grains(np.tile([0.0, 90.0, 0.0], (50, 1, 1)))
    grid = _geo.build_grid(21)
    figures = _pf.make_pole_figures(
        grains, grid, [_core.CrystalAxis.c], [_core.MineralPhase.olivine]
    )
    counts = figures[0][0].counts
    assert np.unravel_index(grid.masked(counts).argmax(), counts.shape) == (10, 10)
    # The colour scale maximum is taken over the full grid, including the corners.
    nt.assert_allclose(counts[0, 0], counts[10, 10], rtol=1e-10)
    nt.assert_allclose(figures[0][0].max_count, counts[10, 10])


def test_make_pole_figures_missing_mineral():
    """Test that requesting a mineral which is not in the shard fails."""
    grains = _grains(np.zeros((5, 1, 3)))
    grid = _geo.build_grid(5)
    with pytest.raises(_err.DataFileError):
        _pf.make_pole_figures(
            grains, grid, [_core.CrystalAxis.a], [_core.MineralPhase.enstatite]
        )


@pytest.mark.parametrize(
    "options,expected",
    [
        (
            {"elasticity_header": False, "gamma": 0.5, "sphere_points": 51},
            "weighted_LPO_no-elastic_oli_A-Axis_Batlow_g0.5_sp51_t00012.00003.png",
        ),
        (
            {"color_scale": _core.ColorScale.simple, "axes": [_core.CrystalAxis.c]},
            "weighted_LPO_elastic_oli_C-Axis_Simple_g1_sp301_t00012.00003.png",
        ),
    ],
)
def test_figure_filename(options, expected):
    """Test that figure file names encode the rendering options."""
    _options = _core.DefaultParams().as_dict()
    _options["minerals"] = [_core.MineralPhase.olivine]
    _options["axes"] = [_core.CrystalAxis.a]
    _options.update(options)
    assert _pf.figure_filename(_options, 12, 3) == expected

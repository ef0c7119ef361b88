"""> CPO Analyzer: Functions for assembling crystallographic pole figures.

A pole figure grid is a nested list indexed as `figures[axis][mineral]`, i.e. one
inner list for each requested `CrystalAxis`, holding one `PoleFigure` for each requested
`MineralPhase`. In rendered output the axes are laid out horizontally and the minerals
vertically. All pole figures of the same mineral share one color scale.

"""

from dataclasses import dataclass, replace

import numpy as np

from cpoanalyzer import core as _core
from cpoanalyzer import geometry as _geo
from cpoanalyzer import stats as _stats


@dataclass(frozen=True)
class PoleFigure:
    """Orientation density of one crystal axis of one mineral on a `LambertGrid`."""

    mineral: _core.MineralPhase
    crystal_axis: _core.CrystalAxis
    counts: np.ndarray
    """Density in multiples of 3 standard deviations of a uniform distribution."""
    max_count: float
    """Maximum of the color scale."""


def make_pole_figures(grains, grid, axes, minerals):
    """Compute the pole figure grid for the grains of one particle.

    - `grains` — `cpoanalyzer.io.GrainRecords` of the particle
    - `grid` — `cpoanalyzer.geometry.LambertGrid` used as counting locations
    - `axes` — sequence of `cpoanalyzer.core.CrystalAxis` members
    - `minerals` — sequence of `cpoanalyzer.core.MineralPhase` members

    Returns the grid `figures[axis][mineral]` with a shared color scale for each
    mineral, see `share_color_scale`.

    """
    figures = []
    for axis in axes:
        row = []
        for mineral in minerals:
            counts = _stats.gaussian_orientation_counts(
                _geo.axis_vectors(grains.mineral(mineral), axis), grid
            )
            row.append(PoleFigure(mineral, axis, counts, float(counts.max())))
        figures.append(row)
    return share_color_scale(figures)


def share_color_scale(figures):
    """Give all pole figures of the same mineral the largest `max_count` of the mineral.

    Returns a new pole figure grid, the input is not modified.

    >>> from cpoanalyzer.core import CrystalAxis, MineralPhase
    >>> figures = [
    ...     [PoleFigure(MineralPhase.olivine, CrystalAxis.a, np.zeros((2, 2)), 3.0)],
    ...     [PoleFigure(MineralPhase.olivine, CrystalAxis.b, np.zeros((2, 2)), 7.0)],
    ... ]
    >>> [row[0].max_count for row in share_color_scale(figures)]
    [7.0, 7.0]

    """
    if len(figures) == 0:
        return []
    n_minerals = len(figures[0])
    maxima = [max(row[m].max_count for row in figures) for m in range(n_minerals)]
    return [
        [replace(figure, max_count=maxima[m]) for m, figure in enumerate(row)]
        for row in figures
    ]


def figure_filename(options, timestep, particle_id):
    """Get the file name of a rendered pole figure grid.

    The name encodes the rendering options, the output step and the particle id.
    `options` is the parsed `[pole_figures]` configuration section.

    >>> from cpoanalyzer.core import ColorScale, CrystalAxis, MineralPhase
    >>> figure_filename(
    ...     {
    ...         "figure_output_prefix": "weighted_LPO",
    ...         "elasticity_header": True,
    ...         "minerals": [MineralPhase.olivine, MineralPhase.enstatite],
    ...         "axes": [CrystalAxis.a, CrystalAxis.b, CrystalAxis.c],
    ...         "color_scale": ColorScale.batlow,
    ...         "gamma": 1.0,
    ...         "sphere_points": 301,
    ...     },
    ...     1,
    ...     0,
    ... )
    'weighted_LPO_elastic_oli_ens_A-B-C-Axis_Batlow_g1_sp301_t00001.00000.png'

    """
    elastic = "elastic_" if options["elasticity_header"] else "no-elastic_"
    minerals = "".join(m.tag for m in options["minerals"])
    axes = "".join(a.tag for a in options["axes"])
    return (
        f"{options['figure_output_prefix']}_{elastic}{minerals}{axes}Axis"
        + f"_{options['color_scale'].value}_g{options['gamma']:g}"
        + f"_sp{options['sphere_points']}_t{timestep:05d}.{particle_id:05d}.png"
    )

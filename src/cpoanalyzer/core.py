"""> CPO Analyzer: Core enums, default parameters and time resolution.

The function `resolve_timestep` maps a requested physical time onto the index of the
nearest recorded particle output step, see `cpoanalyzer.io.read_timesteps`.

"""

from dataclasses import asdict, dataclass
from enum import Enum, IntEnum, unique

import numpy as np

# NOTE: Do NOT import any cpoanalyzer submodules here to avoid cyclical imports.


@unique
class MineralPhase(IntEnum):
    """Supported mineral phases.

    The value of a member is the index `i` of the `mineral_<i>_EA_*` columns in the
    grain orientation shards.

    """

    olivine = 0
    """(Mg,Fe)₂SiO₄"""
    enstatite = 1
    """MgSiO₃"""

    @property
    def tag(self):
        """Short tag used in output file names."""
        return self.name[:3] + "_"


@unique
class CrystalAxis(IntEnum):
    """Crystallographic axes that can be shown in pole figures.

    The value of a member is the row of the orientation matrix that holds the
    corresponding axis vector in the sample reference frame.

    """

    a = 0
    b = 1
    c = 2

    @property
    def label(self):
        return f"{self.name}-axis"

    @property
    def tag(self):
        """Short tag used in output file names."""
        return self.name.upper() + "-"


@unique
class ColorScale(Enum):
    """Color scales available for pole figure rendering.

    Apart from `simple`, these are the perceptually uniform “scientific colour maps” of
    [Crameri et al. (2020)](https://doi.org/10.1038/s41467-020-19160-7).

    """

    batlow = "Batlow"
    vik = "Vik"
    imola = "Imola"
    hawaii = "Hawaii"
    roma = "Roma"
    simple = "Simple"


MAX_COUNT_DIVISORS = {"divide 2": 2, "divide 3": 3, "divide 4": 4}
"""Supported values of the `max_count_method` option and the corresponding divisors."""


@dataclass(frozen=True)
class DefaultParams:
    time_data_file: str = "statistics"
    """Name of the time-index file inside each experiment directory."""
    time_marker: str = "particle_LPO"
    """Token that identifies rows of the time-index file with particle output."""
    particle_data_file_prefix: str = "particle_CPO/particles"
    """Prefix of the particle metadata shards, relative to the experiment directory."""
    grain_data_file_prefix: str = "particle_CPO/weighted_CPO"
    """Prefix of the grain orientation shards, relative to the experiment directory."""
    figure_output_dir: str = "CPO_figures/"
    """Output directory for figures, relative to the experiment directory."""
    figure_output_prefix: str = "weighted_LPO"
    """Prefix of the output figure file names."""
    color_scale: ColorScale = ColorScale.batlow
    """Color map used for the density fields."""
    elasticity_header: bool = True
    """Print the elastic anisotropy decomposition of the particle above the figures.

    Requires the elastic tensor decomposition fields in the particle metadata shards.

    """
    small_figure: bool = False
    """Use smaller panels and fonts."""
    no_description_text: bool = False
    """Suppress the crystal axis and mineral labels of each panel."""
    sphere_points: int = 301
    """Number of grid points along each side of the Lambert equal-area grid."""
    hemisphere: str = "upper"
    """Hemisphere ("upper" or "lower") shown in the pole figures."""
    gamma: float = 1.0
    """Exponent of the power-law normalisation applied to the color scale."""
    max_count_method: str = ""
    """Optional divisor for the colour scale maximum, see `MAX_COUNT_DIVISORS`."""
    raw_output: bool = False
    """Save the density fields of each pole figure grid to an NPZ file."""

    def as_dict(self):
        """Return mutable copy of default parameters as a dictionary."""
        return asdict(self)


def resolve_timestep(times, requested):
    """Get the index of the recorded time that is closest to `requested`.

    The recorded `times` must be sorted in ascending order. When `requested` lies
    exactly halfway between two recorded times, the earlier one is chosen.

    >>> times = [0.0, 1.0, 2.0, 5.0]
    >>> resolve_timestep(times, 1.6)
    2
    >>> resolve_timestep(times, 1.4)
    1
    >>> resolve_timestep(times, 1.5)
    1
    >>> resolve_timestep(times, 100)
    3
    >>> resolve_timestep(times, -1)
    0

    """
    _times = np.asarray(times, dtype=np.float64)
    if _times.size == 0:
        raise ValueError("cannot resolve timestep from an empty sequence of times")
    later = np.flatnonzero(_times > requested)
    i_after = int(later[0]) if later.size > 0 else _times.size - 1
    i_before = max(i_after - 1, 0)
    if abs(requested - _times[i_before]) <= abs(requested - _times[i_after]):
        return i_before
    return i_after

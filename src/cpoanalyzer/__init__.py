r"""
#### Pole figures of crystallographic preferred orientation from geodynamic models

---

.. warning::
    **This software is currently in early development (alpha)
    and therefore subject to breaking changes without notice.**

## Introduction

Geodynamic models with particle-based CPO tracking write the lattice orientations of
every grain of every tracer particle to sharded text files, one shard per worker process
and output step. CPO Analyzer locates the grains of selected particles in this output,
estimates the orientation density of their crystallographic axes on the unit sphere and
renders the result as crystallographic pole figures. **These are the main features:**

- **Equal-area sampling** of the upper (or lower) hemisphere on a regular grid in the
  Lambert azimuthal equal-area plane

- **JIT-compiled orientation density estimator**, which uses an exponential
  (Watson-type) kernel with a concentration that depends on the number of grains

- **Rotation conversions** between Bunge Euler angles and rotation matrices, including
  the degenerate cases of a vanishing or flipped polar angle

- **Shard scanning** of plain or zlib compressed grain orientation output

- Pole figure **grids with shared color scales** for each mineral, with an optional
  header that lists the tensorial anisotropy of the particle

- **Parallel processing** of many experiments with either the Python multiprocessing
  module or a [Ray](https://www.ray.io/) cluster

## Usage

The pole figures are configured in a TOML file, which lists the experiment directories
and the requested model times, particle ids, crystal axes and minerals:

```toml
base_dir = "/path/to/experiments"
experiment_dirs = ["shear_box", "subduction"]
compressed = false

[pole_figures]
times = [1e6, 5e6]
particle_ids = [12, 85]
axes = ["AAxis", "BAxis", "CAxis"]
minerals = ["Olivine", "Enstatite"]
color_scale = "Batlow"
```

The figures are produced by the `cpoanalyzer-polefigures` command, and the shards of a
single output step can be inspected with `cpoanalyzer-shards`. See `cpoanalyzer.cli`.
For all optional parameters, see `cpoanalyzer.core.DefaultParams`.

"""

# Set up the top-level cpoanalyzer namespace for convenient usage.
# To keep it clean, we don't want every single symbol here, especially not those from
# `utils`, `run` or `visualisation` modules, which should be explicitly imported instead.
import cpoanalyzer.axes  # Defines the 'cpoanalyzer.polefigure' Axes subclass.
import cpoanalyzer.io
from cpoanalyzer.core import (
    ColorScale,
    CrystalAxis,
    DefaultParams,
    MineralPhase,
    resolve_timestep,
)
from cpoanalyzer.diagnostics import anisotropy_percentages
from cpoanalyzer.geometry import (
    Hemisphere,
    LambertGrid,
    axis_vectors,
    build_grid,
    euler_to_rotation,
    rotation_to_euler,
)
from cpoanalyzer.io import (
    GrainRecords,
    ParticleRecord,
    ScanState,
    locate_particle,
    parse_config,
    read_timesteps,
)
from cpoanalyzer.polefigures import PoleFigure, make_pole_figures, share_color_scale
from cpoanalyzer.stats import gaussian_orientation_counts

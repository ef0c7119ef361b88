"""> CPO Analyzer: Visualisation functions for pole figure grids."""

from cmcrameri import cm as cmc
from matplotlib import projections as mproj
from matplotlib import pyplot as plt

from cpoanalyzer import axes as _axes
from cpoanalyzer import core as _core
from cpoanalyzer import diagnostics as _diagnostics
from cpoanalyzer import io as _io
from cpoanalyzer import logger as _log

# Always use constrained layout by default (modern version of tight layout).
plt.rcParams["figure.constrained_layout.use"] = True
# Make sure we have the required matplotlib "projections" (really just Axes subclasses).
if "cpoanalyzer.polefigure" not in mproj.get_projection_names():
    _log.warning(
        "failed to find cpoanalyzer.polefigure projection; it should be registered in %s",
        _axes,
    )

COLOR_MAPS = {
    _core.ColorScale.batlow: cmc.batlow,
    _core.ColorScale.vik: cmc.vik,
    _core.ColorScale.imola: cmc.imola,
    _core.ColorScale.hawaii: cmc.hawaii,
    _core.ColorScale.roma: cmc.roma,
    _core.ColorScale.simple: cmc.grayC,
}
"""Colormaps for each of the supported `cpoanalyzer.core.ColorScale` values."""

PANEL_SIZE = 4.0
"""Width and height of each pole figure panel in inches."""
SMALL_PANEL_SIZE = 2.5
"""Width and height of each pole figure panel in inches when using small figures."""


def pole_figure_grid(
    figures, grid, particle, time, timestep, n_grains, options, savefile
):
    """Plot a grid of pole figures for one particle and save it to `savefile`.

    - `figures` — pole figure grid, see `cpoanalyzer.polefigures.make_pole_figures`
    - `grid` — `cpoanalyzer.geometry.LambertGrid` of the pole figures
    - `particle` — `cpoanalyzer.io.ParticleRecord` of the particle
    - `time` — model time of the output step
    - `timestep` — index of the output step
    - `n_grains` — number of grains of the particle
    - `options` — the parsed `[pole_figures]` configuration section

    Crystal axes are shown in columns and minerals in rows, with one color bar for each
    mineral. Returns the resolved path of the saved figure.

    """
    n_axes = len(figures)
    n_minerals = len(figures[0])
    small = options["small_figure"]
    panel = SMALL_PANEL_SIZE if small else PANEL_SIZE
    fontsize = "small" if small else "medium"
    header = _header_lines(particle, time, n_grains) if options["elasticity_header"] else []

    fig = plt.figure(
        figsize=(panel * n_axes + panel / 2, panel * n_minerals + 0.3 * len(header))
    )
    axs = fig.subplots(
        n_minerals,
        n_axes,
        squeeze=False,
        subplot_kw={"projection": "cpoanalyzer.polefigure"},
    )
    cmap = COLOR_MAPS[options["color_scale"]]
    divisor = _core.MAX_COUNT_DIVISORS.get(options["max_count_method"], 1)
    suffix = f"/{divisor}" if divisor > 1 else ""

    for m in range(n_minerals):
        for a in range(n_axes):
            figure = figures[a][m]
            ax = axs[m, a]
            mesh = ax.polefigure(
                figure,
                grid,
                cmap=cmap,
                vmax=figure.max_count / divisor,
                gamma=options["gamma"],
            )
            if not options["no_description_text"]:
                ax.text(
                    0.0,
                    1.0,
                    f"{figure.mineral.name}\n{figure.crystal_axis.label}",
                    transform=ax.transAxes,
                    verticalalignment="top",
                    fontweight="bold",
                    fontsize=fontsize,
                )
        cbar = fig.colorbar(mesh, ax=axs[m, :], fraction=0.05, shrink=0.8)
        cbar.ax.set_title(f"{figures[0][m].max_count:.2f}{suffix}", fontsize=fontsize)
        cbar.ax.tick_params(labelsize=fontsize)

    if header:
        fig.suptitle(
            "\n".join(header),
            x=0.02,
            horizontalalignment="left",
            fontsize="x-small" if small else "small",
            fontfamily="monospace",
        )

    path = _io.resolve_path(savefile)
    _log.info("saving pole figures of particle %d to %s", particle.id, path)
    fig.savefig(path)
    plt.close(fig)
    return path


def _header_lines(particle, time, n_grains):
    def fmt(value, format_spec):
        return "-" if value is None else format(value, format_spec)

    try:
        percentages = _diagnostics.anisotropy_percentages(particle)
    except ValueError:
        _log.warning(
            "no elastic tensor decomposition for particle %d,"
            + " omitting anisotropy from the header",
            particle.id,
        )
        percentages = None

    lines = [
        f"id={particle.id}, time={time:.5e},"
        + f" position=({particle.x:.3e}:{particle.y:.3e}:{fmt(particle.z, '.3e')}),"
        + f" ODT={fmt(particle.olivine_deformation_type, '.4f')}, grains={n_grains},"
        + " anisotropic%="
        + fmt(None if percentages is None else percentages["anisotropic"], ".4f")
    ]
    if percentages is not None:
        lines.append(
            "  ".join(
                f"{name[:3]}%=" + ",".join(f"{v:.2f}" for v in percentages["full"][name])
                for name in _diagnostics.SYMMETRY_CLASSES
            )
        )
        lines.append(
            "  ".join(
                f"{name[:3]}/a%="
                + ",".join(f"{v:.2f}" for v in percentages["relative"][name])
                for name in _diagnostics.SYMMETRY_CLASSES
            )
        )
    return lines

"""> CPO Analyzer: Custom Matplotlib Axes subclasses."""

import matplotlib as mpl
import matplotlib.axes as mplax
import numpy as np
from matplotlib import colors as mcolors
from matplotlib.projections import register_projection


class PoleFigureAxes(mplax.Axes):
    """Axes class designed for crystallographic pole figures.

    Thin matplotlib Axes wrapper for pole figures on a Lambert equal-area disk of
    radius √2. To plot the density field of a `cpoanalyzer.polefigures.PoleFigure`,
    use `polefigure`.

    """

    name = "cpoanalyzer.polefigure"

    def _prep_polefig_axis(self, r_plane, ref_axes="XZ"):
        """Set various options of a matplotlib `Axes` to prepare for a pole figure.

        Use a two-letter string for `ref_axes`.
        These letters will be used for the horizontal and vertical labels, respectively.

        """
        self.set_axis_off()
        self.set_aspect("equal")
        self.set_xlim(-r_plane - 0.05, r_plane + 0.15)
        self.set_ylim(-r_plane - 0.05, r_plane + 0.15)
        _circle_points = np.linspace(0, np.pi * 2, 200)
        self.plot(
            r_plane * np.cos(_circle_points),
            r_plane * np.sin(_circle_points),
            linewidth=1.5,
            color=mpl.rcParams["axes.edgecolor"],
            zorder=11,
        )
        self.text(
            1.0, 0.5, ref_axes[0], verticalalignment="center", transform=self.transAxes
        )
        self.text(
            0.5,
            1.0,
            ref_axes[1],
            horizontalalignment="center",
            transform=self.transAxes,
        )

    def polefigure(self, figure, grid, cmap=None, vmax=None, gamma=1.0, **kwargs):
        """Plot the density field of a pole figure.

        Args:
        - `figure` (`PoleFigure`) — pole figure with counts on the grid
        - `grid` (`LambertGrid`) — grid used to compute the counts
        - `cmap` (optional) — Matplotlib colormap
        - `vmax` (float, optional) — upper limit of the color scale,
          by default `figure.max_count`
        - `gamma` (float, optional) — exponent of the power-law color normalisation

        Any additional keyword arguments are passed to `pcolormesh`.

        """
        self._prep_polefig_axis(grid.r_plane)
        if vmax is None:
            vmax = figure.max_count
        return self.pcolormesh(
            grid.x_plane,
            grid.z_plane,
            grid.masked(figure.counts),
            cmap=cmap,
            norm=mcolors.PowerNorm(gamma, vmin=0, vmax=vmax),
            shading=kwargs.pop("shading", "nearest"),
            **kwargs,
        )


register_projection(PoleFigureAxes)

"""> Configuration and fixtures for CPO Analyzer tests."""

import os
import sys
import zlib

import matplotlib
import numpy as np
import pytest
from _pytest.logging import LoggingPlugin, _LiveLoggingStreamHandler

from cpoanalyzer import diagnostics as _diagnostics
from cpoanalyzer import io as _io
from cpoanalyzer import logger as _log
from cpoanalyzer import utils as _utils

_log.quiet_aliens()  # Stop imported modules from spamming the logs.

GRAIN_HEADER = [
    "id",
    "mineral_0_volume_fraction",
    "mineral_0_EA_phi",
    "mineral_0_EA_theta",
    "mineral_0_EA_z",
    "mineral_1_volume_fraction",
    "mineral_1_EA_phi",
    "mineral_1_EA_theta",
    "mineral_1_EA_z",
]
PARTICLE_HEADER = (
    ["id", "x", "y", "z", "olivine_deformation_type", "full_norm_square"]
    + [
        f"{'orthohombic' if s == 'orthorhombic' else s}_norm_square_p{i}"
        for s in _diagnostics.SYMMETRY_CLASSES
        for i in (1, 2, 3)
    ]
    + ["isotropic_norm_square"]
)


# Set up custom pytest CLI arguments.
def pytest_addoption(parser):
    parser.addoption(
        "--outdir",
        metavar="DIR",
        default=None,
        help="output directory in which to store CPO Analyzer figures/logs",
    )
    parser.addoption(
        "--ncpus",
        default=_utils.default_ncpus(),
        type=int,
        help="number of CPUs to use for tests that support multiprocessing",
    )
    parser.addoption(
        "--fontsize",
        default=None,
        type=int,
        help="set explicit font size for output figures",
    )


# The default pytest logging plugin always creates its own handlers...
class PytestConsoleLogger(LoggingPlugin):
    """Pytest plugin that allows linking up a custom console logger."""

    name = "pytest-console-logger"

    def __init__(self, config, *args, **kwargs):
        super().__init__(config, *args, **kwargs)
        terminal_reporter = config.pluginmanager.get_plugin("terminalreporter")
        capture_manager = config.pluginmanager.get_plugin("capturemanager")
        handler = _LiveLoggingStreamHandler(terminal_reporter, capture_manager)
        handler.setFormatter(_log.CONSOLE_LOGGER.formatter)
        handler.setLevel(_log.CONSOLE_LOGGER.level)
        self.log_cli_handler = handler

    # Override original, which tries to delete some silly globals that we aren't
    # using anymore, this might break the (already quite broken) -s/--capture.
    @pytest.hookimpl(hookwrapper=True)
    def pytest_runtest_teardown(self, item):
        self.log_cli_handler.set_when("teardown")
        yield from self._runtest_for(item, "teardown")


@pytest.hookimpl(trylast=True)
def pytest_configure(config):
    # Set custom Matplotlib parameters.
    # Alternatively inject a call to `matplotlib.style.use` before starting pytest.
    if config.option.fontsize is not None:
        matplotlib.rcParams["font.size"] = config.option.fontsize

    # Hook up our logging plugin last,
    # it relies on terminalreporter and capturemanager.
    if config.option.verbose > 0:
        config.pluginmanager.register(
            PytestConsoleLogger(config), PytestConsoleLogger.name
        )


@pytest.fixture(scope="session")
def verbose(request):
    return request.config.option.verbose


@pytest.fixture(scope="session")
def outdir(request):
    return request.config.getoption("--outdir")


@pytest.fixture(scope="session")
def ncpus(request):
    return max(1, request.config.getoption("--ncpus"))


@pytest.fixture(scope="session")
def named_tempfile_kwargs(request):
    if sys.platform == "win32":
        return {"delete": False}
    else:
        return dict()


@pytest.fixture(scope="function")
def console_handler(request):
    if request.config.option.verbose > 0:  # Show console logs if -v/--verbose given.
        return request.config.pluginmanager.get_plugin(
            "pytest-console-logger"
        ).log_cli_handler
    return _log.CONSOLE_LOGGER


@pytest.fixture(scope="session")
def seed():
    """Default seed for test RNG."""
    return 8816


@pytest.fixture(scope="session")
def grain_header():
    """Header of grain orientation shards with two minerals."""
    return GRAIN_HEADER


@pytest.fixture(scope="session")
def particle_header():
    """Header of particle metadata shards with the elastic tensor decomposition."""
    return PARTICLE_HEADER


@pytest.fixture(scope="session")
def write_table():
    """Get a function that writes a space-delimited table, as in simulation output.

    The returned function has the signature `(path, header, rows, compressed=False)`.
    Passing `header=None` writes an empty file.

    """

    def _write_table(path, header, rows, compressed=False):
        path.parent.mkdir(parents=True, exist_ok=True)
        if header is None:
            path.write_bytes(b"")
            return path
        lines = [" ".join(str(v) for v in row) for row in [header, *rows]]
        data = (os.linesep.join(lines) + os.linesep).encode()
        if compressed:
            data = zlib.compress(data)
        path.write_bytes(data)
        return path

    return _write_table


@pytest.fixture(scope="session")
def grain_rows():
    """Get a function that generates random grain orientation rows of one particle."""

    def _grain_rows(particle_id, n_grains, seed):
        rng = np.random.default_rng(seed=seed)
        rows = []
        for _ in range(n_grains):
            angles = rng.uniform(0, 1, size=(2, 3)) * [360.0, 180.0, 360.0]
            rows.append(
                [particle_id, 0.7, *angles[0].round(6), 0.3, *angles[1].round(6)]
            )
        return rows

    return _grain_rows


@pytest.fixture(scope="session")
def particle_row():
    """Get a function that generates a particle metadata row with elastic data."""

    def _particle_row(particle_id):
        return (
            [particle_id, 1.5e5, 2.0e5, 3.0e4, 1.0, 100.0]
            + [2.0, 1.5, 1.0] * (len(_diagnostics.SYMMETRY_CLASSES) - 1)
            + [10.0, 8.0, 6.0]
            + [80.0]
        )

    return _particle_row


@pytest.fixture
def experiment(tmp_path, write_table, grain_rows, particle_row):
    """Create an experiment directory with three particle output steps.

    The time-index file records particle output at the times 0, 1e6 and 2e6.
    For every output step, grain orientation shard 0 is empty, shard 1 holds 20 grains
    of particle 1 and shard 2 holds 12 grains of particle 2. Particle 2 has no record
    in the metadata shards. Returns the path to the experiment directory.

    """
    _dir = tmp_path / "experiment_1"
    _dir.mkdir()
    (_dir / "statistics").write_text(
        "# 1: Time step number\n"
        + "# 2: Time (years)\n"
        + "# 3: Visualization file name\n"
        + "0 0.000000e+00 output/particle_LPO-00000\n"
        + "1 5.000000e+05 -\n"
        + "2 1.000000e+06 output/particle_LPO-00001\n"
        + "3 2.000000e+06 output/particle_LPO-00002\n"
    )
    grains = _dir / "particle_CPO" / "weighted_CPO"
    particles = _dir / "particle_CPO" / "particles"
    for timestep in range(3):
        write_table(_io.shard_path(grains, timestep, 0), None, [])
        write_table(
            _io.shard_path(grains, timestep, 1),
            GRAIN_HEADER,
            grain_rows(1, 20, seed=timestep),
        )
        write_table(
            _io.shard_path(grains, timestep, 2),
            GRAIN_HEADER,
            grain_rows(2, 12, seed=10 + timestep),
        )
        write_table(_io.shard_path(particles, timestep, 0), None, [])
        write_table(
            _io.shard_path(particles, timestep, 1),
            PARTICLE_HEADER,
            [particle_row(1)],
        )
        write_table(
            _io.shard_path(particles, timestep, 2),
            PARTICLE_HEADER,
            [particle_row(3)],
        )
    return _dir


@pytest.fixture
def config_file(experiment):
    """Create a configuration file for the `experiment` fixture."""
    path = experiment.parent / "config.toml"
    path.write_text(
        'base_dir = "."\n'
        + f'experiment_dirs = ["{experiment.name}"]\n'
        + "\n"
        + "[pole_figures]\n"
        + "times = [0.9e6]\n"
        + "particle_ids = [1, 2, 7]\n"
        + 'axes = ["AAxis", "CAxis"]\n'
        + 'minerals = ["Olivine", "Enstatite"]\n'
        + "sphere_points = 21\n"
        + "raw_output = true\n"
    )
    return path

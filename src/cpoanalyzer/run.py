"""> CPO Analyzer: Processing of experiment directories.

Each experiment directory below the configured base directory is processed by an
independent task. Tasks are distributed over a process pool, see
`cpoanalyzer.utils.import_proc_pool`. Within one experiment, the requested times and
particles are processed sequentially:

1. the requested time is resolved to the nearest particle output step,
2. the grain orientations and metadata of the particle are located in the shards,
3. the orientation density of each requested crystal axis and mineral is computed,
4. the pole figure grid is rendered and saved in the figure output directory.

A summary of all processed (time, particle) pairs is saved to an SCSV file in the figure
output directory. Malformed simulation output aborts the experiment, other experiments
are still processed.

"""

import dataclasses as dc
import functools as ft
import pathlib

import numpy as np
from tqdm import tqdm

from cpoanalyzer import core as _core
from cpoanalyzer import exceptions as _err
from cpoanalyzer import geometry as _geo
from cpoanalyzer import io as _io
from cpoanalyzer import logger as _log
from cpoanalyzer import polefigures as _pf
from cpoanalyzer import utils as _utils
from cpoanalyzer import visualisation as _vis

SUMMARY_SCHEMA = {
    "delimiter": ",",
    "missing": "-",
    "fields": [
        {"name": "requested_time", "type": "float", "fill": "NaN"},
        {"name": "time", "type": "float", "fill": "NaN"},
        {"name": "timestep", "type": "integer", "fill": -1},
        {"name": "particle_id", "type": "integer", "fill": -1},
        {"name": "n_grains", "type": "integer", "fill": 0},
        {"name": "figure", "type": "string"},
    ],
}
"""SCSV schema of the experiment summary files."""


@dc.dataclass
class ExperimentResult:
    """Outcome of processing one experiment directory."""

    experiment: str
    figures: list = dc.field(default_factory=list)
    """Paths of the saved pole figure grids."""
    missing: list = dc.field(default_factory=list)
    """(timestep, particle_id) pairs for which the particle was not found."""
    error: str | None = None
    """Description of the error that aborted processing, if any."""

    @property
    def ok(self):
        return self.error is None


def output_directory(config, experiment_dir):
    """Get the figure output directory of an experiment."""
    base_dir = pathlib.Path(config["base_dir"])
    return base_dir / experiment_dir / config["pole_figures"]["figure_output_dir"]


def summary_filename(options):
    """Get the file name of the SCSV summary for the `[pole_figures]` options."""
    return f"{options['figure_output_prefix']}_summary.scsv"


def process_experiment(config, experiment_dir, grid, render=_vis.pole_figure_grid):
    """Produce the requested pole figures for one experiment directory.

    - `config` — parsed configuration, see `cpoanalyzer.io.parse_config`
    - `experiment_dir` — name of the experiment directory below `config["base_dir"]`
    - `grid` — `cpoanalyzer.geometry.LambertGrid` used for all pole figures
    - `render` — callable with the signature of
      `cpoanalyzer.visualisation.pole_figure_grid`, or `None` to skip rendering

    Returns an `ExperimentResult`. Errors in the simulation output are raised.

    """
    options = config["pole_figures"]
    experiment = config["base_dir"] / experiment_dir
    _log.info("processing experiment %s", experiment)
    times = _io.read_timesteps(
        experiment / options["time_data_file"], marker=options["time_marker"]
    )
    out_dir = output_directory(config, experiment_dir)
    grain_prefix = experiment / options["grain_data_file_prefix"]
    particle_prefix = experiment / options["particle_data_file_prefix"]

    result = ExperimentResult(experiment=str(experiment_dir))
    summary = [[] for _ in SUMMARY_SCHEMA["fields"]]
    for requested in options["times"]:
        timestep = _core.resolve_timestep(times, requested)
        time = float(times[timestep])
        _log.info(
            "using output step %d (time %e) for requested time %e",
            timestep,
            time,
            requested,
        )
        for particle_id in options["particle_ids"]:
            try:
                scan = _io.locate_particle(
                    timestep,
                    particle_id,
                    grain_prefix,
                    particle_prefix,
                    compressed=config["compressed"],
                )
                if scan.state == _io.ScanState.found:
                    figures = _pf.make_pole_figures(
                        scan.grains, grid, options["axes"], options["minerals"]
                    )
            except _err.DataFileError as e:
                _log.error(
                    "failed to process particle %d at output step %d of %s: %s",
                    particle_id,
                    timestep,
                    experiment,
                    e,
                )
                raise

            if scan.state == _io.ScanState.exhausted:
                _log.info(
                    "particle id %d not found for output step %d", particle_id, timestep
                )
                result.missing.append((timestep, particle_id))
                row = (requested, time, timestep, particle_id, 0, "")
            else:
                savefile = out_dir / _pf.figure_filename(options, timestep, particle_id)
                if render is not None:
                    render(
                        figures,
                        grid,
                        scan.particle,
                        time,
                        timestep,
                        scan.grains.n_grains,
                        options,
                        savefile,
                    )
                if options["raw_output"]:
                    _save_counts(savefile.with_suffix(".npz"), figures)
                result.figures.append(savefile)
                row = (
                    requested,
                    time,
                    timestep,
                    particle_id,
                    scan.grains.n_grains,
                    savefile.name,
                )
            for column, value in zip(summary, row, strict=True):
                column.append(value)

    _io.save_scsv(
        out_dir / summary_filename(options),
        SUMMARY_SCHEMA,
        summary,
        comments=[f"Pole figures of experiment {experiment}"],
    )
    return result


def _save_counts(file, figures):
    # Save density fields as '<mineral>_<axis>' arrays and the shared color scale maxima.
    data = {
        f"{figure.mineral.name}_{figure.crystal_axis.name}": figure.counts
        for row in figures
        for figure in row
    }
    data["max_counts"] = np.array([[f.max_count for f in row] for row in figures])
    path = _io.resolve_path(file)
    _log.debug("saving pole figure counts to %s", path)
    np.savez(path, **data)


def _process_experiment_task(config, grid, render, experiment_dir):
    # Pool task which reports failures in the result instead of raising.
    try:
        return process_experiment(config, experiment_dir, grid, render=render)
    except (_err.Error, OSError, ValueError) as e:
        _log.error("experiment %s aborted: %s", experiment_dir, e)
        return ExperimentResult(experiment=str(experiment_dir), error=str(e))
    except Exception as e:
        _log.exception("unexpected error in experiment %s", experiment_dir)
        return ExperimentResult(
            experiment=str(experiment_dir), error=f"{type(e).__name__}: {e}"
        )


def process_configuration(config, ncpus=None, render=_vis.pole_figure_grid):
    """Process all experiment directories of a configuration.

    The sampling grid is built once and shared by all experiments. If `ncpus` is not 1
    and there is more than one experiment, the experiments are processed in parallel,
    see `cpoanalyzer.utils.import_proc_pool`. If Ray is installed, it will be
    automatically preferred. In this case, the number of processors (actually Ray
    “workers”) should be set upon initialisation of the Ray cluster.

    Returns a list of `ExperimentResult`s in order of completion.

    """
    options = config["pole_figures"]
    grid = _geo.build_grid(options["sphere_points"], options["hemisphere"])
    experiments = config["experiment_dirs"]
    _run = ft.partial(_process_experiment_task, config, grid, render)

    if ncpus is None:
        ncpus = _utils.default_ncpus()
    results = []
    if ncpus == 1 or len(experiments) == 1:
        for result in map(_run, experiments):
            results.append(result)
    else:
        Pool, HAS_RAY = _utils.import_proc_pool()
        _log.info(
            "processing %d experiments using %s",
            len(experiments),
            "Ray" if HAS_RAY else f"{ncpus} processes",
        )
        with Pool(processes=None if HAS_RAY else ncpus) as pool:
            for result in tqdm(
                pool.imap_unordered(_run, experiments),
                total=len(experiments),
                desc="Processing experiments",
            ):
                results.append(result)

    for result in results:
        if result.ok:
            _log.info(
                "experiment %s: saved %d pole figure grids, %d particles not found",
                result.experiment,
                len(result.figures),
                len(result.missing),
            )
        else:
            _log.error("experiment %s failed: %s", result.experiment, result.error)
    return results

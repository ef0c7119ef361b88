"""> CPO Analyzer: Entry points and argument handling for command line tools.

All CLI handlers should be registered in the `CLI_HANDLERS` namedtuple,
which ensures that they will be installed as executable scripts alongside the package.

"""

import argparse
import contextlib as cl
import logging
import os
import sys
from collections import namedtuple

from cpoanalyzer import exceptions as _err
from cpoanalyzer import io as _io
from cpoanalyzer import logger as _log
from cpoanalyzer import run as _run


class CliTool:
    """Base class for CLI tools defining the required interface."""

    def __call__(self):
        return NotImplementedError

    def _get_args(self) -> argparse.Namespace | type[NotImplementedError]:
        return NotImplementedError


class PoleFigureAnalyser(CliTool):
    """Produce pole figures of particle CPO for the experiments listed in CONFIG.

    The CONFIG file is a TOML file with the keys `base_dir`, `experiment_dirs` and
    optionally `compressed`, as well as a `[pole_figures]` section that lists the
    requested `times`, `particle_ids`, `axes` and `minerals`. Figures are saved in the
    `figure_output_dir` of each experiment directory.

    """

    def __call__(self):
        args = self._get_args()
        try:
            config = _io.parse_config(args.config)
        except (_err.ConfigError, OSError) as e:
            _log.error("invalid configuration: %s", e)
            sys.exit(2)

        with cl.ExitStack() as stack:
            if args.debug:
                stack.enter_context(_io.log_cli_level(logging.DEBUG))
            if args.log is not None:
                stack.enter_context(
                    _io.logfile_enable(args.log, level=config["output"]["log_level"])
                )
            results = _run.process_configuration(config, ncpus=args.ncpus)

        n_failed = sum(not result.ok for result in results)
        if n_failed > 0:
            _log.error("%d of %d experiments failed", n_failed, len(results))
            sys.exit(1)

    def _get_args(self) -> argparse.Namespace:
        assert self.__doc__ is not None, f"missing docstring for {self}"
        description, epilog = self.__doc__.split(os.linesep + os.linesep, 1)
        parser = argparse.ArgumentParser(description=description, epilog=epilog)
        parser.add_argument("config", help="configuration file (.toml)")
        parser.add_argument(
            "-n",
            "--ncpus",
            help="number of processes used to process experiments in parallel",
            type=int,
            default=None,
        )
        parser.add_argument(
            "-d",
            "--debug",
            help="show debug messages in the console output",
            default=False,
            action="store_true",
        )
        parser.add_argument(
            "-l",
            "--log",
            help="log file, the level is set by `log_level` in the [output] section",
            default=None,
        )
        return parser.parse_args()


class ShardInspector(CliTool):
    """List the particles in the grain orientation shards of one output step.

    Prints the number of grains of each particle for every shard file
    `PREFIX-<TIMESTEP>.<shard>.dat`, starting from shard 0 until the next shard does not
    exist.

    """

    def __call__(self):
        args = self._get_args()
        shard = 0
        path = _io.shard_path(args.prefix, args.timestep, shard)
        if not path.is_file():
            _log.error("no shards found for output step %d: %s", args.timestep, path)
            sys.exit(1)
        while path.is_file():
            if path.stat().st_size == 0:
                print(f"{path}: empty")
            else:
                counts = _io.count_particle_grains(path, compressed=args.compressed)
                print(f"{path}: {len(counts)} particles")
                for particle_id, n_grains in sorted(counts.items()):
                    print(f"  id={particle_id} grains={n_grains}")
            shard += 1
            path = _io.shard_path(args.prefix, args.timestep, shard)

    def _get_args(self) -> argparse.Namespace:
        assert self.__doc__ is not None, f"missing docstring for {self}"
        description, epilog = self.__doc__.split(os.linesep + os.linesep, 1)
        parser = argparse.ArgumentParser(description=description, epilog=epilog)
        parser.add_argument(
            "prefix", help="path prefix of the shards, e.g. 'particle_CPO/weighted_CPO'"
        )
        parser.add_argument("timestep", help="index of the output step", type=int)
        parser.add_argument(
            "-c",
            "--compressed",
            help="the shards are zlib compressed",
            default=False,
            action="store_true",
        )
        return parser.parse_args()


# These are not the final names of the executables (those are set in pyproject.toml).
_CLI_HANDLERS = namedtuple(
    "_CLI_HANDLERS",
    (
        "pole_figure_analyser",
        "shard_inspector",
    ),
)
CLI_HANDLERS = _CLI_HANDLERS(
    pole_figure_analyser=PoleFigureAnalyser(),
    shard_inspector=ShardInspector(),
)

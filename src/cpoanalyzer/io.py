"""> CPO Analyzer: Configuration, simulation output and supporting data I/O functions.

The CPO Analyzer reads three kinds of files:
- CPO Analyzer configuration files (TOML), see `parse_config`
- the time-index file of an experiment, which maps particle output steps to model
  times, see `read_timesteps`
- grain orientation and particle metadata shards, one per worker process of the
  simulation and output step, see `locate_particle`

It writes 'SCSV' files, CSV files with YAML frontmatter, to summarise which pole figures
were produced for an experiment, see `save_scsv`. For supported cell types, see
`SCSV_TYPEMAP`.

"""

import collections as c
import contextlib as cl
import csv
import dataclasses as dc
import io
import logging
import os
import pathlib
import sys
import zlib
from enum import IntEnum, unique

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import numpy as np
import yaml

from cpoanalyzer import core as _core
from cpoanalyzer import exceptions as _err
from cpoanalyzer import geometry as _geo
from cpoanalyzer import logger as _log

SCSV_TYPEMAP = {"string": str, "integer": int, "float": float}
"""Mapping of supported SCSV field types to corresponding Python types."""

_SCSV_DEFAULT_TYPE = "string"
_SCSV_DEFAULT_FILL = ""

SHARD_EXTENSION = "dat"
"""File extension of grain orientation and particle metadata shards."""

CONFIG_AXES = {
    "AAxis": _core.CrystalAxis.a,
    "BAxis": _core.CrystalAxis.b,
    "CAxis": _core.CrystalAxis.c,
}
"""Names of crystal axes in configuration files."""

CONFIG_MINERALS = {
    "Olivine": _core.MineralPhase.olivine,
    "Enstatite": _core.MineralPhase.enstatite,
}
"""Names of mineral phases in configuration files."""

# Column names of the particle metadata shards that differ from the field names.
_PARTICLE_COLUMN_ALIASES = {
    f"orthohombic_norm_square_p{i}": f"orthorhombic_norm_square_p{i}"
    for i in (1, 2, 3)
}


@unique
class ScanState(IntEnum):
    """States of the shard scan performed by `locate_particle`."""

    scanning = 0
    found = 1
    """A shard with grains of the particle was found."""
    exhausted = 2
    """The next shard file does not exist, so the particle is not present."""


@dc.dataclass(frozen=True)
class ParticleRecord:
    """Metadata of a single particle at a single output step.

    The elastic tensor decomposition is given as squared norms of the full tensor, its
    isotropic part and the parts attributed to each symmetry class, where `p1`, `p2`
    and `p3` are taken with respect to three different symmetry axis choices.
    Optional values are `None` if the corresponding columns are not in the shard.

    """

    id: int = 0
    x: float = 0.0
    y: float = 0.0
    z: float | None = 0.0
    olivine_deformation_type: float | None = None
    full_norm_square: float | None = None
    triclinic_norm_square_p1: float | None = None
    triclinic_norm_square_p2: float | None = None
    triclinic_norm_square_p3: float | None = None
    monoclinic_norm_square_p1: float | None = None
    monoclinic_norm_square_p2: float | None = None
    monoclinic_norm_square_p3: float | None = None
    orthorhombic_norm_square_p1: float | None = None
    orthorhombic_norm_square_p2: float | None = None
    orthorhombic_norm_square_p3: float | None = None
    tetragonal_norm_square_p1: float | None = None
    tetragonal_norm_square_p2: float | None = None
    tetragonal_norm_square_p3: float | None = None
    hexagonal_norm_square_p1: float | None = None
    hexagonal_norm_square_p2: float | None = None
    hexagonal_norm_square_p3: float | None = None
    isotropic_norm_square: float | None = None


@dc.dataclass(frozen=True)
class GrainRecords:
    """Orientations of all grains of one particle, read from a single shard."""

    particle_id: int
    euler_angles: np.ndarray
    """Bunge Euler angles in degrees, with shape (n_grains, n_minerals, 3)."""
    path: pathlib.Path
    """Shard file that contained the grains."""

    @property
    def n_grains(self):
        return self.euler_angles.shape[0]

    @property
    def n_minerals(self):
        return self.euler_angles.shape[1]

    def mineral(self, phase: _core.MineralPhase):
        """Get the Nx3 Euler angles (degrees) of all grains for the given mineral."""
        if phase >= self.n_minerals:
            raise _err.DataFileError(
                f"no orientations for mineral '{phase.name}'",
                self.path,
                f"mineral_{int(phase)}_EA_phi",
            )
        return self.euler_angles[:, phase, :]


@dc.dataclass(frozen=True)
class ShardScan:
    """Result of a shard scan, see `locate_particle`."""

    state: ScanState
    shard: int
    """Index of the shard where the scan stopped."""
    grains: GrainRecords | None = None
    particle: ParticleRecord | None = None


def shard_path(prefix, timestep, shard):
    """Get path to the shard with index `shard` written at output step `timestep`.

    >>> shard_path("particle_CPO/weighted_CPO", 1, 12)
    PosixPath('particle_CPO/weighted_CPO-00001.0012.dat')

    """
    return pathlib.Path(f"{prefix}-{timestep:05d}.{shard:04d}.{SHARD_EXTENSION}")


def locate_particle(
    timestep, particle_id, grain_prefix, particle_prefix, compressed=False
):
    """Find the grain orientations and metadata of a particle at an output step.

    Grain orientation shards are scanned in order of increasing shard index, starting
    from 0. Empty shards and shards that do not contain grains of the particle are
    skipped. The scan stops at the first shard with grains of the particle
    (`ScanState.found`) or when the next shard file does not exist
    (`ScanState.exhausted`). Grains of the same particle in later shards are not read.

    - `timestep` — index of the output step
    - `particle_id` — particle id
    - `grain_prefix` — path prefix of the grain orientation shards
    - `particle_prefix` — path prefix of the particle metadata shards
    - `compressed` — set to `True` if the grain orientation shards are zlib compressed

    Returns a `ShardScan`. Raises `cpoanalyzer.exceptions.DataFileError` for malformed
    shards or if the particle metadata shard for a successful scan is missing.

    """
    state = ScanState.scanning
    shard = -1
    grains = None
    while state == ScanState.scanning:
        shard += 1
        path = shard_path(grain_prefix, timestep, shard)
        if not path.is_file():
            state = ScanState.exhausted
        elif path.stat().st_size == 0:
            _log.debug("skipping empty shard %s", path)
        else:
            grains = read_grain_records(path, particle_id, compressed=compressed)
            if grains is not None:
                state = ScanState.found

    if state == ScanState.exhausted:
        _log.debug(
            "particle %d not found in %d shards of output step %d",
            particle_id,
            shard,
            timestep,
        )
        return ShardScan(state, shard)

    _log.debug(
        "found %d grains of particle %d in %s", grains.n_grains, particle_id, grains.path
    )
    particle = read_particle_record(
        shard_path(particle_prefix, timestep, shard), particle_id
    )
    return ShardScan(state, shard, grains, particle)


def read_grain_records(path, particle_id, compressed=False):
    """Read orientations of all grains of a particle from a grain orientation shard.

    The shard is a space-delimited table with a header row. Required columns are `id`
    and, for each mineral index `i`, the Bunge Euler angles `mineral_<i>_EA_phi`,
    `mineral_<i>_EA_theta` and `mineral_<i>_EA_z` in degrees.

    Returns a `GrainRecords` or `None` if there are no grains of the particle.

    """
    header, rows = _read_table(path, compressed=compressed)
    i_id = _column_index(header, "id", path)
    angle_columns = []
    n_minerals = 0
    while f"mineral_{n_minerals}_EA_phi" in header:
        angle_columns.extend(
            _column_index(header, f"mineral_{n_minerals}_EA_{angle}", path)
            for angle in ("phi", "theta", "z")
        )
        n_minerals += 1
    if n_minerals == 0:
        raise _err.DataFileError("missing Euler angle columns", path, "mineral_0_EA_phi")

    angles = [
        [_parse_float(row[i], path, header[i]) for i in angle_columns]
        for row in rows
        if _parse_int(row[i_id], path, "id") == particle_id
    ]
    if len(angles) == 0:
        return None
    return GrainRecords(
        particle_id=particle_id,
        euler_angles=np.array(angles).reshape(len(angles), n_minerals, 3),
        path=path,
    )


def count_particle_grains(path, compressed=False):
    """Count the grains of each particle in a grain orientation shard.

    Returns a dictionary mapping particle ids to the number of grains.

    """
    header, rows = _read_table(path, compressed=compressed)
    i_id = _column_index(header, "id", path)
    return dict(c.Counter(_parse_int(row[i_id], path, "id") for row in rows))


def read_particle_record(path, particle_id):
    """Read the metadata record of a particle from a particle metadata shard.

    The shard is an uncompressed space-delimited table with a header row. Required
    columns are `id`, `x` and `y`, the others are optional (see `ParticleRecord`).
    If there is no row for `particle_id`, the default `ParticleRecord` is returned.

    """
    if not path.is_file():
        raise _err.DataFileError("missing particle metadata shard", path)
    header, rows = _read_table(path)
    i_id = _column_index(header, "id", path)
    for name in ("x", "y"):
        _column_index(header, name, path)

    field_names = {f.name for f in dc.fields(ParticleRecord)}
    for row in rows:
        if _parse_int(row[i_id], path, "id") != particle_id:
            continue
        values = {}
        for column, value in zip(header, row, strict=True):
            name = _PARTICLE_COLUMN_ALIASES.get(column, column)
            if name == "id" or name not in field_names:
                continue
            values[name] = _parse_float(value, path, column)
        if "z" not in header:
            values["z"] = None
        return ParticleRecord(id=particle_id, **values)

    _log.warning("no metadata for particle %d in %s", particle_id, path)
    return ParticleRecord()


def read_timesteps(path, marker=_core.DefaultParams.time_marker):
    """Read model times of the particle output steps from a time-index file.

    The time-index file is a whitespace-delimited table, lines starting with `#` are
    comments. Lines which contain the `marker` token belong to steps that produced
    particle output, the model time is in the second column.

    Returns an array of times, the index of a time is the number of the output step.

    """
    _path = pathlib.Path(path)
    _log.debug("reading time-index file: %s", _path)
    times = []
    with open(_path) as file:
        for line in file:
            fields = line.split()
            if len(fields) == 0 or fields[0].startswith("#"):
                continue
            if marker not in line:
                continue
            if len(fields) < 2:
                raise _err.DataFileError("missing time value", _path, "time")
            times.append(_parse_float(fields[1], _path, "time"))
    return np.array(times)


def _read_table(path, compressed=False):
    # Read header and rows of a space-delimited (and possibly compressed) table.
    raw = pathlib.Path(path).read_bytes()
    if compressed:
        try:
            raw = zlib.decompress(raw)
        except zlib.error as e:
            raise _err.DataFileError(f"failed to decompress shard: {e}", path) from None
    lines = [
        line.strip() for line in raw.decode("utf-8", errors="replace").splitlines()
    ]
    reader = csv.reader(
        (line for line in lines if line != ""), delimiter=" ", skipinitialspace=True
    )
    try:
        header = next(reader)
    except StopIteration:
        raise _err.DataFileError("missing header row", path) from None
    rows = []
    for row in reader:
        if len(row) != len(header):
            raise _err.DataFileError(
                f"expected {len(header)} fields but found {len(row)}"
                + f" on line {reader.line_num}",
                path,
            )
        rows.append(row)
    return header, rows


def _column_index(header, name, path):
    try:
        return header.index(name)
    except ValueError:
        raise _err.DataFileError("missing required column", path, name) from None


def _parse_int(value, path, field):
    try:
        return int(value)
    except ValueError:
        raise _err.DataFileError(
            f"cannot parse '{value}' as an integer", path, field
        ) from None


def _parse_float(value, path, field):
    try:
        return float(value)
    except ValueError:
        raise _err.DataFileError(f"cannot parse '{value}' as a float", path, field) from None


def parse_config(path):
    """Parse a TOML file containing CPO Analyzer configuration.

    Relative paths in the configuration are interpreted with respect to the directory
    that contains the configuration file. See `cpoanalyzer.core.DefaultParams` for
    the optional parameters of the `[pole_figures]` section.

    """
    path = resolve_path(path)
    _log.info("parsing configuration file: %s", path)
    with open(path, "rb") as file:
        toml = tomllib.load(file)

    for key in ("base_dir", "experiment_dirs"):
        if key not in toml:
            raise _err.ConfigError(f"missing required option '{key}' in '{path}'")
    toml["base_dir"] = (path.parent / toml["base_dir"]).resolve()
    if isinstance(toml["experiment_dirs"], str) or len(toml["experiment_dirs"]) == 0:
        raise _err.ConfigError(
            "experiment_dirs must be a non-empty list of directory names,"
            + f" not {toml['experiment_dirs']}"
        )
    toml["compressed"] = toml.get("compressed", False)
    if not isinstance(toml["compressed"], bool):
        raise _err.ConfigError(
            f"compressed must be true or false, not {toml['compressed']}"
        )

    try:
        toml["pole_figures"] = _parse_config_polefigures(toml["pole_figures"])
    except KeyError:
        raise _err.ConfigError(f"missing [pole_figures] section in '{path}'") from None

    # Default logging level for all log files.
    _output = toml.get("output", {})
    _output["log_level"] = _output.get("log_level", "WARNING")
    toml["output"] = _output
    return toml


def _parse_config_polefigures(_pf):
    # Accept the spelling used by older configuration files.
    if "elastisity_header" in _pf:
        _pf["elasticity_header"] = _pf.pop("elastisity_header")
    for key, default in _core.DefaultParams().as_dict().items():
        _pf[key] = _pf.get(key, default)

    for key in ("times", "particle_ids", "axes", "minerals"):
        if not isinstance(_pf.get(key), list) or len(_pf[key]) == 0:
            raise _err.ConfigError(f"missing or empty list '{key}' in [pole_figures]")
    if not all(isinstance(t, float | int) for t in _pf["times"]):
        raise _err.ConfigError(f"times must be numbers, not {_pf['times']}")
    if not all(isinstance(i, int) and i >= 0 for i in _pf["particle_ids"]):
        raise _err.ConfigError(
            f"particle ids must be non-negative integers, not {_pf['particle_ids']}"
        )
    _pf["axes"] = [_parse_choice(a, CONFIG_AXES, "crystal axis") for a in _pf["axes"]]
    _pf["minerals"] = [
        _parse_choice(m, CONFIG_MINERALS, "mineral") for m in _pf["minerals"]
    ]

    try:
        _pf["color_scale"] = _core.ColorScale(_pf["color_scale"])
    except ValueError:
        raise _err.ConfigError(
            f"invalid color scale: {_pf['color_scale']}. Choose one of"
            + f" {[s.value for s in _core.ColorScale]}"
        ) from None
    try:
        _pf["hemisphere"] = _geo.Hemisphere(_pf["hemisphere"])
    except ValueError:
        raise _err.ConfigError(
            f"invalid hemisphere: {_pf['hemisphere']}. Choose 'upper' or 'lower'"
        ) from None
    if not isinstance(_pf["sphere_points"], int) or _pf["sphere_points"] < 2:
        raise _err.ConfigError(
            f"sphere_points must be an integer larger than 1, not {_pf['sphere_points']}"
        )
    if not isinstance(_pf["gamma"], float | int) or _pf["gamma"] <= 0:
        raise _err.ConfigError(f"gamma must be a positive number, not {_pf['gamma']}")
    if (
        _pf["max_count_method"] != ""
        and _pf["max_count_method"] not in _core.MAX_COUNT_DIVISORS
    ):
        _log.warning(
            "unsupported max_count_method '%s', using the full color scale",
            _pf["max_count_method"],
        )
        _pf["max_count_method"] = ""
    return _pf


def _parse_choice(value, choices, kind):
    try:
        return choices[value]
    except KeyError:
        raise _err.ConfigError(
            f"invalid {kind}: {value}. Choose one of {list(choices.keys())}"
        ) from None


def resolve_path(path, refdir=None):
    """Resolve relative paths and create parent directories if necessary.

    Relative paths are interpreted with respect to the current working directory,
    i.e. the directory from whith the current Python process was executed,
    unless a specific reference directory is provided with `refdir`.

    """
    cwd = pathlib.Path.cwd()
    if refdir is None:
        _path = cwd / path
    else:
        _path = refdir / path
    _path.parent.mkdir(parents=True, exist_ok=True)
    return _path.resolve()


def read_scsv(file):
    """Read the columns of an SCSV file written by `save_scsv`.

    Returns a NamedTuple with one tuple of cell values per schema field. Cells holding
    the missing value marker are replaced by the fill value of their field.

    """
    path = resolve_path(file)
    _log.info("reading SCSV file: %s", path)
    with open(path) as stream:
        frontmatter, table = _split_scsv(stream)
    schema = yaml.safe_load(frontmatter)["schema"]
    _check_scsv_schema(schema, path)

    names = [field["name"] for field in schema["fields"]]
    reader = csv.reader(table, delimiter=schema["delimiter"], skipinitialspace=True)
    header = [name.strip() for name in next(reader)]
    if header != names:
        raise _err.SCSVError(
            f"column headers {header} of '{path}' do not match schema fields {names}"
        )
    rows = list(reader)
    for row in rows:
        if len(row) != len(names):
            raise _err.SCSVError(
                f"expected {len(names)} cells per row in '{path}', got {len(row)}"
            )

    Columns = c.namedtuple("Columns", names)
    return Columns._make(
        tuple(_parse_scsv_cell(field, row[i], schema["missing"]) for row in rows)
        for i, field in enumerate(schema["fields"])
    )


def save_scsv(file, schema, data, comments=None):
    """Save columns of data to an SCSV file.

    - `file` — path to the file where the data should be written
    - `schema` — SCSV schema dictionary, with 'delimiter', 'missing' and 'fields' keys
    - `data` — data columns of equal length, one per schema field
    - `comments` (optional) — lines written as YAML comments above the schema

    Values equal to the fill value of their field are written as the missing value
    marker. See also `read_scsv`.

    """
    path = resolve_path(file)
    _check_scsv_schema(schema, path)
    if len(data) != len(schema["fields"]):
        raise _err.SCSVError(
            f"schema declares {len(schema['fields'])} fields, got {len(data)} columns"
        )
    if len({len(column) for column in data}) > 1:
        raise _err.SCSVError("refusing to write data columns of unequal length")
    cells = [
        _format_scsv_column(field, column, schema["missing"])
        for field, column in zip(schema["fields"], data, strict=True)
    ]

    _log.info("writing to SCSV file: %s", path)
    with open(path, mode="w") as stream:
        stream.write("---" + os.linesep)
        for comment in comments or []:
            stream.write(f"# {comment}{os.linesep}")
        yaml.safe_dump({"schema": schema}, stream, sort_keys=False)
        stream.write("---" + os.linesep)
        writer = csv.writer(
            stream, delimiter=schema["delimiter"], lineterminator=os.linesep
        )
        writer.writerow(field["name"] for field in schema["fields"])
        writer.writerows(zip(*cells))


def _split_scsv(lines):
    # YAML frontmatter is enclosed by '---' lines, the CSV table follows it.
    frontmatter = []
    table = []
    n_separators = 0
    for line in lines:
        if line.strip() == "---":
            n_separators += 1
        elif not line.strip():
            continue
        elif n_separators == 1:
            frontmatter.append(line)
        else:
            table.append(line)
    return "".join(frontmatter), table


def _check_scsv_schema(schema, path):
    for key in ("delimiter", "missing", "fields"):
        if key not in schema:
            raise _err.SCSVError(f"SCSV schema for '{path}' has no '{key}' entry")
    if len(schema["fields"]) == 0:
        raise _err.SCSVError(f"SCSV schema for '{path}' declares no fields")
    if schema["delimiter"] in schema["missing"]:
        raise _err.SCSVError(
            f"SCSV missing value marker '{schema['missing']}' contains the delimiter"
        )
    for field in schema["fields"]:
        if not field["name"].isidentifier():
            raise _err.SCSVError(
                f"SCSV field name '{field['name']}' is not a valid Python identifier"
            )
        _type = field.get("type", _SCSV_DEFAULT_TYPE)
        if _type not in SCSV_TYPEMAP:
            raise _err.SCSVError(f"unsupported SCSV field type: '{_type}'")
        if _type != _SCSV_DEFAULT_TYPE and "fill" not in field:
            raise _err.SCSVError(f"SCSV field of type '{_type}' requires a fill value")


def _parse_scsv_cell(field, cell, missing):
    _type = SCSV_TYPEMAP[field.get("type", _SCSV_DEFAULT_TYPE)]
    cell = cell.strip()
    if cell == missing:
        return _type(field.get("fill", _SCSV_DEFAULT_FILL))
    return _type(cell)


def _format_scsv_column(field, column, missing):
    _type = SCSV_TYPEMAP[field.get("type", _SCSV_DEFAULT_TYPE)]
    fill = _type(field.get("fill", _SCSV_DEFAULT_FILL))
    cells = []
    for value in column:
        try:
            parsed = _type(str(value).strip())
        except ValueError:
            raise _err.SCSVError(
                f"cannot write {value!r} to SCSV column '{field['name']}'"
                + f" of type '{_type.__qualname__}'"
            ) from None
        if parsed == fill or (_type is float and np.isnan(parsed) and np.isnan(fill)):
            cells.append(missing)
        else:
            cells.append(value)
    return cells


@cl.contextmanager
def logfile_enable(path, level: str | int = logging.DEBUG, mode="w"):
    """Enable logging to a file at `path` with given `level`.

    See the `cpoanalyzer.logger` documentation for examples.

    Logging levels are documented here:
    - <https://docs.python.org/3/library/logging.html#logging-levels>

    """
    formatter = logging.Formatter(
        "%(levelname)s [%(asctime)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Path can be an io.TextIOWrapper or io.StringIO, for testing purposes.
    logger_file: logging.StreamHandler | logging.FileHandler
    if isinstance(path, (io.StringIO, io.TextIOWrapper)):
        _log.debug("enabling logging at %s level to IO stream", level)
        logger_file = logging.StreamHandler(path)
    else:
        _log.debug("enabling logging at %s level to %s", level, path)
        logger_file = logging.FileHandler(resolve_path(path), mode=mode)
    logger_file.setFormatter(formatter)
    logger_file.setLevel(level)
    _log.LOGGER.addHandler(logger_file)
    try:
        yield
    finally:
        if not isinstance(path, (io.StringIO, io.TextIOWrapper)):
            logger_file.close()
        _log.LOGGER.removeHandler(logger_file)


@cl.contextmanager
def log_cli_level(level: str | int, handler: logging.Handler = _log.CONSOLE_LOGGER):
    """Set console logging handler level for current context.

    See the `cpoanalyzer.logger` documentation for examples.

    Logging levels are documented here:
    - <https://docs.python.org/3/library/logging.html#logging-levels>

    """
    default_level = handler.level
    handler.setLevel(level)
    try:
        yield
    finally:
        handler.setLevel(default_level)

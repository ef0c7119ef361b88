"""> CPO Analyzer: Custom exceptions (subclasses of `cpoanalyzer.Error`)."""

# <https://docs.python.org/3.11/tutorial/errors.html#user-defined-exceptions>


class Error(Exception):
    """Base class for exceptions in the CPO Analyzer."""


class ConfigError(Error):
    """Exception raised for errors in the input configuration.

    Attributes:
        message — explanation of the error

    """

    def __init__(self, message):  # pylint: disable=super-init-not-called
        self.message = message


class DataFileError(Error):
    """Exception raised for malformed simulation output files.

    This covers the time-index file as well as the grain orientation and particle
    metadata shards: undecodable (compressed) streams, rows with the wrong number of
    fields, missing required columns and values that cannot be parsed as numbers.

    Attributes:
    - message — explanation of the error
    - path — path to the offending file
    - field — name of the offending column, if known

    """

    def __init__(self, message, path, field=None):  # pylint: disable=super-init-not-called
        self.message = message
        self.path = path
        self.field = field

    def __str__(self):
        if self.field is None:
            return f"{self.message} (in '{self.path}')"
        return f"{self.message} (field '{self.field}' in '{self.path}')"


class SCSVError(Error):
    """Exception raised for errors in SCSV file I/O.

    Attributes:
    - message — explanation of the error

    """

    def __init__(self, message):  # pylint: disable=super-init-not-called
        self.message = message

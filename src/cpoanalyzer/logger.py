"""> CPO Analyzer: Package logger and console output.

All messages of the analyzer go through the `cpoanalyzer` logger, which writes to a
single console handler (`CONSOLE_LOGGER`). Use printf style arguments for log messages
so that the arguments are only formatted if a handler accepts the record.

>>> import logging
>>> import sys
>>> import cpoanalyzer
>>> cpo_logger = logging.getLogger("cpoanalyzer")
>>> cpo_logger.handlers  # doctest: +ELLIPSIS
[<StreamHandler ... (INFO)>]

Console output goes to `sys.stderr` at `INFO` level, with terminal colours. The
examples below print to `sys.stdout` without colours (`...` represents a timestamp).

>>> console = cpo_logger.handlers[0]
>>> _ = console.setStream(sys.stdout)
>>> console.formatter.color_enabled = False
>>> cpoanalyzer.logger.info("located particle %d in shard %d", 7, 2)  # doctest: +ELLIPSIS
INFO [...] cpoanalyzer: located particle 7 in shard 2
>>> cpoanalyzer.logger.debug("hidden at INFO level")
>>> console.setLevel(logging.WARNING)
>>> cpoanalyzer.logger.info("hidden at WARNING level")
>>> cpoanalyzer.logger.warning("no metadata for particle %d", 7)  # doctest: +ELLIPSIS
WARNING [...] cpoanalyzer: no metadata for particle 7
>>> console.setLevel(logging.INFO)

The console level can be changed temporarily with `cpoanalyzer.io.log_cli_level`, and
`cpoanalyzer.io.logfile_enable` adds a log file for the duration of a `with` block.

>>> with cpoanalyzer.io.log_cli_level(logging.DEBUG, console):
...     console.level == logging.DEBUG
True
>>> console.level == logging.INFO
True

>>> import io
>>> stream = io.StringIO()
>>> with cpoanalyzer.io.logfile_enable(stream):
...     cpoanalyzer.logger.debug("reading shard %s", "weighted_CPO-00001.0002.dat")
...     print(stream.getvalue(), end="")  # doctest: +ELLIPSIS
DEBUG [...] cpoanalyzer: reading shard weighted_CPO-00001.0002.dat
>>> _ = console.setStream(sys.stderr)
>>> console.formatter.color_enabled = True

Modules of the package log with `from cpoanalyzer import logger as _log`. Worker
processes of `cpoanalyzer.run.process_configuration` import this module again and log
through their own console handler. Use `quiet_aliens` to silence the loggers of
dependencies.

"""

import logging
import sys

# NOTE: Do NOT import any cpoanalyzer submodules here to avoid cyclical imports.

_FORMAT = "%(levelname)s [%(asctime)s] %(name)s: %(message)s"


class ConsoleFormatter(logging.Formatter):
    """Log formatter that highlights the level and logger name with colour codes."""

    color_enabled = True
    level_colors = {
        logging.CRITICAL: "1;31",
        logging.ERROR: "31",
        logging.WARNING: "33",
        logging.INFO: "32",
        logging.DEBUG: "34",
    }

    def format(self, record):
        code = self.level_colors.get(record.levelno)
        if self.color_enabled and code is not None:
            self._style._fmt = (
                f"\033[{code}m%(levelname)s [%(asctime)s]\033[m"
                + " \033[1m%(name)s:\033[m %(message)s"
            )
        else:
            self._style._fmt = _FORMAT
        return super().format(record)


LOGGER = logging.getLogger("cpoanalyzer")
# Handlers filter by their own level, so the logger itself passes everything.
LOGGER.setLevel(logging.DEBUG)
CONSOLE_LOGGER = logging.StreamHandler()
CONSOLE_LOGGER.setFormatter(ConsoleFormatter(datefmt="%H:%M"))
CONSOLE_LOGGER.setLevel(logging.INFO)
LOGGER.addHandler(CONSOLE_LOGGER)


def _log_uncaught(exc_type, exc_value, exc_traceback):
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    LOGGER.critical(
        "uncaught exception", exc_info=(exc_type, exc_value, exc_traceback)
    )


sys.excepthook = _log_uncaught

error = LOGGER.error
warning = LOGGER.warning
info = LOGGER.info
debug = LOGGER.debug
exception = LOGGER.exception


def quiet_aliens(root_level=logging.WARNING, level=logging.CRITICAL):
    """Raise the levels of the root logger and of all loggers except `cpoanalyzer`."""
    logging.getLogger().setLevel(root_level)
    for name in list(logging.Logger.manager.loggerDict):
        if name != "cpoanalyzer":
            logging.getLogger(name).setLevel(level)

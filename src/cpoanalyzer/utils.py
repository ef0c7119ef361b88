"""> CPO Analyzer: Miscellaneous utility methods."""

import os
import platform
import subprocess


def import_proc_pool():
    """Import either `ray.util.multiprocessing.Pool` or `multiprocessing.Pool`.

    Import a process `Pool` object either from Ray of from Python's stdlib.
    Both offer the same API, the Ray implementation will be preferred if available.
    Using the `Pool` provided by Ray allows for distributed memory multiprocessing.

    Returns a tuple containing the `Pool` object and a boolean flag which is `True` if
    Ray is available.

    """
    try:
        from ray.util.multiprocessing import Pool

        has_ray = True
    except ImportError:
        from multiprocessing import Pool

        has_ray = False
    return Pool, has_ray


def default_ncpus():
    """Get a safe default number of CPUs available for multiprocessing.

    On Linux platforms that support it, the method `os.sched_getaffinity()` is used.
    On Mac OS, the command `sysctl -n hw.ncpu` is used.
    On Windows, the environment variable `NUMBER_OF_PROCESSORS` is queried.
    One CPU is left free for the main process. If any of these fail, a fallback of 1
    is used.

    """
    try:
        match platform.system():
            case "Linux":
                n_cpus = len(os.sched_getaffinity(0))  # May raise AttributeError.
            case "Darwin":
                # May raise CalledProcessError.
                out = subprocess.run(
                    ["sysctl", "-n", "hw.ncpu"], capture_output=True, check=True
                )
                n_cpus = int(out.stdout.strip())
            case "Windows":
                n_cpus = int(os.environ["NUMBER_OF_PROCESSORS"])
            case _:
                n_cpus = 2
    except (AttributeError, subprocess.CalledProcessError, KeyError, ValueError):
        return 1
    return max(1, n_cpus - 1)

"""> CPO Analyzer: Methods to summarise the elastic anisotropy of particles.

The particle metadata shards optionally contain the decomposition of the elastic tensor
of each particle into parts with distinct lattice symmetries, following
[Browaeys & Chevrot (2004)](https://doi.org/10.1111/j.1365-246X.2004.02415.x).
The squared norm of each part is given for three choices of the symmetry axis (`p1`,
`p2` and `p3`), the sum of the `p1` parts is the total anisotropic norm.

"""

SYMMETRY_CLASSES = ("hexagonal", "tetragonal", "orthorhombic", "monoclinic", "triclinic")
"""Symmetry classes of the elastic tensor decomposition, from highest to lowest."""


def anisotropy_percentages(record):
    """Get percentages of the elastic tensor norm attributed to each symmetry class.

    Expects a `cpoanalyzer.io.ParticleRecord` which contains the elastic tensor
    decomposition, otherwise raises a `ValueError`.

    Returns a dictionary with the keys:
    - "anisotropic" — the total anisotropic norm as a percentage of the full norm
    - "full" — dictionary with the `(p1, p2, p3)` norms of each symmetry class as
      percentages of the full norm
    - "relative" — dictionary with the `(p1, p2, p3)` norms of each symmetry class as
      percentages of the total anisotropic norm

    >>> from cpoanalyzer.io import ParticleRecord
    >>> record = ParticleRecord(
    ...     full_norm_square=100.0,
    ...     isotropic_norm_square=80.0,
    ...     hexagonal_norm_square_p1=10.0,
    ...     hexagonal_norm_square_p2=5.0,
    ...     hexagonal_norm_square_p3=2.0,
    ...     **{
    ...         f"{s}_norm_square_p{i}": 2.5
    ...         for s in SYMMETRY_CLASSES[1:]
    ...         for i in (1, 2, 3)
    ...     },
    ... )
    >>> percentages = anisotropy_percentages(record)
    >>> percentages["anisotropic"]
    20.0
    >>> percentages["relative"]["hexagonal"]
    (50.0, 25.0, 10.0)

    """
    full = record.full_norm_square
    norms = {
        name: tuple(getattr(record, f"{name}_norm_square_p{i}") for i in (1, 2, 3))
        for name in SYMMETRY_CLASSES
    }
    if full is None or any(v is None for p in norms.values() for v in p):
        raise ValueError(
            f"particle {record.id} does not contain the elastic tensor decomposition"
        )
    if full <= 0:
        raise ValueError(f"invalid full norm square {full} for particle {record.id}")

    anisotropic = sum(p[0] for p in norms.values())
    return {
        "anisotropic": anisotropic / full * 100,
        "full": {
            name: tuple(v / full * 100 for v in p) for name, p in norms.items()
        },
        "relative": {
            name: tuple(v / anisotropic * 100 if anisotropic > 0 else 0.0 for v in p)
            for name, p in norms.items()
        },
    }

"""> CPO Analyzer: Functions for Euler angle conversions and equal-area projections.

Orientations are stored as Euler angles in the Bunge (Z-X-Z) convention. The rows of
the corresponding rotation matrix are the crystal a-, b- and c-axis unit vectors in the
sample reference frame.

Pole figures are evaluated on a `LambertGrid`, a square grid of planar coordinates that
is mapped onto one hemisphere of the unit sphere using the inverse of the Lambert
azimuthal equal-area projection, see e.g. eq. 9.1.1 in Mardia & Jupp 2009 (Directional
Statistics) or page 186 of Snyder 1987 (Map Projections— A Working Manual).
The disk of the projection has radius √2, the view direction is along the sample y axis.

"""

from dataclasses import dataclass
from enum import Enum, unique

import numpy as np
from scipy import linalg as la

_DEGENERACY_TOL = 1e-12
_MASK_TOL = 1e-3


@unique
class ThetaClass(Enum):
    """Classification of the second Euler angle, see `classify_theta`."""

    zero = 0
    """θ = 0, the first and third rotation share the same (z) axis."""
    pi = 1
    """θ = π, the first and third rotation axes are antiparallel."""
    generic = 2
    """Any other value, all three angles are uniquely determined."""


@unique
class Hemisphere(Enum):
    """Hemisphere of the unit sphere that is projected onto the pole figure disk."""

    upper = "upper"
    lower = "lower"


def euler_to_rotation(phi1, theta, phi2):
    """Get rotation matrices from Bunge (Z-X-Z) Euler angles given in radians.

    Accepts scalars or arrays of equal shape and returns an array with shape (..., 3, 3).

    >>> bool(np.allclose(euler_to_rotation(0, 0, 0), np.eye(3)))
    True
    >>> euler_to_rotation(np.zeros(4), np.zeros(4), np.zeros(4)).shape
    (4, 3, 3)

    """
    c0, s0 = np.cos(phi1), np.sin(phi1)
    c1, s1 = np.cos(theta), np.sin(theta)
    c2, s2 = np.cos(phi2), np.sin(phi2)
    return np.stack(
        [
            np.stack([c2 * c0 - c1 * s0 * s2, -c2 * s0 - c1 * c0 * s2, -s2 * s1], -1),
            np.stack([s2 * c0 + c1 * s0 * c2, -s2 * s0 + c1 * c0 * c2, c2 * s1], -1),
            np.stack([-s1 * s0, -s1 * c0, c1], -1),
        ],
        -2,
    )


def classify_theta(theta):
    """Classify the second Euler angle into one of the `ThetaClass` members."""
    if abs(theta) < _DEGENERACY_TOL:
        return ThetaClass.zero
    if abs(theta - np.pi) < _DEGENERACY_TOL:
        return ThetaClass.pi
    return ThetaClass.generic


def rotation_to_euler(matrix):
    """Get Bunge (Z-X-Z) Euler angles in radians from a 3x3 rotation matrix.

    Returns a tuple `(phi1, theta, phi2)` with all angles in [0, 2π).
    For the gimbal lock configurations θ = 0 and θ = π only the sum (or difference) of
    `phi1` and `phi2` is defined, so `phi1` is set to zero and `phi2` is taken from the
    first row of the matrix. Invalid input is not rejected, the result is then simply
    not meaningful.

    >>> phi1, theta, phi2 = rotation_to_euler(np.eye(3))
    >>> float(phi1), float(theta), float(phi2)
    (0.0, 0.0, 0.0)

    """
    m = np.asarray(matrix, dtype=np.float64)
    # Well conditioned near θ = 0 and θ = π.
    theta = np.arctan2(np.hypot(m[2, 0], m[2, 1]), m[2, 2])
    match classify_theta(theta):
        case ThetaClass.zero:
            phi1 = 0.0
            phi2 = -phi1 - np.arctan2(m[0, 1], m[0, 0])
        case ThetaClass.pi:
            phi1 = 0.0
            phi2 = phi1 + np.arctan2(m[0, 1], m[0, 0])
        case ThetaClass.generic:
            phi1 = np.arctan2(-m[2, 0], -m[2, 1])
            phi2 = np.arctan2(-m[0, 2], m[1, 2])
    return _wrap_angle(phi1), _wrap_angle(theta), _wrap_angle(phi2)


def _wrap_angle(angle):
    # Wrap to [0, 2π), also mapping -0.0 and values just below 2π onto 0.
    wrapped = angle - 2 * np.pi * np.floor(angle / (2 * np.pi))
    if wrapped >= 2 * np.pi:
        return 0.0
    return wrapped + 0.0


def axis_vectors(euler_angles, axis):
    """Get unit vectors of a crystal axis from Euler angles given in degrees.

    - `euler_angles` — Nx3 array of Bunge Euler angles (φ₁, θ, φ₂) in degrees
    - `axis` — row index of the axis in the orientation matrix, i.e. a `CrystalAxis`

    Returns an Nx3 array.

    """
    _angles = np.deg2rad(np.atleast_2d(euler_angles))
    return euler_to_rotation(_angles[:, 0], _angles[:, 1], _angles[:, 2])[:, int(axis)]


@dataclass(frozen=True)
class LambertGrid:
    """Square sampling grid on one hemisphere of the unit sphere.

    Instances are built by `build_grid`. All arrays have the shape (N, N), rows run from
    +Z at the top to -Z at the bottom and columns from -X to +X.

    """

    x_plane: np.ndarray
    """Horizontal planar coordinates in [-√2, √2]."""
    z_plane: np.ndarray
    """Vertical planar coordinates in [-√2, √2]."""
    x: np.ndarray
    """x components of the unit vectors on the sphere."""
    y: np.ndarray
    """y components of the unit vectors on the sphere."""
    z: np.ndarray
    """z components of the unit vectors on the sphere."""
    valid: np.ndarray
    """Boolean mask, `False` for grid cells outside of the projected disk."""
    hemisphere: Hemisphere
    r_plane: float = np.sqrt(2)
    """Radius of the projected disk."""

    @property
    def shape(self):
        return self.x_plane.shape

    @property
    def points(self):
        """Unit vectors of all grid cells as an (N², 3) array in row-major order."""
        return np.column_stack([self.x.ravel(), self.y.ravel(), self.z.ravel()])

    def masked(self, values):
        """Return a masked array of `values` with the cells outside the disk masked."""
        return np.ma.masked_array(values, mask=~self.valid)


def build_grid(n, hemisphere="upper"):
    """Build an NxN `LambertGrid` for the given hemisphere ("upper" or "lower").

    >>> grid = build_grid(5)
    >>> grid.shape
    (5, 5)
    >>> grid.valid.astype(int)
    array([[0, 0, 1, 0, 0],
           [0, 1, 1, 1, 0],
           [1, 1, 1, 1, 1],
           [0, 1, 1, 1, 0],
           [0, 0, 1, 0, 0]])

    """
    if n < 2:
        raise ValueError(f"grid must have at least 2 points per side, not {n}")
    _hemisphere = Hemisphere(hemisphere)
    r_plane = np.sqrt(2)
    coords = np.linspace(-r_plane, r_plane, n)
    x_plane, z_plane = np.meshgrid(coords, coords[::-1])
    radius_sq = x_plane**2 + z_plane**2
    prefactor = np.sqrt(np.clip(1 - radius_sq / 4, 0, None))

    x = prefactor * x_plane
    match _hemisphere:
        case Hemisphere.upper:
            y = 1 - radius_sq / 2
            z = prefactor * z_plane
        case Hemisphere.lower:
            y = -(1 - radius_sq / 2)
            z = prefactor * -z_plane

    norms = la.norm(np.stack([x, y, z]), axis=0)
    return LambertGrid(
        x_plane=x_plane,
        z_plane=z_plane,
        x=x / norms,
        y=y / norms,
        z=z / norms,
        valid=np.sqrt(radius_sq) < r_plane + _MASK_TOL,
        hemisphere=_hemisphere,
        r_plane=r_plane,
    )

"""> CPO Analyzer: Tests for Euler angle conversions and equal-area grids."""

import numpy as np
import pytest
from numpy import testing as nt
from scipy.spatial.transform import Rotation

from cpoanalyzer import core as _core
from cpoanalyzer import geometry as _geo


class TestRotationConversion:
    """Tests for conversions between Euler angles and rotation matrices."""

    def test_roundtrip_random(self, seed):
        """Test that random rotation matrices are recovered from their Euler angles."""
        matrices = Rotation.random(500, seed).as_matrix()
        for matrix in matrices:
            angles = _geo.rotation_to_euler(matrix)
            assert all(0 <= a < 2 * np.pi for a in angles)
            nt.assert_allclose(
                _geo.euler_to_rotation(*angles), matrix, atol=1e-8, rtol=0
            )

    @pytest.mark.parametrize("phi1,phi2", [(0.3, 0.5), (2.0, 5.5), (0.0, 0.0)])
    def test_roundtrip_theta_zero(self, phi1, phi2):
        """Test the gimbal lock configuration with a zero polar angle."""
        matrix = _geo.euler_to_rotation(phi1, 0.0, phi2)
        assert _geo.classify_theta(0.0) == _geo.ThetaClass.zero
        _phi1, theta, _phi2 = _geo.rotation_to_euler(matrix)
        assert _phi1 == 0.0
        assert theta == 0.0
        # Only the sum of the two angles is defined.
        nt.assert_allclose(_phi2, (phi1 + phi2) % (2 * np.pi), atol=1e-12)
        nt.assert_allclose(
            _geo.euler_to_rotation(_phi1, theta, _phi2), matrix, atol=1e-8, rtol=0
        )

    @pytest.mark.parametrize("phi1,phi2", [(0.3, 0.5), (2.0, 5.5), (1.0, 1.0)])
    def test_roundtrip_theta_pi(self, phi1, phi2):
        """Test the gimbal lock configuration with a polar angle of π."""
        matrix = _geo.euler_to_rotation(phi1, np.pi, phi2)
        assert _geo.classify_theta(np.pi) == _geo.ThetaClass.pi
        _phi1, theta, _phi2 = _geo.rotation_to_euler(matrix)
        assert _phi1 == 0.0
        nt.assert_allclose(theta, np.pi, atol=1e-12)
        # Only the difference of the two angles is defined.
        nt.assert_allclose(_phi2, (phi2 - phi1) % (2 * np.pi), atol=1e-12)
        nt.assert_allclose(
            _geo.euler_to_rotation(_phi1, theta, _phi2), matrix, atol=1e-8, rtol=0
        )

    def test_rows_are_crystal_axes(self):
        """Test that the rows of the rotation matrix are the crystal axes."""
        matrix = _geo.euler_to_rotation(np.pi / 2, np.pi / 2, 0.0)
        nt.assert_allclose(
            matrix, [[0, -1, 0], [0, 0, 1], [-1, 0, 0]], atol=1e-15, rtol=0
        )
        vectors = _geo.axis_vectors([[90.0, 90.0, 0.0]], _core.CrystalAxis.c)
        nt.assert_allclose(vectors, [[-1, 0, 0]], atol=1e-15, rtol=0)

    def test_axis_vectors_unit_length(self, seed):
        """Test that crystal axis vectors from random Euler angles are unit vectors."""
        rng = np.random.default_rng(seed=seed)
        angles = rng.uniform(0, 1, size=(100, 3)) * [360.0, 180.0, 360.0]
        for axis in _core.CrystalAxis:
            vectors = _geo.axis_vectors(angles, axis)
            assert vectors.shape == (100, 3)
            nt.assert_allclose(np.linalg.norm(vectors, axis=1), 1.0, atol=1e-12)

    def test_generic_theta_not_degenerate(self):
        """Test that small but representable polar angles are not treated as zero."""
        assert _geo.classify_theta(1e-6) == _geo.ThetaClass.generic
        assert _geo.classify_theta(np.pi - 1e-6) == _geo.ThetaClass.generic

    @pytest.mark.parametrize("theta", [1e-9, 1.05e-8, 1e-7, np.pi - 1.05e-8])
    def test_roundtrip_theta_near_degenerate(self, theta):
        """Test round trips for polar angles just outside the gimbal lock tolerance."""
        matrix = _geo.euler_to_rotation(0.3, theta, 0.5)
        angles = _geo.rotation_to_euler(matrix)
        nt.assert_allclose(angles[1], theta, rtol=1e-6)
        nt.assert_allclose(
            _geo.euler_to_rotation(*angles), matrix, atol=1e-12, rtol=0
        )


class TestLambertGrid:
    """Tests for the equal-area sampling grid."""

    @pytest.mark.parametrize("hemisphere", ["upper", "lower"])
    def test_unit_vectors(self, hemisphere):
        """Test that all grid points are unit vectors on the requested hemisphere."""
        grid = _geo.build_grid(51, hemisphere)
        assert grid.shape == (51, 51)
        assert grid.hemisphere == _geo.Hemisphere(hemisphere)
        nt.assert_allclose(
            np.sqrt(grid.x**2 + grid.y**2 + grid.z**2), 1.0, atol=1e-12, rtol=0
        )
        if hemisphere == "upper":
            assert np.all(grid.y[grid.valid] >= -1e-12)
        else:
            assert np.all(grid.y[grid.valid] <= 1e-12)

    def test_orientation(self):
        """Test that the top row is +Z and the left column is -X at the disk edge."""
        grid = _geo.build_grid(5)
        # The center of the disk is the view direction.
        nt.assert_allclose(
            [grid.x[2, 2], grid.y[2, 2], grid.z[2, 2]], [0, 1, 0], atol=1e-15
        )
        nt.assert_allclose(
            [grid.x[0, 2], grid.y[0, 2], grid.z[0, 2]], [0, 0, 1], atol=1e-15
        )
        nt.assert_allclose(
            [grid.x[2, 0], grid.y[2, 0], grid.z[2, 0]], [-1, 0, 0], atol=1e-15
        )
        lower = _geo.build_grid(5, _geo.Hemisphere.lower)
        nt.assert_allclose(
            [lower.x[2, 2], lower.y[2, 2], lower.z[2, 2]], [0, -1, 0], atol=1e-15
        )
        nt.assert_allclose(
            [lower.x[0, 2], lower.y[0, 2], lower.z[0, 2]], [0, 0, -1], atol=1e-15
        )

    def test_mask(self):
        """Test that grid cells outside of the projected disk are masked."""
        grid = _geo.build_grid(101)
        radius = np.sqrt(grid.x_plane**2 + grid.z_plane**2)
        assert not np.any(grid.valid[radius >= np.sqrt(2) + 1e-3])
        assert np.all(grid.valid[radius < np.sqrt(2)])
        masked = grid.masked(np.ones(grid.shape))
        assert masked.count() == np.count_nonzero(grid.valid)
        # Corners are outside of the disk.
        assert not grid.valid[0, 0]
        assert not grid.valid[-1, -1]

    def test_points(self):
        """Test that grid points are flattened in row-major order."""
        grid = _geo.build_grid(7)
        points = grid.points
        assert points.shape == (49, 3)
        nt.assert_array_equal(points[8], [grid.x[1, 1], grid.y[1, 1], grid.z[1, 1]])

    def test_invalid_arguments(self):
        """Test that invalid grid sizes and hemispheres are rejected."""
        with pytest.raises(ValueError):
            _geo.build_grid(1)
        with pytest.raises(ValueError):
            _geo.build_grid(11, "sideways")

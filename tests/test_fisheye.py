"""
Tests for the fisheye distortion model.

Test Coverage:
- Forward distortion: equidistant law, polynomial angle bending, axis
- Inverse distortion: fixed-point solve, round trips
- Optimizer vector: ordering, all-or-nothing updates
- Pixel wrappers and projection through the distortion
"""

import logging

import numpy as np
import pytest

from fisheyecam.calibration.camera_types import IntrinsicType
from fisheyecam.calibration.fisheye import (
    EPSILON,
    UNDISTORT_ITERATIONS,
    PinholeFisheye,
)


SCENARIO_COEFFS = [-0.02, 0.01, -0.005, 0.001]


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def zero_fisheye():
    """Fisheye camera without polynomial distortion."""
    return PinholeFisheye(width=1280, height=960, focal=350.0, ppx=640.0, ppy=480.0)


@pytest.fixture
def fisheye():
    """Fisheye camera with small mixed-sign coefficients."""
    return PinholeFisheye(
        width=1280, height=960,
        focal=350.0, ppx=640.0, ppy=480.0,
        distortion_params=SCENARIO_COEFFS,
    )


@pytest.fixture
def ring_points():
    """Points on rings of radius 0..2 in eight directions."""
    radii = np.linspace(0.0, 2.0, 21)
    angles = np.linspace(0.0, 2 * np.pi, 8, endpoint=False)
    rr, aa = np.meshgrid(radii, angles)
    return np.stack([rr.ravel() * np.cos(aa.ravel()), rr.ravel() * np.sin(aa.ravel())], axis=1)


def theta_distorted(theta, coeffs):
    k1, k2, k3, k4 = coeffs
    return theta + k1 * theta**3 + k2 * theta**5 + k3 * theta**7 + k4 * theta**9


# =============================================================================
# Test Forward Distortion
# =============================================================================

class TestAddDistortion:
    """Tests for add_disto."""

    def test_origin_is_fixed(self, fisheye):
        """Test the optical axis maps exactly to itself."""
        assert np.array_equal(fisheye.add_disto(np.array([0.0, 0.0])), [0.0, 0.0])

    def test_zero_coefficients_give_equidistant_mapping(self, zero_fisheye):
        """Test k=0 reduces to p * atan(r) / r, not the identity."""
        p = np.array([0.3, 0.4])

        distorted = zero_fisheye.add_disto(p)

        assert np.allclose(distorted, p * np.arctan(0.5) / 0.5, atol=1e-12)
        assert not np.allclose(distorted, p)

    def test_scenario_point(self, fisheye):
        """Test the documented scenario (r = 0.5)."""
        p = np.array([0.3, 0.4])
        theta = np.arctan(0.5)
        expected = p * theta_distorted(theta, SCENARIO_COEFFS) / 0.5

        distorted = fisheye.add_disto(p)

        assert np.isclose(theta, 0.4636, atol=1e-4)
        assert np.allclose(distorted, expected, atol=1e-12)
        assert np.allclose(distorted, [0.27711, 0.36948], atol=1e-4)

    def test_direction_preserved(self, fisheye):
        """Test distortion only scales the radius."""
        p = np.array([-0.7, 0.2])

        distorted = fisheye.add_disto(p)

        cross = p[0] * distorted[1] - p[1] * distorted[0]
        assert np.isclose(cross, 0.0, atol=1e-12)
        assert np.dot(p, distorted) > 0

    def test_inside_epsilon_unchanged(self, fisheye):
        """Test points within EPSILON of the axis are returned as is."""
        p = np.array([EPSILON / 2, 0.0])

        assert np.array_equal(fisheye.add_disto(p), p)

    def test_batch_shapes(self, fisheye, ring_points):
        """Test single points and batches keep their shape."""
        assert fisheye.add_disto([0.1, 0.2]).shape == (2,)
        assert fisheye.add_disto(ring_points).shape == ring_points.shape
        assert fisheye.add_disto([[0.1, 0.2]]).shape == (1, 2)

    def test_batch_matches_single(self, fisheye, ring_points):
        """Test vectorized result equals per-point result."""
        batch = fisheye.add_disto(ring_points)
        single = np.array([fisheye.add_disto(p) for p in ring_points])

        assert np.allclose(batch, single)

    def test_invalid_shape_raises(self, fisheye):
        """Test non-2D points are rejected."""
        with pytest.raises(ValueError):
            fisheye.add_disto([0.1, 0.2, 0.3])

    def test_matches_opencv_fisheye(self, fisheye):
        """Test the law agrees with cv2.fisheye.distortPoints (identity K)."""
        import cv2

        points = np.array([[0.1, 0.2], [0.3, 0.4], [-0.5, 0.7], [1.2, -0.3]])
        D = np.array(SCENARIO_COEFFS, dtype=np.float64).reshape(4, 1)

        expected = cv2.fisheye.distortPoints(points.reshape(1, -1, 2), np.eye(3), D)

        assert np.allclose(fisheye.add_disto(points), expected.reshape(-1, 2), atol=1e-9)


# =============================================================================
# Test Inverse Distortion
# =============================================================================

class TestRemoveDistortion:
    """Tests for remove_disto."""

    def test_origin_is_fixed(self, fisheye):
        """Test the optical axis maps exactly to itself."""
        assert np.array_equal(fisheye.remove_disto(np.array([0.0, 0.0])), [0.0, 0.0])

    def test_zero_coefficients_give_equidistant_inverse(self, zero_fisheye):
        """Test k=0 reduces to p * tan(r) / r."""
        p = np.array([0.3, 0.4])

        undistorted = zero_fisheye.remove_disto(p)

        assert np.allclose(undistorted, p * np.tan(0.5) / 0.5, atol=1e-12)

    def test_scenario_round_trip(self, fisheye):
        """Test the scenario point comes back within 1e-6."""
        p = np.array([0.3, 0.4])

        recovered = fisheye.remove_disto(fisheye.add_disto(p))

        assert np.allclose(recovered, p, atol=1e-6)

    def test_round_trip_zero_coefficients(self, zero_fisheye, ring_points):
        """Test round trip for radii in [0, 2] without polynomial distortion."""
        recovered = zero_fisheye.remove_disto(zero_fisheye.add_disto(ring_points))

        assert np.allclose(recovered, ring_points, atol=1e-6)

    def test_round_trip_positive_k1(self, ring_points):
        """Test round trip for radii in [0, 2] with a small positive k1."""
        cam = PinholeFisheye(focal=1.0, distortion_params=[0.05, 0.0, 0.0, 0.0])

        recovered = cam.remove_disto(cam.add_disto(ring_points))

        assert np.allclose(recovered, ring_points, atol=1e-6)

    def test_inside_epsilon_unchanged(self, fisheye):
        """Test points within EPSILON of the axis are returned as is."""
        p = np.array([0.0, -EPSILON / 3])

        assert np.array_equal(fisheye.remove_disto(p), p)

    def test_no_warnings_on_axis(self, fisheye):
        """Test the axis branch does not divide by zero."""
        with np.errstate(all="raise"):
            fisheye.remove_disto(np.zeros((3, 2)))
            fisheye.add_disto(np.zeros((3, 2)))

    def test_iteration_count(self):
        """Test the fixed-point solve runs a fixed number of iterations."""
        assert UNDISTORT_ITERATIONS == 10


# =============================================================================
# Test Optimizer Parameters
# =============================================================================

class TestParameters:
    """Tests for the flat parameter vector."""

    def test_defaults(self):
        """Test a default model has seven zero parameters."""
        cam = PinholeFisheye()

        assert cam.get_params() == [0.0] * 7
        assert cam.parameter_count == 7

    def test_param_order(self, fisheye):
        """Test order is [focal, ppx, ppy, k1, k2, k3, k4]."""
        assert fisheye.get_params() == [350.0, 640.0, 480.0] + SCENARIO_COEFFS
        assert fisheye.get_distortion_params() == SCENARIO_COEFFS

    def test_update_applies_all_values(self, zero_fisheye):
        """Test a 7-vector updates pinhole and distortion."""
        params = [400.0, 600.0, 450.0, 0.1, -0.01, 0.002, -0.0003]

        assert zero_fisheye.update_from_params(params) is True

        assert zero_fisheye.focal == 400.0
        assert (zero_fisheye.ppx, zero_fisheye.ppy) == (600.0, 450.0)
        assert zero_fisheye.get_params() == params

    def test_update_accepts_numpy(self, zero_fisheye):
        """Test optimizer output arrays are accepted."""
        params = np.array([400.0, 600.0, 450.0, 0.1, 0.0, 0.0, 0.0])

        assert zero_fisheye.update_from_params(params)
        assert zero_fisheye.get_distortion_params() == [0.1, 0.0, 0.0, 0.0]

    @pytest.mark.parametrize("length", [0, 3, 6, 8])
    def test_update_wrong_length_rejected(self, fisheye, length):
        """Test wrong-length vectors change nothing."""
        before = fisheye.get_params()

        assert fisheye.update_from_params([1.0] * length) is False

        assert fisheye.get_params() == before

    def test_update_from_own_params_is_noop(self, fisheye, ring_points):
        """Test writing back get_params() keeps every output."""
        distorted = fisheye.add_disto(ring_points)
        undistorted = fisheye.remove_disto(ring_points)

        assert fisheye.update_from_params(fisheye.get_params())

        assert np.array_equal(fisheye.add_disto(ring_points), distorted)
        assert np.array_equal(fisheye.remove_disto(ring_points), undistorted)

    def test_rejected_update_logged(self, fisheye, caplog):
        """Test rejections are logged at debug level."""
        caplog.set_level(logging.DEBUG, logger="fisheyecam")

        fisheye.update_from_params([1.0, 2.0])

        assert "expected 7 values, got 2" in caplog.text

    def test_returned_coefficients_are_a_copy(self, fisheye):
        """Test callers cannot alias the stored coefficients."""
        coeffs = fisheye.get_distortion_params()
        coeffs[0] = 99.0

        assert fisheye.get_distortion_params() == SCENARIO_COEFFS

    def test_set_distortion_params(self, zero_fisheye):
        """Test the coefficient setter."""
        zero_fisheye.set_distortion_params([0.1, 0.2, 0.3, 0.4])

        assert zero_fisheye.get_distortion_params() == [0.1, 0.2, 0.3, 0.4]

    def test_set_distortion_params_wrong_length(self, fisheye):
        """Test the setter refuses anything but 4 values."""
        with pytest.raises(ValueError):
            fisheye.set_distortion_params([0.1, 0.2, 0.3])

        assert fisheye.get_distortion_params() == SCENARIO_COEFFS

    def test_constructor_wrong_length(self):
        """Test construction with 5 coefficients fails."""
        with pytest.raises(ValueError):
            PinholeFisheye(distortion_params=[0.0] * 5)

    def test_attribute_assignment_wrong_length(self, fisheye):
        """Test assigning the field directly is checked like the setter."""
        with pytest.raises(ValueError):
            fisheye.distortion_params = np.array([0.1, 0.2, 0.3])

        assert fisheye.get_distortion_params() == SCENARIO_COEFFS
        assert fisheye.add_disto([0.3, 0.4]).shape == (2,)

    def test_attribute_assignment_stores_array(self, zero_fisheye):
        """Test a plain list assigned to the field is stored as float64."""
        zero_fisheye.distortion_params = [1, 0, 0, 0]

        assert zero_fisheye.distortion_params.dtype == np.float64
        assert zero_fisheye.get_distortion_params() == [1.0, 0.0, 0.0, 0.0]


# =============================================================================
# Test Pixel Wrappers
# =============================================================================

class TestPixelWrappers:
    """Tests for pixel-space distortion."""

    def test_principal_point_fixed(self, fisheye):
        """Test the principal point is unaffected by distortion."""
        pp = np.array([640.0, 480.0])

        assert np.allclose(fisheye.get_d_pixel(pp), pp)
        assert np.allclose(fisheye.get_ud_pixel(pp), pp)

    def test_d_pixel_composition(self, fisheye):
        """Test get_d_pixel = cam2ima(add_disto(ima2cam(pixel)))."""
        pixel = np.array([900.0, 700.0])

        expected = fisheye.cam2ima(fisheye.add_disto(fisheye.ima2cam(pixel)))

        assert np.allclose(fisheye.get_d_pixel(pixel), expected)

    def test_ud_pixel_composition(self, fisheye):
        """Test get_ud_pixel = cam2ima(remove_disto(ima2cam(pixel)))."""
        pixel = np.array([100.0, 50.0])

        expected = fisheye.cam2ima(fisheye.remove_disto(fisheye.ima2cam(pixel)))

        assert np.allclose(fisheye.get_ud_pixel(pixel), expected)

    def test_pixel_round_trip(self, fisheye):
        """Test undistorting a distorted pixel gives it back."""
        pixels = np.array([[640.0, 480.0], [900.0, 700.0], [100.0, 900.0], [1200.0, 30.0]])

        recovered = fisheye.get_ud_pixel(fisheye.get_d_pixel(pixels))

        assert np.allclose(recovered, pixels, atol=1e-6 * fisheye.focal)


# =============================================================================
# Test Model Capabilities
# =============================================================================

class TestCapabilities:
    """Tests for type, projection and copying."""

    def test_type_and_distortion_flag(self, fisheye):
        """Test the model reports its discriminant."""
        assert fisheye.get_type() is IntrinsicType.PINHOLE_CAMERA_FISHEYE
        assert fisheye.get_type().type_name == "fisheye4"
        assert fisheye.has_disto()

    def test_project_unproject(self, fisheye):
        """Test unproject(project(X)) is the unit direction of X."""
        point = np.array([0.5, -0.3, 2.0])

        ray = fisheye.unproject(fisheye.project(point))

        assert np.allclose(ray, point / np.linalg.norm(point), atol=1e-6)

    def test_project_applies_distortion(self, fisheye):
        """Test projection uses add_disto after perspective division."""
        point = np.array([0.6, 0.8, 2.0])

        expected = fisheye.cam2ima(fisheye.add_disto([0.3, 0.4]))

        assert np.allclose(fisheye.project(point), expected)

    def test_clone_is_independent(self, fisheye):
        """Test updating a clone leaves the original alone."""
        copy = fisheye.clone()

        copy.update_from_params([1.0] * 7)

        assert fisheye.get_params() == [350.0, 640.0, 480.0] + SCENARIO_COEFFS
        assert copy != fisheye

    def test_equality(self, fisheye):
        """Test models with equal parameters compare equal."""
        other = PinholeFisheye(
            width=1280, height=960,
            focal=350.0, ppx=640.0, ppy=480.0,
            distortion_params=list(SCENARIO_COEFFS),
        )

        assert other == fisheye

    def test_repr(self, fisheye):
        """Test repr lists the coefficients."""
        text = repr(fisheye)

        assert text.startswith("PinholeFisheye(")
        assert "k1=-0.02" in text

"""
Rotation utilities for frame transformations.

All matrices are direction-cosine matrices that map coordinates from a source
frame into a destination frame (``v_dst = R @ v_src``). Elementary rotations
follow the frame-rotation convention: ``axis_rotation(theta, 3)`` expresses a
vector in a frame rotated by +theta about z.

Quaternions are scalar-first ``(q0, q1, q2, q3)`` with ``q0 >= 0``, in the
same convention as the reference toolkit's ``q2m``/``m2q``.
"""

import numpy as np

HALF_PI = 0.5 * np.pi


def axis_rotation(angle: float, axis: int) -> np.ndarray:
    """Frame rotation matrix [angle]_axis (axis 1, 2 or 3)."""
    c, s = np.cos(angle), np.sin(angle)
    if axis == 1:
        return np.array([[1.0, 0.0, 0.0], [0.0, c, s], [0.0, -s, c]])
    if axis == 2:
        return np.array([[c, 0.0, -s], [0.0, 1.0, 0.0], [s, 0.0, c]])
    if axis == 3:
        return np.array([[c, s, 0.0], [-s, c, 0.0], [0.0, 0.0, 1.0]])
    raise ValueError(f"Rotation axis must be 1, 2 or 3, got {axis}")


def axis_rotation_derivative(angle: float, axis: int) -> np.ndarray:
    """Derivative of [angle]_axis with respect to the angle."""
    c, s = np.cos(angle), np.sin(angle)
    if axis == 1:
        return np.array([[0.0, 0.0, 0.0], [0.0, -s, c], [0.0, -c, -s]])
    if axis == 2:
        return np.array([[-s, 0.0, -c], [0.0, 0.0, 0.0], [c, 0.0, -s]])
    if axis == 3:
        return np.array([[-s, c, 0.0], [-c, -s, 0.0], [0.0, 0.0, 0.0]])
    raise ValueError(f"Rotation axis must be 1, 2 or 3, got {axis}")


def euler_313(phi: float, delta: float, w: float,
              phi_dot: float = 0.0, delta_dot: float = 0.0,
              w_dot: float = 0.0):
    """
    Rotation ``[w]_3 [delta]_1 [phi]_3`` and its time derivative.

    Parameters
    ----------
    phi, delta, w : float
        Euler angles [rad]
    phi_dot, delta_dot, w_dot : float, optional
        Angle rates [rad/s]

    Returns
    -------
    rotation : np.ndarray
        3x3 matrix
    rotation_rate : np.ndarray
        3x3 time derivative of ``rotation``
    """
    r_w = axis_rotation(w, 3)
    r_d = axis_rotation(delta, 1)
    r_p = axis_rotation(phi, 3)
    rotation = r_w @ r_d @ r_p
    rate = (w_dot * axis_rotation_derivative(w, 3) @ r_d @ r_p
            + delta_dot * r_w @ axis_rotation_derivative(delta, 1) @ r_p
            + phi_dot * r_w @ r_d @ axis_rotation_derivative(phi, 3))
    return rotation, rate


def pole_rotation(ra: float, dec: float, w: float, ra_dot: float = 0.0,
                  dec_dot: float = 0.0, w_dot: float = 0.0):
    """
    Inertial-to-body rotation from pole right ascension, declination and
    prime meridian angle: ``[w]_3 [pi/2 - dec]_1 [pi/2 + ra]_3``.
    """
    return euler_313(HALF_PI + ra, HALF_PI - dec, w, ra_dot, -dec_dot, w_dot)


def skew(vector) -> np.ndarray:
    """Cross-product matrix, ``skew(a) @ b == cross(a, b)``."""
    x, y, z = vector
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


def angular_velocity(rotation: np.ndarray, rotation_rate: np.ndarray) -> np.ndarray:
    """
    Angular velocity of the destination frame relative to the source frame,
    expressed in the source frame.
    """
    omega_dst = -rotation_rate @ rotation.T
    w_dst = np.array([omega_dst[2, 1], omega_dst[0, 2], omega_dst[1, 0]])
    return rotation.T @ w_dst


def quaternion_to_matrix(q) -> np.ndarray:
    """Rotation matrix of a scalar-first unit quaternion."""
    q = np.asarray(q, dtype=float)
    q = q / np.linalg.norm(q)
    q0, q1, q2, q3 = q
    return np.array([
        [1.0 - 2.0 * (q2 * q2 + q3 * q3), 2.0 * (q1 * q2 - q0 * q3), 2.0 * (q1 * q3 + q0 * q2)],
        [2.0 * (q1 * q2 + q0 * q3), 1.0 - 2.0 * (q1 * q1 + q3 * q3), 2.0 * (q2 * q3 - q0 * q1)],
        [2.0 * (q1 * q3 - q0 * q2), 2.0 * (q2 * q3 + q0 * q1), 1.0 - 2.0 * (q1 * q1 + q2 * q2)],
    ])


def matrix_to_quaternion(rotation) -> np.ndarray:
    """
    Scalar-first unit quaternion of a rotation matrix, with ``q0 >= 0``.

    Uses the largest of the four squared components to avoid cancellation.
    """
    r = np.asarray(rotation, dtype=float)
    trace = r[0, 0] + r[1, 1] + r[2, 2]
    squares = np.array([
        1.0 + trace,
        1.0 + r[0, 0] - r[1, 1] - r[2, 2],
        1.0 - r[0, 0] + r[1, 1] - r[2, 2],
        1.0 - r[0, 0] - r[1, 1] + r[2, 2],
    ])
    k = int(np.argmax(squares))
    s = 0.5 * np.sqrt(squares[k])
    f = 0.25 / s
    if k == 0:
        q = [s, (r[2, 1] - r[1, 2]) * f, (r[0, 2] - r[2, 0]) * f, (r[1, 0] - r[0, 1]) * f]
    elif k == 1:
        q = [(r[2, 1] - r[1, 2]) * f, s, (r[0, 1] + r[1, 0]) * f, (r[0, 2] + r[2, 0]) * f]
    elif k == 2:
        q = [(r[0, 2] - r[2, 0]) * f, (r[0, 1] + r[1, 0]) * f, s, (r[1, 2] + r[2, 1]) * f]
    else:
        q = [(r[1, 0] - r[0, 1]) * f, (r[0, 2] + r[2, 0]) * f, (r[1, 2] + r[2, 1]) * f, s]
    q = np.array(q)
    if q[0] < 0:
        q = -q
    return q / np.linalg.norm(q)


def rotate_about_axis(vector, axis, angle: float) -> np.ndarray:
    """Rotate a vector by ``angle`` about ``axis`` (right-hand rule)."""
    v = np.asarray(vector, dtype=float)
    k = np.asarray(axis, dtype=float)
    norm = np.linalg.norm(k)
    if norm == 0.0:
        return v.copy()
    k = k / norm
    c, s = np.cos(angle), np.sin(angle)
    return v * c + np.cross(k, v) * s + k * np.dot(k, v) * (1.0 - c)


def is_rotation(matrix, atol: float = 1e-9) -> bool:
    """True if the matrix is orthonormal with determinant +1."""
    m = np.asarray(matrix, dtype=float)
    if m.shape != (3, 3):
        return False
    return (np.allclose(m @ m.T, np.eye(3), atol=atol)
            and abs(np.linalg.det(m) - 1.0) < atol)

# Copyright 2021 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
Rigid bodies immersed in the flow, described by points on their surface.

A body is a sequence of Lagrangian points in its own (local) frame, plus the
same points placed in the inertial frame by its current rigid configuration
`(xc, yc, theta)`. The shape never changes; a `RigidTransform` only moves
the inertial copy.

Closed bodies are ordered counter-clockwise, so that the normals returned by
`Body.normals` point out of the body. Open bodies (e.g. a `Plate`) have no
inside; their normals point to the right of the direction of ordering.

The shapes are generated from polar descriptions where possible, following
`param_circle` and `param_ellipse` below.
"""
import dataclasses
import enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from jax_viscous import errors


class ClosureType(enum.Enum):
  CLOSED = 'closed'
  OPEN = 'open'


def param_ellipse(geometry_param, theta):
  """Defines an ellipse in polar coordinates, centered at the origin.

  Args:
    geometry_param: `[A, B]`, the semi-axes along x and y.
    theta: angles (in radians) at which to calculate the radius.

  Returns:
    Radial distances `r` for each angle in `theta`.
  """
  A = geometry_param[0]
  B = geometry_param[1]
  return A * B / np.sqrt((B * np.cos(theta))**2 + (A * np.sin(theta))**2)


def param_circle(geometry_param, theta):
  """Defines a circle of radius `geometry_param[0]` in polar coordinates."""
  return geometry_param[0] * np.ones_like(theta)


@dataclasses.dataclass
class Body:
  """
  A rigid body described by its surface points.

  Attributes:
    x_body, y_body: coordinates of the points in the body frame.
    closure: whether the points enclose a region.
    x, y: coordinates of the points in the inertial frame.
    configuration: the rigid configuration `(xc, yc, theta)` that maps the
      body frame onto the inertial frame.
  """
  x_body: np.ndarray
  y_body: np.ndarray
  closure: ClosureType = ClosureType.CLOSED
  x: Optional[np.ndarray] = None
  y: Optional[np.ndarray] = None
  configuration: Optional[np.ndarray] = None

  def __post_init__(self):
    self.x_body = np.asarray(self.x_body, dtype=np.float64)
    self.y_body = np.asarray(self.y_body, dtype=np.float64)
    if self.x_body.shape != self.y_body.shape or self.x_body.ndim != 1:
      raise errors.ConfigurationError(
          'body coordinates must be two 1D arrays of the same length, got '
          f'{self.x_body.shape} and {self.y_body.shape}')
    minimum = 3 if self.closure == ClosureType.CLOSED else 2
    if len(self.x_body) < minimum:
      raise errors.ConfigurationError(
          f'a {self.closure.value} body needs at least {minimum} points, got '
          f'{len(self.x_body)}')
    if self.x is None:
      self.x = self.x_body.copy()
    if self.y is None:
      self.y = self.y_body.copy()
    if self.configuration is None:
      self.configuration = np.zeros(3)
    self.configuration = np.asarray(self.configuration, dtype=np.float64)

  @property
  def numpts(self) -> int:
    return len(self.x_body)

  @property
  def is_open(self) -> bool:
    return self.closure == ClosureType.OPEN

  def points(self) -> np.ndarray:
    """The `(2, N)` inertial coordinates."""
    return np.stack([self.x, self.y])

  def _neighbour_chords(self) -> Tuple[np.ndarray, np.ndarray]:
    """Chords between the neighbours of each point."""
    if not self.is_open:
      tx = np.roll(self.x, -1) - np.roll(self.x, 1)
      ty = np.roll(self.y, -1) - np.roll(self.y, 1)
      return 0.5 * tx, 0.5 * ty
    # The end points only see one neighbour and carry half a panel.
    xp = np.concatenate([self.x[:1], self.x, self.x[-1:]])
    yp = np.concatenate([self.y[:1], self.y, self.y[-1:]])
    return 0.5 * (xp[2:] - xp[:-2]), 0.5 * (yp[2:] - yp[:-2])

  def areas(self) -> np.ndarray:
    """The length of surface carried by each point."""
    tx, ty = self._neighbour_chords()
    return np.hypot(tx, ty)

  def normals(self) -> np.ndarray:
    """The `(2, N)` unit normals."""
    tx, ty = self._neighbour_chords()
    length = np.hypot(tx, ty)
    return np.stack([ty / length, -tx / length])


def _npoints(perimeter: float, ds: float, minimum: int = 3) -> int:
  if ds <= 0:
    raise errors.ConfigurationError(f'point spacing must be positive, got {ds}')
  return max(int(round(perimeter / ds)), minimum)


def _polar_body(shape_fn, geometry_param, npoints: int) -> Body:
  theta = 2 * np.pi * np.arange(npoints) / npoints
  r = shape_fn(geometry_param, theta)
  return Body(r * np.cos(theta), r * np.sin(theta))


def Circle(radius: float, ds: float) -> Body:
  """A circle of `radius` centred at the origin, with points `ds` apart."""
  return _polar_body(param_circle, [radius],
                     _npoints(2 * np.pi * radius, ds))


def Ellipse(a: float, b: float, ds: float) -> Body:
  """An ellipse with semi-axes `a` (along x) and `b` (along y)."""
  h = ((a - b) / (a + b))**2
  # Ramanujan's approximation of the perimeter.
  perimeter = np.pi * (a + b) * (1 + 3 * h / (10 + np.sqrt(4 - 3 * h)))
  return _polar_body(param_ellipse, [a, b], _npoints(perimeter, ds))


def Rectangle(a: float, b: float, ds: float) -> Body:
  """
  A rectangle with half side lengths `a` (along x) and `b` (along y).

  The points sit at the midpoints of equal panels on each side.
  """
  na = _npoints(2 * a, ds, minimum=1)
  nb = _npoints(2 * b, ds, minimum=1)
  sa = (np.arange(na) + 0.5) * 2 * a / na
  sb = (np.arange(nb) + 0.5) * 2 * b / nb
  x = np.concatenate([-a + sa, np.full(nb, a), a - sa, np.full(nb, -a)])
  y = np.concatenate([np.full(na, -b), -b + sb, np.full(na, b), b - sb])
  return Body(x, y)


def Plate(length: float, ds: float) -> Body:
  """An open flat plate of `length` along the x axis, centred at the origin."""
  n = _npoints(length, ds, minimum=1)
  x = np.linspace(-length / 2, length / 2, n + 1)
  return Body(x, np.zeros_like(x), closure=ClosureType.OPEN)


def Polygon(x: Sequence[float], y: Sequence[float]) -> Body:
  """A closed body through the given counter-clockwise points."""
  return Body(np.asarray(x), np.asarray(y))


class BodyList(list):
  """
  An ordered list of bodies, whose points are concatenated in order.
  """

  def __init__(self, bodies: Sequence[Body] = ()):
    super().__init__(bodies)

  @property
  def numpts(self) -> int:
    return sum(body.numpts for body in self)

  def range(self, i: int) -> slice:
    """The slice of the concatenated points that belong to body `i`."""
    start = sum(body.numpts for body in self[:i])
    return slice(start, start + self[i].numpts)

  def points(self) -> np.ndarray:
    if not self:
      return np.zeros((2, 0))
    return np.concatenate([body.points() for body in self], axis=1)

  def normals(self) -> np.ndarray:
    if not self:
      return np.zeros((2, 0))
    return np.concatenate([body.normals() for body in self], axis=1)

  def areas(self) -> np.ndarray:
    if not self:
      return np.zeros(0)
    return np.concatenate([body.areas() for body in self])

  def configurations(self) -> np.ndarray:
    """The rigid configurations `(xc, yc, theta)` of all bodies, flattened."""
    if not self:
      return np.zeros(0)
    return np.concatenate([body.configuration for body in self])


def any_open_bodies(bodies: Sequence[Body]) -> bool:
  return any(body.is_open for body in bodies)


@dataclasses.dataclass(frozen=True)
class RigidTransform:
  """
  Places a body in the inertial frame with centre `center` and angle `angle`.

  The transform is absolute: the inertial points are computed from the body
  frame coordinates, so applying two transforms in a row is the same as
  applying the second one alone.
  """
  center: Tuple[float, float]
  angle: float

  def __call__(self, body: Body) -> Body:
    cos, sin = np.cos(self.angle), np.sin(self.angle)
    body.x = self.center[0] + cos * body.x_body - sin * body.y_body
    body.y = self.center[1] + sin * body.x_body + cos * body.y_body
    body.configuration = np.array(
        [self.center[0], self.center[1], self.angle], dtype=np.float64)
    return body


class RigidTransformList(list):
  """
  One `RigidTransform` per body.

  Can be built from a flat configuration vector with three entries
  `(xc, yc, theta)` per body.
  """

  def __init__(self, transforms):
    if isinstance(transforms, np.ndarray) or not all(
        isinstance(transform, RigidTransform) for transform in transforms):
      vector = np.asarray(transforms, dtype=np.float64).reshape(-1)
      if vector.size % 3 != 0:
        raise errors.ConfigurationError(
            'a configuration vector needs three entries per body, got '
            f'{vector.size} entries')
      transforms = [RigidTransform((xc, yc), theta)
                    for xc, yc, theta in vector.reshape(-1, 3)]
    super().__init__(transforms)

  def __call__(self, bodies: List[Body]) -> List[Body]:
    if len(bodies) != len(self):
      raise errors.ConfigurationError(
          f'Inconsistent size of bodies: {len(bodies)} bodies and '
          f'{len(self)} transforms')
    for transform, body in zip(self, bodies):
      transform(body)
    return bodies

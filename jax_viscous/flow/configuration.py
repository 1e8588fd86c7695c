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
The tags that classify a Navier-Stokes system, and its numerical parameters.

A system is classified along three independent axes, fixed at construction:

- whether its surface points stay put (`PointMotionType`);
- whether its freestream is a constant or a kinematic law
  (`FreestreamType`);
- on which side of the body surfaces the flow is computed (`FlowSide`).

The tags select the code paths of the right-hand side and of the operator
builds once per system.
"""
import enum
import numbers
from typing import Tuple

from jax_viscous import errors
from jax_viscous.base import kinematics


class PointMotionType(enum.Enum):
  STATIC_POINTS = 'static'
  MOVING_POINTS = 'moving'


class FreestreamType(enum.Enum):
  STATIC_FREESTREAM = 'static'
  VARIABLE_FREESTREAM = 'variable'


class FlowSide(enum.Enum):
  """
  The side of the body surfaces where the flow is computed.

  `EXTERNAL_INTERNAL_FLOW` solves on both sides with no surface jump; it is
  the only choice for open bodies.
  """
  EXTERNAL_FLOW = 'external'
  INTERNAL_FLOW = 'internal'
  EXTERNAL_INTERNAL_FLOW = 'external/internal'


def motion_type(static_points: bool) -> PointMotionType:
  if static_points:
    return PointMotionType.STATIC_POINTS
  return PointMotionType.MOVING_POINTS


def freestream_type(freestream) -> FreestreamType:
  """Kinematic laws give a variable freestream, anything else a static one."""
  if isinstance(freestream, (kinematics.Kinematics,
                             kinematics.RigidBodyMotion)):
    return FreestreamType.VARIABLE_FREESTREAM
  return FreestreamType.STATIC_FREESTREAM


def static_freestream(freestream) -> Tuple[float, float]:
  """Validates a constant freestream and returns it as a tuple of floats."""
  if len(freestream) != 2 or not all(
      isinstance(value, numbers.Real) for value in freestream):
    raise errors.ConfigurationError(
        f'a static freestream must be two numbers, got {freestream}')
  return (float(freestream[0]), float(freestream[1]))


def setstepsizes(
    Re: float,
    gridRe: float = 2.0,
    cfl: float = 0.5,
    fourier: float = 0.5,
) -> Tuple[float, float]:
  """
  Chooses the grid spacing and time step for a Reynolds number.

  The grid spacing follows from the grid Reynolds number, `dx = gridRe / Re`,
  and the time step is the smaller of the limits set by the CFL number and the
  grid Fourier number.

  Example:
    >>> setstepsizes(100)
    (0.02, 0.01)

  Args:
    Re: the Reynolds number.
    gridRe: the grid Reynolds number.
    cfl: the CFL number.
    fourier: the grid Fourier number.

  Returns:
    `(dx, dt)`.
  """
  if Re <= 0:
    raise errors.ConfigurationError(f'Reynolds number must be positive: {Re}')
  dx = gridRe / Re
  dt = min(fourier * dx, cfl * dx**2 * Re)
  return dx, dt

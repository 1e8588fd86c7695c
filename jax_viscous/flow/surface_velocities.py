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
The freestream and the velocities prescribed on the body surfaces.

The state of the system only carries the part `v = u - U_inf` of the velocity
induced by the vorticity. On the surfaces, the body velocity `U_b` is
prescribed, so that `v` has the value `U_b - U_inf` on the side of the
surface where the flow is computed and zero on the other. These functions
return the jump and the average of `v` across the surfaces, both as `(2, N)`
point data.
"""
from typing import Tuple

import numpy as np

from jax_viscous.flow import configuration

FlowSide = configuration.FlowSide


def freestream(t: float, sys) -> Tuple[float, float]:
  """The freestream velocity of `sys` at time `t`, as a tuple."""
  if sys.freestream_type == configuration.FreestreamType.STATIC_FREESTREAM:
    return sys.U_inf
  state = sys.U_inf(t)
  return (float(state.velocity[0]), float(state.velocity[1]))


def freestream_acceleration(t: float, sys) -> Tuple[float, float]:
  """The rate of change of the freestream velocity at time `t`."""
  if sys.freestream_type == configuration.FreestreamType.STATIC_FREESTREAM:
    return (0.0, 0.0)
  state = sys.U_inf(t)
  return (float(state.acceleration[0]), float(state.acceleration[1]))


def surface_velocity(sys, t: float) -> np.ndarray:
  """The `(2, N)` velocities of the body points in the inertial frame."""
  if not sys.bodies:
    return np.zeros((2, 0))
  return np.concatenate(
      [motion.velocity(body, t)
       for body, motion in zip(sys.bodies, sys.motions)], axis=1)


def relative_surface_velocity(sys, t: float) -> np.ndarray:
  """`U_b - U_inf` at the body points."""
  velocity = surface_velocity(sys, t)
  return velocity - np.asarray(freestream(t, sys))[:, np.newaxis]


def surface_velocity_jump(sys, t: float) -> np.ndarray:
  """
  The jump `v+ - v-` across the surfaces, `+` being the side the normals
  point into.
  """
  relative = relative_surface_velocity(sys, t)
  if sys.flow_side == FlowSide.EXTERNAL_FLOW:
    return relative
  if sys.flow_side == FlowSide.INTERNAL_FLOW:
    return -relative
  return np.zeros_like(relative)


def surface_velocity_average(sys, t: float) -> np.ndarray:
  """
  The average `(v+ + v-) / 2` across the surfaces, or the full relative
  velocity when the flow is computed on both sides.
  """
  relative = relative_surface_velocity(sys, t)
  if sys.flow_side == FlowSide.EXTERNAL_INTERNAL_FLOW:
    return relative
  return 0.5 * relative

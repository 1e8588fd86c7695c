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
"""Forces on the immersed bodies, from the Lagrange multipliers."""
import numpy as np

from jax_viscous.base import time_stepping


def _force(tau, sys, i: int) -> np.ndarray:
  if tau is None:
    raise ValueError('the solution carries no surface forces')
  points = sys.bodies.range(i)
  ds = sys.bodies.areas()[points]
  return np.sum(np.asarray(tau)[:, points] * ds, axis=1)


def force(u, sys, i: int):
  """
  The force `sum_p tau_p ds_p` exerted on body `i` (counted from 0).

  Args:
    u: a `SolutionVector`, or a `Solution` for the whole saved history.
    sys: the system.
    i: the index of the body in `sys.bodies`.

  Returns:
    `(fx, fy)`, floats for a single solution vector and arrays over the saved
    times for a `Solution`.
  """
  if not 0 <= i < len(sys.bodies or ()):
    raise IndexError(f'no body {i} in a system of {len(sys.bodies or ())}')
  if isinstance(u, time_stepping.Solution):
    history = np.stack([_force(time_stepping.constraint(v), sys, i)
                        for v in u.u], axis=1)
    return history[0], history[1]
  fx, fy = _force(time_stepping.constraint(u), sys, i)
  return float(fx), float(fy)

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
The no-slip constraint of rigid bodies, in the form used by the integrator.

With `v = u - U_inf` the velocity induced by the state `w`, no slip reads

  E curl(-L^-1 w) = v_avg - E grad(phi) / dx,

where `E` interpolates the primal edges onto the surface points, `v_avg` is
the average of `v` across the surfaces and `phi` the scalar potential of the
velocity jump. The surface force `tau` enters the vorticity equation through
`-curl(R tau)`, with `R` the regularization onto the primal edges.
"""
import jax.numpy as jnp
import numpy as np

from jax_viscous.base import finite_differences as fd
from jax_viscous.base import grids
from jax_viscous.flow import fields
from jax_viscous.flow import surface_velocities

GridArray = grids.GridArray


def bc_constraint_rhs(sys, t: float) -> jnp.ndarray:
  """The `(2, N)` right-hand side of the no-slip constraint at time `t`."""
  v_avg = surface_velocities.surface_velocity_average(sys, t)
  phi = fields.scalar_potential_field(sys, t)
  if phi is not None:
    dphi = tuple(component / sys.cellsize for component in fd.grad(phi))
    v_avg = v_avg - np.asarray(sys.Ef(dphi))
  return jnp.asarray(v_avg)


def bc_constraint_op(w: GridArray, sys) -> jnp.ndarray:
  """The surface velocity `E curl(-L^-1 w)` induced by the state `w`."""
  return sys.Ef(fd.curl(fields.unscaled_streamfunction(w, sys)))


def ns_op_constraint_force(tau: jnp.ndarray, sys) -> GridArray:
  """The vorticity source `curl(R tau)` of the `(2, N)` surface force."""
  return fd.curl(sys.Rf(tau))


def rigid_body_rhs(x: jnp.ndarray, sys, t: float) -> jnp.ndarray:
  """
  The rate of change of the body configurations, `(dxc/dt, dyc/dt, Omega)`
  for each body, flattened like `x`.
  """
  del x  # the motions are prescribed
  return jnp.asarray(np.concatenate(
      [motion.configuration_rate(t) for motion in sys.motions]))

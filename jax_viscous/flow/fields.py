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
Fields derived from the state of a Navier-Stokes system.

The state `w` is the vorticity times the grid spacing, so that it carries
units of velocity. The streamfunction of the vortical velocity is
`-dx L^-1 w`, and its curl, divided by `dx`, is that velocity.

When the bodies carry a surface velocity jump, the velocity has an extra
potential part `grad(phi)`, whose source is the normal component of the jump
spread onto the primal nodes by the single layer.

The public queries accept either `(u, sys, t)` or a single `Integrator`.
"""
from typing import Optional

import numpy as np

from jax_viscous.base import finite_differences as fd
from jax_viscous.base import grids
from jax_viscous.base import lattice_greens
from jax_viscous.base import time_stepping
from jax_viscous.flow import surface_velocities

GridArray = grids.GridArray
GridArrayVector = grids.GridArrayVector


def _unpack(args):
  if len(args) == 1:
    integrator, = args
    return integrator.u, integrator.p, integrator.t
  if len(args) == 3:
    return args
  raise TypeError(
      f'expected (u, sys, t) or an integrator, got {len(args)} arguments')


def unscaled_streamfunction(w: GridArray, sys) -> GridArray:
  """`-L^-1 w`, on the dual nodes."""
  return -sys.L.solve(w)


def _potential_source(sys, t: float) -> Optional[GridArray]:
  """`R (n . dv)` on the primal nodes, or None without a velocity jump."""
  if sys.slc is None or sys.bodies is None or sys.bodies.numpts == 0:
    return None
  jump = surface_velocities.surface_velocity_jump(sys, t)
  normal_jump = np.sum(sys.bodies.normals() * jump, axis=0)
  return sys.slc(normal_jump)


def scalar_potential_field(sys, t: float) -> Optional[GridArray]:
  """
  `dx**2 L^-1 (R (n . dv))` on the primal nodes, or None when the surfaces
  carry no velocity jump.
  """
  source = _potential_source(sys, t)
  if source is None:
    return None
  return sys.cellsize**2 * sys.L.solve(source)


def velocity_field(
    w: GridArray,
    sys,
    t: float,
    padding: int = 0,
) -> GridArrayVector:
  """
  The full velocity on the primal edges: the curl of the streamfunction,
  plus the potential part, plus the freestream.

  With `padding`, the velocity is evaluated on the array extended by that
  many layers of cells on every side, where the vorticity and the source of
  the potential vanish. The streamfunction is exact on the extended array, so
  only its outermost layer of velocities reads the zero padding.
  """
  L = sys.L
  extend = lambda f: f
  if padding:
    grid = grids.padded_grid(sys.grid, padding)
    L = lattice_greens.plan_laplacian(grid, with_inverse=True)
    extend = lambda f: grids.embed(f, grid, padding)
  u = fd.curl(-L.solve(extend(w)))
  source = _potential_source(sys, t)
  if source is not None:
    phi = sys.cellsize**2 * L.solve(extend(source))
    u = tuple(a + b / sys.cellsize for a, b in zip(u, fd.grad(phi)))
  U = surface_velocities.freestream(t, sys)
  return tuple(component + value for component, value in zip(u, U))


def vorticity(*args) -> GridArray:
  """The vorticity on the dual nodes."""
  u, sys, _ = _unpack(args)
  return time_stepping.state(u) / sys.cellsize


def streamfunction(*args) -> GridArray:
  """The streamfunction on the dual nodes, including the freestream."""
  u, sys, t = _unpack(args)
  psi = sys.cellsize * unscaled_streamfunction(time_stepping.state(u), sys)
  x, y = sys.grid.mesh(grids.DUAL_NODES)
  U, V = surface_velocities.freestream(t, sys)
  return psi + (U * y - V * x)


def velocity(*args) -> GridArrayVector:
  """The velocity `(u, v)` on the primal edges."""
  u, sys, t = _unpack(args)
  return velocity_field(time_stepping.state(u), sys, t)


def scalarpotential(*args) -> GridArray:
  """The scalar potential of the surface velocity jump, on the primal nodes."""
  _, sys, t = _unpack(args)
  phi = scalar_potential_field(sys, t)
  if phi is None:
    return sys.Sc
  return phi


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
Pressure diagnostics.

Taking the divergence of the momentum equation leaves a Poisson equation for
the pressure,

  L p / dx**2 = div(-(u . grad) u - div R(n dv) / (Re dx) - R tau) / dx,

solved with the lattice Green's function. The forcing is the edge field that
`equations.ns_rhs` takes the curl of, minus the constraint forces. The viscous
term of the fluid drops out, while that of the double layer stays whenever
the surfaces carry a velocity jump. In the frame of a variable freestream, the
pressure gradient also balances the acceleration of the freestream, which
adds `-(a_x x + a_y y)`.
"""
from jax_viscous.base import grids
from jax_viscous.base import finite_differences as fd
from jax_viscous.base import time_stepping
from jax_viscous.flow import equations
from jax_viscous.flow import fields
from jax_viscous.flow import surface_velocities

GridArray = grids.GridArray
GridArrayVector = grids.GridArrayVector


def convective_derivative(*args) -> GridArrayVector:
  """`(u . grad) u` on the primal edges, from `(u, sys, t)` or an integrator."""
  u, sys, t = fields._unpack(args)
  return equations.convective_term(time_stepping.state(u), sys, t)


def pressure(*args) -> GridArray:
  """The pressure on the primal nodes, from `(u, sys, t)` or an integrator."""
  u, sys, t = fields._unpack(args)
  source = equations.edge_forcing(time_stepping.state(u), sys, t)
  tau = time_stepping.constraint(u)
  if tau is not None and sys.Rf is not None:
    source = tuple(a - b for a, b in zip(source, sys.Rf(tau)))
  p = sys.cellsize * sys.L.solve(fd.divergence(source))
  ax, ay = surface_velocities.freestream_acceleration(t, sys)
  if ax or ay:
    x, y = sys.grid.mesh(grids.PRIMAL_NODES)
    p = p - (ax * x + ay * y)
  return p

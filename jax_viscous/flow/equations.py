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
The explicit right-hand side of the vorticity equation.

The state `w` is the vorticity times the grid spacing, and `ns_rhs` returns
its rate of change without the viscous term `L w / (Re dx**2)`, which the
integrator treats exactly. The terms are first accumulated as a force per unit
mass on the primal edges, whose curl is the vorticity source:

1.  **Convective term**: `-(u . grad) u`, with `u` the full velocity,
    including the freestream.
2.  **Double layer**: `-div R(n dv) / (Re dx)`, the viscous stress carried
    by the velocity jump `dv` across the body surfaces. Absent when there are
    no bodies, or when the flow is computed on both sides of the surfaces.

The curl of the accumulated edge field is then augmented by the pulses,
`dx * pulse(t)` each.
"""
import jax

from jax_viscous.base import finite_differences as fd
from jax_viscous.base import grids
from jax_viscous.base import interpolation
from jax_viscous.flow import configuration
from jax_viscous.flow import fields
from jax_viscous.flow import surface_velocities

GridArray = grids.GridArray
GridArrayVector = grids.GridArrayVector

# Layers of cells added around the array for the convective derivative: the
# zero padding reaches the derivative on up to two layers of edges per side.
CONVECTIVE_PADDING = 2


def unscaled_convective_derivative(u: GridArrayVector) -> GridArrayVector:
  """
  `(u . grad) u` on the primal edges, with differences not divided by `dx`.

  The velocity is spread onto the edge-gradient layout and transposed, so
  that component `[i][j]` holds `u_j` where the gradient holds `d u_i / dx_j`.
  Their componentwise product, collected back onto the edges, sums over `j`.

  Where the velocity is irrotational the result is exactly the difference of
  `(avg(u**2) + avg(v**2)) / 2` on the primal nodes, so its curl vanishes
  there.

  The stencil reaches the zero padding beyond the array on the lowest layer
  of edges and on the two highest ones, where the result is not
  `(u . grad) u` of a velocity extending past the array.
  """
  Vtf = interpolation.transpose(interpolation.grid_interpolate(u, 'tensor'))
  DVf = fd.grad(u)
  VDVf = interpolation.product(Vtf, DVf)
  return interpolation.grid_interpolate(VDVf, 'edges')


def convective_term(w: GridArray, sys, t: float) -> GridArrayVector:
  """
  `(u . grad) u` of the velocity of `w` at time `t`.

  The velocity is evaluated on the array padded by `CONVECTIVE_PADDING`
  layers, and the derivative cropped back, so that none of the edges of
  `sys.grid` is affected by the zero padding.
  """
  Vv = fields.velocity_field(w, sys, t, padding=CONVECTIVE_PADDING)
  return tuple(
      grids.crop(component, sys.grid, CONVECTIVE_PADDING) / sys.cellsize
      for component in unscaled_convective_derivative(Vv))


def double_layer_term(sys, t: float) -> GridArrayVector:
  """`div R(n dv) / (Re dx)`, or None when the surfaces carry no jump."""
  if (sys.dlf is None
      or sys.flow_side == configuration.FlowSide.EXTERNAL_INTERNAL_FLOW
      or sys.numpts == 0):
    return None
  jump = surface_velocities.surface_velocity_jump(sys, t)
  fact = 1 / (sys.cellsize * sys.Re)
  return tuple(component * fact for component in sys.dlf(jump))


def pulse_term(sys, t: float):
  """The sum of `dx * pulse(t)` over the pulses, or None without pulses."""
  if not sys.pulses:
    return None
  terms = [sys.cellsize * pulse(t) for pulse in sys.pulses]
  return sum(terms[1:], terms[0])


_convective_term = jax.named_call(convective_term, name='convective_term')
_double_layer_term = jax.named_call(double_layer_term, name='double_layer')


def edge_forcing(w: GridArray, sys, t: float) -> GridArrayVector:
  """
  The force per unit mass on the primal edges: the convective term and the
  double layer.

  The accumulation starts from the zero edge field `sys.Vn`, so the result
  depends on nothing but `(w, sys, t)`.
  """
  Vn = sys.Vn
  Vn = tuple(a - b for a, b in zip(Vn, _convective_term(w, sys, t)))
  Vf = _double_layer_term(sys, t)
  if Vf is not None:
    Vn = tuple(a - b for a, b in zip(Vn, Vf))
  return Vn


def ns_rhs(w: GridArray, sys, t: float) -> GridArray:
  """The explicit rate of change of the state `w` of `sys` at time `t`."""
  dw = fd.curl(edge_forcing(w, sys, t))
  pulses = pulse_term(sys, t)
  if pulses is not None:
    dw = dw + pulses
  return dw

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
Single and double layer potentials of closed surfaces.

A velocity field that jumps by `dv` across a closed surface has a vorticity
concentrated on that surface. The *double layer* spreads the surface tensor
`n dv` onto the grid and takes its divergence, which is the grid form of the
surface term of the momentum equation. The *single layer* spreads a scalar
surface density, e.g. `n . dv`, the source strength of the scalar potential
that accounts for the normal velocity jump.
"""
import numpy as np

from jax_viscous.base import convolution_functions
from jax_viscous.base import finite_differences
from jax_viscous.base import grids

Array = grids.Array


class DoubleLayer:
  """
  The operator `dv -> div R(n dv)` from `(2, N)` point data to primal edges.

  Component `[i][j]` of the surface tensor, `n_j dv_i`, is spread onto the
  location of component `[i][j]` of the edge gradient, and the divergence of
  the resulting tensor lands on the primal edges.
  """

  def __init__(self, bodies, grid: grids.Grid,
               ddftype=convolution_functions.DDFType.YANG3):
    points = bodies.points()
    self.normals = np.asarray(bodies.normals())
    reg = convolution_functions.Regularize(
        points[0], points[1], grid.cell_size,
        weights=bodies.areas(), ddftype=ddftype)
    self.grid = grid
    self._spread = {
        offset: convolution_functions.RegularizationMatrix.from_regularize(
            reg, grid, offset)
        for offset in (grids.PRIMAL_NODES, grids.DUAL_NODES)}

  def __call__(self, dv: Array) -> grids.GridArrayVector:
    dv = np.asarray(dv)
    tensor = grids.GridArrayTensor(
        [[self._spread[offset](self.normals[j] * dv[i])
          for j, offset in enumerate(row)]
         for i, row in enumerate(grids.EDGE_GRADIENT)])
    return finite_differences.divergence(tensor)


class SingleLayer:
  """The operator `s -> R s` from `(N,)` point data to primal nodes."""

  def __init__(self, bodies, grid: grids.Grid,
               ddftype=convolution_functions.DDFType.YANG3):
    points = bodies.points()
    reg = convolution_functions.Regularize(
        points[0], points[1], grid.cell_size,
        weights=bodies.areas(), ddftype=ddftype)
    self.grid = grid
    self._spread = convolution_functions.RegularizationMatrix.from_regularize(
        reg, grid, grids.PRIMAL_NODES)

  def __call__(self, s: Array) -> grids.GridArray:
    return self._spread(s)

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
Discrete delta functions and the transfer matrices of the immersed boundary.

This module contains the machinery that couples the Eulerian grid to the
Lagrangian points on the body surfaces. The coupling is a discrete
convolution with a smooth, compactly supported approximation of the Dirac
delta function, built as the product of two 1D kernels:

1.  **Interpolation** `E`: the value of a grid field at a surface point,
    `U(X_p) = sum_g u_g phi(x_g - X_p) phi(y_g - Y_p)`.

2.  **Regularization** `R`: the spreading of surface data onto the grid,
    `f_g = sum_p F_p phi(x_g - X_p) phi(y_g - Y_p) ds_p / dx**2`, so that a
    surface density becomes a grid density with the same total.

Both are sparse and are assembled once per body configuration into
`scipy.sparse` matrices. Every 1D kernel sums to one over the grid points for
any point position, in grid-index units.
"""
import dataclasses
import enum
from typing import Sequence, Tuple, Union

import jax.numpy as jnp
import numpy as np
from scipy import sparse

from jax_viscous.base import grids

Array = grids.Array
GridArray = grids.GridArray
GridArrayVector = grids.GridArrayVector
Offset = Tuple[float, ...]


class DDFType(enum.Enum):
  """The discrete delta function kernels."""
  ROMA = 'roma'
  YANG3 = 'yang3'
  WITCHHAT = 'witchhat'
  M4PRIME = 'm4prime'


def ddf_roma(r: Array) -> Array:
  """The three-point kernel of Roma, Peskin and Berger (1999)."""
  r = jnp.abs(r)
  inner = (1 + jnp.sqrt(jnp.maximum(1 - 3 * r**2, 0.0))) / 3
  outer = (5 - 3 * r
           - jnp.sqrt(jnp.maximum(1 - 3 * (1 - r)**2, 0.0))) / 6
  return jnp.where(r <= 0.5, inner, jnp.where(r <= 1.5, outer, 0.0))


def ddf_yang3(r: Array) -> Array:
  """
  The smoothed three-point kernel of Yang et al. (2009).

  It has a continuous first derivative, which reduces the jitter of forces on
  moving bodies.
  """
  r = jnp.abs(r)
  sqrt3 = jnp.sqrt(3.0)
  inner = (17 / 48 + sqrt3 * jnp.pi / 108 + r / 4 - r**2 / 4
           + (1 - 2 * r) / 16
           * jnp.sqrt(jnp.maximum(-12 * r**2 + 12 * r + 1, 0.0))
           - sqrt3 / 12
           * jnp.arcsin(jnp.clip(sqrt3 / 2 * (2 * r - 1), -1.0, 1.0)))
  outer = (55 / 48 - sqrt3 * jnp.pi / 108 - 13 * r / 12 + r**2 / 4
           + (2 * r - 3) / 48
           * jnp.sqrt(jnp.maximum(-12 * r**2 + 36 * r - 23, 0.0))
           + sqrt3 / 36
           * jnp.arcsin(jnp.clip(sqrt3 / 2 * (2 * r - 3), -1.0, 1.0)))
  return jnp.where(r <= 1.0, inner, jnp.where(r <= 2.0, outer, 0.0))


def ddf_witchhat(r: Array) -> Array:
  """The two-point hat function, i.e. bilinear interpolation."""
  return jnp.maximum(1 - jnp.abs(r), 0.0)


def ddf_m4prime(r: Array) -> Array:
  """The M4' kernel of Monaghan, used in vortex particle methods."""
  r = jnp.abs(r)
  inner = 1 - 5 * r**2 / 2 + 3 * r**3 / 2
  outer = 0.5 * (2 - r)**2 * (1 - r)
  return jnp.where(r < 1.0, inner, jnp.where(r < 2.0, outer, 0.0))


DDF_FUNCTIONS = {
    DDFType.ROMA: ddf_roma,
    DDFType.YANG3: ddf_yang3,
    DDFType.WITCHHAT: ddf_witchhat,
    DDFType.M4PRIME: ddf_m4prime,
}

# Half-width of the kernel support, in grid cells.
DDF_SUPPORT = {
    DDFType.ROMA: 1.5,
    DDFType.YANG3: 2.0,
    DDFType.WITCHHAT: 1.0,
    DDFType.M4PRIME: 2.0,
}


@dataclasses.dataclass(frozen=True, eq=False)
class Regularize:
  """
  The set of surface points and the kernel used to couple them to the grid.

  Attributes:
    x, y: the point coordinates.
    dx: the grid spacing.
    weights: the surface length `ds` carried by each point. Regularization
      multiplies by `weights / dx**2`.
    ddftype: the discrete delta function.
    filter: when True, interpolation is also multiplied by the weights. With
      `weights = dx**2` this turns interpolation into the transpose of
      regularization, as used for the filtering operator `E R`.
  """
  x: np.ndarray
  y: np.ndarray
  dx: float
  weights: Union[float, np.ndarray] = 1.0
  ddftype: DDFType = DDFType.YANG3
  filter: bool = False

  @property
  def npoints(self) -> int:
    return len(self.x)

  def point_weights(self) -> np.ndarray:
    return np.broadcast_to(np.asarray(self.weights, dtype=np.float64),
                           (self.npoints,))

  def kernel_entries(
      self,
      grid: grids.Grid,
      offset: Offset,
  ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    The nonzero kernel values `phi(x_g - X_p) phi(y_g - Y_p)`.

    Args:
      grid: the grid.
      offset: the location of the grid data within a cell.

    Returns:
      `(grid_index, point_index, value)` arrays, with the grid index of the
      flattened (C-ordered) grid array.
    """
    kernel = DDF_FUNCTIONS[self.ddftype]
    half_width = int(np.ceil(DDF_SUPPORT[self.ddftype]))
    stencil = np.arange(-half_width, half_width + 2)
    points = (np.asarray(self.x, np.float64), np.asarray(self.y, np.float64))

    indices, values = [], []
    for axis, coordinate in enumerate(points):
      lower = grid.domain[axis][0]
      # Position of each point in grid-index units of this location.
      xi = (coordinate - lower) / grid.step[axis] - offset[axis]
      index = np.floor(xi).astype(int)[:, np.newaxis] + stencil
      value = np.asarray(kernel(jnp.asarray(index - xi[:, np.newaxis])))
      value = np.where((index >= 0) & (index < grid.shape[axis]), value, 0.0)
      indices.append(index)
      values.append(value)

    ix, iy = indices
    value = values[0][:, :, np.newaxis] * values[1][:, np.newaxis, :]
    grid_index = (np.clip(ix, 0, grid.shape[0] - 1)[:, :, np.newaxis]
                  * grid.shape[1]
                  + np.clip(iy, 0, grid.shape[1] - 1)[:, np.newaxis, :])
    point_index = np.broadcast_to(
        np.arange(self.npoints)[:, np.newaxis, np.newaxis], value.shape)
    nonzero = value != 0.0
    return grid_index[nonzero], point_index[nonzero], value[nonzero]


def _is_vector_location(locations) -> bool:
  return isinstance(locations[0], (tuple, list))


def _scalar_regularization(reg, grid, offset):
  rows, cols, values = reg.kernel_entries(grid, offset)
  values = values * reg.point_weights()[cols] / reg.dx**2
  return sparse.csr_matrix((values, (rows, cols)),
                           shape=(int(np.prod(grid.shape)), reg.npoints))


def _scalar_interpolation(reg, grid, offset):
  rows, cols, values = reg.kernel_entries(grid, offset)
  if reg.filter:
    values = values * reg.point_weights()[cols]
  return sparse.csr_matrix((values, (cols, rows)),
                           shape=(reg.npoints, int(np.prod(grid.shape))))


@dataclasses.dataclass(frozen=True, eq=False)
class RegularizationMatrix:
  """
  Spreads point data onto grid data at one location or at the primal edges.

  Scalar point data has shape `(N,)`; vector point data has shape `(2, N)`
  and is spread component by component onto the primal edges.

  Attributes:
    matrix: the sparse matrix acting on the flattened point data.
    locations: one offset, or a tuple of offsets (one per component).
    grid: the grid.
    points: `(2, N)` coordinates of the points the matrix was built for.
  """
  matrix: sparse.csr_matrix
  locations: Union[Offset, Tuple[Offset, ...]]
  grid: grids.Grid
  points: np.ndarray

  @classmethod
  def from_regularize(
      cls,
      reg: Regularize,
      grid: grids.Grid,
      locations: Union[Offset, Sequence[Offset]] = grids.PRIMAL_EDGES,
  ) -> 'RegularizationMatrix':
    if _is_vector_location(locations):
      matrix = sparse.block_diag(
          [_scalar_regularization(reg, grid, offset) for offset in locations],
          format='csr')
      locations = tuple(tuple(offset) for offset in locations)
    else:
      matrix = _scalar_regularization(reg, grid, locations)
      locations = tuple(locations)
    points = np.stack([np.asarray(reg.x), np.asarray(reg.y)])
    return cls(matrix, locations, grid, points)

  @property
  def is_vector(self) -> bool:
    return _is_vector_location(self.locations)

  def __call__(self, f: Array) -> Union[GridArray, GridArrayVector]:
    data = jnp.asarray(self.matrix @ np.asarray(f).reshape(-1))
    if not self.is_vector:
      return GridArray(data.reshape(self.grid.shape), self.locations,
                       self.grid)
    data = data.reshape((len(self.locations),) + self.grid.shape)
    return tuple(GridArray(component, offset, self.grid)
                 for component, offset in zip(data, self.locations))


@dataclasses.dataclass(frozen=True, eq=False)
class InterpolationMatrix:
  """
  Interpolates grid data at one location, or at the primal edges, to points.

  Attributes:
    matrix: the sparse matrix acting on the flattened grid data.
    locations: one offset, or a tuple of offsets (one per component).
    grid: the grid.
  """
  matrix: sparse.csr_matrix
  locations: Union[Offset, Tuple[Offset, ...]]
  grid: grids.Grid

  @classmethod
  def from_regularize(
      cls,
      reg: Regularize,
      grid: grids.Grid,
      locations: Union[Offset, Sequence[Offset]] = grids.PRIMAL_EDGES,
  ) -> 'InterpolationMatrix':
    if _is_vector_location(locations):
      matrix = sparse.block_diag(
          [_scalar_interpolation(reg, grid, offset) for offset in locations],
          format='csr')
      locations = tuple(tuple(offset) for offset in locations)
    else:
      matrix = _scalar_interpolation(reg, grid, locations)
      locations = tuple(locations)
    return cls(matrix, locations, grid)

  @property
  def is_vector(self) -> bool:
    return _is_vector_location(self.locations)

  def __call__(self, u: Union[GridArray, Sequence[GridArray]]) -> Array:
    if not self.is_vector:
      if tuple(u.offset) != self.locations:
        raise grids.InconsistentOffsetError(
            f'expected data at {self.locations}, got {u.offset}')
      return jnp.asarray(self.matrix @ np.asarray(u.data).reshape(-1))
    for component, offset in zip(u, self.locations):
      if tuple(component.offset) != offset:
        raise grids.InconsistentOffsetError(
            f'expected data at {offset}, got {component.offset}')
    data = np.concatenate([np.asarray(c.data).reshape(-1) for c in u])
    result = jnp.asarray(self.matrix @ data)
    return result.reshape(len(self.locations), -1)


def filtering_matrix(
    regularization: RegularizationMatrix,
    interpolation: InterpolationMatrix,
) -> sparse.csr_matrix:
  """The product `E R` of an interpolation and a regularization matrix."""
  return (interpolation.matrix @ regularization.matrix).tocsr()

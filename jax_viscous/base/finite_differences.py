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
Discrete differential operators on the staggered vorticity grid.

Every operator here is a plain difference of neighbouring values and is NOT
divided by the grid spacing; callers scale by `1 / dx` (or `1 / dx**2`) where
a physical derivative is needed. This keeps the operators exact mimetic
partners of each other:

- `curl(curl(s))` of dual-node data equals `-laplacian(s)` in the interior.
- `divergence(grad(p))` of primal-node data equals `laplacian(p)`.
- `divergence(curl(s))` vanishes identically.

**Direction of the differences:** a difference along an axis moves the data
half a cell. Data at offset `0.5` along the axis is forward-differenced and
lands on `1.0`; data at offset `1.0` is backward-differenced and lands on
`0.5`. Every staggered location of `grids` is closed under this rule.
"""

import typing
from typing import Sequence, Union

import numpy as np

from jax_viscous.base import boundaries
from jax_viscous.base import grids

# Type aliases for clarity.
GridArray = grids.GridArray
GridArrayVector = grids.GridArrayVector
GridArrayTensor = grids.GridArrayTensor


def stencil_sum(*arrays: GridArray) -> GridArray:
  """
  Sums a collection of GridArrays, averaging their offsets.

  This is the helper used to build every stencil of the module. For example,
  a forward difference `u(i+1) - u(i)` involves two `GridArray`s with offsets
  one cell apart; the sum lands half way between them.

  Args:
    *arrays: A sequence of `GridArray`s to be summed.

  Returns:
    A new `GridArray` representing the sum.
  """
  offset = grids.averaged_offset(*arrays)
  result = sum(array.data for array in arrays)  # type: ignore
  grid = grids.consistent_grid(*arrays)
  return grids.GridArray(result, offset, grid)


def forward_difference(u: GridArray, axis: int) -> GridArray:
  """Computes `u(i+1) - u(i)` along `axis`; the result moves up half a cell."""
  return stencil_sum(boundaries.shift(u, +1, axis), -u)


def backward_difference(u: GridArray, axis: int) -> GridArray:
  """Computes `u(i) - u(i-1)` along `axis`; the result moves down half a cell."""
  return stencil_sum(u, -boundaries.shift(u, -1, axis))


def staggered_difference(u: GridArray, axis: int) -> GridArray:
  """
  Differences `u` along `axis`, in the direction dictated by its offset.

  Args:
    u: a `GridArray` at offset `0.5` or `1.0` along `axis`.
    axis: the axis along which to difference.

  Returns:
    The difference, located at the other of the two offsets.
  """
  offset = u.offset[axis]
  if np.isclose(offset, 0.5):
    return forward_difference(u, axis)
  elif np.isclose(offset, 1.0):
    return backward_difference(u, axis)
  else:
    raise ValueError(f'expected offset values in {{0.5, 1}}, got {offset}')


def laplacian(u: GridArray) -> GridArray:
  """
  The unscaled five-point Laplacian.

  `u(i+1,j) + u(i-1,j) + u(i,j+1) + u(i,j-1) - 4 u(i,j)`, valid at any
  location, with zero values beyond the array.

  Args:
    u: The `GridArray` on which to compute the Laplacian.

  Returns:
    A `GridArray` at the same offset as `u`.
  """
  result = -2 * u.grid.ndim * u.data
  for axis in range(u.grid.ndim):
    result += stencil_sum(
        boundaries.shift(u, -1, axis), boundaries.shift(u, +1, axis)).data
  return grids.GridArray(result, u.offset, u.grid)


@typing.overload
def curl(v: GridArray) -> GridArrayVector:
  ...


@typing.overload
def curl(v: Sequence[GridArray]) -> GridArray:
  ...


def curl(v):
  """
  The two discrete curls of the staggered grid.

  Applied to dual-node data `s`, returns the primal-edge vector
  `(d s / dy, -d s / dx)`: this is the velocity of a streamfunction.

  Applied to a primal-edge vector `(u, v)`, returns the dual-node scalar
  `d v / dx - d u / dy`: the vorticity. The outermost (ghost) layer of the
  result is set to zero so that fields built from it never carry values
  that the zero padding beyond the array would contradict.
  """
  if isinstance(v, grids.GridArray):
    return (staggered_difference(v, axis=1), -staggered_difference(v, axis=0))
  if len(v) != 2:
    raise ValueError(f'Length of `v` is not 2: {len(v)}')
  grid = grids.consistent_grid(*v)
  dv_dx = staggered_difference(v[1], axis=0)
  du_dy = staggered_difference(v[0], axis=1)
  return (dv_dx - du_dy) * grids.interior_mask(grid)


@typing.overload
def grad(v: GridArray) -> GridArrayVector:
  ...


@typing.overload
def grad(v: Sequence[GridArray]) -> GridArrayTensor:
  ...


def grad(v):
  """
  The unscaled gradient of a scalar or of an edge vector field.

  For primal-node data, returns the primal-edge vector of its differences.
  For a primal-edge vector `(u, v)`, returns the edge-gradient tensor with
  component `[i][j]` the difference of component `i` along axis `j`, so the
  diagonal lands on primal nodes and the off-diagonal on dual nodes.
  """
  if isinstance(v, grids.GridArray):
    return tuple(staggered_difference(v, axis) for axis in range(v.grid.ndim))
  return grids.GridArrayTensor(
      [[staggered_difference(u, axis) for axis in range(u.grid.ndim)]
       for u in v])


def divergence(v: Union[Sequence[GridArray], GridArrayTensor]):
  """
  The unscaled divergence of an edge vector field or of an edge-gradient tensor.

  For a primal-edge vector `(u, v)`, returns the primal-node scalar
  `d u / dx + d v / dy`. For a tensor `T`, returns the primal-edge vector with
  component `i` equal to `sum_j d T[i][j] / dx_j`.
  """
  if isinstance(v, np.ndarray) and v.ndim == 2:
    return tuple(divergence(list(row)) for row in v)
  grid = grids.consistent_grid(*v)
  if len(v) != grid.ndim:
    raise ValueError('The length of `v` must be equal to `grid.ndim`.'
                     f'Expected length {grid.ndim}; got {len(v)}.')
  differences = [staggered_difference(u, axis) for axis, u in enumerate(v)]
  return sum(differences[1:], differences[0])

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
Transfers of data between the locations of the staggered grid.

The staggered locations differ by half a cell along some axes, and the only
scheme needed to move between them is the two-point average. Along an axis
where the data is at offset `0.5` the average is taken with the upper
neighbour; where it is at `1.0`, with the lower neighbour. This is the same
direction rule as the differences in `finite_differences`, which keeps the
convective derivative built from the two modules consistent.

The module also provides the tensor algebra the convective derivative needs:
`transpose` and the componentwise `product` of edge-gradient tensors.
"""

from typing import Sequence, Tuple, Union

import numpy as np

from jax_viscous.base import boundaries
from jax_viscous.base import grids

# --- Type Aliases ---
GridArray = grids.GridArray
GridArrayVector = grids.GridArrayVector
GridArrayTensor = grids.GridArrayTensor


def _linear_along_axis(
    c: GridArray,
    offset: float,
    axis: int
) -> GridArray:
  """
  Averages `c` to a new `offset` half a cell away along a single `axis`.

  Args:
    c: The `GridArray` to be interpolated.
    offset: The target offset along the specified `axis`.
    axis: The integer index of the axis to interpolate along.

  Returns:
    A new `GridArray` at the target offset.
  """
  offset_delta = offset - c.offset[axis]
  if np.isclose(offset_delta, 0):
    return c
  if not np.isclose(abs(offset_delta), 0.5):
    raise ValueError(
        f'can only interpolate by half a cell, got {offset_delta} along '
        f'axis {axis}')
  direction = 1 if offset_delta > 0 else -1
  neighbour = boundaries.shift(c, direction, axis)
  data = 0.5 * (c.data + neighbour.data)
  new_offset = tuple(offset if j == axis else o
                     for j, o in enumerate(c.offset))
  return grids.GridArray(data, new_offset, c.grid)


def linear(c: GridArray, offset: Tuple[float, ...]) -> GridArray:
  """
  Interpolates a scalar `GridArray` to `offset`, one axis at a time.

  Args:
    c: The quantity to be interpolated.
    offset: The target offset, e.g. `grids.PRIMAL_NODES`.

  Returns:
    A `GridArray` at `offset`.
  """
  if len(offset) != len(c.offset):
    raise ValueError('`c.offset` and `offset` must have the same length; '
                     f'got {c.offset} and {offset}.')
  interpolated = c
  for axis, target in enumerate(offset):
    interpolated = _linear_along_axis(interpolated, target, axis)
  return interpolated


def edges_to_tensor(v: Sequence[GridArray]) -> GridArrayTensor:
  """
  Spreads a primal-edge vector onto the edge-gradient layout.

  Component `[i][j]` of the result is component `i` of `v` interpolated to the
  location of the `[i][j]` component of an edge gradient.
  """
  return grids.GridArrayTensor(
      [[linear(u, target) for target in row]
       for u, row in zip(v, grids.EDGE_GRADIENT)])


def tensor_to_edges(t: GridArrayTensor) -> GridArrayVector:
  """
  Collects an edge-gradient tensor back onto the primal edges.

  Component `i` of the result is the sum over `j` of component `[i][j]`
  interpolated to the location of edge component `i`.
  """
  result = []
  for row, target in zip(t, grids.PRIMAL_EDGES):
    terms = [linear(component, target) for component in row]
    result.append(sum(terms[1:], terms[0]))
  return tuple(result)


def transpose(t: GridArrayTensor) -> GridArrayTensor:
  """Swaps the components `[i][j]` and `[j][i]`, keeping their data."""
  return grids.GridArrayTensor(np.asarray(t).T)


def product(
    a: GridArrayTensor,
    b: GridArrayTensor,
) -> GridArrayTensor:
  """
  The componentwise product of two tensors at matching locations.
  """
  if a.shape != b.shape:
    raise ValueError(f'tensor shapes do not match: {a.shape} vs {b.shape}')
  return grids.GridArrayTensor(
      [[a[i, j] * b[i, j] for j in range(a.shape[1])]
       for i in range(a.shape[0])])


def grid_interpolate(
    c: Union[GridArray, Sequence[GridArray], GridArrayTensor],
    target: Union[Tuple[float, ...], str],
):
  """
  Interpolates scalars, edge vectors and edge-gradient tensors.

  Args:
    c: the data to move.
    target: for a scalar, the target offset. For an edge vector, `'tensor'`;
      for a tensor, `'edges'`.

  Returns:
    The interpolated data.
  """
  if isinstance(c, grids.GridArray):
    return linear(c, target)
  if target == 'tensor':
    return edges_to_tensor(c)
  if target == 'edges':
    return tensor_to_edges(c)
  raise ValueError(f'unsupported interpolation target: {target}')

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
Treatment of values beyond the edges of the grid arrays.

The flow domain is unbounded: the vorticity is compactly supported inside the
grid and the lattice Green's function takes care of the far field. For the
local finite-difference stencils this means that any value requested from
beyond the array is zero. The outermost layer of the array is a ghost layer
that the time integration never writes into (see
`finite_differences.curl`), so the zero values never meet a live vorticity
value.
"""
import dataclasses
from typing import Tuple

import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from jax_viscous.base import grids

BoundaryConditions = grids.BoundaryConditions
GridArray = grids.GridArray


class BCType:
  """String constants for the supported boundary condition types."""
  UNBOUNDED = 'unbounded'


@register_pytree_node_class
@dataclasses.dataclass(init=False, frozen=False)
class UnboundedBoundaryConditions(BoundaryConditions):
  """
  Boundary conditions of a field that vanishes outside the array.

  Shifting a `GridArray` pads it with zeros on the side the data moves away
  from and trims the same number of entries on the other side, so the result
  keeps the grid shape while its offset moves by the shift.
  """
  types: Tuple[Tuple[str, str], ...]

  def __init__(self, ndim: int = 2):
    object.__setattr__(self, 'types', ((BCType.UNBOUNDED,) * 2,) * ndim)

  def tree_flatten(self):
    return (), (len(self.types),)

  @classmethod
  def tree_unflatten(cls, aux_data, children):
    return cls(*aux_data)

  def shift(
      self,
      u: GridArray,
      offset: int,
      axis: int,
  ) -> GridArray:
    """
    Shifts a `GridArray` by `offset` cells along `axis`.

    `shift(u, +1, axis)[i]` is `u[i + 1]`, with zero beyond the last entry.

    Args:
      u: a `GridArray` object to be shifted.
      offset: a positive or negative integer number of grid cells.
      axis: the axis along which to perform the shift.

    Returns:
      A `GridArray` of the same shape, with its offset moved by `offset`.
    """
    padded = self.pad(u, offset, axis)
    return self._trim(padded, -offset, axis)

  def pad(
      self,
      u: GridArray,
      width: int,
      axis: int,
  ) -> GridArray:
    """
    Pads with `|width|` zeros; negative widths pad the lower side.
    """
    if width < 0:
      padding = (-width, 0)
    else:
      padding = (0, width)
    full_padding = [(0, 0)] * u.grid.ndim
    full_padding[axis] = padding
    # Padding the lower side moves the first entry down by `-width` cells.
    offset = list(u.offset)
    offset[axis] -= padding[0]
    data = jnp.pad(u.data, full_padding, mode='constant', constant_values=0.0)
    return GridArray(data, tuple(offset), u.grid)

  def _trim(
      self,
      u: GridArray,
      width: int,
      axis: int,
  ) -> GridArray:
    """
    Removes `|width|` entries; negative widths trim the lower side.
    """
    if width < 0:
      padding = (-width, 0)
    else:
      padding = (0, width)
    limit = u.data.shape[axis] - padding[1]
    data = jnp.take(u.data, jnp.arange(padding[0], limit), axis=axis)
    offset = list(u.offset)
    offset[axis] += padding[0]
    return GridArray(data, tuple(offset), u.grid)


# The single boundary treatment used by every operator of the package.
UNBOUNDED = UnboundedBoundaryConditions()


def shift(u: GridArray, offset: int, axis: int) -> GridArray:
  """Shifts `u` using the unbounded (zero ghost value) boundary treatment."""
  return UNBOUNDED.shift(u, offset, axis)

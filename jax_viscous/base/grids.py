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
Core data structures for the staggered vorticity grid and the fields on it.

The computational domain is a uniform Cartesian grid of `NX x NY` cells,
padded with one layer of ghost cells on every side. Quantities live at
different locations of a cell, and every `GridArray` carries its location as
an `offset`:

- **dual nodes** `(0.5, 0.5)`: the cell centres. Vorticity and streamfunction.
- **primal nodes** `(1.0, 1.0)`: the upper-right cell corners. Scalar
  potential and pressure.
- **primal edges** `(0.5, 1.0)` and `(1.0, 0.5)`: the u and v components of
  velocity, tangential to the cell faces that separate dual nodes.
- **edge gradient**: a 2x2 tensor of derivatives of edge data, with the
  diagonal components on primal nodes and the off-diagonal components on dual
  nodes.

All arrays share the grid shape. Values outside the array are taken to be
zero (an unbounded domain), see `boundaries.UnboundedBoundaryConditions`.
"""
# This import allows a class to use its own name in type hints before it is fully defined.
from __future__ import annotations

import dataclasses
import math
import numbers
import operator
from typing import Any, Callable, Optional, Sequence, Tuple, Union

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class
import numpy as np

# --- Type Aliases ---
Array = Union[np.ndarray, jax.Array]
PyTree = Any

# --- Standard locations on the staggered grid ---
DUAL_NODES = (0.5, 0.5)
PRIMAL_NODES = (1.0, 1.0)
# (u, v) components of a primal edge field.
PRIMAL_EDGES = ((0.5, 1.0), (1.0, 0.5))
# Component [i][j] holds the derivative of velocity component i along axis j.
EDGE_GRADIENT = ((PRIMAL_NODES, DUAL_NODES),
                 (DUAL_NODES, PRIMAL_NODES))


@register_pytree_node_class
@dataclasses.dataclass
class GridArray(np.lib.mixins.NDArrayOperatorsMixin):
  """
  A data array associated with a specific location (offset) on a grid.

  This class is the fundamental container for data in the simulation. It
  bundles a raw JAX array with the metadata describing where that data
  "lives" on the staggered grid. Registering it as a PyTree and mixing in
  `NDArrayOperatorsMixin` lets us write `w + dt * dw` directly on fields while
  JAX traces the underlying data.

  Attributes:
    data: The raw numerical data as a JAX or NumPy array.
    offset: The location of the data points within a grid cell, e.g.
      `(0.5, 0.5)` for the dual nodes at the cell centre.
    grid: The `Grid` object that this data is defined on.
  """
  data: Array
  offset: Tuple[float, ...]
  grid: Grid

  def tree_flatten(self):
    """The `data` array is the traced child, `offset` and `grid` are static."""
    children = (self.data,)
    aux_data = (self.offset, self.grid)
    return children, aux_data

  @classmethod
  def tree_unflatten(cls, aux_data, children):
    return cls(*children, *aux_data)

  @property
  def dtype(self):
    return self.data.dtype

  @property
  def shape(self) -> Tuple[int, ...]:
    return self.data.shape

  # Types that are allowed in arithmetic operations with this class. JAX
  # tracers are instances of `jax.Array`.
  _HANDLED_TYPES = (numbers.Number, np.ndarray, jax.Array)

  def __array_ufunc__(self, ufunc, method, *inputs, **kwargs):
    """
    Defines how NumPy universal functions (like `+`, `*`, `sin`) operate on
    `GridArray` objects, by dispatching to the `jax.numpy` equivalent.
    """
    for x in inputs:
      if not isinstance(x, self._HANDLED_TYPES + (GridArray,)):
        return NotImplemented
    if method != '__call__':
      return NotImplemented
    try:
      func = getattr(jnp, ufunc.__name__)
    except AttributeError:
      return NotImplemented

    arrays = [x.data if isinstance(x, GridArray) else x for x in inputs]
    result = func(*arrays)

    # An operation on several GridArrays is only meaningful if they share the
    # same location and grid.
    grid_array_inputs = [x for x in inputs if isinstance(x, GridArray)]
    offset = consistent_offset(*grid_array_inputs)
    grid = consistent_grid(*grid_array_inputs)
    if isinstance(result, tuple):
      return tuple(GridArray(r, offset, grid) for r in result)
    else:
      return GridArray(result, offset, grid)


# A tuple of GridArrays represents a vector field, e.g. the (u, v) velocity
# on the primal edges.
GridArrayVector = Tuple[GridArray, ...]


class GridArrayTensor(np.ndarray):
  """
  A NumPy array where each element is a `GridArray`.

  Used for the edge-gradient tensor fields of the convective derivative.
  Subclassing `np.ndarray` gives us `.T` (transpose) and elementwise `*`
  for free; each element keeps its own offset.

  Example usage:
    grad = finite_differences.grad(velocity)
    transposed = grad.T
  """

  def __new__(cls, arrays):
    return np.asarray(arrays, dtype=object).view(cls)


jax.tree_util.register_pytree_node(
    GridArrayTensor,
    lambda tensor: (tensor.ravel().tolist(), tensor.shape),
    lambda shape, arrays: GridArrayTensor(np.asarray(arrays).reshape(shape)),
)


@dataclasses.dataclass(init=False, frozen=False)
class BoundaryConditions:
  """
  Abstract base class for the treatment of values beyond the array edges.

  Finite differences need access to neighbours, including the neighbours of
  the outermost entries. A `BoundaryConditions` object decides what those
  out-of-array values are.

  Attributes:
    types: A tuple of tuples, where `types[i]` is a pair of strings specifying
      the lower and upper boundary condition types for dimension `i`.
  """
  types: Tuple[Tuple[str, str], ...]

  def shift(
      self,
      u: GridArray,
      offset: int,
      axis: int,
  ) -> GridArray:
    """
    Shifts a GridArray by a given integer offset, filling the ghost values.

    Args:
      u: a `GridArray` object to be shifted.
      offset: A positive or negative integer number of grid cells.
      axis: The axis along which to perform the shift.

    Returns:
      A `GridArray` of the same shape, with its `offset` moved by `offset`
      along `axis`.
    """
    raise NotImplementedError(
        'shift() must be implemented in a BoundaryConditions subclass.')

  def pad(
      self,
      u: GridArray,
      width: int,
      axis: int,
  ) -> GridArray:
    """
    Pads a GridArray with `width` ghost cells along an axis. A negative width
    pads the lower side, a positive width the upper side.
    """
    raise NotImplementedError(
        'pad() must be implemented in a BoundaryConditions subclass.')


def averaged_offset(*arrays: GridArray) -> Tuple[float, ...]:
  """
  Returns the element-wise average of the offsets of the given arrays.

  This is the location of the result of a two-point stencil, e.g. the
  difference of a dual-node array and its shifted copy lands on an edge.
  """
  if not arrays: return ()
  offset = np.mean([array.offset for array in arrays], axis=0)
  return tuple(offset.tolist())


# --- Custom Exception Classes ---
class InconsistentOffsetError(Exception):
  """Raised when combining arrays that have different offsets."""


def consistent_offset(*arrays: GridArray) -> Tuple[float, ...]:
  """
  Checks that all input arrays have the same offset and returns that offset.
  """
  if not arrays: return ()
  offsets = {array.offset for array in arrays}
  if len(offsets) != 1:
    raise InconsistentOffsetError(
        f'arrays do not have a unique offset: {offsets}')
  offset, = offsets
  return offset


class InconsistentGridError(Exception):
  """Raised when combining arrays defined on different grids."""


def consistent_grid(*arrays: GridArray) -> Grid:
  """
  Checks that all input arrays are defined on the same grid and returns it.
  """
  if not arrays: return None
  grids = {array.grid for array in arrays}
  if len(grids) != 1:
    raise InconsistentGridError(f'arrays do not have a unique grid: {grids}')
  grid, = grids
  return grid


@dataclasses.dataclass(init=False, frozen=True)
class Grid:
  """
  Describes the size, shape, and physical domain of the computational grid.

  The grid is immutable (`frozen=True`) and hashable, so that it can be used
  as static PyTree metadata of every `GridArray`.

  Attributes:
    shape: A tuple of integers giving the number of grid cells in each
      dimension, ghost cells included.
    step: A tuple of floats giving the physical size of each grid cell.
    domain: A tuple of pairs `((x_min, x_max), (y_min, y_max))` defining the
      physical extent of the array, ghost cells included.
  """
  shape: Tuple[int, ...]
  step: Tuple[float, ...]
  domain: Tuple[Tuple[float, float], ...]

  def __init__(
      self,
      shape: Sequence[int],
      step: Optional[Union[float, Sequence[float]]] = None,
      domain: Optional[Union[float, Sequence[Tuple[float, float]]]] = None,
  ):
    """
    Constructs a grid object. You must provide `shape` and EITHER `step` OR
    `domain`.
    """
    shape = tuple(operator.index(s) for s in shape)
    object.__setattr__(self, 'shape', shape)

    if step is not None and domain is not None:
      raise TypeError('Cannot provide both `step` and `domain` to Grid constructor')
    elif domain is not None:
      if isinstance(domain, (int, float)):
        domain = ((0, domain),) * len(shape)
      else:
        if len(domain) != self.ndim:
          raise ValueError(f'length of domain does not match ndim: {len(domain)} vs {self.ndim}')
        for bounds in domain:
          if len(bounds) != 2:
            raise ValueError(f'domain must be a sequence of (lower, upper) pairs: {domain}')
      domain = tuple((float(lower), float(upper)) for lower, upper in domain)
    else:
      if step is None: step = 1.0
      if isinstance(step, numbers.Number):
        step = (step,) * self.ndim
      elif len(step) != self.ndim:
        raise ValueError(f'length of step does not match ndim: {len(step)} vs {self.ndim}')
      domain = tuple(
          (0.0, float(step_ * size)) for step_, size in zip(step, shape))

    object.__setattr__(self, 'domain', domain)
    # The step size is always re-derived from the final domain and shape.
    step = tuple(
        (upper - lower) / size for (lower, upper), size in zip(domain, shape))
    object.__setattr__(self, 'step', step)

  @property
  def ndim(self) -> int:
    return len(self.shape)

  @property
  def cell_size(self) -> float:
    """The (uniform) grid spacing. Only square cells are supported."""
    if not np.allclose(self.step, self.step[0]):
      raise ValueError(f'grid cells are not square: {self.step}')
    return self.step[0]

  @property
  def origin(self) -> Tuple[int, ...]:
    """
    Indices of the primal node that coincides with the physical origin.

    These need not lie inside the array: a grid covering (1, 3) x (2, 4) has
    its origin far below the first index.
    """
    return tuple(
        int(round(-lower / step - 1.0))
        for (lower, _), step in zip(self.domain, self.step))

  def axes(self, offset: Optional[Sequence[float]] = None) -> Tuple[Array, ...]:
    """
    Returns the 1D coordinate arrays of the grid points at location `offset`.
    """
    if offset is None: offset = DUAL_NODES
    if len(offset) != self.ndim:
      raise ValueError(f'unexpected offset length: {len(offset)} vs {self.ndim}')
    # x_i = x_lower + (i + offset) * dx
    return tuple(lower + (jnp.arange(length) + offset_i) * step
                 for (lower, _), offset_i, length, step in zip(
                     self.domain, offset, self.shape, self.step))

  def mesh(self, offset: Optional[Sequence[float]] = None) -> Tuple[Array, ...]:
    """
    Returns the coordinates of every grid point at location `offset`, as
    `jnp.meshgrid(..., indexing='ij')`.
    """
    axes = self.axes(offset)
    return tuple(jnp.meshgrid(*axes, indexing='ij'))

  def eval_on_mesh(self,
                   fn: Callable[..., Array],
                   offset: Optional[Sequence[float]] = None) -> GridArray:
    """
    Evaluates a function of space `f(x, y)` on the grid points at `offset`.
    """
    if offset is None: offset = DUAL_NODES
    return GridArray(fn(*self.mesh(offset)), offset, self)


def physical_grid(
    xlimits: Tuple[float, float],
    ylimits: Tuple[float, float],
    dx: float,
    nghost: int = 1,
) -> Grid:
  """
  Builds the grid that covers a physical region with cells of size `dx`.

  The number of interior cells along each axis is the smallest integer that
  covers the requested extent, so the upper limits are moved up to the
  nearest whole cell. `nghost` layers of ghost cells are added on every side.

  Args:
    xlimits: `(xmin, xmax)` of the physical region, ghost cells excluded.
    ylimits: `(ymin, ymax)` of the physical region, ghost cells excluded.
    dx: The grid spacing.
    nghost: Number of ghost cell layers.

  Returns:
    A `Grid` whose `domain` includes the ghost cells.
  """
  shape = []
  domain = []
  for lower, upper in (xlimits, ylimits):
    # Guard against ceil() of a ratio that is an integer up to rounding.
    ncells = int(math.ceil((upper - lower) / dx - 1e-8))
    shape.append(ncells + 2 * nghost)
    domain.append((lower - nghost * dx, lower + (ncells + nghost) * dx))
  return Grid(tuple(shape), domain=tuple(domain))


def interior_mask(grid: Grid, nghost: int = 1) -> np.ndarray:
  """Returns a 0/1 mask that removes the ghost layers of a grid-shaped array."""
  mask = np.zeros(grid.shape)
  mask[tuple(slice(nghost, size - nghost) for size in grid.shape)] = 1.0
  return mask


def padded_grid(grid: Grid, width: int) -> Grid:
  """The grid extended by `width` cells on every side, with the same step."""
  domain = tuple((lower - width * step, upper + width * step)
                 for (lower, upper), step in zip(grid.domain, grid.step))
  return Grid(tuple(size + 2 * width for size in grid.shape), domain=domain)


def embed(u: GridArray, grid: Grid, width: int) -> GridArray:
  """
  Places `u` in the middle of the larger `grid`, with zeros in the `width`
  extra layers. `grid` is expected to be `padded_grid(u.grid, width)`.
  """
  data = jnp.pad(u.data, width, mode='constant', constant_values=0.0)
  return GridArray(data, u.offset, grid)


def crop(u: GridArray, grid: Grid, width: int) -> GridArray:
  """The inverse of `embed`: removes `width` layers from every side of `u`."""
  index = tuple(slice(width, size - width) for size in u.data.shape)
  return GridArray(u.data[index], u.offset, grid)


# --- Zero-initialized field constructors ---

def dual_nodes(grid: Grid, dtype=jnp.float64) -> GridArray:
  return GridArray(jnp.zeros(grid.shape, dtype), DUAL_NODES, grid)


def primal_nodes(grid: Grid, dtype=jnp.float64) -> GridArray:
  return GridArray(jnp.zeros(grid.shape, dtype), PRIMAL_NODES, grid)


def primal_edges(grid: Grid, dtype=jnp.float64) -> GridArrayVector:
  return tuple(GridArray(jnp.zeros(grid.shape, dtype), offset, grid)
               for offset in PRIMAL_EDGES)


def edge_gradient(grid: Grid, dtype=jnp.float64) -> GridArrayTensor:
  return GridArrayTensor(
      [[GridArray(jnp.zeros(grid.shape, dtype), offset, grid)
        for offset in row] for row in EDGE_GRADIENT])

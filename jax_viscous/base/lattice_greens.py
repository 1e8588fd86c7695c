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
The lattice Green's function of the unscaled five-point Laplacian.

On an unbounded lattice, the discrete Poisson problem `L u = f` has the
solution `u = G * f`, where `G` is the lattice Green's function

  G(m, n) = 1/(2 pi) int_0^pi (1 - exp(-|n| s) cos(m t)) / sinh(s) dt,
  cosh(s) = 2 - cos(t),

which satisfies `L G = delta` with `G(0, 0) = 0`. The integral is evaluated by
Gauss-Legendre quadrature close to the origin, and replaced by its asymptotic
expansion further away.

Applying `G` (or any other kernel that only depends on the lattice distance)
to a grid array is a linear convolution, done here with zero-padded FFTs so
that the grid array behaves as if it were embedded in an infinite lattice of
zeros.
"""
import dataclasses
import functools
from typing import Optional

import jax.numpy as jnp
import numpy as np

from jax_viscous.base import finite_differences
from jax_viscous.base import grids

Array = grids.Array
GridArray = grids.GridArray

EULER_GAMMA = 0.5772156649015329
# Quadrature is used for |m|, |n| below this radius.
NEAR_FIELD_RADIUS = 30
QUADRATURE_ORDER = 512


def _lgf_quadrature(m: np.ndarray, n: np.ndarray) -> np.ndarray:
  nodes, weights = np.polynomial.legendre.leggauss(QUADRATURE_ORDER)
  theta = 0.5 * np.pi * (nodes + 1.0)
  weights = 0.5 * np.pi * weights
  sigma = np.arccosh(2.0 - np.cos(theta))
  m = np.abs(m)[..., np.newaxis]
  n = np.abs(n)[..., np.newaxis]
  integrand = (1.0 - np.exp(-n * sigma) * np.cos(m * theta)) / np.sinh(sigma)
  return np.sum(integrand * weights, axis=-1) / (2 * np.pi)


def _lgf_asymptotic(m: np.ndarray, n: np.ndarray) -> np.ndarray:
  r2 = m**2 + n**2
  r6 = r2**3
  return ((np.log(r2) / 2 + EULER_GAMMA + 1.5 * np.log(2.0)) / (2 * np.pi)
          - (m**4 - 6 * m**2 * n**2 + n**4) / (24 * np.pi * r6))


@functools.lru_cache(maxsize=None)
def lgf_table(nx: int, ny: int) -> np.ndarray:
  """
  The lattice Green's function `G(m, n)` for `0 <= m < nx`, `0 <= n < ny`.

  Returns:
    A read-only `(nx, ny)` array. Since `G` is even in both indices this
    covers every separation between two points of an `nx` by `ny` grid.
  """
  m, n = np.meshgrid(np.arange(nx, dtype=np.float64),
                     np.arange(ny, dtype=np.float64), indexing='ij')
  table = np.empty((nx, ny))
  near_x = min(nx, NEAR_FIELD_RADIUS)
  near_y = min(ny, NEAR_FIELD_RADIUS)
  far = np.ones((nx, ny), dtype=bool)
  far[:near_x, :near_y] = False
  table[:near_x, :near_y] = _lgf_quadrature(m[:near_x, :near_y],
                                            n[:near_x, :near_y])
  table[far] = _lgf_asymptotic(m[far], n[far])
  table.setflags(write=False)
  return table


def _symmetric_kernel(table: np.ndarray) -> np.ndarray:
  """
  Lays out an even kernel on the `(2 nx, 2 ny)` circular FFT grid.

  Index `k` stands for the separation `k` below `nx` and `2 nx - k` above it;
  the separation `nx` itself never occurs in a linear convolution of two
  `nx`-long arrays and is set to zero.
  """
  nx, ny = table.shape

  def separation(size):
    k = np.arange(2 * size)
    d = np.minimum(k, 2 * size - k)
    return np.minimum(d, size - 1), d < size

  ix, valid_x = separation(nx)
  iy, valid_y = separation(ny)
  kernel = table[np.ix_(ix, iy)]
  return kernel * np.outer(valid_x, valid_y)


@dataclasses.dataclass(frozen=True, eq=False)
class LatticeConvolution:
  """
  Linear convolution of grid arrays with an even lattice kernel.

  Attributes:
    shape: the shape of the arrays the convolution acts on.
    kernel_hat: the real FFT of the kernel laid out on the padded grid.
  """
  shape: tuple
  kernel_hat: Array

  @classmethod
  def from_table(cls, table: np.ndarray) -> 'LatticeConvolution':
    kernel = _symmetric_kernel(np.asarray(table))
    return cls(tuple(table.shape), jnp.fft.rfft2(jnp.asarray(kernel)))

  def __call__(self, data: Array) -> Array:
    nx, ny = self.shape
    padded_shape = (2 * nx, 2 * ny)
    data_hat = jnp.fft.rfft2(data, s=padded_shape)
    result = jnp.fft.irfft2(data_hat * self.kernel_hat, s=padded_shape)
    return result[:nx, :ny]


@functools.lru_cache(maxsize=None)
def lgf_convolution(nx: int, ny: int) -> LatticeConvolution:
  """The convolution with the lattice Green's function, cached per shape."""
  return LatticeConvolution.from_table(lgf_table(nx, ny))


@dataclasses.dataclass(frozen=True, eq=False)
class Laplacian:
  """
  The grid Laplacian `factor * L`, with its inverse on the unbounded lattice.

  `laplacian(u)` applies the five-point stencil and is exact for arrays that
  vanish on their outer layer. `laplacian.solve(f)` is the inverse, computed
  with the lattice Green's function; the solution does not vanish outside the
  array, it decays like `log(r)` for a source with nonzero total.

  Attributes:
    grid: the grid the operator acts on.
    factor: scalar multiplying the unscaled stencil.
    inverse: the lattice Green's function convolution, or None when the
      inverse was not requested.
  """
  grid: grids.Grid
  factor: float = 1.0
  inverse: Optional[LatticeConvolution] = None

  def __call__(self, u: GridArray) -> GridArray:
    return self.factor * finite_differences.laplacian(u)

  def solve(self, f: GridArray) -> GridArray:
    """Returns `u` with `factor * L u = f`, at the location of `f`."""
    if self.inverse is None:
      raise ValueError('this Laplacian was planned without an inverse')
    return GridArray(self.inverse(f.data) / self.factor, f.offset, f.grid)


def plan_laplacian(
    grid: grids.Grid,
    with_inverse: bool = False,
    factor: float = 1.0,
) -> Laplacian:
  """
  Plans the grid Laplacian of `grid`.

  Args:
    grid: the grid.
    with_inverse: also prepare the lattice Green's function solve.
    factor: scalar multiplying the unscaled stencil, e.g. `1 / (Re dx**2)`
      for the viscous term.

  Returns:
    A `Laplacian`.
  """
  inverse = lgf_convolution(*grid.shape) if with_inverse else None
  return Laplacian(grid, float(factor), inverse)

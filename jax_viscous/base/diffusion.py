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
Module for the viscous diffusion of vorticity.

The diffusion term of the vorticity equation is `L w / (Re dx**2)`, with `L`
the unscaled five-point Laplacian. It is treated exactly by the time
integrators through its integrating factor `exp(t L / (Re dx**2))`. On the
unbounded lattice the integrating factor is itself a lattice convolution,
with the separable kernel

  E(m, n) = exp(-4 a) I_m(2 a) I_n(2 a),   a = t / (Re dx**2),

where `I_m` is the modified Bessel function of the first kind. The scaled
function `scipy.special.ive` computes `exp(-2a) I_m(2a)` without overflow.

Two objects are provided:

-   `IntegratingFactor`: the convolution with `E` for one value of `a`.
-   `ViscousOperator`: the term `factor * L` of the right-hand side, which
    hands out integrating factors for any time increment. Plans are cached per
    `a`, because the Runge-Kutta stages only ever use a handful of distinct
    time increments.
"""
import dataclasses
import functools

import numpy as np
from scipy import special

from jax_viscous.base import finite_differences
from jax_viscous.base import grids
from jax_viscous.base import lattice_greens

GridArray = grids.GridArray


def heat_kernel_table(a: float, nx: int, ny: int) -> np.ndarray:
  """The kernel `E(m, n)` of `exp(a L)` for `0 <= m < nx`, `0 <= n < ny`."""
  kx = special.ive(np.arange(nx), 2 * a)
  ky = special.ive(np.arange(ny), 2 * a)
  return np.outer(kx, ky)


@dataclasses.dataclass(frozen=True, eq=False)
class IntegratingFactor:
  """
  The operator `exp(a L)` on the grid arrays of `grid`.

  `a = 0` is the identity and skips the convolution.
  """
  grid: grids.Grid
  a: float
  convolution: lattice_greens.LatticeConvolution

  def __call__(self, u: GridArray) -> GridArray:
    if self.a == 0.0:
      return u
    return GridArray(self.convolution(u.data), u.offset, u.grid)


@functools.lru_cache(maxsize=64)
def plan_intfact(a: float, grid: grids.Grid) -> IntegratingFactor:
  """Plans `exp(a L)`. `a` must be non-negative."""
  if a < 0:
    raise ValueError(f'integrating factor needs a >= 0, got {a}')
  table = heat_kernel_table(a, *grid.shape)
  return IntegratingFactor(
      grid, a, lattice_greens.LatticeConvolution.from_table(table))


@dataclasses.dataclass(frozen=True, eq=False)
class ViscousOperator:
  """
  The linear diffusion term `factor * L` of the vorticity equation.

  Attributes:
    grid: the grid.
    factor: `1 / (Re dx**2)`.
  """
  grid: grids.Grid
  factor: float

  def __call__(self, w: GridArray) -> GridArray:
    return self.factor * finite_differences.laplacian(w)

  def integrating_factor(self, dt: float) -> IntegratingFactor:
    """Returns `exp(dt * factor * L)`."""
    return plan_intfact(float(dt * self.factor), self.grid)


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
Analytic spatial fields, their samples on the grid, and temporal pulses.

These are used to set initial conditions (e.g. a Gaussian vortex) and to
force the flow with localized, time-modulated sources of vorticity.
"""
from typing import Callable, Optional, Sequence, Tuple

import jax.numpy as jnp

from jax_viscous.base import grids

Array = grids.Array


class SpatialField:
  """A function `f(x, y)` of the physical coordinates. Fields can be added."""

  def __init__(self, fn: Callable[[Array, Array], Array]):
    self.fn = fn

  def __call__(self, x: Array, y: Array) -> Array:
    return self.fn(x, y)

  def __add__(self, other: 'SpatialField') -> 'SpatialField':
    return SpatialField(lambda x, y: self(x, y) + other(x, y))


class SpatialGaussian(SpatialField):
  """
  The Gaussian `A / (pi sx sy) exp(-(x-x0)**2/sx**2 - (y-y0)**2/sy**2)`.

  Built as `SpatialGaussian(sigma, x0, y0, A)` for a round Gaussian or
  `SpatialGaussian(sx, sy, x0, y0, A)`. With `deriv=1` or `deriv=2` the field
  is the derivative of the Gaussian along x or y.
  """

  def __init__(self, *args, deriv: int = 0):
    if len(args) == 4:
      sigma, x0, y0, amplitude = args
      sx = sy = sigma
    elif len(args) == 5:
      sx, sy, x0, y0, amplitude = args
    else:
      raise TypeError(
          f'SpatialGaussian expects 4 or 5 positional arguments, got {len(args)}')
    if deriv not in (0, 1, 2):
      raise ValueError(f'deriv must be 0, 1 or 2, got {deriv}')
    self.sigma = (float(sx), float(sy))
    self.center = (float(x0), float(y0))
    self.amplitude = float(amplitude)
    self.deriv = deriv
    super().__init__(self._evaluate)

  def _evaluate(self, x: Array, y: Array) -> Array:
    sx, sy = self.sigma
    x0, y0 = self.center
    value = (self.amplitude / (jnp.pi * sx * sy)
             * jnp.exp(-(x - x0)**2 / sx**2 - (y - y0)**2 / sy**2))
    if self.deriv == 1:
      return -2 * (x - x0) / sx**2 * value
    if self.deriv == 2:
      return -2 * (y - y0) / sy**2 * value
    return value


class GeneratedField:
  """A `SpatialField` sampled on the grid points at `offset`."""

  def __init__(self, field: SpatialField, grid: grids.Grid,
               offset: Tuple[float, ...] = grids.DUAL_NODES):
    self.field = field
    self.data = grid.eval_on_mesh(field, offset)

  def __call__(self) -> grids.GridArray:
    return self.data


class GaussianPulse:
  """The temporal modulation `A exp(-(t - t0)**2 / sigma**2)`."""

  def __init__(self, sigma: float, t0: float, amplitude: float = 1.0):
    self.sigma = sigma
    self.t0 = t0
    self.amplitude = amplitude

  def __call__(self, t: float) -> float:
    return self.amplitude * jnp.exp(-(t - self.t0)**2 / self.sigma**2)


class ModulatedField:
  """
  A spatial field switched on and off in time: `modulation(t) * field`.

  `field` is either a `SpatialField` or a `GeneratedField`. Evaluating a
  modulated generated field at `t` gives its grid samples scaled by the
  modulation.
  """

  def __init__(self, field, modulation: Callable[[float], float]):
    self.field = field
    self.modulation = modulation

  def __call__(self, *args):
    if isinstance(self.field, GeneratedField):
      t, = args
      return self.modulation(t) * self.field()
    x, y, t = args
    return self.modulation(t) * self.field(x, y)


def generate_pulses(
    pulses: Optional[Sequence[ModulatedField]],
    grid: grids.Grid,
) -> Tuple[ModulatedField, ...]:
  """Samples the spatial part of each pulse on the dual nodes of `grid`."""
  if pulses is None:
    return ()
  if isinstance(pulses, ModulatedField):
    pulses = [pulses]
  return tuple(
      ModulatedField(GeneratedField(pulse.field, grid), pulse.modulation)
      for pulse in pulses)

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
Functions for advancing constrained systems forward in time.

The spatially discretized vorticity equation with an immersed boundary is a
system of differential-algebraic equations (DAEs):

  du/dt = L u + r1(u, t) - B1t tau
      0 = B2 u - r2(t)

where `L` is a linear operator treated exactly with its integrating factor
`H(dt) = exp(dt L)`, `r1` the explicit terms, and `tau` a Lagrange
multiplier (the surface force) that enforces the constraint. Bodies that move
add an auxiliary state `x` with `dx/dt = aux_r1(x, t)`, on which the
operators `B1t`, `B2` and `r2` depend through a parameter-update hook.

The main architectural pattern is:

1.  **ODE Definition Class**: `ConstrainedODEFunction` bundles the functions
    that make up the system. Without the constraint pieces it describes a
    plain ODE `du/dt = L u + r1(u, t)`.

2.  **Time-Stepper Factory**: `ifherk_step` takes a `ButcherTableau` (which
    defines the Runge-Kutta method), the ODE definition and a time step `dt`,
    and returns the concrete stepper. It implements the half-explicit
    Runge-Kutta method with integrating factor (IF-HERK) of Liska and
    Colonius: every stage is explicit in `r1`, exact in `L`, and solves for
    the multiplier of the previous stage so that the new stage satisfies the
    constraint.

3.  **Integrator**: `Integrator` holds the current state and time, calls the
    stepper, checks the result and records the solution history.

States are JAX pytrees; the stage arithmetic is done on `tree_math.Vector`
wrappers so that it applies to any state layout.
"""
import dataclasses
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class
import numpy as np
from scipy import linalg
import tree_math

from jax_viscous import errors

logger = logging.getLogger(__name__)

PyTree = Any


class ConstrainedODEFunction:
  """
  A container for the functions defining a constrained system.

  Args:
    r1: explicit part of the state equation, `r1(u, p, t)`.
    L: linear operator of the state equation. It must provide
      `L.integrating_factor(dt)`, the operator `exp(dt L)`.
    r2: right-hand side of the constraint, `r2(p, t)`.
    B1t: constraint force operator, `B1t(tau, p)`, returns a state.
    B2: constraint operator, `B2(u, p)`, returns constraint data.
    aux_r1: right-hand side of the auxiliary state, `aux_r1(x, p, t)`.
    param_update_func: `param_update_func(p, u, t)`, called whenever the
      auxiliary state changes; it updates and returns the parameters `p`.
  """

  def __init__(
      self,
      r1: Callable,
      L: Any,
      r2: Optional[Callable] = None,
      B1t: Optional[Callable] = None,
      B2: Optional[Callable] = None,
      aux_r1: Optional[Callable] = None,
      param_update_func: Optional[Callable] = None,
  ):
    pieces = (r2, B1t, B2)
    if any(piece is not None for piece in pieces) and not all(
        piece is not None for piece in pieces):
      raise errors.ConfigurationError(
          'a constrained system needs all of r2, B1t and B2')
    self.r1 = r1
    self.L = L
    self.r2 = r2
    self.B1t = B1t
    self.B2 = B2
    self.aux_r1 = aux_r1
    self.param_update_func = param_update_func

  @property
  def has_constraints(self) -> bool:
    return self.B2 is not None

  @property
  def has_aux(self) -> bool:
    return self.aux_r1 is not None


@register_pytree_node_class
@dataclasses.dataclass
class SolutionVector:
  """
  The full state of a constrained system.

  Attributes:
    state: the evolving field.
    constraint: the Lagrange multipliers, None for unconstrained systems.
    aux_state: the auxiliary state (body configurations), or None.
  """
  state: PyTree
  constraint: Optional[PyTree] = None
  aux_state: Optional[PyTree] = None

  def tree_flatten(self):
    return (self.state, self.constraint, self.aux_state), None

  @classmethod
  def tree_unflatten(cls, aux_data, children):
    return cls(*children)


def state(u: SolutionVector) -> PyTree:
  return u.state


def constraint(u: SolutionVector) -> PyTree:
  return u.constraint


def aux_state(u: SolutionVector) -> PyTree:
  return u.aux_state


@dataclasses.dataclass
class ButcherTableau:
  """
  The coefficients of an explicit Runge-Kutta scheme.
  See: https://en.wikipedia.org/wiki/Runge%E2%80%93Kutta_methods

  Attributes:
    a: rows `a[i - 1]` of coefficients `a_ij` of stage `i`, `j < i`.
    b: the weights of the final combination.
    c: the time fractions of the stages.
  """
  a: Sequence[Sequence[float]]
  b: Sequence[float]
  c: Sequence[float]

  def __post_init__(self):
    if len(self.a) + 1 != len(self.b) or len(self.b) != len(self.c):
      raise errors.ConfigurationError('inconsistent Butcher tableau')
    for i, row in enumerate(self.a):
      if len(row) != i + 1:
        raise errors.ConfigurationError(
            f'row {i} of the Butcher tableau should have {i + 1} entries')
    # Each stage solves for the multiplier of the previous stage, whose
    # coefficient must not vanish.
    if any(row[-1] == 0 for row in self.rows()):
      raise errors.ConfigurationError(
          'half-explicit Butcher tableau needs nonzero subdiagonal entries')

  def rows(self) -> List[Sequence[float]]:
    """The stage rows followed by the final weights."""
    return [*self.a, self.b]

  def times(self) -> List[float]:
    """The stage time fractions followed by 1 for the final combination."""
    return [*self.c, 1.0]


# Brasey and Hairer (1993), third order.
HEM3 = ButcherTableau(
    a=[[1 / 3], [-1.0, 2.0]],
    b=[0.0, 3 / 4, 1 / 4],
    c=[0.0, 1 / 3, 1.0])

# Liska and Colonius (2016), second order.
LISKA = ButcherTableau(
    a=[[1 / 2], [np.sqrt(3) / 3, (3 - np.sqrt(3)) / 3]],
    b=[(3 + np.sqrt(3)) / 6, -np.sqrt(3) / 3, (3 + np.sqrt(3)) / 6],
    c=[0.0, 1 / 2, 1.0])

FORWARD_EULER = ButcherTableau(a=[], b=[1.0], c=[0.0])


class SchurComplement:
  """
  The dense matrix `S = coeff B2 H B1t` of one stage, LU-factored.

  The matrix is assembled one column at a time by applying the operators to
  the unit vectors of the constraint space.
  """

  def __init__(self, f: ConstrainedODEFunction, p, H, coeff: float,
               shape: Tuple[int, ...]):
    size = int(np.prod(shape))
    logger.debug('assembling %d x %d Schur complement', size, size)
    columns = []
    for k in range(size):
      unit = np.zeros(size)
      unit[k] = 1.0
      column = f.B2(H(f.B1t(jnp.asarray(unit.reshape(shape)), p)), p)
      columns.append(coeff * np.asarray(column).reshape(-1))
    self.shape = shape
    self.matrix = np.stack(columns, axis=1)
    self._lu = linalg.lu_factor(self.matrix)

  def solve(self, rhs: PyTree) -> jnp.ndarray:
    solution = linalg.lu_solve(self._lu, np.asarray(rhs).reshape(-1))
    return jnp.asarray(solution.reshape(self.shape))


def _sum(vectors):
  return sum(vectors[1:], vectors[0])


class IFHERK:
  """
  One step of the half-explicit Runge-Kutta method with integrating factor.

  Stage `i` is

    U_i = H(c_i dt) u0 + dt sum_j a_ij H((c_i - c_j) dt) (r1_j - B1t tau_j),

  where the multiplier `tau_{i-1}` of the previous stage is chosen so that
  `B2 U_i = r2(t_i)`. The final combination uses the weights `b` as a last
  stage with `c = 1`.

  Schur complements are cached per stage coefficient while the parameters do
  not change; the cache is dropped every time the parameter-update hook runs.
  """

  def __init__(self, tableau: ButcherTableau, f: ConstrainedODEFunction,
               dt: float):
    self.tableau = tableau
    self.f = f
    self.dt = dt
    self._schur: Dict[Tuple[float, float], SchurComplement] = {}

  def invalidate(self):
    self._schur.clear()

  def _H(self, fraction: float):
    return self.f.L.integrating_factor(fraction * self.dt)

  def _update_params(self, p, u: SolutionVector, t: float):
    if self.f.param_update_func is None:
      return p
    self.invalidate()
    return self.f.param_update_func(p, u, t)

  def _schur_complement(self, p, coeff, fraction, shape) -> SchurComplement:
    key = (float(coeff), float(fraction))
    if key not in self._schur:
      self._schur[key] = SchurComplement(
          self.f, p, self._H(fraction), coeff, shape)
    return self._schur[key]

  def __call__(self, u0: SolutionVector, p, t0: float
               ) -> Tuple[SolutionVector, Any]:
    """
    Advances `u0` from `t0` to `t0 + dt`.

    Returns:
      The new solution vector and the (possibly updated) parameters.
    """
    f, dt = self.f, self.dt
    rows = self.tableau.rows()
    c = self.tableau.times()
    num_steps = len(rows)

    w0 = u0.state
    x0 = u0.aux_state
    k = [None] * num_steps
    forces = [None] * num_steps
    kx = [None] * num_steps

    k[0] = f.r1(w0, p, t0)
    if f.has_aux:
      kx[0] = tree_math.Vector(f.aux_r1(x0, p, t0))

    tau = u0.constraint
    for i in range(1, num_steps + 1):
      row = rows[i - 1]
      ti = t0 + c[i] * dt
      xi = x0
      if f.has_aux:
        xi = (tree_math.Vector(x0)
              + dt * _sum([row[j] * kx[j] for j in range(i) if row[j]])).tree
        p = self._update_params(p, SolutionVector(w0, tau, xi), ti)

      terms = []
      for j in range(i):
        if not row[j]:
          continue
        H = self._H(c[i] - c[j])
        term = tree_math.Vector(H(k[j]))
        if forces[j] is not None:
          term = term - tree_math.Vector(H(forces[j]))
        terms.append(row[j] * term)
      w = (tree_math.Vector(self._H(c[i])(w0)) + dt * _sum(terms)).tree

      if f.has_constraints:
        coeff = dt * row[i - 1]
        H = self._H(c[i] - c[i - 1])
        residual = (np.asarray(f.B2(w, p)) - np.asarray(f.r2(p, ti)))
        schur = self._schur_complement(p, coeff, c[i] - c[i - 1],
                                       residual.shape)
        tau = schur.solve(residual)
        forces[i - 1] = f.B1t(tau, p)
        w = (tree_math.Vector(w)
             - coeff * tree_math.Vector(H(forces[i - 1]))).tree

      if i < num_steps:
        k[i] = f.r1(w, p, ti)
        if f.has_aux:
          kx[i] = tree_math.Vector(f.aux_r1(xi, p, ti))
      else:
        w_final, x_final = w, xi

    return SolutionVector(w_final, tau, x_final), p


def ifherk_step(
    tableau: ButcherTableau,
    f: ConstrainedODEFunction,
    dt: float,
) -> IFHERK:
  """
  Creates the IF-HERK stepper of `f` for the scheme `tableau` and step `dt`.

  Args:
    tableau: A `ButcherTableau`, e.g. `HEM3` or `LISKA`.
    f: the system.
    dt: the time step.

  Returns:
    An `IFHERK` object; `stepper(u, p, t)` returns the solution vector at
    `t + dt` and the parameters updated along the way.
  """
  return IFHERK(tableau, f, dt)


def _all_finite(tree: PyTree) -> bool:
  return all(bool(jnp.all(jnp.isfinite(leaf)))
             for leaf in jax.tree_util.tree_leaves(tree))


@dataclasses.dataclass
class Solution:
  """The saved history of an integration."""
  t: List[float] = dataclasses.field(default_factory=list)
  u: List[SolutionVector] = dataclasses.field(default_factory=list)

  def __len__(self):
    return len(self.t)

  def append(self, t: float, u: SolutionVector):
    self.t.append(t)
    self.u.append(u)


class Integrator:
  """
  Marches a constrained system in time with a fixed step.

  Attributes:
    u: the current `SolutionVector`.
    t: the current time.
    p: the parameters passed to every function of the system.
    sol: the saved `Solution`, one entry every `save_every` steps.
  """

  def __init__(
      self,
      u0: SolutionVector,
      tspan: Tuple[float, float],
      f: ConstrainedODEFunction,
      p: Any,
      dt: float,
      alg: ButcherTableau = HEM3,
      save_every: int = 1,
      check_finite: bool = True,
  ):
    t0, tf = float(tspan[0]), float(tspan[1])
    if not tf > t0:
      raise errors.ConfigurationError(f'empty time span: {tspan}')
    if dt <= 0:
      raise errors.ConfigurationError(f'time step must be positive, got {dt}')
    if save_every < 1:
      raise errors.ConfigurationError(
          f'save_every must be at least 1, got {save_every}')
    self.tspan = (t0, tf)
    self.f = f
    self.dt = dt
    self.save_every = save_every
    self.check_finite = check_finite
    self.stepper = ifherk_step(alg, f, dt)
    self.nsteps = 0
    self.t = t0
    self.u = u0
    self.p = p
    if f.param_update_func is not None:
      self.p = f.param_update_func(p, u0, t0)
    self.sol = Solution()
    self.sol.append(t0, u0)

  def _advance(self):
    if self.t + self.dt > self.tspan[1] + 1e-8 * self.dt:
      raise errors.ConfigurationError(
          f'cannot step past the end of the time span {self.tspan}')
    u, self.p = self.stepper(self.u, self.p, self.t)
    self.nsteps += 1
    t = self.tspan[0] + self.nsteps * self.dt
    if self.check_finite and not _all_finite((u.state, u.constraint)):
      raise errors.NumericalFailure(f'non-finite solution at t = {t}')
    self.u, self.t = u, t
    logger.debug('step %d, t = %g', self.nsteps, t)
    if self.nsteps % self.save_every == 0:
      self.sol.append(t, u)

  def step(self, duration: Optional[float] = None):
    """Advances one time step, or as many as fit in `duration`."""
    if duration is None:
      self._advance()
      return self
    nsteps = max(int(round(duration / self.dt)), 1)
    for _ in range(nsteps):
      self._advance()
    return self


def init(
    u0: SolutionVector,
    tspan: Tuple[float, float],
    p: Any,
    alg: ButcherTableau = HEM3,
    **kwargs,
) -> Integrator:
  """
  Sets up the integration of a system that provides its own ODE function
  and time step, as `p.f` and `p.dt`.

  Args:
    u0: the initial solution vector.
    tspan: `(t0, tf)`.
    p: the system.
    alg: the Runge-Kutta scheme.
    **kwargs: `save_every` and `check_finite`, see `Integrator`.
  """
  return Integrator(u0, tspan, p.f, p, p.dt, alg=alg, **kwargs)

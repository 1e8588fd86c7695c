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
"""Tests for the constrained IF-HERK integrator on small model problems."""
import dataclasses

import jax.numpy as jnp
import numpy as np
import pytest

from jax_viscous import errors
from jax_viscous.base import time_stepping


@dataclasses.dataclass
class Decay:
  """The linear operator `-rate` on plain arrays, with its exact exponential."""
  rate: float

  def integrating_factor(self, dt):
    factor = float(np.exp(-self.rate * dt))
    return lambda u: factor * u


def _forced_decay(rate=2.0, forcing=1.0):
  # du/dt = -rate u + forcing
  return time_stepping.ConstrainedODEFunction(
      lambda u, p, t: forcing * jnp.ones_like(u), Decay(rate))


def _run(f, u0, tf, dt, alg, p=None):
  integrator = time_stepping.Integrator(
      time_stepping.SolutionVector(u0), (0.0, tf), f, p, dt, alg=alg)
  integrator.step(tf)
  return integrator


class TestButcherTableau:

  def test_inconsistent_sizes(self):
    with pytest.raises(errors.ConfigurationError):
      time_stepping.ButcherTableau(a=[[0.5]], b=[1.0], c=[0.0, 0.5])

  def test_vanishing_subdiagonal(self):
    with pytest.raises(errors.ConfigurationError):
      time_stepping.ButcherTableau(a=[[0.0]], b=[0.5, 0.5], c=[0.0, 0.0])

  @pytest.mark.parametrize('tableau', [
      time_stepping.HEM3, time_stepping.LISKA, time_stepping.FORWARD_EULER])
  def test_weights_sum_to_one(self, tableau):
    assert sum(tableau.b) == pytest.approx(1.0)
    for row, c in zip(tableau.a, tableau.c[1:]):
      assert sum(row) == pytest.approx(c)


class TestUnconstrained:

  def test_pure_linear_is_exact(self):
    f = time_stepping.ConstrainedODEFunction(
        lambda u, p, t: jnp.zeros_like(u), Decay(3.0))
    integrator = _run(f, jnp.ones(3), 1.0, 0.1, time_stepping.HEM3)
    np.testing.assert_allclose(integrator.u.state, np.exp(-3.0), rtol=1e-12)
    assert integrator.t == pytest.approx(1.0)

  @pytest.mark.parametrize('tableau,tolerance', [
      (time_stepping.HEM3, 1e-4),
      (time_stepping.LISKA, 1e-2),
  ])
  def test_forced_decay(self, tableau, tolerance):
    rate, forcing = 2.0, 1.0
    integrator = _run(_forced_decay(rate, forcing), jnp.zeros(1), 1.0, 0.05,
                      tableau)
    exact = forcing / rate * (1 - np.exp(-rate))
    np.testing.assert_allclose(integrator.u.state, exact, rtol=tolerance)

  def test_third_order_convergence(self):
    exact = 0.5 * (1 - np.exp(-2.0))
    errors_by_step = []
    for dt in (0.1, 0.05):
      integrator = _run(_forced_decay(), jnp.zeros(1), 1.0, dt,
                        time_stepping.HEM3)
      errors_by_step.append(abs(float(integrator.u.state[0]) - exact))
    assert errors_by_step[0] / errors_by_step[1] > 6.0

  def test_solution_history(self):
    f = _forced_decay()
    integrator = time_stepping.Integrator(
        time_stepping.SolutionVector(jnp.zeros(1)), (0.0, 1.0), f, None, 0.1,
        save_every=2)
    integrator.step(1.0)
    assert len(integrator.sol) == 6
    np.testing.assert_allclose(integrator.sol.t, [0, 0.2, 0.4, 0.6, 0.8, 1.0])

  def test_refuses_to_pass_end_of_span(self):
    integrator = time_stepping.Integrator(
        time_stepping.SolutionVector(jnp.zeros(1)), (0.0, 0.2),
        _forced_decay(), None, 0.1)
    integrator.step(0.2)
    with pytest.raises(errors.ConfigurationError):
      integrator.step()

  def test_non_finite_state(self):
    f = time_stepping.ConstrainedODEFunction(
        lambda u, p, t: jnp.full_like(u, jnp.nan), Decay(1.0))
    integrator = time_stepping.Integrator(
        time_stepping.SolutionVector(jnp.zeros(2)), (0.0, 1.0), f, None, 0.1)
    with pytest.raises(errors.NumericalFailure):
      integrator.step()

  def test_invalid_span(self):
    with pytest.raises(errors.ConfigurationError):
      time_stepping.Integrator(
          time_stepping.SolutionVector(jnp.zeros(1)), (1.0, 1.0),
          _forced_decay(), None, 0.1)

  def test_partial_constraint(self):
    with pytest.raises(errors.ConfigurationError):
      time_stepping.ConstrainedODEFunction(
          lambda u, p, t: u, Decay(1.0), r2=lambda p, t: 0.0)


class TestConstrained:
  """
  `du/dt = -B1t tau` on two unknowns, with the first one prescribed:
  `u[0](t) = sin(t)`. The multiplier acts on the first unknown only.
  """

  @staticmethod
  def _system():
    return time_stepping.ConstrainedODEFunction(
        lambda u, p, t: jnp.array([0.0, 1.0]),
        Decay(0.0),
        r2=lambda p, t: jnp.array([np.sin(t)]),
        B1t=lambda tau, p: jnp.array([tau[0], 0.0]),
        B2=lambda u, p: u[:1])

  @pytest.mark.parametrize('tableau', [
      time_stepping.HEM3, time_stepping.LISKA, time_stepping.FORWARD_EULER])
  def test_constraint_is_satisfied(self, tableau):
    f = self._system()
    u0 = time_stepping.SolutionVector(jnp.zeros(2), jnp.zeros(1))
    integrator = time_stepping.Integrator(u0, (0.0, 1.0), f, None, 0.1,
                                          alg=tableau)
    for _ in range(5):
      integrator.step()
      state = integrator.u.state
      assert float(state[0]) == pytest.approx(np.sin(integrator.t), abs=1e-12)
    # The free unknown is untouched by the multiplier.
    assert float(integrator.u.state[1]) == pytest.approx(0.5, abs=1e-12)

  def test_multiplier(self):
    # With u[0] = sin(t), the multiplier is -cos(t) at the end of a step.
    f = self._system()
    u0 = time_stepping.SolutionVector(jnp.zeros(2), jnp.zeros(1))
    integrator = time_stepping.Integrator(u0, (0.0, 1.0), f, None, 0.01)
    integrator.step(0.5)
    assert float(integrator.u.constraint[0]) == pytest.approx(
        -np.cos(0.5), abs=1e-2)

  def test_schur_complements_are_cached(self):
    f = self._system()
    stepper = time_stepping.ifherk_step(time_stepping.HEM3, f, 0.1)
    u = time_stepping.SolutionVector(jnp.zeros(2), jnp.zeros(1))
    u, _ = stepper(u, None, 0.0)
    cached = dict(stepper._schur)
    stepper(u, None, 0.1)
    assert stepper._schur == cached
    assert len(cached) == 3


class TestAuxiliaryState:

  def test_parameter_hook_tracks_aux_state(self):
    calls = []

    def update(p, u, t):
      calls.append(float(time_stepping.aux_state(u)[0]))
      return p

    f = time_stepping.ConstrainedODEFunction(
        lambda u, p, t: jnp.zeros_like(u), Decay(0.0),
        aux_r1=lambda x, p, t: jnp.array([2.0]),
        param_update_func=update)
    u0 = time_stepping.SolutionVector(jnp.zeros(1), None, jnp.array([1.0]))
    integrator = time_stepping.Integrator(u0, (0.0, 1.0), f, None, 0.1)
    integrator.step()
    assert float(integrator.u.aux_state[0]) == pytest.approx(1.2)
    # Once at setup, then once per stage.
    assert calls[0] == 1.0
    assert len(calls) == 1 + len(time_stepping.HEM3.b)
    assert calls[-1] == pytest.approx(1.2)

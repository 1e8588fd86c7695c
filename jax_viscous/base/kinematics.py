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
Functions for defining prescribed kinematic motions.

This module contains a collection of kinematic laws that describe the
pre-determined trajectory (position) and orientation (angle) of a rigid body
as a function of time, together with their first two time derivatives. They
are used in a "kinematically-driven" immersed boundary simulation, where the
motion of the body is an input, and the goal is to calculate the resulting
fluid flow and forces.

A `RigidBodyMotion` wraps a kinematic law for one body and converts it into
the velocities of the body's surface points. The same laws describe a
time-varying freestream, of which only the velocity is used.
"""
import dataclasses
import numbers
from typing import NamedTuple, Sequence

import jax.numpy as jnp
import numpy as np

from jax_viscous import errors


class KinematicState(NamedTuple):
  """Position, angle and their time derivatives at one instant."""
  position: jnp.ndarray
  velocity: jnp.ndarray
  acceleration: jnp.ndarray
  angle: float
  angular_velocity: float
  angular_acceleration: float


class Kinematics:
  """Base class of the kinematic laws: `kinematics(t)` is a `KinematicState`."""

  def __call__(self, t: float) -> KinematicState:
    raise NotImplementedError(
        '__call__() must be implemented in a Kinematics subclass.')


@dataclasses.dataclass(frozen=True)
class Constant(Kinematics):
  """Steady translation with velocity `(U, V)` and rotation rate `omega`."""
  U: float = 0.0
  V: float = 0.0
  omega: float = 0.0

  def __call__(self, t: float) -> KinematicState:
    velocity = jnp.array([self.U, self.V], dtype=jnp.float64)
    return KinematicState(
        position=velocity * t,
        velocity=velocity,
        acceleration=jnp.zeros(2),
        angle=self.omega * t,
        angular_velocity=self.omega,
        angular_acceleration=0.0)


@dataclasses.dataclass(frozen=True)
class Oscillation(Kinematics):
  """
  Translation with superposed sinusoidal oscillation in both directions.

  `x(t) = Ux t + Ax sin(Omega t - phi_x)`, and likewise for `y`.
  """
  Ux: float
  Uy: float
  Omega: float
  Ax: float
  Ay: float
  phi_x: float = 0.0
  phi_y: float = 0.0

  def __call__(self, t: float) -> KinematicState:
    mean_velocity = jnp.array([self.Ux, self.Uy], dtype=jnp.float64)
    amplitude = jnp.array([self.Ax, self.Ay], dtype=jnp.float64)
    phase = self.Omega * t - jnp.array([self.phi_x, self.phi_y])
    return KinematicState(
        position=mean_velocity * t + amplitude * jnp.sin(phase),
        velocity=mean_velocity + self.Omega * amplitude * jnp.cos(phase),
        acceleration=-self.Omega**2 * amplitude * jnp.sin(phase),
        angle=0.0,
        angular_velocity=0.0,
        angular_acceleration=0.0)


def OscillationX(Ux: float, Omega: float, Ax: float,
                 phi_x: float = 0.0) -> Oscillation:
  """Oscillation along x only."""
  return Oscillation(Ux, 0.0, Omega, Ax, 0.0, phi_x, 0.0)


def OscillationY(Uy: float, Omega: float, Ay: float,
                 phi_y: float = 0.0) -> Oscillation:
  """Oscillation along y only."""
  return Oscillation(0.0, Uy, Omega, 0.0, Ay, 0.0, phi_y)


@dataclasses.dataclass(frozen=True)
class RotationalOscillation(Kinematics):
  """
  Pitching about a fixed centre: `alpha(t) = alpha0 + A sin(Omega t - phi)`.
  """
  alpha0: float
  A: float
  Omega: float
  phi: float = 0.0

  def __call__(self, t: float) -> KinematicState:
    phase = self.Omega * t - self.phi
    return KinematicState(
        position=jnp.zeros(2),
        velocity=jnp.zeros(2),
        acceleration=jnp.zeros(2),
        angle=self.alpha0 + self.A * jnp.sin(phase),
        angular_velocity=self.A * self.Omega * jnp.cos(phase),
        angular_acceleration=-self.A * self.Omega**2 * jnp.sin(phase))


class RigidBodyMotion:
  """
  The prescribed motion of one rigid body.

  Either `RigidBodyMotion(U, V, omega=0)` for a constant velocity, or
  `RigidBodyMotion(kinematics)` for any `Kinematics` law.
  """

  def __init__(self, *args, omega: float = 0.0):
    if len(args) == 1 and isinstance(args[0], Kinematics):
      self.kinematics = args[0]
    elif len(args) in (2, 3) and all(
        isinstance(arg, numbers.Number) for arg in args):
      if len(args) == 3:
        omega = args[2]
      self.kinematics = Constant(float(args[0]), float(args[1]), float(omega))
    else:
      raise errors.ConfigurationError(
          'RigidBodyMotion expects a Kinematics law or constant velocities '
          f'(U, V[, omega]), got {args}')

  def __call__(self, t: float) -> KinematicState:
    return self.kinematics(t)

  def __repr__(self):
    return f'RigidBodyMotion({self.kinematics!r})'

  def velocity(self, body, t: float) -> np.ndarray:
    """
    The `(2, N)` inertial velocities of the points of `body` at time `t`.

    The body rotates about its current centre `body.configuration[:2]`.
    """
    state = self(t)
    center = body.configuration[:2]
    omega = float(state.angular_velocity)
    u = float(state.velocity[0]) - omega * (body.y - center[1])
    v = float(state.velocity[1]) + omega * (body.x - center[0])
    return np.stack([u, v])

  def configuration_rate(self, t: float) -> np.ndarray:
    """`(dxc/dt, dyc/dt, dtheta/dt)` at time `t`."""
    state = self(t)
    return np.array([float(state.velocity[0]), float(state.velocity[1]),
                     float(state.angular_velocity)])


class RigidMotionList(list):
  """One `RigidBodyMotion` per body, in the order of the bodies."""

  def __init__(self, motions: Sequence[RigidBodyMotion] = ()):
    super().__init__(motions)

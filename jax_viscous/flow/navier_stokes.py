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
The viscous incompressible flow system, in vorticity form.

A `NavierStokes` object gathers everything needed to advance the vorticity
of a two-dimensional flow on an unbounded Cartesian grid, with or without
immersed rigid bodies:

1.  **Parameters**: Reynolds number, freestream, bodies and their motions,
    pulses, grid and time step.

2.  **Operators**: the Laplacian with its lattice Green's function inverse,
    the viscous operator whose integrating factor the time stepper applies,
    and the immersion operators that couple the grid to the surface points
    (regularization `Rf`, interpolation `Ef`, filter `Cf`, and the double and
    single layers `dlf` and `slc`).

3.  **ODE function**: a `ConstrainedODEFunction` whose pieces all take the
    system itself as parameter. Without bodies the system is a plain ODE;
    with bodies it carries the no-slip constraint, and with moving bodies
    also the body configurations as auxiliary state, with
    `update_immersion_operators` as the hook that keeps the immersion
    operators consistent with them.

Example:
  >>> sys = NavierStokes(100, 0.02, (-1, 1), (-1, 1), 0.01,
  ...                    bodies=bodies.Circle(0.5, 0.03))
  >>> u0 = newstate(sys)
  >>> integrator = time_stepping.init(u0, (0.0, 1.0), sys)
  >>> integrator.step(0.5)
"""
import copy
import logging
import numbers
from typing import NamedTuple, Optional, Tuple, Union

import jax.numpy as jnp
import numpy as np
from scipy import sparse

from jax_viscous import errors
from jax_viscous.base import bodies as bodies_lib
from jax_viscous.base import convolution_functions
from jax_viscous.base import diffusion
from jax_viscous.base import grids
from jax_viscous.base import kinematics
from jax_viscous.base import lattice_greens
from jax_viscous.base import layers
from jax_viscous.base import spatial_fields
from jax_viscous.base import time_stepping
from jax_viscous.flow import configuration
from jax_viscous.flow import equations
from jax_viscous.flow import rigid_body_operators
from jax_viscous.flow import surface_velocities

logger = logging.getLogger(__name__)

DDFType = convolution_functions.DDFType
FlowSide = configuration.FlowSide
FreestreamType = configuration.FreestreamType
PointMotionType = configuration.PointMotionType

freestream = surface_velocities.freestream
setstepsizes = configuration.setstepsizes


class ImmersionOperators(NamedTuple):
  """
  The operators that couple the grid to the surface points.

  Any of them but `points` is None when absent: all of them without bodies,
  the layers when the flow is solved on both sides of the surfaces.
  """
  points: np.ndarray
  dlf: Optional[layers.DoubleLayer] = None
  slc: Optional[layers.SingleLayer] = None
  sln: Optional[layers.SingleLayer] = None
  Rf: Optional[convolution_functions.RegularizationMatrix] = None
  Ef: Optional[convolution_functions.InterpolationMatrix] = None
  Cf: Optional[sparse.csr_matrix] = None


def _regularization(bodies, grid, ddftype) -> convolution_functions.Regularize:
  points = bodies.points()
  return convolution_functions.Regularize(
      points[0], points[1], grid.cell_size, weights=bodies.areas(),
      ddftype=ddftype)


def immersion_operators(
    bodies: Optional[bodies_lib.BodyList],
    grid: grids.Grid,
    flow_side: FlowSide,
    ddftype: DDFType,
    numpts: Optional[int] = None,
) -> ImmersionOperators:
  """
  Builds the immersion operators of `bodies` in their current configuration.

  Args:
    bodies: the bodies, or None for an unbounded flow.
    grid: the grid.
    flow_side: the side of the surfaces where the flow is solved. The layers
      are only built when there is a velocity jump across the surfaces.
    ddftype: the discrete delta function.
    numpts: the number of points the operators must act on, if known.

  Returns:
    An `ImmersionOperators`.

  Raises:
    ConfigurationError: if the bodies do not carry `numpts` points.
  """
  if bodies is None:
    return ImmersionOperators(np.zeros((2, 0)))
  if numpts is not None and bodies.numpts != numpts:
    raise errors.ConfigurationError(
        f'Inconsistent size of bodies: {bodies.numpts} points, expected '
        f'{numpts}')
  logger.debug('building immersion operators for %d points', bodies.numpts)

  points = bodies.points()
  if flow_side != FlowSide.EXTERNAL_INTERNAL_FLOW:
    dlf = layers.DoubleLayer(bodies, grid, ddftype)
    slc = layers.SingleLayer(bodies, grid, ddftype)
  else:
    dlf = slc = None

  reg = _regularization(bodies, grid, ddftype)
  Rf = convolution_functions.RegularizationMatrix.from_regularize(reg, grid)
  Ef = convolution_functions.InterpolationMatrix.from_regularize(reg, grid)

  # The filtered interpolation, with weights dx**2, is the transpose of the
  # regularization up to the surface areas.
  reg_filtered = convolution_functions.Regularize(
      points[0], points[1], grid.cell_size, weights=grid.cell_size**2,
      ddftype=ddftype, filter=True)
  Ef_filtered = convolution_functions.InterpolationMatrix.from_regularize(
      reg_filtered, grid)
  Cf = convolution_functions.filtering_matrix(Rf, Ef_filtered)
  return ImmersionOperators(points, dlf, slc, None, Rf, Ef, Cf)


def _as_body_list(bodies) -> Optional[bodies_lib.BodyList]:
  if bodies is None:
    return None
  if isinstance(bodies, bodies_lib.Body):
    bodies = [bodies]
  return bodies_lib.BodyList(copy.deepcopy(list(bodies)))


def _as_motion_list(motions) -> Optional[kinematics.RigidMotionList]:
  if motions is None:
    return None
  if isinstance(motions, kinematics.RigidBodyMotion):
    motions = [motions]
  return kinematics.RigidMotionList(motions)


def _check_positive(name: str, value) -> float:
  if not isinstance(value, numbers.Real) or not value > 0:
    raise errors.ConfigurationError(f'{name} must be positive, got {value}')
  return float(value)


def _check_limits(name: str, limits) -> Tuple[float, float]:
  if len(limits) != 2 or not limits[1] > limits[0]:
    raise errors.ConfigurationError(
        f'{name} must be an increasing pair, got {limits}')
  return (float(limits[0]), float(limits[1]))


def _as_enum(enum_type, value):
  if isinstance(value, enum_type):
    return value
  try:
    return enum_type(value)
  except ValueError:
    raise errors.ConfigurationError(
        f'unknown {enum_type.__name__}: {value!r}') from None


class NavierStokes:
  """
  A two-dimensional viscous incompressible flow, with optional rigid bodies.

  Attributes:
    Re: the Reynolds number.
    U_inf: the freestream, a tuple or a kinematic law.
    bodies: the `BodyList` in its current configuration, or None.
    motions: the `RigidMotionList`, one motion per body, or None.
    pulses: the pulses, sampled on the dual nodes.
    grid: the grid, ghost cells included.
    dt: the time step.
    L: the unscaled Laplacian on the grid, with its inverse.
    dlf, slc, sln: the double layer and the single layers, or None.
    points: the `(2, N)` coordinates of the surface points.
    Rf, Ef, Cf: the regularization, interpolation and filtering matrices of
      the primal edges, or None.
    f: the `ConstrainedODEFunction` of the system.
    state_prototype: the zero `SolutionVector`.

  The remaining attributes are zero fields shared by every evaluation of the
  right-hand side. They are never written to: JAX arrays are immutable, and
  each evaluation builds its own results starting from them.
  """

  def __init__(
      self,
      Re: float,
      dx: float,
      xlimits: Tuple[float, float],
      ylimits: Tuple[float, float],
      dt: float,
      freestream=(0.0, 0.0),
      bodies: Union[bodies_lib.Body, bodies_lib.BodyList, None] = None,
      motions=None,
      pulses=None,
      static_points: Optional[bool] = None,
      flow_side: Union[FlowSide, str] = FlowSide.EXTERNAL_FLOW,
      ddftype: Union[DDFType, str] = DDFType.YANG3,
  ):
    # Everything is validated before any grid data is allocated.
    self.Re = _check_positive('Reynolds number', Re)
    dx = _check_positive('grid spacing', dx)
    self.dt = _check_positive('time step', dt)
    xlimits = _check_limits('xlimits', xlimits)
    ylimits = _check_limits('ylimits', ylimits)
    flow_side = _as_enum(FlowSide, flow_side)
    self.ddftype = _as_enum(DDFType, ddftype)

    self._freestream_type = configuration.freestream_type(freestream)
    if self._freestream_type == FreestreamType.STATIC_FREESTREAM:
      freestream = configuration.static_freestream(freestream)
    self.U_inf = freestream

    bodies = _as_body_list(bodies)
    motions = _as_motion_list(motions)
    if bodies is None:
      if motions:
        raise errors.ConfigurationError('motions were given without bodies')
      motions = None
      static_points = True
    elif motions is None:
      motions = kinematics.RigidMotionList(
          [kinematics.RigidBodyMotion(0.0, 0.0) for _ in bodies])
      static_points = True if static_points is None else static_points
    else:
      if len(bodies) != len(motions):
        raise errors.ConfigurationError(
            'Inconsistent lengths of bodies and motions lists: '
            f'{len(bodies)} bodies and {len(motions)} motions')
      static_points = False if static_points is None else static_points
    self.bodies = bodies
    self.motions = motions
    self._motion_type = configuration.motion_type(static_points)

    if bodies is not None and bodies_lib.any_open_bodies(bodies):
      if flow_side != FlowSide.EXTERNAL_INTERNAL_FLOW:
        logger.info('open bodies present: solving for %s instead of %s',
                    FlowSide.EXTERNAL_INTERNAL_FLOW.value, flow_side.value)
      flow_side = FlowSide.EXTERNAL_INTERNAL_FLOW
    self._flow_side = flow_side

    self.grid = grids.physical_grid(xlimits, ylimits, dx)
    self.numpts = 0 if bodies is None else bodies.numpts

    self.Vn = grids.primal_edges(self.grid)
    self.Sc = grids.primal_nodes(self.grid)
    self.Sn = grids.dual_nodes(self.grid)
    self.tau = jnp.zeros((2, self.numpts))

    self.L = lattice_greens.plan_laplacian(self.grid, with_inverse=True)
    self.pulses = spatial_fields.generate_pulses(pulses, self.grid)

    self._set_immersion_operators(immersion_operators(
        self.bodies, self.grid, self._flow_side, self.ddftype))

    viscous_L = diffusion.ViscousOperator(self.grid, 1 / (self.Re * dx**2))
    if bodies is None:
      self.state_prototype = time_stepping.SolutionVector(self.Sn)
      self.f = time_stepping.ConstrainedODEFunction(
          equations.ns_rhs, viscous_L)
    elif self._motion_type == PointMotionType.STATIC_POINTS:
      self.state_prototype = time_stepping.SolutionVector(self.Sn, self.tau)
      self.f = time_stepping.ConstrainedODEFunction(
          equations.ns_rhs, viscous_L,
          r2=rigid_body_operators.bc_constraint_rhs,
          B1t=rigid_body_operators.ns_op_constraint_force,
          B2=rigid_body_operators.bc_constraint_op)
    else:
      self.state_prototype = time_stepping.SolutionVector(
          self.Sn, self.tau, jnp.asarray(bodies.configurations()))
      self.f = time_stepping.ConstrainedODEFunction(
          equations.ns_rhs, viscous_L,
          r2=rigid_body_operators.bc_constraint_rhs,
          B1t=rigid_body_operators.ns_op_constraint_force,
          B2=rigid_body_operators.bc_constraint_op,
          aux_r1=rigid_body_operators.rigid_body_rhs,
          param_update_func=update_immersion_operators)
    logger.info('%s', self.summary()[0])

  def _set_immersion_operators(self, operators: ImmersionOperators):
    (self.points, self.dlf, self.slc, self.sln,
     self.Rf, self.Ef, self.Cf) = operators

  @property
  def cellsize(self) -> float:
    return self.grid.cell_size

  @property
  def freestream_type(self) -> FreestreamType:
    return self._freestream_type

  @property
  def motion_type(self) -> PointMotionType:
    return self._motion_type

  @property
  def flow_side(self) -> FlowSide:
    return self._flow_side

  def summary(self) -> Tuple[str, ...]:
    """The lines of the description of the system."""
    mtype = ('static' if self._motion_type == PointMotionType.STATIC_POINTS
             else 'moving')
    if self._freestream_type == FreestreamType.STATIC_FREESTREAM:
      fsmsg = f'Static freestream = {self.U_inf}'
    else:
      fsmsg = 'Variable freestream'
    if self.numpts == 0:
      sdmsg = 'Unbounded'
    else:
      sdmsg = {FlowSide.EXTERNAL_FLOW: 'External flow',
               FlowSide.INTERNAL_FLOW: 'Internal flow',
               FlowSide.EXTERNAL_INTERNAL_FLOW: 'External/internal',
               }[self._flow_side]
    nx, ny = self.grid.shape
    lines = [f'{sdmsg} Navier-Stokes system on a grid of size {nx} x {ny} '
             f'and {self.numpts} {mtype} immersed points',
             f'   {fsmsg}']
    if self.numpts > 0:
      nbodies = len(self.bodies)
      lines.append('   1 body' if nbodies == 1 else f'   {nbodies} bodies')
    return tuple(lines)

  def __repr__(self):
    return '\n'.join(self.summary())

  __str__ = __repr__


def update_immersion_operators(sys: NavierStokes, *args) -> NavierStokes:
  """
  Moves the bodies of `sys` and rebuilds its immersion operators.

  Called as

  - `update_immersion_operators(sys, bodies)` with a `Body` or a `BodyList`,
    which replaces the bodies;
  - `update_immersion_operators(sys, x)` with a configuration vector of
    three entries `(xc, yc, theta)` per body, which places the bodies;
  - `update_immersion_operators(sys, u, t)`, the form called by the
    integrator, which places the bodies at the auxiliary state of `u`.

  The system keeps its own copy of the bodies, and its flow side and kernel
  do not change.

  Returns:
    `sys`, updated in place.
  """
  if len(args) == 2:
    u, _ = args
    return update_immersion_operators(sys, time_stepping.aux_state(u))
  target, = args
  if isinstance(target, bodies_lib.Body):
    target = bodies_lib.BodyList([target])
  elif not isinstance(target, bodies_lib.BodyList):
    transforms = bodies_lib.RigidTransformList(np.asarray(target))
    target = transforms(sys.bodies)
  sys.bodies = bodies_lib.BodyList(copy.deepcopy(list(target)))
  sys._set_immersion_operators(immersion_operators(
      sys.bodies, sys.grid, sys.flow_side, sys.ddftype, numpts=sys.numpts))
  return sys


def size(sys: NavierStokes, d: Optional[int] = None):
  """The grid shape of `sys`, or its number of indices along axis `d`."""
  if d is None:
    return sys.grid.shape
  return sys.grid.shape[d]


def cellsize(sys: NavierStokes) -> float:
  return sys.cellsize


def timestep(sys: NavierStokes) -> float:
  return sys.dt


def origin(sys: NavierStokes) -> Tuple[int, int]:
  """
  Indices of the primal node at the physical origin. They need not lie
  inside the grid.
  """
  return sys.grid.origin


def timerange(tf: float, sys: NavierStokes) -> np.ndarray:
  """The times `dt, 2 dt, ...` up to `tf`."""
  nsteps = int(np.floor(tf / sys.dt + 1e-8))
  return sys.dt * np.arange(1, nsteps + 1)


def normals(sys: NavierStokes) -> Optional[np.ndarray]:
  """The `(2, N)` surface normals, or None without bodies."""
  if sys.bodies is None:
    return None
  return sys.bodies.normals()


def newstate(*args) -> time_stepping.SolutionVector:
  """
  A new solution vector for a system.

  `newstate(sys)` is zero; `newstate(field, sys)` has the state set to
  `dx` times the spatial field `field(x, y)` sampled on the dual nodes, with
  zero surface forces.
  """
  if len(args) == 1:
    sys, = args
    return copy.copy(sys.state_prototype)
  field, sys = args
  if not isinstance(field, spatial_fields.SpatialField):
    field = spatial_fields.SpatialField(field)
  u = copy.copy(sys.state_prototype)
  u.state = sys.cellsize * spatial_fields.GeneratedField(field, sys.grid)()
  return u


def _hasfilter(sys: NavierStokes) -> bool:
  return sys.Cf is not None


def _any_open_bodies(bodies) -> bool:
  return bodies is not None and bodies_lib.any_open_bodies(bodies)

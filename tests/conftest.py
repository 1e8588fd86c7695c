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
"""Shared fixtures: small grids and systems that build quickly."""
import numpy as np
import pytest

import jax_viscous  # enables 64-bit mode
from jax_viscous.base import bodies
from jax_viscous.base import grids
from jax_viscous.base import kinematics
from jax_viscous.base import spatial_fields
from jax_viscous.flow import navier_stokes


@pytest.fixture
def grid():
  """A 24 x 20 grid of unit cells, ghost cells included."""
  return grids.Grid((24, 20), step=1.0)


@pytest.fixture
def bump(grid):
  """A smooth dual-node field that vanishes near the edges of `grid`."""
  x, y = grid.mesh(grids.DUAL_NODES)
  data = np.exp(-((x - 12.0)**2 + (y - 10.0)**2) / 6.0)
  data = np.where(((x - 12.0)**2 + (y - 10.0)**2) < 36.0, data, 0.0)
  return grids.GridArray(data, grids.DUAL_NODES, grid)


@pytest.fixture
def gaussian_vortex():
  return spatial_fields.SpatialGaussian(0.2, 0.0, 0.0, 1.0)


@pytest.fixture
def unbounded_system():
  return navier_stokes.NavierStokes(100, 0.04, (-1.0, 1.0), (-1.0, 1.0), 0.02)


@pytest.fixture
def circle_system():
  """A static cylinder in a uniform stream."""
  body = bodies.Circle(0.25, 0.06)
  return navier_stokes.NavierStokes(
      100, 0.04, (-1.0, 1.0), (-1.0, 1.0), 0.02,
      freestream=(1.0, 0.0), bodies=body)


@pytest.fixture
def moving_system():
  """A cylinder translating with constant velocity in still fluid."""
  body = bodies.Circle(0.25, 0.06)
  motion = kinematics.RigidBodyMotion(0.5, 0.0)
  return navier_stokes.NavierStokes(
      100, 0.04, (-1.0, 1.0), (-1.0, 1.0), 0.02,
      bodies=body, motions=motion)

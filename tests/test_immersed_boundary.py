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
"""Tests for bodies, kinematics, delta functions, layers and pulses."""
import jax.numpy as jnp
import numpy as np
import pytest

from jax_viscous import errors
from jax_viscous.base import bodies
from jax_viscous.base import convolution_functions as cf
from jax_viscous.base import grids
from jax_viscous.base import kinematics
from jax_viscous.base import layers
from jax_viscous.base import spatial_fields


@pytest.fixture
def ib_grid():
  return grids.physical_grid((-1.0, 1.0), (-1.0, 1.0), 0.05)


class TestBodies:

  def test_circle(self):
    body = bodies.Circle(0.5, 0.05)
    assert body.numpts == round(np.pi / 0.05)
    assert not body.is_open
    assert np.sum(body.areas()) == pytest.approx(np.pi, rel=1e-2)
    np.testing.assert_allclose(np.hypot(*body.points()), 0.5)

  def test_closed_normals_point_outward(self):
    body = bodies.Ellipse(0.5, 0.2, 0.02)
    normals = body.normals()
    np.testing.assert_allclose(np.hypot(*normals), 1.0)
    assert np.all(np.sum(normals * body.points(), axis=0) > 0)

  def test_plate(self):
    body = bodies.Plate(1.0, 0.1)
    assert body.is_open
    assert body.numpts == 11
    areas = body.areas()
    assert areas[0] == pytest.approx(0.05)
    assert areas[5] == pytest.approx(0.1)
    assert np.sum(areas) == pytest.approx(1.0)
    np.testing.assert_allclose(body.normals()[1], -1.0)

  def test_rectangle(self):
    body = bodies.Rectangle(0.5, 0.25, 0.05)
    assert body.numpts == 2 * (20 + 10)
    # The corner points see a shortened chord.
    assert np.sum(body.areas()) == pytest.approx(3.0, rel=5e-2)

  def test_too_few_points(self):
    with pytest.raises(errors.ConfigurationError):
      bodies.Polygon([0.0, 1.0], [0.0, 1.0])

  def test_body_list(self):
    body_list = bodies.BodyList([bodies.Circle(0.5, 0.1), bodies.Plate(1, 0.1)])
    n0 = body_list[0].numpts
    assert body_list.numpts == n0 + 11
    assert body_list.range(1) == slice(n0, n0 + 11)
    assert body_list.points().shape == (2, n0 + 11)
    assert body_list.areas().shape == (n0 + 11,)
    assert bodies.any_open_bodies(body_list)
    assert body_list.configurations().shape == (6,)

  def test_rigid_transform(self):
    body = bodies.Polygon([1.0, 0.0, -1.0], [0.0, 1.0, 0.0])
    bodies.RigidTransform((2.0, 3.0), np.pi / 2)(body)
    np.testing.assert_allclose(body.points()[:, 0], (2.0, 4.0), atol=1e-12)
    np.testing.assert_allclose(body.configuration, (2.0, 3.0, np.pi / 2))
    np.testing.assert_allclose(body.x_body, (1.0, 0.0, -1.0))

  def test_rigid_transform_is_absolute(self):
    body = bodies.Circle(0.5, 0.1)
    bodies.RigidTransform((1.0, 0.0), 0.0)(body)
    bodies.RigidTransform((1.0, 0.0), 0.0)(body)
    np.testing.assert_allclose(body.x, body.x_body + 1.0)

  def test_transform_list_from_vector(self):
    body_list = bodies.BodyList([bodies.Circle(0.5, 0.1),
                                 bodies.Circle(0.2, 0.1)])
    transforms = bodies.RigidTransformList(np.array([1, 0, 0, 0, -1, 0.0]))
    transforms(body_list)
    np.testing.assert_allclose(body_list[0].x, body_list[0].x_body + 1.0)
    np.testing.assert_allclose(body_list[1].y, body_list[1].y_body - 1.0)

  def test_transform_list_errors(self):
    with pytest.raises(errors.ConfigurationError):
      bodies.RigidTransformList(np.zeros(4))
    transforms = bodies.RigidTransformList(np.zeros(6))
    with pytest.raises(errors.ConfigurationError, match='Inconsistent size'):
      transforms(bodies.BodyList([bodies.Circle(0.5, 0.1)]))


class TestKinematics:

  @pytest.mark.parametrize('law', [
      kinematics.Oscillation(0.5, 0.1, 2.0, 0.3, 0.2, 0.4, 0.1),
      kinematics.OscillationX(1.0, 3.0, 0.5),
      kinematics.OscillationY(0.0, 1.0, 0.25, np.pi / 2),
  ])
  def test_velocity_is_rate_of_position(self, law):
    t, h = 0.7, 1e-6
    rate = (law(t + h).position - law(t - h).position) / (2 * h)
    np.testing.assert_allclose(rate, law(t).velocity, atol=1e-6)
    rate = (law(t + h).velocity - law(t - h).velocity) / (2 * h)
    np.testing.assert_allclose(rate, law(t).acceleration, atol=1e-6)

  def test_rotational_oscillation(self):
    law = kinematics.RotationalOscillation(0.1, 0.5, 2.0, 0.3)
    t, h = 1.3, 1e-6
    rate = (law(t + h).angle - law(t - h).angle) / (2 * h)
    assert float(rate) == pytest.approx(float(law(t).angular_velocity),
                                        abs=1e-6)
    assert float(law(0.15).angle) == pytest.approx(0.1)

  def test_constant(self):
    state = kinematics.Constant(1.0, -2.0, 0.5)(2.0)
    np.testing.assert_allclose(state.position, (2.0, -4.0))
    assert state.angle == pytest.approx(1.0)

  def test_rigid_body_motion_point_velocities(self):
    body = bodies.Polygon([1.0, 0.0, -1.0], [0.0, 1.0, 0.0])
    motion = kinematics.RigidBodyMotion(1.0, 2.0, 0.5)
    velocity = motion.velocity(body, 0.0)
    np.testing.assert_allclose(velocity[:, 0], (1.0, 2.5))
    np.testing.assert_allclose(velocity[:, 1], (0.5, 2.0))
    np.testing.assert_allclose(motion.configuration_rate(3.0),
                               (1.0, 2.0, 0.5))

  def test_rigid_body_motion_from_law(self):
    law = kinematics.OscillationX(0.0, 1.0, 1.0)
    motion = kinematics.RigidBodyMotion(law)
    assert motion.kinematics is law
    np.testing.assert_allclose(motion.configuration_rate(0.0), (1.0, 0, 0))

  def test_rigid_body_motion_errors(self):
    with pytest.raises(errors.ConfigurationError):
      kinematics.RigidBodyMotion('fast')


class TestDeltaFunctions:

  @pytest.mark.parametrize('ddftype', list(cf.DDFType))
  @pytest.mark.parametrize('xi', [0.0, 0.1, 0.37, 0.5, 0.92])
  def test_partition_of_unity(self, ddftype, xi):
    kernel = cf.DDF_FUNCTIONS[ddftype]
    k = jnp.arange(-4, 5)
    assert float(jnp.sum(kernel(k - xi))) == pytest.approx(1.0, abs=1e-12)
    assert float(jnp.sum((k - xi) * kernel(k - xi))) == pytest.approx(
        0.0, abs=1e-12)

  @pytest.mark.parametrize('ddftype', list(cf.DDFType))
  def test_support(self, ddftype):
    kernel = cf.DDF_FUNCTIONS[ddftype]
    support = cf.DDF_SUPPORT[ddftype]
    assert float(kernel(jnp.array(support + 1e-6))) == 0.0
    assert float(kernel(jnp.array(support - 0.1))) != 0.0

  def test_regularization_conserves_total(self, ib_grid):
    body = bodies.Circle(0.4, 0.075)
    points = body.points()
    reg = cf.Regularize(points[0], points[1], ib_grid.cell_size,
                        weights=body.areas())
    R = cf.RegularizationMatrix.from_regularize(reg, ib_grid)
    f = np.stack([np.ones(body.numpts), 2 * np.ones(body.numpts)])
    u, v = R(f)
    dx = ib_grid.cell_size
    assert float(jnp.sum(u.data)) * dx**2 == pytest.approx(
        np.sum(body.areas()), rel=1e-10)
    assert float(jnp.sum(v.data)) * dx**2 == pytest.approx(
        2 * np.sum(body.areas()), rel=1e-10)
    np.testing.assert_allclose(R.points, points)

  def test_interpolation_of_linear_field(self, ib_grid):
    body = bodies.Circle(0.4, 0.075)
    points = body.points()
    reg = cf.Regularize(points[0], points[1], ib_grid.cell_size)
    E = cf.InterpolationMatrix.from_regularize(reg, ib_grid)
    edges = tuple(
        ib_grid.eval_on_mesh(lambda x, y: 1.0 + 2.0 * x - y, offset)
        for offset in grids.PRIMAL_EDGES)
    values = np.asarray(E(edges))
    assert values.shape == (2, body.numpts)
    expected = 1.0 + 2.0 * points[0] - points[1]
    np.testing.assert_allclose(values[0], expected, atol=1e-10)
    np.testing.assert_allclose(values[1], expected, atol=1e-10)

  def test_interpolation_checks_location(self, ib_grid):
    reg = cf.Regularize(np.zeros(1), np.zeros(1), ib_grid.cell_size)
    E = cf.InterpolationMatrix.from_regularize(reg, ib_grid,
                                               grids.PRIMAL_NODES)
    with pytest.raises(grids.InconsistentOffsetError):
      E(grids.dual_nodes(ib_grid))

  def test_interpolation_is_transpose_for_unit_weights(self, ib_grid):
    body = bodies.Circle(0.4, 0.075)
    points = body.points()
    dx = ib_grid.cell_size
    reg = cf.Regularize(points[0], points[1], dx, weights=dx**2)
    R = cf.RegularizationMatrix.from_regularize(reg, ib_grid)
    E = cf.InterpolationMatrix.from_regularize(reg, ib_grid)
    assert abs(R.matrix.T - E.matrix).max() < 1e-14

  def test_filtering_matrix(self, ib_grid):
    body = bodies.Circle(0.4, 0.075)
    points = body.points()
    dx = ib_grid.cell_size
    R = cf.RegularizationMatrix.from_regularize(
        cf.Regularize(points[0], points[1], dx, weights=body.areas()),
        ib_grid)
    E = cf.InterpolationMatrix.from_regularize(
        cf.Regularize(points[0], points[1], dx, weights=dx**2, filter=True),
        ib_grid)
    C = cf.filtering_matrix(R, E)
    assert C.shape == (2 * body.numpts, 2 * body.numpts)
    # Each row of the filter sums to the surface length seen by the kernel.
    assert np.all(np.asarray(C.sum(axis=1)) > 0)


class TestLayers:

  def test_double_layer_has_zero_total(self, ib_grid):
    body_list = bodies.BodyList([bodies.Circle(0.4, 0.075)])
    dlf = layers.DoubleLayer(body_list, ib_grid)
    dv = np.stack([np.ones(body_list.numpts), np.zeros(body_list.numpts)])
    u, v = dlf(dv)
    assert (u.offset, v.offset) == grids.PRIMAL_EDGES
    assert float(jnp.sum(u.data)) == pytest.approx(0.0, abs=1e-10)
    assert float(jnp.sum(v.data)) == pytest.approx(0.0, abs=1e-10)
    assert float(jnp.max(jnp.abs(u.data))) > 0.0

  def test_single_layer_total(self, ib_grid):
    body_list = bodies.BodyList([bodies.Circle(0.4, 0.075)])
    slc = layers.SingleLayer(body_list, ib_grid)
    s = slc(np.ones(body_list.numpts))
    assert s.offset == grids.PRIMAL_NODES
    assert float(jnp.sum(s.data)) * ib_grid.cell_size**2 == pytest.approx(
        np.sum(body_list.areas()), rel=1e-10)


class TestSpatialFields:

  def test_gaussian_integral(self):
    grid = grids.physical_grid((-1.0, 1.0), (-1.0, 1.0), 0.02)
    field = spatial_fields.SpatialGaussian(0.1, 0.2, 0.05, -0.1, 2.0)
    samples = spatial_fields.GeneratedField(field, grid)()
    assert samples.offset == grids.DUAL_NODES
    total = float(jnp.sum(samples.data)) * grid.cell_size**2
    assert total == pytest.approx(2.0, rel=1e-6)

  def test_gaussian_derivative(self):
    field = spatial_fields.SpatialGaussian(0.3, 0.1, 0.2, 1.0)
    dfield = spatial_fields.SpatialGaussian(0.3, 0.1, 0.2, 1.0, deriv=1)
    x, y, h = 0.25, 0.15, 1e-6
    rate = (field(x + h, y) - field(x - h, y)) / (2 * h)
    assert float(dfield(x, y)) == pytest.approx(float(rate), rel=1e-6)

  def test_gaussian_arguments(self):
    with pytest.raises(TypeError):
      spatial_fields.SpatialGaussian(0.1, 0.0, 0.0)

  def test_fields_add(self):
    field = (spatial_fields.SpatialField(lambda x, y: x)
             + spatial_fields.SpatialField(lambda x, y: 2 * y))
    assert field(1.0, 3.0) == 7.0

  def test_modulated_field(self):
    grid = grids.physical_grid((-1.0, 1.0), (-1.0, 1.0), 0.1)
    gauss = spatial_fields.SpatialGaussian(0.2, 0.0, 0.0, 1.0)
    pulse = spatial_fields.ModulatedField(
        gauss, spatial_fields.GaussianPulse(0.1, 0.5, 3.0))
    assert float(pulse(0.0, 0.0, 0.5)) == pytest.approx(3 / (np.pi * 0.04))
    generated, = spatial_fields.generate_pulses([pulse], grid)
    value = generated(0.5)
    assert value.offset == grids.DUAL_NODES
    np.testing.assert_allclose(
        np.asarray(value.data),
        3.0 * np.asarray(grid.eval_on_mesh(gauss).data))
    assert spatial_fields.generate_pulses(None, grid) == ()

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
"""Tests for grids, differences, interpolation and the lattice operators."""
import jax
import numpy as np
import pytest

from jax_viscous.base import boundaries
from jax_viscous.base import diffusion
from jax_viscous.base import finite_differences as fd
from jax_viscous.base import grids
from jax_viscous.base import interpolation
from jax_viscous.base import lattice_greens


def _data(array):
  return np.asarray(array.data)


class TestGrid:

  def test_physical_grid_covers_limits(self):
    grid = grids.physical_grid((-1.0, 1.0), (0.0, 0.5), 0.1)
    assert grid.shape == (22, 7)
    np.testing.assert_allclose(grid.domain[0], (-1.1, 1.1))
    np.testing.assert_allclose(grid.domain[1], (-0.1, 0.6))
    assert grid.cell_size == pytest.approx(0.1)

  def test_upper_limit_rounds_up(self):
    grid = grids.physical_grid((0.0, 1.05), (0.0, 1.0), 0.1)
    assert grid.shape == (13, 12)
    assert grid.domain[0][1] == pytest.approx(1.2)

  def test_origin(self):
    grid = grids.physical_grid((-1.0, 1.0), (-1.0, 1.0), 0.1)
    assert grid.origin == (10, 10)
    x, y = grid.mesh(grids.PRIMAL_NODES)
    assert float(x[10, 10]) == pytest.approx(0.0)
    assert float(y[10, 10]) == pytest.approx(0.0)

  def test_origin_outside_grid(self):
    grid = grids.physical_grid((1.0, 3.0), (2.0, 4.0), 0.5)
    assert grid.origin[0] < 0 and grid.origin[1] < 0

  def test_constructors_are_zero(self, grid):
    assert grids.dual_nodes(grid).offset == grids.DUAL_NODES
    assert grids.primal_nodes(grid).offset == grids.PRIMAL_NODES
    edges = grids.primal_edges(grid)
    assert tuple(e.offset for e in edges) == grids.PRIMAL_EDGES
    tensor = grids.edge_gradient(grid)
    assert tensor[0, 0].offset == grids.PRIMAL_NODES
    assert tensor[0, 1].offset == grids.DUAL_NODES
    assert all(not np.any(_data(c)) for c in tensor.ravel())

  def test_inconsistent_offsets(self, grid):
    with pytest.raises(grids.InconsistentOffsetError):
      grids.dual_nodes(grid) + grids.primal_nodes(grid)

  def test_inconsistent_grids(self, grid):
    other = grids.Grid((24, 20), step=0.5)
    with pytest.raises(grids.InconsistentGridError):
      grids.dual_nodes(grid) + grids.dual_nodes(other)

  def test_shift_pads_with_zeros(self, grid):
    u = grids.GridArray(np.ones(grid.shape), grids.DUAL_NODES, grid)
    shifted = boundaries.shift(u, +1, axis=0)
    assert shifted.offset == (1.5, 0.5)
    assert np.all(_data(shifted)[:-1] == 1.0)
    assert np.all(_data(shifted)[-1] == 0.0)

  def test_unbounded_boundary_conditions(self):
    bc = boundaries.UnboundedBoundaryConditions()
    assert bc.types == ((boundaries.BCType.UNBOUNDED,) * 2,) * 2
    assert bc == boundaries.UNBOUNDED
    leaves, treedef = jax.tree_util.tree_flatten(bc)
    assert not leaves
    assert jax.tree_util.tree_unflatten(treedef, leaves) == bc

  def test_padded_grid(self, grid, bump):
    padded = grids.padded_grid(grid, 2)
    assert padded.shape == (28, 24)
    np.testing.assert_allclose(padded.step, grid.step)
    np.testing.assert_allclose(padded.domain, ((-2.0, 26.0), (-2.0, 22.0)))
    x, y = grid.mesh(grids.DUAL_NODES)
    px, py = padded.mesh(grids.DUAL_NODES)
    np.testing.assert_allclose(px[2:-2, 2:-2], x)
    np.testing.assert_allclose(py[2:-2, 2:-2], y)

    embedded = grids.embed(bump, padded, 2)
    assert embedded.grid == padded and embedded.offset == bump.offset
    assert np.sum(_data(embedded)) == pytest.approx(np.sum(_data(bump)))
    cropped = grids.crop(embedded, grid, 2)
    assert cropped.grid == grid
    np.testing.assert_array_equal(_data(cropped), _data(bump))


class TestFiniteDifferences:

  def test_curl_curl_is_minus_laplacian(self, bump):
    np.testing.assert_allclose(
        _data(fd.curl(fd.curl(bump))), -_data(fd.laplacian(bump)), atol=1e-12)

  def test_divergence_of_curl_vanishes(self, bump):
    np.testing.assert_allclose(
        _data(fd.divergence(fd.curl(bump))), 0.0, atol=1e-12)

  def test_divergence_of_grad_is_laplacian(self, grid):
    x, y = grid.mesh(grids.PRIMAL_NODES)
    p = grids.GridArray(np.sin(0.3 * x) * np.cos(0.2 * y),
                        grids.PRIMAL_NODES, grid)
    result = fd.divergence(fd.grad(p))
    assert result.offset == grids.PRIMAL_NODES
    # The upper edge sees the zero padding through one difference only.
    np.testing.assert_allclose(_data(result)[:-1, :-1],
                               _data(fd.laplacian(p))[:-1, :-1], atol=1e-12)

  def test_curl_locations(self, bump):
    u, v = fd.curl(bump)
    assert (u.offset, v.offset) == grids.PRIMAL_EDGES
    assert fd.curl((u, v)).offset == grids.DUAL_NODES

  def test_curl_of_edges_has_zero_ghost_ring(self, grid):
    edges = tuple(grids.GridArray(np.ones(grid.shape), offset, grid)
                  for offset in grids.PRIMAL_EDGES)
    w = _data(fd.curl(edges))
    assert np.all(w[0] == 0) and np.all(w[-1] == 0)
    assert np.all(w[:, 0] == 0) and np.all(w[:, -1] == 0)

  def test_grad_of_edges_layout(self, bump):
    tensor = fd.grad(fd.curl(bump))
    for i, row in enumerate(grids.EDGE_GRADIENT):
      for j, offset in enumerate(row):
        assert tensor[i, j].offset == offset

  def test_tensor_divergence_lands_on_edges(self, grid):
    result = fd.divergence(grids.edge_gradient(grid))
    assert tuple(c.offset for c in result) == grids.PRIMAL_EDGES

  def test_linear_field_difference(self, grid):
    x, _ = grid.mesh(grids.DUAL_NODES)
    s = grids.GridArray(2.0 * x, grids.DUAL_NODES, grid)
    _, v = fd.curl(s)
    # Away from the upper edge, where the zero padding takes over.
    np.testing.assert_allclose(_data(v)[:-1], -2.0)


class TestInterpolation:

  def test_average_to_primal_nodes(self, grid):
    c = grids.GridArray(np.ones(grid.shape), grids.DUAL_NODES, grid)
    result = interpolation.grid_interpolate(c, grids.PRIMAL_NODES)
    assert result.offset == grids.PRIMAL_NODES
    np.testing.assert_allclose(_data(result)[:-1, :-1], 1.0)
    np.testing.assert_allclose(_data(result)[-1, :-1], 0.5)

  def test_half_cell_only(self, grid):
    c = grids.dual_nodes(grid)
    with pytest.raises(ValueError):
      interpolation.grid_interpolate(c, (1.5, 0.5))

  def test_tensor_layout(self, bump):
    edges = fd.curl(bump)
    tensor = interpolation.grid_interpolate(edges, 'tensor')
    for i, row in enumerate(grids.EDGE_GRADIENT):
      for j, offset in enumerate(row):
        assert tensor[i, j].offset == offset
    back = interpolation.grid_interpolate(tensor, 'edges')
    assert tuple(c.offset for c in back) == grids.PRIMAL_EDGES

  def test_transpose_swaps_components(self, bump):
    tensor = fd.grad(fd.curl(bump))
    transposed = interpolation.transpose(tensor)
    np.testing.assert_array_equal(_data(transposed[0, 1]),
                                  _data(tensor[1, 0]))
    np.testing.assert_array_equal(_data(transposed[0, 0]),
                                  _data(tensor[0, 0]))

  def test_product(self, grid):
    zeros = grids.edge_gradient(grid)
    twos = grids.GridArrayTensor([[c + 2.0 for c in row] for row in zeros])
    result = interpolation.product(twos, twos)
    np.testing.assert_allclose(_data(result[1, 0]), 4.0)


class TestLatticeGreensFunction:

  def test_reference_values(self):
    table = lattice_greens.lgf_table(4, 4)
    assert table[0, 0] == pytest.approx(0.0, abs=1e-12)
    assert table[1, 0] == pytest.approx(0.25, abs=1e-10)
    assert table[0, 1] == pytest.approx(0.25, abs=1e-10)
    assert table[1, 1] == pytest.approx(1 / np.pi, abs=1e-10)

  def test_table_is_read_only(self):
    table = lattice_greens.lgf_table(4, 4)
    with pytest.raises(ValueError):
      table[0, 0] = 1.0

  def test_discrete_laplacian_is_delta(self):
    g = lattice_greens.lgf_table(8, 8)
    # L G at (m, n) = (2, 3), using the evenness of G.
    value = g[3, 3] + g[1, 3] + g[2, 4] + g[2, 2] - 4 * g[2, 3]
    assert value == pytest.approx(0.0, abs=1e-10)
    at_origin = 4 * g[1, 0] - 4 * g[0, 0]
    assert at_origin == pytest.approx(1.0, abs=1e-10)

  def test_far_field_matches_quadrature(self):
    radius = lattice_greens.NEAR_FIELD_RADIUS
    m = np.array([radius - 1.0, radius - 5.0])
    n = np.array([3.0, radius - 5.0])
    np.testing.assert_allclose(
        lattice_greens._lgf_asymptotic(m, n),
        lattice_greens._lgf_quadrature(m, n), atol=1e-6)

  def test_solve_inverts_laplacian(self, bump):
    L = lattice_greens.plan_laplacian(bump.grid, with_inverse=True)
    f = L(bump)
    np.testing.assert_allclose(_data(L.solve(f)), _data(bump), atol=1e-9)

  def test_factor(self, bump):
    L = lattice_greens.plan_laplacian(bump.grid, with_inverse=True,
                                      factor=4.0)
    np.testing.assert_allclose(_data(L(bump)),
                               4.0 * _data(fd.laplacian(bump)))
    np.testing.assert_allclose(_data(L.solve(L(bump))), _data(bump),
                               atol=1e-9)

  def test_solve_without_inverse(self, bump):
    L = lattice_greens.plan_laplacian(bump.grid)
    with pytest.raises(ValueError):
      L.solve(bump)


class TestIntegratingFactor:

  def test_zero_is_identity(self, bump):
    H = diffusion.plan_intfact(0.0, bump.grid)
    assert H(bump) is bump

  def test_conserves_total(self, bump):
    H = diffusion.plan_intfact(0.5, bump.grid)
    assert float(np.sum(_data(H(bump)))) == pytest.approx(
        float(np.sum(_data(bump))), rel=1e-6)

  def test_semigroup(self, bump):
    Ha = diffusion.plan_intfact(0.2, bump.grid)
    Hb = diffusion.plan_intfact(0.3, bump.grid)
    Hab = diffusion.plan_intfact(0.5, bump.grid)
    np.testing.assert_allclose(_data(Ha(Hb(bump))), _data(Hab(bump)),
                               atol=1e-6)

  def test_small_time_matches_heat_equation(self, bump):
    a = 1e-4
    H = diffusion.plan_intfact(a, bump.grid)
    expected = _data(bump) + a * _data(fd.laplacian(bump))
    np.testing.assert_allclose(_data(H(bump)), expected, atol=1e-7)

  def test_viscous_operator(self, bump):
    op = diffusion.ViscousOperator(bump.grid, 0.01)
    np.testing.assert_allclose(_data(op(bump)),
                               0.01 * _data(fd.laplacian(bump)))
    assert op.integrating_factor(2.0).a == pytest.approx(0.02)

  def test_negative_argument(self, grid):
    with pytest.raises(ValueError):
      diffusion.plan_intfact(-1.0, grid)

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
This `__init__.py` file makes the `jax_viscous.base` directory a Python
package.

By importing the key modules here, it allows users to access the core classes
and functions of the library with a simpler import statement, such as:
`from jax_viscous.base import grids`
"""

# --- Foundational data structures ---

# Defines the grid (`Grid`) and the staggered fields (`GridArray`) on it.
import jax_viscous.base.grids

# Implements the zero padding of the unbounded domain.
import jax_viscous.base.boundaries


# --- Discrete operators ---

# Unscaled differences: curl, grad, divergence and the 5-point Laplacian.
import jax_viscous.base.finite_differences

# Averaging between the grid locations, and the tensor helpers.
import jax_viscous.base.interpolation

# The inverse Laplacian of the unbounded lattice.
import jax_viscous.base.lattice_greens

# The viscous operator and its integrating factor.
import jax_viscous.base.diffusion


# --- Immersed boundary ---

# Discrete delta functions and the regularization/interpolation matrices.
import jax_viscous.base.convolution_functions

# Double and single layer potentials of the surfaces.
import jax_viscous.base.layers

# Body shapes, body lists and rigid transforms.
import jax_viscous.base.bodies

# Prescribed motions of the bodies and of the freestream.
import jax_viscous.base.kinematics

# Spatial fields and pulses.
import jax_viscous.base.spatial_fields


# --- Time integration ---

# The constrained ODE function and the IF-HERK integrator.
import jax_viscous.base.time_stepping

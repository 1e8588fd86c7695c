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
This `__init__.py` file makes `jax_viscous` a Python package.

`jax_viscous` simulates two-dimensional viscous incompressible flows on an
unbounded Cartesian grid, in vorticity form, around stationary or moving
rigid bodies. The no-slip condition on the bodies is enforced by an immersed
boundary projection method: the surface forces are Lagrange multipliers of a
constraint that the time integrator satisfies exactly at every stage.

The package is organized in two subpackages.
"""
import jax

# The lattice Green's function and the constrained stages need double
# precision.
jax.config.update('jax_enable_x64', True)

# The `base` subpackage contains the numerical building blocks: grids and
# staggered fields, discrete operators on the unbounded lattice, discrete
# delta functions and layers, bodies and their kinematics, and the
# constrained Runge-Kutta integrator.
import jax_viscous.base

# The `flow` subpackage assembles these into the `NavierStokes` system and
# provides the diagnostics of its solutions (fields, pressure, forces).
import jax_viscous.flow

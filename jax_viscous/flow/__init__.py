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
The Navier-Stokes system and the diagnostics of its solutions.

The names most scripts need are available from this package:
`from jax_viscous.flow import NavierStokes, newstate`.
"""
from jax_viscous.flow.configuration import FlowSide
from jax_viscous.flow.configuration import FreestreamType
from jax_viscous.flow.configuration import PointMotionType
from jax_viscous.flow.configuration import setstepsizes
from jax_viscous.flow.fields import scalarpotential
from jax_viscous.flow.fields import streamfunction
from jax_viscous.flow.fields import velocity
from jax_viscous.flow.fields import vorticity
from jax_viscous.flow.forces import force
from jax_viscous.flow.navier_stokes import NavierStokes
from jax_viscous.flow.navier_stokes import cellsize
from jax_viscous.flow.navier_stokes import freestream
from jax_viscous.flow.navier_stokes import newstate
from jax_viscous.flow.navier_stokes import normals
from jax_viscous.flow.navier_stokes import origin
from jax_viscous.flow.navier_stokes import size
from jax_viscous.flow.navier_stokes import timerange
from jax_viscous.flow.navier_stokes import timestep
from jax_viscous.flow.navier_stokes import update_immersion_operators

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
"""Exceptions raised by `jax_viscous`."""


class ConfigurationError(ValueError):
  """
  Raised when a system, operator or integrator is set up with inconsistent or
  invalid parameters: mismatched body and motion lists, point counts that do
  not match the body geometry, non-positive physical parameters.

  These are never recovered from internally; fix the inputs and rebuild.
  """


class NumericalFailure(ArithmeticError):
  """Raised when the time integration produces non-finite values."""

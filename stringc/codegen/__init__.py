"""
Compilation of type-checked diagrams to straight-line functions in a target
language. The available targets are listed in :obj:`BACKENDS`.
"""

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

from .abc import Backend, UnmappedType
from .python import PythonBackend, python_backend
from .typescript import TypeScriptBackend, typescript_backend
from .c import CBackend, c_backend
from .generator import (
    BACKENDS,
    CODEGEN_ERROR_KINDS,
    CodeGenerator,
    CodegenError,
    CodegenErrorKind,
    CodegenFailure,
    GenerateOptions,
    generate,
)

__all__ = (
    "Backend",
    "UnmappedType",
    "PythonBackend",
    "python_backend",
    "TypeScriptBackend",
    "typescript_backend",
    "CBackend",
    "c_backend",
    "BACKENDS",
    "CODEGEN_ERROR_KINDS",
    "CodeGenerator",
    "CodegenError",
    "CodegenErrorKind",
    "CodegenFailure",
    "GenerateOptions",
    "generate",
)

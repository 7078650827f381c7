"""
StringC is a checker, rewriter and compiler for typed string diagrams of symmetric
monoidal categories. Diagrams are checked against a registry of box signatures,
rewritten with graph-pattern rules for the structural equations of the category,
and compiled to straight-line functions in Python, TypeScript or C.
"""

# StringC - checking, rewriting and compilation of string diagrams

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

__version__ = "0.1.0"

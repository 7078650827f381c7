"""
Graph-pattern rewriting of diagrams.

Rules (cf. :class:`Rule`) pair a left-hand pattern (cf. :class:`Pattern`) with a
right-hand replacement (cf. :class:`Fragment`). Rewrites apply to a user-selected
set of nodes and preserve the external connectivity of the selection exactly.
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

from .patterns import (
    Attachment,
    Fragment,
    PassThrough,
    Pattern,
    PatternNode,
    PatternPort,
    PatternWire,
    SlotBinding,
)
from .rules import BUILTIN_RULES, Rule, RuleTable, rule_table
from .engine import (
    Match,
    RewriteError,
    RewriteErrorKind,
    apply,
    find_match,
    list_applicable,
    replace,
)

__all__ = (
    "Attachment",
    "Fragment",
    "PassThrough",
    "Pattern",
    "PatternNode",
    "PatternPort",
    "PatternWire",
    "SlotBinding",
    "BUILTIN_RULES",
    "Rule",
    "RuleTable",
    "rule_table",
    "Match",
    "RewriteError",
    "RewriteErrorKind",
    "apply",
    "find_match",
    "list_applicable",
    "replace",
)

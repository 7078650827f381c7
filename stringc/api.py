"""
Request-level operations on interchange documents, returning plain-data responses.

Every response carries a ``"status"``, one of ``"ok"``, ``"error"`` or
``"cancelled"``. Errors are reported in the response, never raised, and a response
never carries a partial result.
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

from __future__ import annotations
from collections.abc import Iterable, Mapping
import logging
from typing import Any, Final, TypeAlias

from .cancellation import CancellationToken, Cancelled
from .checker import check
from .codegen import CodegenFailure, GenerateOptions, generate
from .diagrams import Diagram
from .lib.std import std_registry
from .registry import SignatureRegistry
from .rewriting import BUILTIN_RULES, RewriteError, RuleTable, apply, list_applicable
from .serialization import DocumentError, decode_diagram, encode_diagram

logger = logging.getLogger(__name__)

Response: TypeAlias = dict[str, Any]
"""Type alias for a response."""

CANCELLED: Final[Response] = {"status": "cancelled"}
"""Response to a cancelled request."""


def _document_error(message: str) -> dict[str, Any]:
    return {"kind": "document", "message": message}


def _prepare(
    document: Any,
    registry: SignatureRegistry | None,
    declarations: Iterable[Mapping[str, Any]] | None,
) -> tuple[Diagram, SignatureRegistry]:
    """
    Decodes the document and resolves the registry, which defaults to the standard
    library, extended with the given signature declarations.

    :raises DocumentError: if the document or the declarations are malformed.
    """
    diagram = decode_diagram(document)
    if registry is None:
        registry = std_registry
    if declarations is not None:
        aliases = {
            name: t for name, t in diagram.type_decls.items() if t is not None
        }
        try:
            registry = registry.extend(
                SignatureRegistry.from_declarations(declarations, aliases)
            )
        except ValueError as e:
            raise DocumentError(f"Invalid signature declarations: {e}") from None
    return diagram, registry


def _cancelled(operation: str) -> Response:
    logger.info("Request %s was cancelled.", operation)
    return dict(CANCELLED)


def type_check(
    document: Any,
    registry: SignatureRegistry | None = None,
    *,
    declarations: Iterable[Mapping[str, Any]] | None = None,
    cancel: CancellationToken | None = None,
) -> Response:
    """
    Checks the diagram described by a document.
    Responds with validity, diagnostics and, if valid, the diagram's signature.
    """
    try:
        diagram, registry = _prepare(document, registry, declarations)
        result = check(diagram, registry, cancel=cancel)
    except DocumentError as e:
        return {"status": "error", "error": _document_error(str(e))}
    except Cancelled:
        return _cancelled("type_check")
    return {
        "status": "ok",
        "valid": result.valid,
        "diagnostics": [d.to_dict() for d in result.diagnostics],
        "signature": None if result.signature is None else str(result.signature),
    }


def list_rewrites(
    document: Any,
    selection: Iterable[str],
    registry: SignatureRegistry | None = None,
    *,
    rules: RuleTable = BUILTIN_RULES,
    declarations: Iterable[Mapping[str, Any]] | None = None,
    cancel: CancellationToken | None = None,
) -> Response:
    """Lists the rules applicable to the selected nodes."""
    try:
        diagram, registry = _prepare(document, registry, declarations)
        applicable = list_applicable(
            diagram, selection, registry, rules=rules, cancel=cancel
        )
    except DocumentError as e:
        return {"status": "error", "error": _document_error(str(e))}
    except Cancelled:
        return _cancelled("list_rewrites")
    return {
        "status": "ok",
        "rules": [
            {"ruleId": rule.id, "name": rule.name, "description": rule.description}
            for rule in applicable
        ],
    }


def rewrite(
    document: Any,
    rule_id: str,
    selection: Iterable[str],
    registry: SignatureRegistry | None = None,
    *,
    rules: RuleTable = BUILTIN_RULES,
    recheck: bool = False,
    declarations: Iterable[Mapping[str, Any]] | None = None,
    cancel: CancellationToken | None = None,
) -> Response:
    """Applies a rule to the selected nodes, responding with the new document."""
    try:
        diagram, registry = _prepare(document, registry, declarations)
        result = apply(
            diagram,
            rule_id,
            selection,
            registry,
            rules=rules,
            recheck=recheck,
            cancel=cancel,
        )
    except DocumentError as e:
        return {"status": "error", "error": _document_error(str(e))}
    except RewriteError as e:
        return {"status": "error", "error": e.to_dict()}
    except Cancelled:
        return _cancelled("rewrite")
    return {"status": "ok", "diagram": encode_diagram(result)}


def compile_diagram(
    document: Any,
    target: str,
    registry: SignatureRegistry | None = None,
    options: GenerateOptions | None = None,
    *,
    declarations: Iterable[Mapping[str, Any]] | None = None,
    cancel: CancellationToken | None = None,
) -> Response:
    """
    Checks the diagram described by a document and compiles it to the given target,
    responding with the generated source or with all code generation errors.
    """
    try:
        diagram, registry = _prepare(document, registry, declarations)
        checked = check(diagram, registry, cancel=cancel)
        source = generate(diagram, target, checked, cancel=cancel, **(options or {}))
    except DocumentError as e:
        error = _document_error(str(e))
        return {"status": "error", "errors": [{"subject": None, **error}]}
    except CodegenFailure as e:
        return {"status": "error", "errors": [error.to_dict() for error in e.errors]}
    except Cancelled:
        return _cancelled("compile_diagram")
    return {"status": "ok", "source": source}

"""TemplateResolver - resolves {{ dotted.path }} placeholders."""

import re
from typing import Any, List

from .errors import UnresolvedVariableError
from .schema import BlueprintDocument
from .variables import REDACTION_MARKER, VariableStore

PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_][A-Za-z0-9_.\-]*)\s*\}\}")

# Static fields may themselves hold placeholders (slugs.dynamic.*)
MAX_DEPTH = 8


class TemplateResolver:
    """
    Resolves placeholders against the session's bindings, then the blueprint.

    Resolution order for a path:
    1. A binding stored under the full path (e.g. ``sdk.language``)
    2. A declared variable named by the path or its leading segment
    3. A static field of the blueprint document (``auth.callback_path``)

    Resolution is pure: it never mutates the store or the document.
    """

    def __init__(self, document: BlueprintDocument, store: VariableStore):
        self.document = document
        self.store = store

    @staticmethod
    def placeholders(text: str) -> List[str]:
        """Return every placeholder path in text, in order of appearance."""
        return PLACEHOLDER.findall(text or "")

    def resolve(
        self,
        text: str,
        strict: bool = True,
        reveal: bool = True,
        marker: str = REDACTION_MARKER,
    ) -> str:
        """Replace every placeholder in text.

        Args:
            text: Template string
            strict: If True, unbound required variables raise. If False
                (display use), their placeholders are left untouched
            reveal: If False, sensitive values render as `marker`
            marker: Redaction marker for masked rendering

        Returns:
            Resolved string

        Raises:
            UnresolvedVariableError: Unbound required variable (strict mode),
                or a path that exists neither as a variable nor in the blueprint
        """
        return self._resolve(text, strict, reveal, marker, depth=0)

    def _resolve(self, text: str, strict: bool, reveal: bool, marker: str, depth: int) -> str:
        if depth > MAX_DEPTH:
            pending = self.placeholders(text)
            raise UnresolvedVariableError(pending[0] if pending else "?", "placeholders nested too deeply")

        def replacer(match):
            path = match.group(1)
            return self._lookup(path, match.group(0), strict, reveal, marker, depth)

        return PLACEHOLDER.sub(replacer, text)

    def _lookup(self, path: str, original: str, strict: bool, reveal: bool, marker: str, depth: int) -> str:
        binding = self.store.get(path)
        if binding is not None:
            return binding.reveal() if reveal else binding.masked(marker)

        root = path.split(".", 1)[0]
        name = path if path in self.store.specs else root if root in self.store.specs else None
        if name is not None:
            if name != path:
                if self.store.is_bound(name):
                    raise UnresolvedVariableError(path, f"'{name}' holds a plain value")
            spec = self.store.spec_for(name)
            if not strict:
                return original
            if spec.required:
                raise UnresolvedVariableError(path, f"required variable '{name}' is not bound")
            return ""

        value = self.document.lookup(path)
        return self._render_static(value, strict, reveal, marker, depth)

    def _render_static(self, value: Any, strict: bool, reveal: bool, marker: str, depth: int) -> str:
        if isinstance(value, str):
            return self._resolve(value, strict, reveal, marker, depth + 1)
        if isinstance(value, (list, tuple)):
            return ", ".join(self._render_static(item, strict, reveal, marker, depth) for item in value)
        if isinstance(value, bool):
            return "true" if value else "false"
        if value is None:
            return ""
        return str(value)

"""Variable bindings and their validation.

Sensitivity travels with the bound value: sensitive values are held as
pydantic ``SecretStr`` so that printing, logging or dumping a binding never
shows the secret. ``Binding.reveal()`` is the only way to read it back.
"""

import logging
import re
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, SecretStr

from .errors import ValidationError
from .schema import VariableSpec

logger = logging.getLogger(__name__)

REDACTION_MARKER = "[REDACTED]"


class Binding(BaseModel):
    """A variable name bound to a concrete value during a session."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: Union[SecretStr, str]
    sensitive: bool = False
    origin: Literal["spec", "runtime"] = "spec"

    @classmethod
    def create(cls, name: str, value: str, sensitive: bool, origin: str = "spec") -> "Binding":
        stored = SecretStr(value) if sensitive else value
        return cls(name=name, value=stored, sensitive=sensitive, origin=origin)

    def reveal(self) -> str:
        if isinstance(self.value, SecretStr):
            return self.value.get_secret_value()
        return self.value

    def masked(self, marker: str = REDACTION_MARKER) -> str:
        return marker if self.sensitive else self.reveal()


def matches(pattern: str, value: str) -> bool:
    """True if the whole value matches the pattern."""
    return re.fullmatch(pattern, value) is not None


class VariableStore:
    """
    Holds bound values plus the declared metadata of each variable.

    Owned by a single session; only the flow engine applies bindings.
    """

    def __init__(self, specs: Optional[Dict[str, VariableSpec]] = None):
        self.specs: Dict[str, VariableSpec] = dict(specs or {})
        self._bindings: Dict[str, Binding] = {}

    def spec_for(self, name: str) -> Optional[VariableSpec]:
        return self.specs.get(name)

    def check(self, name: str, value: str, pattern: Optional[str] = None) -> None:
        """Validate a value for `name` without storing it.

        Args:
            name: Variable name
            value: Candidate value
            pattern: Extra step-level pattern, checked in addition to the spec's

        Raises:
            ValidationError: If the value does not fully match a pattern
        """
        spec = self.spec_for(name)
        for candidate in (pattern, spec.validation if spec else None):
            if candidate and not matches(candidate, value):
                raise ValidationError(
                    f"Value for '{name}' does not match {candidate}",
                    variable=name,
                    pattern=candidate,
                )

    def is_sensitive(self, name: str) -> bool:
        spec = self.spec_for(name)
        existing = self._bindings.get(name)
        return bool((spec and spec.sensitive) or (existing and existing.sensitive))

    def bind(self, name: str, value: str, sensitive: bool = False, pattern: Optional[str] = None) -> Binding:
        """Validate and store a value.

        Sensitivity is the union of the caller's flag, the spec flag and any
        previous binding for the same name. It is never downgraded.

        Raises:
            ValidationError: If the value fails validation; nothing is stored
        """
        self.check(name, value, pattern)
        sensitive = sensitive or self.is_sensitive(name)
        origin = "spec" if name in self.specs else "runtime"
        binding = Binding.create(name, value, sensitive=sensitive, origin=origin)
        self._bindings[name] = binding
        logger.debug(f"Bound variable '{name}' (sensitive={sensitive})")
        return binding

    def get(self, path: str) -> Optional[Binding]:
        """Return the binding stored under a name (which may itself be dotted)."""
        return self._bindings.get(path)

    def is_bound(self, name: str) -> bool:
        return name in self._bindings

    def missing_required(self) -> List[str]:
        return [name for name, spec in self.specs.items() if spec.required and name not in self._bindings]

    def all_required_bound(self) -> bool:
        return not self.missing_required()

    def bindings(self, sensitive: Optional[bool] = None) -> List[Binding]:
        """Bindings in bind order, optionally filtered by sensitivity."""
        return [
            binding for binding in self._bindings.values()
            if sensitive is None or binding.sensitive == sensitive
        ]

    def redact(self, text: str, marker: str = REDACTION_MARKER) -> str:
        """Replace every occurrence of a sensitive value in text with the marker.

        Meant for free text the engine did not render itself, such as an AI
        response. Rendered output is masked per placeholder instead.
        """
        secrets = sorted(
            (b.reveal() for b in self.bindings(sensitive=True) if b.reveal()),
            key=len,
            reverse=True,
        )
        for secret in secrets:
            text = text.replace(secret, marker)
        return text

    def __len__(self) -> int:
        return len(self._bindings)

    def __repr__(self) -> str:
        names = ", ".join(self._bindings)
        return f"VariableStore(bound=[{names}])"

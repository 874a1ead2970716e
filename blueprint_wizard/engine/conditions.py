"""ConditionEvaluator - the `when` guard mini-language.

The only supported form is::

    <dotted.path> == '<literal>'

Matching is exact and case-sensitive. There are no boolean combinators and
nothing is ever passed to eval().
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Union

from .errors import ConditionSyntaxError
from .schema import BlueprintDocument
from .variables import VariableStore

logger = logging.getLogger(__name__)

_EXPRESSION = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_.\-]*)\s*==\s*'([^']*)'\s*$")
_NOT_FOUND = object()


@dataclass(frozen=True)
class Condition:
    path: str
    literal: str


class ConditionEvaluator:
    """Evaluates guard expressions against bindings and static blueprint fields."""

    def __init__(self, document: Optional[BlueprintDocument] = None):
        self.document = document

    @staticmethod
    def parse(expression: str, step_id: Optional[str] = None) -> Condition:
        """Parse an expression.

        Raises:
            ConditionSyntaxError: If the expression is not `<path> == '<literal>'`
        """
        match = _EXPRESSION.match(expression or "")
        if not match:
            raise ConditionSyntaxError(expression, step_id=step_id)
        return Condition(path=match.group(1), literal=match.group(2))

    def evaluate(self, expression: Union[str, Condition], store: VariableStore) -> bool:
        """Evaluate a guard. Unknown or unbound paths evaluate to False.

        Never raises: an expression that slipped past load-time validation is
        logged and treated as False.
        """
        if isinstance(expression, Condition):
            condition = expression
        else:
            try:
                condition = self.parse(expression)
            except ConditionSyntaxError as e:
                logger.warning(f"Treating unparseable condition as false: {e}")
                return False

        actual = self._resolve(condition.path, store)
        if actual is _NOT_FOUND:
            logger.debug(f"Condition path '{condition.path}' is unresolved; evaluating to false")
            return False
        return actual == condition.literal

    def _resolve(self, path: str, store: VariableStore):
        binding = store.get(path)
        if binding is not None:
            return binding.reveal()
        if path in store.specs or path.split(".", 1)[0] in store.specs:
            return _NOT_FOUND
        if self.document is None:
            return _NOT_FOUND
        value = self.document.lookup(path, default=_NOT_FOUND)
        if value is _NOT_FOUND or isinstance(value, (dict, list)):
            return _NOT_FOUND
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

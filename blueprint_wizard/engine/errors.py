"""Exception hierarchy for blueprint execution.

Every error carries enough context (step id, variable name, pattern, path)
for the UI layer to explain the failure to the user.
"""

from typing import List, Optional


class OnboardingError(Exception):
    """Base class for all blueprint engine errors."""

    def __init__(self, message: str, step_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.step_id = step_id

    def __str__(self) -> str:
        if self.step_id:
            return f"[step {self.step_id}] {self.message}"
        return self.message


class MalformedBlueprintError(OnboardingError):
    """Blueprint is structurally invalid. Raised before any step executes."""

    def __init__(self, message: str, location: Optional[str] = None, step_id: Optional[str] = None):
        super().__init__(message, step_id=step_id)
        self.location = location

    def __str__(self) -> str:
        base = super().__str__()
        if self.location:
            return f"{base} (at {self.location})"
        return base


class ConditionSyntaxError(MalformedBlueprintError):
    """A `when` expression does not follow `<path> == '<literal>'`."""

    def __init__(self, expression: str, step_id: Optional[str] = None):
        super().__init__(
            f"Unsupported condition expression: {expression!r} "
            "(expected <path> == '<literal>')",
            step_id=step_id,
        )
        self.expression = expression


class ValidationError(OnboardingError):
    """A value failed its declared pattern or is not a declared option.

    Recoverable: handlers turn it into a re-prompt.
    """

    def __init__(
        self,
        message: str,
        variable: Optional[str] = None,
        pattern: Optional[str] = None,
        step_id: Optional[str] = None,
    ):
        super().__init__(message, step_id=step_id)
        self.variable = variable
        self.pattern = pattern


class UnresolvedVariableError(OnboardingError):
    """A template placeholder could not be resolved."""

    def __init__(self, path: str, reason: str = "", step_id: Optional[str] = None):
        message = f"Cannot resolve '{{{{ {path} }}}}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, step_id=step_id)
        self.path = path


class IncompleteFlowError(OnboardingError):
    """Flow reached its end with required variables still unbound."""

    def __init__(self, flow_id: str, missing: List[str]):
        super().__init__(
            f"Flow '{flow_id}' cannot complete, required variables unbound: "
            + ", ".join(missing)
        )
        self.flow_id = flow_id
        self.missing = list(missing)


class OnboardingIOError(OnboardingError, OSError):
    """Blueprint read or artifact write failure."""

    def __init__(self, message: str, path: Optional[str] = None):
        OnboardingError.__init__(self, message)
        self.path = path


class EncryptionError(OnboardingError):
    """Credentials must be encrypted but no encryptor is available or it failed."""


class UserAbortedError(OnboardingError):
    """Deliberate cancellation by the user. Not a failure."""

    def __init__(self, message: str = "Cancelled by user", step_id: Optional[str] = None):
        super().__init__(message, step_id=step_id)

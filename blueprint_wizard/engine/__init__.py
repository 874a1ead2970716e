"""Blueprint engine - interprets onboarding blueprints step by step."""

from .conditions import ConditionEvaluator
from .crypto import CredentialEncryptor, FernetEncryptor
from .engine import FlowEngine, Session, SessionState
from .errors import (
    ConditionSyntaxError,
    EncryptionError,
    IncompleteFlowError,
    MalformedBlueprintError,
    OnboardingError,
    OnboardingIOError,
    UnresolvedVariableError,
    UserAbortedError,
    ValidationError,
)
from .loader import BlueprintLoader
from .output import OutputWriter
from .runner import ActionRunner, MockActionRunner, RealActionRunner
from .schema import BlueprintDocument, Flow, VariableSpec
from .templates import TemplateResolver
from .variables import REDACTION_MARKER, Binding, VariableStore

__all__ = [
    'FlowEngine',
    'Session',
    'SessionState',
    'BlueprintLoader',
    'ActionRunner',
    'RealActionRunner',
    'MockActionRunner',
    'BlueprintDocument',
    'Flow',
    'VariableSpec',
    'VariableStore',
    'Binding',
    'REDACTION_MARKER',
    'TemplateResolver',
    'ConditionEvaluator',
    'OutputWriter',
    'CredentialEncryptor',
    'FernetEncryptor',
    'OnboardingError',
    'MalformedBlueprintError',
    'ConditionSyntaxError',
    'ValidationError',
    'UnresolvedVariableError',
    'IncompleteFlowError',
    'OnboardingIOError',
    'EncryptionError',
    'UserAbortedError',
]

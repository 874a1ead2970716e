"""Core flow engine - runs one blueprint flow with an injected runner.

States::

    NOT_STARTED -> RUNNING_STEP -> (WAITING_FOR_INPUT | COMPLETED | ABORTED)

WAITING_FOR_INPUT loops back to RUNNING_STEP once the runner returns.
COMPLETED and ABORTED are terminal. Steps run strictly one at a time, in
document order.
"""

import logging
import uuid
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import Settings
from .conditions import ConditionEvaluator
from .crypto import CredentialEncryptor
from .errors import IncompleteFlowError, OnboardingError, UserAbortedError
from .handlers import HandlerAction, StepContext, get_handler, validate_document
from .output import OutputWriter
from .runner import ActionRunner
from .schema import BlueprintDocument, Flow
from .templates import TemplateResolver
from .variables import VariableStore

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING_STEP = "running_step"
    WAITING_FOR_INPUT = "waiting_for_input"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.ABORTED)


class StepOutcome(str, Enum):
    EXECUTED = "executed"
    SKIPPED = "skipped"
    ABORTED = "aborted"


class StepRecord(BaseModel):
    step_id: str
    type: str
    outcome: StepOutcome


class Session(BaseModel):
    """
    The state of one flow run.

    Passed explicitly through every engine operation; nothing about a run
    lives on the engine itself.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    flow_id: str
    current_step_index: int = 0
    state: SessionState = SessionState.NOT_STARTED
    store: VariableStore
    step_log: List[StepRecord] = Field(default_factory=list)
    artifacts: List[str] = Field(default_factory=list)
    abort_reason: Optional[str] = None
    ai_prompt_steps: List[str] = Field(default_factory=list)
    advisories: List[str] = Field(default_factory=list)

    @property
    def executed_steps(self) -> List[str]:
        return [r.step_id for r in self.step_log if r.outcome == StepOutcome.EXECUTED]

    @property
    def skipped_steps(self) -> List[str]:
        return [r.step_id for r in self.step_log if r.outcome == StepOutcome.SKIPPED]


class FlowEngine:
    """
    Executes blueprint flows with dependency injection.

    Key responsibilities:
    - Validate the blueprint before anything runs
    - Evaluate `when` guards and skip steps whose guard is false
    - Dispatch steps to their handlers and apply returned bindings
    - Refuse completion while required variables are unbound
    - Hand completed sessions to the OutputWriter
    """

    def __init__(
        self,
        document: BlueprintDocument,
        runner: ActionRunner,
        encryptor: Optional[CredentialEncryptor] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the engine.

        Args:
            document: Loaded blueprint (validated again here)
            runner: ActionRunner implementation for all I/O
            encryptor: Required when security.encrypt_credentials is true
            settings: Runtime settings (default: Settings())

        Raises:
            MalformedBlueprintError: If the blueprint fails load-time validation
        """
        validate_document(document)
        self.document = document
        self.runner = runner
        self.settings = settings or Settings()
        self.conditions = ConditionEvaluator(document)
        self.writer = OutputWriter(
            document,
            runner,
            encryptor=encryptor,
            storage_path=self.settings.output_dir,
        )

    def start(self, flow_id: Optional[str] = None) -> Session:
        """Create a fresh session for a flow (the first flow by default)."""
        flow = self.document.get_flow(flow_id)
        session = Session(flow_id=flow.id, store=VariableStore(self.document.variables))
        logger.info(f"Session {session.session_id} created for flow '{flow.id}'")
        return session

    def run(self, flow_id: Optional[str] = None) -> Session:
        """Start a session, show the preview and run it to the end."""
        session = self.start(flow_id)
        self.show_preview()
        return self.run_session(session)

    def show_preview(self) -> None:
        preview = self.document.preview
        if not preview or not preview.enabled:
            return
        parts = [f"# {preview.title or self.document.name}"]
        if self.document.description:
            parts.append(self.document.description)
        if preview.estimated_time:
            parts.append(f"Estimated time: {preview.estimated_time}")
        if preview.steps:
            parts.append("\n".join(f"{i}. {item}" for i, item in enumerate(preview.steps, 1)))
        self.runner.display("\n\n".join(parts), markdown=True)

    def run_session(self, session: Session) -> Session:
        """
        Drive a session from its current step to COMPLETED or ABORTED.

        Returns:
            The same session, in a terminal state

        Raises:
            IncompleteFlowError: Flow ended with required variables unbound
            OnboardingError: Any non-recoverable error, annotated with the step id
        """
        if session.state.is_terminal:
            raise OnboardingError(f"Session {session.session_id} is already {session.state.value}")

        flow = self.document.get_flow(session.flow_id)
        ctx = StepContext(
            document=self.document,
            store=session.store,
            runner=self.runner,
            resolver=TemplateResolver(self.document, session.store),
            max_input_attempts=self.settings.max_input_attempts,
        )

        session.state = SessionState.RUNNING_STEP
        while session.current_step_index < len(flow.steps):
            step = flow.steps[session.current_step_index]

            if step.when and not self.conditions.evaluate(step.when, session.store):
                logger.info(f"Skipping step '{step.id}': condition {step.when!r} is false")
                self._record(session, step, StepOutcome.SKIPPED)
                session.current_step_index += 1
                continue

            if not self._execute(session, step, ctx):
                return session
            session.current_step_index += 1

        return self._complete(session, flow)

    def _execute(self, session: Session, step, ctx: StepContext) -> bool:
        """Run one step. Returns False if the session was aborted."""
        handler = get_handler(step.type)
        logger.debug(f"Executing step '{step.id}' ({step.type})")
        if handler.awaits_user:
            session.state = SessionState.WAITING_FOR_INPUT
        try:
            result = handler.execute(step, ctx)
        except UserAbortedError as e:
            self._abort(session, step, e.message)
            return False
        except OnboardingError as e:
            if e.step_id is None:
                e.step_id = step.id
            raise
        finally:
            if session.state == SessionState.WAITING_FOR_INPUT:
                session.state = SessionState.RUNNING_STEP

        if result.action == HandlerAction.ABORT:
            self._abort(session, step, result.reason or "Step aborted")
            return False

        for pending in result.bindings:
            session.store.bind(pending.name, pending.value, sensitive=pending.sensitive, pattern=pending.pattern)
        if step.type == "ai_prompt":
            session.ai_prompt_steps.append(step.id)
            if result.advisory:
                session.advisories.append(result.advisory)
        self._record(session, step, StepOutcome.EXECUTED)
        return True

    def _complete(self, session: Session, flow: Flow) -> Session:
        missing = session.store.missing_required()
        if missing:
            raise IncompleteFlowError(flow.id, missing)
        try:
            session.artifacts = self.writer.write(session)
        except UserAbortedError as e:
            # Cancelled at the credentials confirmation, before anything was written
            logger.info(f"Session {session.session_id} aborted before writing artifacts: {e.message}")
            self._cancel(session, e.message)
            return session
        session.state = SessionState.COMPLETED
        logger.info(f"Flow '{flow.id}' completed ({len(session.store)} variables bound)")
        return session

    def _abort(self, session: Session, step, reason: str) -> None:
        self._record(session, step, StepOutcome.ABORTED)
        logger.info(f"Session {session.session_id} aborted at step '{step.id}': {reason}")
        self._cancel(session, reason)

    def _cancel(self, session: Session, reason: str) -> None:
        session.state = SessionState.ABORTED
        session.abort_reason = reason
        self.runner.display(f"Onboarding cancelled: {reason}")

    @staticmethod
    def _record(session: Session, step, outcome: StepOutcome) -> None:
        session.step_log.append(StepRecord(step_id=step.id, type=step.type, outcome=outcome))

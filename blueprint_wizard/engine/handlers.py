"""Step handlers - one per step type.

Each handler validates its own payload once at load time and executes the
step against the session through the injected runner. Handlers never mutate
the VariableStore; they return the bindings for the engine to apply.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .conditions import ConditionEvaluator
from .errors import MalformedBlueprintError, ValidationError
from .runner import ActionRunner
from .schema import (
    AiPromptStep,
    BlueprintDocument,
    ChoiceStep,
    InfoStep,
    InputStep,
    NavigateStep,
    ShowCommandsStep,
)
from .templates import TemplateResolver
from .variables import VariableStore

logger = logging.getLogger(__name__)


class HandlerAction(str, Enum):
    ADVANCE = "advance"
    ABORT = "abort"


@dataclass
class PendingBinding:
    name: str
    value: str
    sensitive: bool = False
    pattern: Optional[str] = None


@dataclass
class HandlerResult:
    """What a handler asks the engine to do next."""

    action: HandlerAction = HandlerAction.ADVANCE
    bindings: List[PendingBinding] = field(default_factory=list)
    reason: Optional[str] = None
    advisory: Optional[str] = None

    @classmethod
    def advance(cls, bindings: Optional[List[PendingBinding]] = None, advisory: Optional[str] = None) -> "HandlerResult":
        return cls(action=HandlerAction.ADVANCE, bindings=bindings or [], advisory=advisory)

    @classmethod
    def abort(cls, reason: str) -> "HandlerResult":
        return cls(action=HandlerAction.ABORT, reason=reason)


@dataclass
class StepContext:
    """Everything a handler may touch while executing one step."""

    document: BlueprintDocument
    store: VariableStore
    runner: ActionRunner
    resolver: TemplateResolver
    max_input_attempts: int = 0  # 0 = retry until valid input or cancellation


class StepHandler(ABC):
    step_type: str = ""
    # Handler blocks on the user (session is WAITING_FOR_INPUT meanwhile)
    awaits_user: bool = False

    def validate(self, step, document: BlueprintDocument) -> None:
        """Check the step payload. Raises MalformedBlueprintError."""
        pass

    @abstractmethod
    def execute(self, step, ctx: StepContext) -> HandlerResult:
        pass

    def _heading(self, step, ctx: StepContext) -> None:
        if step.title:
            ctx.runner.display(f"\n## {ctx.resolver.resolve(step.title, strict=False)}", markdown=True)


class InfoHandler(StepHandler):
    step_type = "info"

    def execute(self, step: InfoStep, ctx: StepContext) -> HandlerResult:
        self._heading(step, ctx)
        ctx.runner.display(ctx.resolver.resolve(step.markdown.strip(), strict=False), markdown=True)
        return HandlerResult.advance()


class NavigateHandler(StepHandler):
    step_type = "navigate"
    awaits_user = True

    def execute(self, step: NavigateStep, ctx: StepContext) -> HandlerResult:
        self._heading(step, ctx)
        url = ctx.resolver.resolve(step.url, strict=False)
        instructions = [ctx.resolver.resolve(line, strict=False) for line in step.instructions]
        if not ctx.runner.acknowledge_navigation(url, instructions):
            return HandlerResult.abort(f"Navigation to {url} was not confirmed")
        return HandlerResult.advance()


class InputHandler(StepHandler):
    step_type = "input"
    awaits_user = True

    def validate(self, step: InputStep, document: BlueprintDocument) -> None:
        if bool(step.save_to) == bool(step.inputs):
            raise MalformedBlueprintError(
                "input step must declare exactly one of 'save_to' or 'inputs'", step_id=step.id
            )
        names = [f.name for f in step.input_fields]
        if len(set(names)) != len(names):
            raise MalformedBlueprintError("input step captures the same variable twice", step_id=step.id)
        if step.validation:
            _check_pattern(step.validation.pattern, step.id)

    def execute(self, step: InputStep, ctx: StepContext) -> HandlerResult:
        self._heading(step, ctx)
        pattern = step.validation.pattern if step.validation else None
        bindings = []
        for input_field in step.input_fields:
            spec = ctx.store.spec_for(input_field.name)
            sensitive = input_field.sensitive or ctx.store.is_sensitive(input_field.name)
            required = bool(spec and spec.required)
            prompt = input_field.prompt or step.prompt or (spec.description if spec and spec.description else input_field.name)
            hint = pattern or (spec.validation if spec else None)

            value, reason = self._acquire(step, ctx, input_field.name, prompt, hint, pattern, sensitive, required)
            if reason:
                return HandlerResult.abort(reason)
            if value is not None:
                bindings.append(PendingBinding(input_field.name, value, sensitive=sensitive, pattern=pattern))
        return HandlerResult.advance(bindings)

    def _acquire(
        self, step: InputStep, ctx: StepContext, name: str, prompt: str,
        hint: Optional[str], pattern: Optional[str], sensitive: bool, required: bool,
    ) -> Tuple[Optional[str], Optional[str]]:
        """Re-prompt until the value validates. Returns (value, abort_reason)."""
        attempts = 0
        while True:
            attempts += 1
            value = ctx.runner.acquire_text(prompt, hint, sensitive).strip()
            if not value:
                if not required:
                    return None, None
                ctx.runner.display(f"Error: a value for {name} is required")
            else:
                try:
                    ctx.store.check(name, value, pattern)
                    return value, None
                except ValidationError as e:
                    message = step.validation.message if step.validation and step.validation.message else e.message
                    logger.info(f"Rejected input for '{name}' at step '{step.id}' (pattern {e.pattern})")
                    ctx.runner.display(f"Error: {message}")

            if ctx.max_input_attempts and attempts >= ctx.max_input_attempts:
                return None, f"No valid value for '{name}' after {attempts} attempts"


class ChoiceHandler(StepHandler):
    step_type = "choice"
    awaits_user = True

    def validate(self, step: ChoiceStep, document: BlueprintDocument) -> None:
        if not step.options:
            raise MalformedBlueprintError("choice step has no options", step_id=step.id)
        if len(set(step.options)) != len(step.options):
            raise MalformedBlueprintError("choice step has duplicate options", step_id=step.id)

    def execute(self, step: ChoiceStep, ctx: StepContext) -> HandlerResult:
        self._heading(step, ctx)
        prompt = step.prompt or step.title or f"Select {step.save_to}"
        attempts = 0
        while True:
            attempts += 1
            selection = ctx.runner.present_choice(prompt, list(step.options)).strip()
            if selection in step.options:
                try:
                    ctx.store.check(step.save_to, selection)
                    return HandlerResult.advance([PendingBinding(step.save_to, selection)])
                except ValidationError as e:
                    ctx.runner.display(f"Error: {e.message}")
            else:
                ctx.runner.display(f"Error: '{selection}' is not one of: {', '.join(step.options)}")
            if ctx.max_input_attempts and attempts >= ctx.max_input_attempts:
                return HandlerResult.abort(f"No valid selection after {attempts} attempts")


class ShowCommandsHandler(StepHandler):
    step_type = "show_commands"

    def validate(self, step: ShowCommandsStep, document: BlueprintDocument) -> None:
        if not step.commands:
            raise MalformedBlueprintError("show_commands step has no commands", step_id=step.id)

    def execute(self, step: ShowCommandsStep, ctx: StepContext) -> HandlerResult:
        self._heading(step, ctx)
        if step.description:
            ctx.runner.display(ctx.resolver.resolve(step.description, strict=False))
        commands = "\n".join(ctx.resolver.resolve(c, strict=False) for c in step.commands)
        ctx.runner.display(f"```shell\n{commands}\n```", markdown=True)
        return HandlerResult.advance()


class AiPromptHandler(StepHandler):
    step_type = "ai_prompt"
    awaits_user = True

    def execute(self, step: AiPromptStep, ctx: StepContext) -> HandlerResult:
        self._heading(step, ctx)
        # Real values are needed for useful advice; only the in-memory render sees them
        rendered = ctx.resolver.resolve(step.prompt_template, strict=True, reveal=True)
        logger.info(f"Requesting AI advice for step '{step.id}' (provider={step.provider}, model={step.model})")
        response = ctx.runner.generate_ai_response(rendered)
        advisory = ctx.store.redact(response or "")
        ctx.runner.display(advisory, markdown=True)
        return HandlerResult.advance(advisory=advisory)


HANDLERS: Dict[str, StepHandler] = {
    handler.step_type: handler
    for handler in (
        InfoHandler(),
        NavigateHandler(),
        InputHandler(),
        ChoiceHandler(),
        ShowCommandsHandler(),
        AiPromptHandler(),
    )
}


def get_handler(step_type: str) -> StepHandler:
    try:
        return HANDLERS[step_type]
    except KeyError:
        raise MalformedBlueprintError(f"Unsupported step type '{step_type}'")


def _check_pattern(pattern: str, step_id: Optional[str] = None, location: Optional[str] = None) -> None:
    try:
        re.compile(pattern)
    except re.error as e:
        raise MalformedBlueprintError(f"Invalid validation pattern {pattern!r}: {e}", location=location, step_id=step_id)


def validate_document(document: BlueprintDocument) -> None:
    """Load-time checks that the schema alone cannot express.

    Raises:
        MalformedBlueprintError: On the first problem found
    """
    for name, spec in document.variables.items():
        if spec.validation:
            _check_pattern(spec.validation, location=f"variables.{name}.validation")

    flow_ids = set()
    for flow in document.flows:
        if flow.id in flow_ids:
            raise MalformedBlueprintError(f"Duplicate flow id '{flow.id}'", location="flows")
        flow_ids.add(flow.id)

        step_ids = set()
        for step in flow.steps:
            if step.id in step_ids:
                raise MalformedBlueprintError(f"Duplicate step id '{step.id}'", location=f"flows.{flow.id}")
            step_ids.add(step.id)
            if step.when is not None:
                ConditionEvaluator.parse(step.when, step_id=step.id)
            get_handler(step.type).validate(step, document)

"""Pydantic models for blueprint documents."""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import UnresolvedVariableError

_MISSING = object()


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")


class VariableSpec(_Frozen):
    """Declared metadata for a value captured during onboarding."""

    description: str = Field("", description="Human-readable description, used as the default prompt")
    required: bool = Field(False, description="Flow cannot complete while unbound")
    sensitive: bool = Field(False, description="Never written unmasked outside the credentials artifact")
    validation: Optional[str] = Field(None, description="Pattern the whole value must match")


class Preview(_Frozen):
    enabled: bool = False
    title: Optional[str] = None
    estimated_time: Optional[str] = None
    steps: List[str] = Field(default_factory=list)


class OutputConfig(_Frozen):
    """Artifact file names and where they are stored."""

    storage_path: str = Field(..., description="Directory for all artifacts (~ is expanded)")
    config_filename: str = "onboarding.config.json"
    credentials_filename: str = "credentials.secrets.json"
    mission_brief_filename: str = "mission-brief.txt"
    contextifact_filename: str = "contextifact.txt"


class SecurityConfig(_Frozen):
    encrypt_credentials: bool = False
    credential_expiry_days: int = Field(0, ge=0)
    require_confirmation_for_sensitive: bool = True


class ContextifactConfig(_Frozen):
    prompt_template: str


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


class _StepBase(BaseModel):
    """Fields shared by every step type."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1, description="Unique step identifier within the flow")
    title: Optional[str] = None
    when: Optional[str] = Field(None, description="Guard expression: <path> == '<literal>'")


class InfoStep(_StepBase):
    type: Literal["info"]
    markdown: str


class NavigateStep(_StepBase):
    type: Literal["navigate"]
    url: str
    instructions: List[str] = Field(default_factory=list)


class InputValidation(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    pattern: str
    message: Optional[str] = None


class InputField(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    sensitive: bool = False
    prompt: Optional[str] = None


class InputStep(_StepBase):
    type: Literal["input"]
    prompt: Optional[str] = None
    save_to: Optional[str] = None
    inputs: List[InputField] = Field(default_factory=list)
    # "validate" would shadow BaseModel.validate
    validation: Optional[InputValidation] = Field(None, alias="validate")

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @property
    def input_fields(self) -> List[InputField]:
        """Normalized view: `save_to` becomes a single non-sensitive field."""
        if self.save_to:
            return [InputField(name=self.save_to, prompt=self.prompt)]
        return list(self.inputs)


class ChoiceStep(_StepBase):
    type: Literal["choice"]
    prompt: Optional[str] = None
    save_to: str
    options: List[str]


class ShowCommandsStep(_StepBase):
    type: Literal["show_commands"]
    description: Optional[str] = None
    commands: List[str]


class AiPromptStep(_StepBase):
    type: Literal["ai_prompt"]
    prompt_template: str
    provider: Optional[str] = None
    model: Optional[str] = None


Step = Annotated[
    Union[InfoStep, NavigateStep, InputStep, ChoiceStep, ShowCommandsStep, AiPromptStep],
    Field(discriminator="type"),
]

STEP_TYPES = ("info", "navigate", "input", "choice", "show_commands", "ai_prompt")


class Flow(_Frozen):
    """Ordered sequence of steps run start to finish."""

    id: str = Field(..., min_length=1)
    title: Optional[str] = None
    steps: List[Step] = Field(..., min_length=1)


class BlueprintDocument(_Frozen):
    """
    A complete onboarding blueprint.

    Unknown top-level keys are kept (extra="allow") so that templates and
    conditions can address any contextual sub-document by dotted path.
    """

    schema_version: str
    version: Optional[str] = None
    name: str
    provider: str
    description: Optional[str] = None
    preview: Optional[Preview] = None
    auth: Dict[str, Any] = Field(default_factory=dict)
    variables: Dict[str, VariableSpec]
    output: OutputConfig
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    context: Dict[str, Any] = Field(default_factory=dict)
    sdk: Dict[str, Any] = Field(default_factory=dict)
    slugs: Dict[str, Any] = Field(default_factory=dict)
    contextifact: Optional[ContextifactConfig] = None
    flows: List[Flow] = Field(..., min_length=1)

    def get_flow(self, flow_id: Optional[str] = None) -> Flow:
        """Return the flow with the given id, or the first flow."""
        if flow_id is None:
            return self.flows[0]
        for flow in self.flows:
            if flow.id == flow_id:
                return flow
        raise KeyError(f"Flow '{flow_id}' not found in blueprint '{self.name}'")

    def lookup(self, path: str, default: Any = _MISSING) -> Any:
        """Traverse nested document fields by dotted path.

        Raises:
            UnresolvedVariableError: If the path does not exist and no default was given
        """
        node: Any = self.model_dump(by_alias=True)
        for segment in path.split("."):
            if isinstance(node, dict) and segment in node:
                node = node[segment]
            elif isinstance(node, list) and segment.isdigit() and int(segment) < len(node):
                node = node[int(segment)]
            else:
                if default is not _MISSING:
                    return default
                raise UnresolvedVariableError(path, "no such field in blueprint")
        return node

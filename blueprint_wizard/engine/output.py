"""OutputWriter - turns a completed session into the four onboarding artifacts.

Sensitive values only ever reach storage through the credentials artifact,
and only as ciphertext when encryption is enabled. The mission brief and the
contextifact render every sensitive binding as the redaction marker.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import yaml

from .crypto import CredentialEncryptor
from .errors import EncryptionError, OnboardingIOError
from .runner import ActionRunner
from .schema import AiPromptStep, BlueprintDocument
from .templates import TemplateResolver
from .variables import REDACTION_MARKER, VariableStore

if TYPE_CHECKING:
    from .engine import Session

logger = logging.getLogger(__name__)


@dataclass
class Artifact:
    kind: str  # config | credentials | mission_brief | contextifact
    path: str
    content: str
    private: bool = False


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _serialize(data: Dict[str, Any], filename: str) -> str:
    if filename.endswith((".yaml", ".yml")):
        return yaml.safe_dump(data, sort_keys=False)
    return json.dumps(data, indent=2) + "\n"


def _flatten(node: Any, prefix: str = "") -> List[str]:
    """Flatten nested context into `dotted.key: value` lines."""
    if isinstance(node, dict):
        lines = []
        for key, value in node.items():
            lines.extend(_flatten(value, f"{prefix}.{key}" if prefix else str(key)))
        return lines
    if isinstance(node, list):
        return [f"{prefix}: {', '.join(str(item) for item in node)}"]
    return [f"{prefix}: {node}"]


class OutputWriter:
    def __init__(
        self,
        document: BlueprintDocument,
        runner: ActionRunner,
        encryptor: Optional[CredentialEncryptor] = None,
        storage_path: Optional[str] = None,
        marker: str = REDACTION_MARKER,
    ):
        """
        Args:
            document: The blueprint being run
            runner: ActionRunner used for confirmation and file writes
            encryptor: Required when security.encrypt_credentials is true
            storage_path: Overrides output.storage_path
            marker: Text that replaces sensitive values outside the credentials file
        """
        self.document = document
        self.runner = runner
        self.encryptor = encryptor
        self.marker = marker
        self.storage_path = Path(storage_path or document.output.storage_path).expanduser()

    def _path(self, filename: str) -> str:
        return str(self.storage_path / filename)

    def write(self, session: "Session") -> List[str]:
        """Render every artifact, then write them. Returns the written paths.

        Nothing is written if any artifact fails to render.

        Raises:
            UnresolvedVariableError: A template needed for an artifact is unresolvable
            EncryptionError: Encryption is required but unavailable
            OnboardingIOError: A write failed twice
        """
        artifacts = self.render(session)
        written = []
        for artifact in artifacts:
            self._write(artifact)
            written.append(artifact.path)
        logger.info(f"Wrote {len(written)} artifacts to {self.storage_path}")
        return written

    def render(self, session: "Session") -> List[Artifact]:
        store = session.store
        resolver = TemplateResolver(self.document, store)
        output = self.document.output

        artifacts = [Artifact("config", self._path(output.config_filename), self._render_config(session))]

        credentials = self._render_credentials(store)
        if credentials is not None:
            artifacts.append(Artifact("credentials", self._path(output.credentials_filename), credentials, private=True))

        artifacts.append(Artifact(
            "mission_brief",
            self._path(output.mission_brief_filename),
            self._render_mission_brief(session),
        ))

        contextifact = self._render_contextifact(session, resolver)
        if contextifact is not None:
            artifacts.append(Artifact("contextifact", self._path(output.contextifact_filename), contextifact))
        return artifacts

    # ==========================================================================
    # Artifact rendering
    # ==========================================================================

    def _render_config(self, session: "Session") -> str:
        store = session.store
        public = store.bindings(sensitive=False)
        data = {
            "schema_version": self.document.schema_version,
            "blueprint": self.document.name,
            "blueprint_version": self.document.version,
            "provider": self.document.provider,
            "flow": session.flow_id,
            "session_id": session.session_id,
            "generated_at": _utc_now().isoformat(),
            "variables": {b.name: b.reveal() for b in public if b.origin == "spec"},
            "selections": {b.name: b.reveal() for b in public if b.origin == "runtime"},
            "sensitive_variables": [b.name for b in store.bindings(sensitive=True)],
        }
        return _serialize(data, self.document.output.config_filename)

    def _render_credentials(self, store: VariableStore) -> Optional[str]:
        security = self.document.security
        secrets = {b.name: b.reveal() for b in store.bindings(sensitive=True)}
        created = _utc_now()
        data: Dict[str, Any] = {
            "provider": self.document.provider,
            "blueprint": self.document.name,
            "created_at": created.isoformat(),
        }
        if security.credential_expiry_days > 0:
            data["expires_at"] = (created + timedelta(days=security.credential_expiry_days)).isoformat()

        if security.encrypt_credentials:
            if self.encryptor is None:
                raise EncryptionError("security.encrypt_credentials is enabled but no encryptor was provided")
            data.update({
                "encrypted": True,
                "algorithm": self.encryptor.name,
                "ciphertext": self.encryptor.encrypt(json.dumps(secrets)),
            })
            return _serialize(data, self.document.output.credentials_filename)

        if secrets and security.require_confirmation_for_sensitive:
            prompt = (
                f"Save {len(secrets)} sensitive value(s) unencrypted to "
                f"{self._path(self.document.output.credentials_filename)}?"
            )
            if not self.runner.confirm(prompt):
                logger.warning("Plaintext credentials declined; credentials artifact not written")
                self.runner.display("Credentials were not saved.")
                return None

        data.update({"encrypted": False, "credentials": secrets})
        return _serialize(data, self.document.output.credentials_filename)

    def _render_mission_brief(self, session: "Session") -> str:
        store = session.store
        doc = self.document
        flow = doc.get_flow(session.flow_id)
        lines = [
            f"MISSION BRIEF: {doc.name}",
            f"Provider: {doc.provider}",
            f"Flow: {flow.title or flow.id} ({flow.id})",
            f"Generated: {_utc_now().isoformat()}",
            "",
            "Captured values:",
        ]
        for binding in store.bindings():
            if binding.origin != "spec":
                continue
            spec = store.spec_for(binding.name)
            description = f"  ({spec.description})" if spec and spec.description else ""
            lines.append(f"  - {binding.name}: {binding.masked(self.marker)}{description}")
        unbound = [name for name in store.specs if not store.is_bound(name)]
        for name in unbound:
            lines.append(f"  - {name}: (not provided)")

        selections = [b for b in store.bindings() if b.origin == "runtime"]
        if selections:
            lines += ["", "Selections:"]
            lines += [f"  - {b.name}: {b.masked(self.marker)}" for b in selections]

        lines += ["", "Steps:"]
        lines.append(f"  completed: {', '.join(session.executed_steps) or '-'}")
        lines.append(f"  skipped: {', '.join(session.skipped_steps) or '-'}")

        callback = doc.lookup("auth.callback_path", default=None)
        if callback:
            lines += ["", f"Redirect/callback path to register: {callback}"]

        if doc.context:
            lines += ["", "Resources:"]
            lines += [f"  - {line}" for line in _flatten(doc.context)]

        output = doc.output
        lines += ["", "Files:"]
        for filename in (output.config_filename, output.credentials_filename, output.contextifact_filename):
            lines.append(f"  - {self._path(filename)}")

        return "\n".join(lines) + "\n"

    def _render_contextifact(self, session: "Session", resolver: TemplateResolver) -> Optional[str]:
        template = None
        flow = self.document.get_flow(session.flow_id)
        executed = [
            step for step in flow.steps
            if isinstance(step, AiPromptStep) and step.id in session.ai_prompt_steps
        ]
        if executed:
            template = executed[-1].prompt_template
        elif self.document.contextifact:
            template = self.document.contextifact.prompt_template
        if template is None:
            return None
        return resolver.resolve(template.strip(), strict=True, reveal=False, marker=self.marker) + "\n"

    # ==========================================================================
    # Writing
    # ==========================================================================

    def _write(self, artifact: Artifact) -> None:
        """Write through the runner, retrying once."""
        for attempt in (1, 2):
            try:
                self.runner.write_file(artifact.path, artifact.content, private=artifact.private)
                return
            except OSError as e:
                if attempt == 2:
                    raise OnboardingIOError(f"Failed to write {artifact.kind} artifact: {e}", path=artifact.path) from e
                logger.warning(f"Write of {artifact.path} failed ({e}); retrying once")

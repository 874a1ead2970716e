"""BlueprintLoader - loads and validates blueprint documents."""

import json
import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from .errors import MalformedBlueprintError, OnboardingIOError
from .handlers import validate_document
from .schema import BlueprintDocument

logger = logging.getLogger(__name__)

BUILTIN_DIR = Path(__file__).resolve().parent.parent / "blueprints"
REQUIRED_KEYS = ("schema_version", "name", "provider", "variables", "output", "flows")


class BlueprintLoader:
    """
    Loads blueprints from YAML, TOML or JSON files.

    Validates structure using Pydantic models, then runs the per-step
    load-time checks, so a returned document is safe to execute.
    """

    def __init__(self, base_path: Optional[Union[str, Path]] = None):
        """
        Initialize loader.

        Args:
            base_path: Directory relative blueprint paths are resolved against
                (default: current directory)
        """
        self.base_path = Path(base_path) if base_path is not None else Path.cwd()

    def load(self, path: Union[str, Path]) -> BlueprintDocument:
        """
        Load a blueprint file.

        Args:
            path: File path; .yaml/.yml, .toml and .json are supported

        Returns:
            Validated BlueprintDocument

        Raises:
            OnboardingIOError: If the file is missing or unreadable
            MalformedBlueprintError: If the document is invalid
        """
        blueprint_path = Path(path).expanduser()
        if not blueprint_path.is_absolute():
            blueprint_path = self.base_path / blueprint_path

        if not blueprint_path.exists():
            raise OnboardingIOError(f"Blueprint not found: {blueprint_path}", path=str(blueprint_path))

        try:
            text = blueprint_path.read_text(encoding="utf-8")
        except OSError as e:
            raise OnboardingIOError(f"Cannot read blueprint {blueprint_path}: {e}", path=str(blueprint_path)) from e

        data = self.parse(text, blueprint_path.suffix.lower(), source=str(blueprint_path))
        document = self.from_dict(data)
        logger.info(f"Loaded blueprint '{document.name}' from {blueprint_path}")
        return document

    def load_builtin(self, name: str) -> BlueprintDocument:
        """Load a blueprint shipped with the package (e.g. 'generic-onboarding')."""
        return self.load(BUILTIN_DIR / f"{name}.blueprint.yaml")

    @staticmethod
    def parse(text: str, suffix: str, source: str = "<string>") -> Dict[str, Any]:
        try:
            if suffix == ".toml":
                data = tomllib.loads(text)
            elif suffix == ".json":
                data = json.loads(text)
            else:
                data = yaml.safe_load(text)
        except (yaml.YAMLError, tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
            raise MalformedBlueprintError(f"Cannot parse blueprint: {e}", location=source) from e

        if not isinstance(data, dict):
            raise MalformedBlueprintError("Blueprint must be a mapping at the top level", location=source)
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> BlueprintDocument:
        """Validate an already-parsed document."""
        missing = [key for key in REQUIRED_KEYS if key not in data]
        if missing:
            raise MalformedBlueprintError(f"Missing required top-level keys: {', '.join(missing)}")

        try:
            document = BlueprintDocument(**data)
        except PydanticValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise MalformedBlueprintError(
                f"{first['msg']} ({e.error_count()} error(s) in blueprint)", location=location
            ) from e

        validate_document(document)
        return document

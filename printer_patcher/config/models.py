"""Pydantic models for the action catalog (actions.yaml).

Schema::

    username: root
    password: secret
    actions:
      - title: Enable SSH
        description: ...
        steps:
          - title: Check firmware
            description: ...
            script: cat /etc/version     # inline command
            expected: "^V1\\."           # optional regex
          - title: Patch
            description: ...
            script: scripts/patch.sh     # resolved through the active source

Models are frozen and hold tuples, so a loaded catalog never changes
under a caller that still holds it after the source is switched.
"""

import logging
from typing import Annotated, Any

import yaml
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from printer_patcher.errors import CatalogParseError, NotFoundError

logger = logging.getLogger(__name__)

SCRIPT_SUFFIX = ".sh"


def _scalar_text(value: Any) -> Any:
    """Read YAML scalars into text fields: null is empty, numbers are strings."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


def _empty_if_null(value: Any) -> Any:
    return () if value is None else value


# Every catalog field is optional; a bare ``expected:`` means "accept anything"
Text = Annotated[str, BeforeValidator(_scalar_text)]


class Step(BaseModel):
    """One command plus an optional expected-output pattern."""

    model_config = ConfigDict(frozen=True)

    title: Text = ""
    description: Text = ""
    script: Text = ""
    expected: Text = ""

    @property
    def is_script_file(self) -> bool:
        """True when ``script`` names a file to resolve via the source."""
        return self.script.endswith(SCRIPT_SUFFIX)


class Action(BaseModel):
    """Named, ordered sequence of steps."""

    model_config = ConfigDict(frozen=True)

    title: Text = ""
    description: Text = ""
    steps: Annotated[tuple[Step, ...], BeforeValidator(_empty_if_null)] = Field(
        default_factory=tuple
    )

    def script_refs(self) -> list[str]:
        """Distinct script file references, in step order."""
        refs: list[str] = []
        for step in self.steps:
            if step.is_script_file and step.script not in refs:
                refs.append(step.script)
        return refs


class Catalog(BaseModel):
    """Credentials plus the ordered list of actions from one source."""

    model_config = ConfigDict(frozen=True)

    username: Text = ""
    password: Text = ""
    actions: Annotated[tuple[Action, ...], BeforeValidator(_empty_if_null)] = Field(
        default_factory=tuple
    )

    def find_action(self, title: str) -> Action:
        """Return the action named ``title``.

        Raises:
            NotFoundError: If no action has that title.
        """
        for action in self.actions:
            if action.title == title:
                return action
        raise NotFoundError(f"Action '{title}' not found")

    @property
    def action_titles(self) -> list[str]:
        return [action.title for action in self.actions]


def parse_catalog(data: bytes | str, origin: str = "catalog") -> Catalog:
    """Parse YAML catalog content.

    Args:
        data: Raw YAML text or bytes.
        origin: Label used in error messages (source name, path).

    Raises:
        CatalogParseError: Malformed YAML or content not matching the schema.
    """
    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise CatalogParseError(f"Invalid YAML in {origin}: {e}") from e

    if not isinstance(raw, dict):
        raise CatalogParseError(
            f"Catalog in {origin} must be a mapping, got {type(raw).__name__}"
        )

    try:
        catalog = Catalog.model_validate(raw)
    except ValidationError as e:
        raise CatalogParseError(f"Invalid catalog in {origin}: {e}") from e

    logger.debug("Parsed %d actions from %s", len(catalog.actions), origin)
    return catalog

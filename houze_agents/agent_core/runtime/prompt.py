"""Agent prompt templates.

Prompts use ``{{name}}`` placeholders filled from the run's input values.
Rendering happens at the start of every turn, so the system prompt is never
stored as a conversation turn.
"""

from __future__ import annotations

import re
from typing import Dict, List, Mapping

from ..errors import ConfigurationError
from ..schemas.domain import Agent, AgentInputVariable

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_.\-]*)\s*\}\}")


def missing_required_inputs(agent: Agent, values: Mapping[str, str]) -> List[str]:
    """Names of required input variables that are absent or blank."""
    missing: List[str] = []
    for var in agent.input_variables:
        if var.required and not str(values.get(var.name) or "").strip():
            missing.append(var.name)
    return missing


def render_prompt(template: str, values: Mapping[str, str], variables: List[AgentInputVariable]) -> str:
    """Substitute ``{{name}}`` placeholders.

    Optional declared variables without a value render as an empty string.

    Raises:
        ConfigurationError: A placeholder has no value and is not an optional
            declared variable, or a ``{{`` opener is never closed.
    """
    declared: Dict[str, AgentInputVariable] = {v.name: v for v in variables}

    remainder = _PLACEHOLDER.sub("", template)
    if "{{" in remainder:
        raise ConfigurationError("Prompt template has an unterminated '{{' placeholder")

    unresolved: List[str] = []

    def _sub(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name in values:
            return str(values[name])
        var = declared.get(name)
        if var is not None and not var.required:
            return ""
        unresolved.append(name)
        return match.group(0)

    rendered = _PLACEHOLDER.sub(_sub, template)
    if unresolved:
        raise ConfigurationError(f"Prompt template references unresolved variables: {', '.join(sorted(set(unresolved)))}")
    return rendered

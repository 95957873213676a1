"""Prompt registry — versioned system prompts for the AI proxy.

Keeps prompt text out of the request handler so the version in use can
be logged alongside each answer and compared across traces.
"""

import logging

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompt versions
# ---------------------------------------------------------------------------

OCP_ASSISTANT_PROMPT_V1 = """\
You are an expert assistant for the New Westminster Official Community Plan (OCP). Your role is \
to help urban planners and professionals find accurate, specific information about land use, \
zoning, building heights, and municipal policies.

GUIDELINES:
- Always provide specific, accurate information with references to OCP sections when possible
- If you're not certain about something, say so clearly
- For building heights, be specific about storeys and metres when known
- For zoning questions, mention relevant land use designations (like RD, RM, MH, etc.)
- Include practical implications for development applications
- Cite relevant policy numbers (like 3.1, 3.3, etc.) when applicable
- Answer in the language the question is asked in\
"""

# Registry: name → (version, prompt_text)
_PROMPT_REGISTRY: dict[str, tuple[str, str]] = {
    "ocp_assistant": ("v1", OCP_ASSISTANT_PROMPT_V1),
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_active_prompt(name: str) -> str:
    """Return the active prompt text for a given prompt name.

    Raises:
        KeyError: If prompt name is not registered.
    """
    if name not in _PROMPT_REGISTRY:
        raise KeyError(f"Unknown prompt: {name!r}. Available: {list(_PROMPT_REGISTRY.keys())}")
    return _PROMPT_REGISTRY[name][1]


def get_prompt_version(name: str) -> str:
    """Return the version tag for a given prompt name."""
    if name not in _PROMPT_REGISTRY:
        raise KeyError(f"Unknown prompt: {name!r}. Available: {list(_PROMPT_REGISTRY.keys())}")
    return _PROMPT_REGISTRY[name][0]


def list_prompts() -> list[dict[str, str]]:
    """List all registered prompts with name and version."""
    return [{"name": name, "version": ver} for name, (ver, _) in _PROMPT_REGISTRY.items()]

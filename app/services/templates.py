"""
Payload templates from a mounted folder.

File name: <pipeline>_<kind>.tpl (e.g. llama-oss_chat.tpl, rag-llama-oss_chat.tpl),
or upload.tpl for document ingestion. Every {{variable}} placeholder is replaced
with the provided value and the result is parsed as JSON for Temporal.

A missing directory, missing file, unreadable file, or invalid JSON after
substitution all yield None: callers fall back to their default payload.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any

from app.core.config import TEMPLATES_DIR, TEMPLATES_FALLBACK_DIR, resolve_project_path

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{([A-Za-z_][A-Za-z0-9_]*)\}\}")
_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9_-]")

KIND_CHAT = "chat"
KIND_UPLOAD = "upload"
UPLOAD_TEMPLATE_NAME = "upload.tpl"


def sanitize_identifier(value: Any, default: str = "default") -> str:
    """Keep only [A-Za-z0-9_-]; every other character becomes '_'. Empty -> default."""
    text = str(value) if value is not None else ""
    if not text:
        text = default
    return _UNSAFE_CHARS_RE.sub("_", text)


def fill_template(template: str, variables: dict[str, Any]) -> str:
    """
    Replace every {{name}} with str(variables[name]). Absent or None values render as "".

    Single pass: text inserted from a value is never rescanned, so there is no
    double substitution. Non-primitive values must be pre-serialized (json.dumps)
    so the template stays valid JSON.
    """

    def _sub(match: re.Match) -> str:
        value = variables.get(match.group(1))
        return "" if value is None else str(value)

    return PLACEHOLDER_RE.sub(_sub, template)


def resolve_templates_dir(raw: str | None = TEMPLATES_DIR) -> Path | None:
    """TEMPLATES_DIR if it exists, else the bundled templates-example/, else None."""
    if raw and raw.strip():
        resolved = resolve_project_path(raw.strip())
        if resolved.is_dir():
            return resolved
        logger.warning("[templates] TEMPLATES_DIR=%s not found; trying fallback", resolved)
    if TEMPLATES_FALLBACK_DIR.is_dir():
        return TEMPLATES_FALLBACK_DIR
    return None


def template_file_name(pipeline_id: str | None, kind: str) -> str:
    if kind == KIND_UPLOAD:
        return UPLOAD_TEMPLATE_NAME
    return f"{sanitize_identifier(pipeline_id)}_{kind}.tpl"


class TemplateRenderer:
    """Loads <pipeline>_<kind>.tpl files from one directory and renders them to JSON objects."""

    def __init__(self, templates_dir: Path | str | None) -> None:
        self.templates_dir = Path(templates_dir) if templates_dir else None

    @classmethod
    def from_config(cls) -> "TemplateRenderer":
        return cls(resolve_templates_dir())

    def load(self, pipeline_id: str | None, kind: str = KIND_CHAT) -> str | None:
        """Return template text, or None when there is no directory, no file, or it cannot be read."""
        if self.templates_dir is None:
            return None
        path = self.templates_dir / template_file_name(pipeline_id, kind)
        if not path.is_file():
            logger.info("[templates:load] no template %s", path.name)
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("[templates:load] failed to read %s: %s", path, e)
            return None

    def render(self, pipeline_id: str | None, kind: str, variables: dict[str, Any]) -> Any | None:
        """
        Load, fill, and parse a template. Returns the parsed JSON value, or None
        when the template is absent or the filled text is not valid JSON.
        """
        raw = self.load(pipeline_id, kind)
        if raw is None:
            return None
        filled = fill_template(raw, variables)
        try:
            return json.loads(filled)
        except json.JSONDecodeError as e:
            logger.warning(
                "[templates:render] %s template for pipeline=%r is not valid JSON after fill (%s); using defaults",
                kind, pipeline_id, e,
            )
            return None

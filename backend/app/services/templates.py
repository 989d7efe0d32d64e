"""
Email template loading and rendering.

Templates live under a single directory as ``<name>.<fmt>`` where fmt is
"html" or "txt", e.g. notification.html / notification.txt. They contain
``{{PLACEHOLDER}}`` tokens that render_template fills in.

Public API:
  TemplateStore(root).load(name, fmt) -> str
  TemplateStore(root).load_pair(name) -> (html, text)
  render_template(template, variables) -> str

Files are read fresh on every call; there is no cache to invalidate, so
editing a template takes effect on the next request.
"""

import logging
import re
from pathlib import Path
from typing import Mapping, Optional

from app.errors import TemplateNotFound

logger = logging.getLogger(__name__)

TEMPLATE_FORMATS = ("html", "txt")

# Rendered in place of an empty or missing value
DEFAULT_VALUE = "Not specified"

_TOKEN_RE = re.compile(r"\{\{([A-Za-z0-9_]+)\}\}")


class TemplateStore:
    """Reads named email templates from a fixed directory."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def path_for(self, name: str, fmt: str) -> Path:
        if fmt not in TEMPLATE_FORMATS:
            raise ValueError(
                f"Unknown template format {fmt!r}. Supported formats: {list(TEMPLATE_FORMATS)}"
            )
        path = self.root / f"{name}.{fmt}"
        if path.resolve().parent != self.root.resolve():
            raise ValueError(f"Template name escapes the templates directory: {name!r}")
        return path

    def load(self, name: str, fmt: str = "html") -> str:
        """
        Return the contents of ``<root>/<name>.<fmt>``.

        Raises:
            TemplateNotFound: the file is missing or cannot be read/decoded.
        """
        path = self.path_for(name, fmt)
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Error loading template {name}.{fmt} from {path}: {e}")
            raise TemplateNotFound(name, fmt) from e

    def load_pair(self, name: str) -> tuple[str, str]:
        """Load both variants of a template as (html, text)."""
        return self.load(name, "html"), self.load(name, "txt")


def render_template(template: str, variables: Mapping[str, Optional[str]]) -> str:
    """
    Replace every ``{{KEY}}`` token for each key in variables.

    - Empty or None values render as "Not specified".
    - Keys that do not appear in the template are ignored.
    - Tokens whose key is not in variables are left untouched.

    All tokens are resolved in a single pass, so a value that itself
    contains ``{{...}}`` is inserted literally and never expanded.
    """

    def _substitute(match: re.Match) -> str:
        key = match.group(1)
        if key not in variables:
            return match.group(0)
        return variables[key] or DEFAULT_VALUE

    return _TOKEN_RE.sub(_substitute, template)

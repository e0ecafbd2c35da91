"""Jinja2 template rendering for package installs.

Provides the TemplateRenderer class which turns a fetched package file into
the bytes written to disk.  Files carrying a template extension (``.tmpl``,
``.templ``, ``.gotmpl``) are rendered against the install's
``TemplateContext`` and lose the extension; every other file is copied through
unchanged so that binary assets survive.

Registry templates are usually written for the Go tool, so the two action
forms they use (``{{.Field}}`` and ``{{Func .Field}}``) are rewritten into
Jinja expressions before parsing.
"""

from __future__ import annotations

import re
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateError, select_autoescape

from vpkg.errors import TemplateRenderError
from vpkg.installer.models import TemplateContext
from vpkg.utils import sanitize_name, to_identifier

DEFAULT_TEMPLATE_EXTENSIONS: tuple[str, ...] = (".tmpl", ".templ", ".gotmpl")

# {{.Field}}, {{ Func .Field }}, with optional Go trim markers.
_GO_ACTION_RE = re.compile(r"\{\{(-?)\s*(?:([A-Za-z_]\w*)\s+)?\.([A-Za-z_]\w*)\s*(-?)\}\}")


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders package template files.

    The case helpers are filters, registered under their Go-template names
    (``{{ Pkg | Pascal }}``) and under descriptive names
    (``{{ pkg | pascal_case }}``).  The context defines a ``Title`` variable,
    so the helpers cannot be globals.  Referencing a variable that is not in
    the context is an error rather than an empty string.
    """

    def __init__(self, extensions: list[str] | tuple[str, ...] | None = None) -> None:
        self.extensions = tuple(extensions or DEFAULT_TEMPLATE_EXTENSIONS)
        self.env = Environment(
            autoescape=select_autoescape([], default_for_string=False),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        self.env.filters.update(GO_TEMPLATE_FUNCS)
        self.env.filters["title_case"] = _title_case_filter
        self.env.filters["camel_case"] = _camel_case_filter
        self.env.filters["snake_case"] = _snake_case_filter
        self.env.filters["kebab_case"] = _kebab_case_filter
        self.env.filters["pascal_case"] = _pascal_case_filter
        self.env.filters["go_ident"] = to_identifier
        self.env.filters["slugify"] = sanitize_name

    # -- Template detection ------------------------------------------------

    def is_template(self, path: str) -> bool:
        """Return ``True`` if *path* carries one of the template extensions."""
        return any(path.endswith(ext) for ext in self.extensions)

    def strip_template_extension(self, path: str) -> str:
        """Remove the template extension from *path*, if it has one.

        ``cmd/main.go.tmpl`` -> ``cmd/main.go``; ``logo.png`` is unchanged.
        """
        for ext in self.extensions:
            if path.endswith(ext):
                return path[: -len(ext)]
        return path

    # -- Rendering ---------------------------------------------------------

    def render_string(
        self,
        source: str,
        variables: dict[str, Any],
        name: str = "<template>",
    ) -> str:
        """Render template *source* with *variables*.

        Raises:
            TemplateRenderError: On a syntax error or an undefined reference.
        """
        try:
            template = self.env.from_string(translate_go_actions(source))
            return template.render(**variables)
        except TemplateError as exc:
            raise TemplateRenderError(name, str(exc)) from exc

    def render_bytes(self, filename: str, content: bytes, context: TemplateContext) -> bytes:
        """Render or pass through one package file.

        Template files are decoded as UTF-8, rendered against *context* and
        re-encoded.  Other files are returned unchanged.
        """
        if not self.is_template(filename):
            return content
        try:
            source = content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise TemplateRenderError(filename, f"not valid UTF-8 ({exc})") from exc
        rendered = self.render_string(source, context.as_template_vars(), name=filename)
        return rendered.encode("utf-8")


def translate_go_actions(source: str) -> str:
    """Rewrite Go-template field actions into Jinja expressions.

    ``{{.Package}}`` becomes ``{{ Package }}`` and ``{{Pascal .Pkg}}`` becomes
    ``{{ Pkg | Pascal }}``.  Anything else is left for Jinja to parse.
    """

    def _replace(match: re.Match[str]) -> str:
        left_trim, func, field, right_trim = match.groups()
        expr = f"{field} | {func}" if func else field
        return "{{" + left_trim + " " + expr + " " + right_trim + "}}"

    return _GO_ACTION_RE.sub(_replace, source)


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _split_words(value: str) -> list[str]:
    """Split ``some-thing``, ``some_thing``, ``SomeThing`` into lowercase words."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1 \2", value)
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", s1)
    return [word.lower() for word in re.split(r"[-_\s]+", s2) if word]


def _pascal_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    return "".join(word.capitalize() for word in _split_words(value))


def _camel_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = _pascal_case_filter(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""


def _snake_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    return "_".join(_split_words(value))


def _kebab_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some_thing`` to ``some-thing``."""
    return "-".join(_split_words(value))


def _title_case_filter(value: str) -> str:
    """Convert ``redis-cache`` to ``Redis Cache``."""
    return " ".join(word.capitalize() for word in _split_words(value))


GO_TEMPLATE_FUNCS = {
    "Title": _title_case_filter,
    "Camel": _camel_case_filter,
    "Snake": _snake_case_filter,
    "Kebab": _kebab_case_filter,
    "Upper": str.upper,
    "Lower": str.lower,
    "Pascal": _pascal_case_filter,
    "GoIdent": to_identifier,
}

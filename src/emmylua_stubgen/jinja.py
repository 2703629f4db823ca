"""
Jinja environment for rendering stub files from the package templates.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, Template

from emmylua_stubgen.annotations import (
    comment_lines,
    description_lines,
    lua_type,
    render_constructor,
    render_method,
    render_operator,
    render_param,
    render_property,
    render_returns,
)
from emmylua_stubgen.config import StubConfig
from emmylua_stubgen.overloads import synthesize_overloads

from .render import StubExtension


def package_root(*sub) -> Path:
    root = Path(__file__).parent
    if not sub:
        return root.resolve()
    return root.joinpath(*sub).resolve()


def join(it):
    return "\n".join(it)


class JinjaRenderer:
    """Handles Jinja2 template rendering with the stub filters registered."""

    def __init__(
        self,
        search_path: Path | list[Path] | None = None,
        *,
        config: StubConfig | None = None,
    ):
        """
        Initialize the Jinja renderer.

        Args:
            search_path: Path or list of paths to search for templates before
                         the default templates
            config: Header settings, defaults to the Venice Unleashed values
        """
        search_path = search_path or []
        self.search_path = (
            list(search_path) if isinstance(search_path, list) else [search_path]
        )
        self.search_path.append(package_root("default_templates"))
        self.config = config or StubConfig()
        self.env = Environment(
            loader=FileSystemLoader(self.search_path),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
            extensions=[StubExtension],
        )
        self.add_filter("lua_type", lua_type)
        self.add_filter("field", render_property)
        self.add_filter("param", render_param)
        self.add_filter("returns", lambda returns: join(render_returns(returns)))
        self.add_filter("operator", render_operator)
        self.add_filter("doc_lines", lambda text: comment_lines(description_lines(text)))
        self.add_filter(
            "constructor",
            lambda cons, owner, comments=(): render_constructor(owner, cons, comments),
        )
        self.add_filter(
            "method",
            lambda method, owner, comments=(), overloads=(): render_method(
                owner, method, comments, overloads
            ),
        )
        self.add_filter(
            "overloads",
            lambda method, library, catalog: synthesize_overloads(
                library, method, catalog
            ),
        )
        self.add_global("title", self.config.title)
        self.add_global("website", self.config.website)
        self.add_global("docs_url", self.config.docs_url)
        self.add_global("intermediate_title", self.config.intermediate_title)

    def render(self, name: str, context: dict[str, Any] | None = None) -> str:
        """
        Render the template with the given context.

        Args:
            name: Name of the template to render. Must be in ``search_path``.
            context: Dictionary of variables to pass to the template

        Returns:
            Rendered template as string
        """
        template = self.env.get_template(name)
        return self._render(template, context)

    def render_str(
        self, template_str: str, context: dict[str, Any] | None = None
    ) -> str:
        """
        Render a template string with the given context.

        Args:
            template_str: Template string to render
            context: Dictionary of variables to pass to the template

        Returns:
            Rendered template as string
        """
        template = self.env.from_string(template_str)
        return self._render(template, context)

    def _render(self, template: Template, context: dict | None) -> str:
        return template.render(**(context or {})).strip("\n") + "\n"

    def add_filter(self, name: str, func: Callable):
        """
        Add a custom filter to the Jinja environment.

        Args:
            name: Filter name to use in templates
            func: Filter function
        """
        self.env.filters[name] = func

    def add_global(self, name: str, value: Any):
        """
        Add a global variable or function to the Jinja environment.

        Args:
            name: Global name to use in templates
            value: Global value or function
        """
        self.env.globals[name] = value

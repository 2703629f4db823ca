"""
Jinja extension and document dispatch for rendering stub files.

The layout of each document kind lives in ``default_templates``; the annotation
lines themselves are rendered by the filters registered in ``jinja.py``.
"""

from collections.abc import Sequence
from datetime import datetime

from jinja2 import nodes
from jinja2.ext import Extension
from jinja2.nodes import Node
from jinja2.parser import Parser

from emmylua_stubgen.doc_models import AnyDocument, DocClass, DocEnum, DocLibrary
from emmylua_stubgen.errors import DocumentError
from emmylua_stubgen.overloads import EMPTY_CATALOG, Catalog


class StubExtension(Extension):
    tags = {"region"}

    def parse(self, parser: Parser) -> Node:
        tag = next(parser.stream)
        return getattr(self, tag.value)(parser)

    def region(self, parser: Parser) -> Node:
        """
        Parse a tag of the form:

            {% region "Methods" %}
            ...
            {% endregion %}
        """
        lineno = parser.stream.current.lineno
        name = parser.parse_expression()
        body = parser.parse_statements(["name:endregion"], drop_needle=True)

        return nodes.CallBlock(
            self.call_method("_render_region", args=[name]),
            [],
            [],
            body,
        ).set_lineno(lineno)

    def _render_region(self, name: str, caller) -> str:
        content = caller().strip("\n")
        if not content:
            return f"--region {name}\n\n--endregion {name}\n"
        return f"--region {name}\n\n{content}\n\n--endregion {name}\n"


def timestamp() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


def template_for(doc: AnyDocument) -> str:
    if isinstance(doc, DocEnum):
        return "enum.jinja"
    if isinstance(doc, DocClass):
        return "class.jinja"
    if isinstance(doc, DocLibrary):
        return "library.jinja"
    raise DocumentError(f"Unknown document type, cannot render: {type(doc)}")


def render_document(
    doc: AnyDocument,
    renderer,
    *,
    kind: str = "Shared",
    comments: Sequence[str] = (),
    catalog: Catalog = EMPTY_CATALOG,
    generated_on: str | None = None,
) -> str:
    """
    Render a single document into the content of its stub file.

    Args:
        doc: Class, library or enum document
        renderer: JinjaRenderer to render with
        kind: Label of the document group (``Shared``, ``Server``, ...)
        comments: Extra comment lines attached to every constructor/method
        catalog: Events/hooks used to synthesize overloads for libraries
        generated_on: Timestamp written into the header, defaults to now

    Raises:
        DocumentError: If the document cannot be rendered.
    """
    return renderer.render(
        template_for(doc),
        {
            "doc": doc,
            "kind": kind,
            "comments": list(comments),
            "catalog": catalog,
            "generated_on": generated_on or timestamp(),
        },
    )

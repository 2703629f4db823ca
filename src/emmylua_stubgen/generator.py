"""
Generate EmmyLua stubs from a VU-Docs style documentation tree.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from emmylua_stubgen.config import Component, StubConfig, StubGroup
from emmylua_stubgen.doc_models import DocEvent, DocHook, load_document, load_event, load_hook
from emmylua_stubgen.errors import StubGenError
from emmylua_stubgen.jinja import JinjaRenderer
from emmylua_stubgen.overloads import EMPTY_CATALOG, Catalog
from emmylua_stubgen.render import render_document, timestamp

logger = logging.getLogger(__name__)


@dataclass
class DocumentResult:
    path: Path
    name: str | None = None
    output: Path | None = None
    error: StubGenError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class GenerationReport:
    """Outcome of a generation run, one result per input record."""

    results: list[DocumentResult] = field(default_factory=list)

    @property
    def failures(self) -> list[DocumentResult]:
        return [res for res in self.results if not res.ok]

    @property
    def written(self) -> list[Path]:
        return [res.output for res in self.results if res.output is not None]

    @property
    def ok(self) -> bool:
        return not self.failures


def yaml_files(path: Path) -> list[Path]:
    if not path.is_dir():
        return []
    return sorted(path.glob("*.yaml"))


class CatalogLoader:
    """
    Loads the events and hooks of a component once per run, on first use.
    Broken records are reported and left out of the catalog.
    """

    def __init__(self, docs_path: Path, report: GenerationReport):
        self.docs_path = docs_path
        self.report = report
        self._catalogs: dict[Component, Catalog] = {}

    def __getitem__(self, component: Component) -> Catalog:
        if component not in self._catalogs:
            self._catalogs[component] = Catalog(
                events=tuple(self._load(component, "event", load_event)),
                hooks=tuple(self._load(component, "hook", load_hook)),
            )
        return self._catalogs[component]

    def _load(self, component: Component, kind: str, loader) -> list[DocEvent | DocHook]:
        entries = []
        for path in yaml_files(self.docs_path / component / kind):
            try:
                entry = loader(path)
            except StubGenError as err:
                logger.error("Failed loading %s %s: %s", component, kind, err)
                self.report.results.append(DocumentResult(path, error=err))
                continue
            entries.append(entry)
        logger.debug("Loaded %d %s %s(s)", len(entries), component, kind)
        return entries


def generate_group(
    group: StubGroup,
    docs_path: Path,
    out_path: Path,
    renderer: JinjaRenderer,
    catalogs: CatalogLoader,
    report: GenerationReport,
    generated_on: str,
):
    for path in yaml_files(docs_path / group.path):
        result = DocumentResult(path)
        report.results.append(result)
        try:
            doc = load_document(path)
            result.name = doc.name
            logger.info("Generating %s code for %s...", group.kind, doc.name)
            catalog = catalogs[group.component] if group.is_library else EMPTY_CATALOG
            code = render_document(
                doc,
                renderer,
                kind=group.kind,
                comments=group.comments,
                catalog=catalog,
                generated_on=generated_on,
            )
        except StubGenError as err:
            logger.error("Failed generating %s: %s", path, err)
            result.error = err
            continue
        target = out_path / group.path / f"{doc.name}.lua"
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(code, encoding="utf-8")
        except OSError as err:
            logger.error("Failed writing %s: %s", target, err)
            result.error = StubGenError(f"{target}: cannot write: {err}")
            continue
        result.output = target


def generate_stubs(
    docs_path: Path,
    out_path: Path,
    config: StubConfig | None = None,
    *,
    renderer: JinjaRenderer | None = None,
    generated_on: str | None = None,
) -> GenerationReport:
    """
    Render one stub file per documentation record.

    A failing record does not stop the run, it is recorded in the returned report.

    Args:
        docs_path: Root of the documentation tree (contains ``fb``, ``shared`` etc.)
        out_path: Directory to write the stubs to, mirroring the group paths
        config: Header settings and stub groups
        renderer: Renderer to use, defaults to one with the package templates
        generated_on: Timestamp written into the headers, defaults to now
    """
    config = config or StubConfig()
    renderer = renderer or JinjaRenderer(config=config)
    generated_on = generated_on or timestamp()
    report = GenerationReport()
    catalogs = CatalogLoader(docs_path, report)
    for group in config.groups:
        generate_group(
            group, docs_path, out_path, renderer, catalogs, report, generated_on
        )
    return report

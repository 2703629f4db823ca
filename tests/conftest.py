from pathlib import Path

import pytest

from emmylua_stubgen.codegen import renderer_for
from emmylua_stubgen.jinja import JinjaRenderer


@pytest.fixture
def files() -> Path:
    files_dir = Path(__file__).parent / "files"
    return files_dir.resolve()


@pytest.fixture
def docs(files: Path) -> Path:
    return files / "docs"


@pytest.fixture
def generated_on() -> str:
    return "2020-01-01T00:00:00+00:00"


@pytest.fixture
def renderer() -> JinjaRenderer:
    return renderer_for()

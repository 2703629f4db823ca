from pathlib import Path
from textwrap import dedent

import pytest

from emmylua_stubgen.cli import main
from emmylua_stubgen.config import StubConfig, StubGroup
from emmylua_stubgen.doc_models import DocHook, load_document, parse_document
from emmylua_stubgen.errors import DocumentError
from emmylua_stubgen.generator import generate_stubs
from emmylua_stubgen.overloads import Catalog
from emmylua_stubgen.render import render_document


def header(name: str, kind: str, generated_on: str) -> str:
    return dedent(
        f"""\
        --[[
            Venice Unleashed - Lua bindings
            Type: {name} ({kind})
            Website: https://veniceunleashed.net
            Generated on: {generated_on}

            For more information, see: https://docs.veniceunleashed.net
        --]]

        ---@meta

        """
    )


@pytest.fixture
def out(docs: Path, tmp_path: Path, generated_on: str):
    report = generate_stubs(docs, tmp_path, generated_on=generated_on)
    return tmp_path, report


def test_enum(out, generated_on):
    out_path, _ = out
    expected = header("Team", "Shared enum", generated_on) + dedent(
        """\
        --region Enum

        ---@class Team
        ---Team (Enum)
        ---`SERVER/CLIENT`
        Team = {}
        Team.RED = 0
        ---The blue team.
        Team.BLUE = 1

        --endregion Enum
        """
    )
    assert (out_path / "shared" / "type" / "Team.lua").read_text() == expected


def test_class(out, generated_on):
    out_path, _ = out
    expected = header("Vec3", "Shared class", generated_on) + dedent(
        """\
        --region Class

        ---@class Vec3:Vec
        ---@field x number
        ---@field y number
        ---@field z number @ The z component.
        ---@field zero Vec3 @ Static | **Read Only**
        ---@operator add(Vec3): Vec3
        ---@operator mul(number): Vec3
        ---WARNING: unsupported operator "eq" (Vec3): boolean
        ---Vec3 (Class)
        ---`SERVER/CLIENT`
        Vec3 = {}

        --region Constructors

        ---Vec3 constructor
        ---`SERVER/CLIENT`
        ---@return Vec3
        function Vec3() end

        ---Vec3 constructor
        ---`SERVER/CLIENT`
        ---Creates a vector.
        ---@param x number
        ---@param y number
        ---@param z number|nil @ Default: 0
        ---@return Vec3
        function Vec3(x, y, z) end

        --endregion Constructors

        --region Methods

        ---`SERVER/CLIENT`
        ---@return Vec3
        function Vec3:Normalize() end

        ---`SERVER/CLIENT`
        ---@return number
        ---@return number
        ---@return number
        function Vec3:Unpack() end

        --endregion Methods

        --endregion Class
        """
    )
    assert (out_path / "shared" / "type" / "Vec3.lua").read_text() == expected


def test_server_class(out, generated_on):
    out_path, _ = out
    code = (out_path / "server" / "type" / "ServerPlayer.lua").read_text()
    assert code.startswith(header("ServerPlayer", "Server class", generated_on))
    assert "---@class ServerPlayer:Player\n" in code
    assert "---@field ip string @ **Read Only**\n" in code
    assert (
        "---@field scores vector|integer[] @ **Vector Type: `int`** | "
        "**Cannot be instantiated directly**\n"
    ) in code
    assert "--region Constructors\n\n--endregion Constructors\n" in code
    assert (
        dedent(
            """\
            ---`SERVER ONLY`
            ---Kicks the player.
            ---The reason is shown to the player.
            ---@param reason string|nil
            function ServerPlayer:Kick(reason) end
            """
        )
        in code
    )


def test_events_library(out, generated_on):
    out_path, _ = out
    expected = header("Events", "Shared library", generated_on) + dedent(
        """\
        --region Library

        ---@class Events
        ---Events (Library)
        ---`SERVER/CLIENT`
        Events = {}

        --region Methods

        ---`SERVER/CLIENT`
        ---Subscribes to an event.
        ---@param eventName string @ The name of the event
        ---@param context any|nil
        ---@param callback function
        ---@return Event
        ---@overload fun(self: Events, eventName: "Player:Update", context: any|nil, callback: fun(userData: any, player: Player, deltaTime: number)): Event
        function Events:Subscribe(eventName, context, callback) end

        ---`SERVER/CLIENT`
        ---@param eventName string
        ---@vararg any
        function Events:Dispatch(eventName, ...) end

        --endregion Methods

        --endregion Library
        """
    )
    assert (out_path / "shared" / "library" / "Events.lua").read_text() == expected


def test_hooks_library(out):
    out_path, _ = out
    code = (out_path / "shared" / "library" / "Hooks.lua").read_text()
    assert (
        '---@overload fun(hookName: "Engine:Update", priority: integer, '
        "callback: fun(hookCtx, dt: number): boolean): HookInstance\n"
        "function Hooks:Install(hookName, priority, callback) end\n"
    ) in code


def test_report(out):
    out_path, report = out
    assert not report.ok
    assert sorted(res.path.name for res in report.failures) == [
        "Broken.yaml",
        "Unnamed.yaml",
    ]
    assert all(isinstance(res.error, DocumentError) for res in report.failures)
    assert sorted(path.relative_to(out_path).as_posix() for path in report.written) == [
        "server/type/ServerPlayer.lua",
        "shared/library/Events.lua",
        "shared/library/Hooks.lua",
        "shared/type/Team.lua",
        "shared/type/Vec3.lua",
    ]
    # Catalogs are inputs only
    assert not (out_path / "shared" / "event").exists()
    assert not (out_path / "shared" / "hook").exists()
    assert not (out_path / "shared" / "type" / "Broken.lua").exists()


def test_output_is_stable(docs: Path, tmp_path: Path, generated_on: str):
    first, second = tmp_path / "first", tmp_path / "second"
    generate_stubs(docs, first, generated_on=generated_on)
    generate_stubs(docs, second, generated_on=generated_on)
    files = sorted(path.relative_to(first) for path in first.rglob("*.lua"))
    assert files
    assert files == sorted(path.relative_to(second) for path in second.rglob("*.lua"))
    for path in files:
        assert (first / path).read_bytes() == (second / path).read_bytes()


def test_file_named_after_document(tmp_path: Path, generated_on: str):
    docs = tmp_path / "docs"
    (docs / "client" / "type").mkdir(parents=True)
    (docs / "client" / "type" / "misnamed.yaml").write_text(
        "name: Camera\ntype: class\n"
    )
    report = generate_stubs(docs, tmp_path / "out", generated_on=generated_on)
    assert report.ok
    code = (tmp_path / "out" / "client" / "type" / "Camera.lua").read_text()
    assert "Type: Camera (Client class)" in code
    assert "---`CLIENT ONLY`\nCamera = {}" in code


def test_custom_config(docs: Path, tmp_path: Path, generated_on: str):
    config = StubConfig(
        title="My bindings",
        website="https://example.com",
        docs_url="https://example.com/docs",
        groups=(StubGroup(path="shared/type", kind="Common", component="shared"),),
    )
    report = generate_stubs(docs, tmp_path, config, generated_on=generated_on)
    code = (tmp_path / "shared" / "type" / "Team.lua").read_text()
    assert code.startswith(
        "--[[\n    My bindings\n    Type: Team (Common enum)\n"
        "    Website: https://example.com\n"
    )
    assert "For more information, see: https://example.com/docs" in code
    assert "---Team (Enum)\nTeam = {}" in code
    assert len(report.results) == 3


def test_declaration_order(renderer, generated_on):
    names = [f"p{i}" for i in range(20, 0, -1)]
    doc = parse_document(
        {
            "name": "Ordered",
            "type": "class",
            "properties": {name: {"type": "int"} for name in names},
        }
    )
    code = render_document(doc, renderer, generated_on=generated_on)
    fields = [line.split()[1] for line in code.splitlines() if line.startswith("---@field")]
    assert fields == names


def test_operator_fallback_continues(renderer, generated_on):
    doc = parse_document(
        {
            "name": "Quat",
            "type": "class",
            "operators": [
                {"type": "lt", "rhs": "Quat", "returns": "bool"},
                {"type": "sub", "rhs": "Quat", "returns": "Quat"},
            ],
            "methods": [{"name": "Normalize"}],
        }
    )
    code = render_document(doc, renderer, generated_on=generated_on)
    assert (
        '---WARNING: unsupported operator "lt" (Quat): boolean\n'
        "---@operator sub(Quat): Quat\n"
    ) in code
    assert "function Quat:Normalize() end" in code


def test_hook_multiple_returns_fails_document(docs, renderer, generated_on):
    doc = load_document(docs / "shared" / "library" / "Hooks.yaml")
    hook = DocHook.model_validate(
        {"name": "Bad", "returns": [{"type": "int"}, {"type": "int"}]}
    )
    with pytest.raises(DocumentError, match="Hook Bad declares 2 return types"):
        render_document(
            doc, renderer, catalog=Catalog(hooks=(hook,)), generated_on=generated_on
        )


def test_cli_stubs(docs: Path, tmp_path: Path, capsys):
    assert main(["stubs", str(docs), str(tmp_path), "--title", "Custom"]) == 1
    err = capsys.readouterr().err
    assert "Broken.yaml" in err
    assert "Unnamed.yaml" in err
    code = (tmp_path / "shared" / "type" / "Team.lua").read_text()
    assert code.startswith("--[[\n    Custom\n")


def test_cli_stubs_missing_docs(tmp_path: Path, capsys):
    assert main(["stubs", str(tmp_path / "missing"), str(tmp_path / "out")]) == 1
    assert "Documentation path is not a directory" in capsys.readouterr().err


def test_unreadable_record_continues(tmp_path: Path, generated_on: str):
    types = tmp_path / "docs" / "shared" / "type"
    types.mkdir(parents=True)
    for name in ("A", "B", "C"):
        (types / f"{name}.yaml").write_text(
            f"name: {name}\ntype: enum\nvalues:\n  X:\n    value: 0\n"
        )
    (types / "B.yaml").write_bytes(b"name: B\xff\ntype: enum\n")
    report = generate_stubs(tmp_path / "docs", tmp_path / "out", generated_on=generated_on)
    (failure,) = report.failures
    assert failure.path.name == "B.yaml"
    assert isinstance(failure.error, DocumentError)
    assert sorted(path.name for path in report.written) == ["A.lua", "C.lua"]


def test_write_failure_continues(docs: Path, tmp_path: Path, generated_on: str):
    out_path = tmp_path / "out"
    (out_path / "shared").mkdir(parents=True)
    # Blocks the shared/type output directory
    (out_path / "shared" / "type").write_text("")
    report = generate_stubs(docs, out_path, generated_on=generated_on)
    failed = sorted(res.path.name for res in report.failures)
    assert failed == ["Broken.yaml", "Team.yaml", "Unnamed.yaml", "Vec3.yaml"]
    assert any("cannot write" in str(res.error) for res in report.failures)
    assert (out_path / "shared" / "library" / "Events.lua").exists()
    assert (out_path / "server" / "type" / "ServerPlayer.lua").exists()

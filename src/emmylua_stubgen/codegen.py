"""
Generate intermediate stubs for classes declared in user Lua code.
"""

import logging
from pathlib import Path

from emmylua_stubgen.config import GenerationConfig, StubConfig
from emmylua_stubgen.jinja import JinjaRenderer
from emmylua_stubgen.lua_parser import LuaClass, LuaConstructor, LuaParser, extract_classes
from emmylua_stubgen.render import timestamp

logger = logging.getLogger(__name__)


def render_lua_constructor(cons: LuaConstructor, owner: str) -> str:
    code = [f"---{line}" for line in cons.description]
    for param in cons.params:
        if param.variadic:
            line = f"---@vararg {param.type}"
        else:
            line = f"---@param {param.name} {param.type}"
        if param.description:
            line += f" @ {param.description}"
        code.append(line)
    code.append(f"---@return {owner}")
    code.append(f"function {owner}({', '.join(p.name for p in cons.params)}) end")
    return "\n".join(code)


def should_emit(cls: LuaClass, config: GenerationConfig) -> bool:
    """
    Local classes are not reachable from other files unless they are imported,
    in which case they would have been a table anyways. ``force_global`` allows
    declarations like ``class 'MyObject'`` instead of only ``MyObject = class 'MyObject'``.
    """
    return config.force_global or cls.is_global


def renderer_for(config: StubConfig | None = None) -> JinjaRenderer:
    renderer = JinjaRenderer(config=config)
    renderer.add_filter("lua_constructor", render_lua_constructor)
    return renderer


def generate_code(
    file_name: str,
    content: str,
    config: GenerationConfig | None = None,
    *,
    renderer: JinjaRenderer | None = None,
    parser: LuaParser | None = None,
    generated_on: str | None = None,
) -> str | None:
    """
    Render the intermediate stub for a single Lua file.

    Returns:
        Stub content or None if generation is disabled.

    Raises:
        GeneratorError: If the source has syntax errors.
    """
    config = config or GenerationConfig()
    if config.disable:
        logger.info(
            "Code generation not enabled. Intermediate code will not be generated for %s",
            file_name,
        )
        return None

    classes = extract_classes(content, parser)
    emitted = []
    for name, cls in classes.items():
        if not should_emit(cls, config):
            logger.debug("Skipping local class %s in %s", name, file_name)
            continue
        logger.info("Generating code for class %s in %s...", name, file_name)
        emitted.append(cls)

    renderer = renderer or renderer_for()
    return renderer.render(
        "intermediate.jinja",
        {
            "file_name": file_name,
            "classes": emitted,
            "generated_on": generated_on or timestamp(),
        },
    )


def write_code(
    out_path: Path,
    file_name: str,
    content: str,
    config: GenerationConfig | None = None,
    **kwargs,
) -> Path | None:
    """
    Generate and write the intermediate stub to ``out_path / file_name``.

    Returns:
        Path of the written file or None if generation is disabled.
    """
    code = generate_code(file_name, content, config, **kwargs)
    if code is None:
        return None
    target = out_path / file_name
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(code, encoding="utf-8")
    return target

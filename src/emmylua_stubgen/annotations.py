"""
Render documentation records into EmmyLua annotation lines.

Every function in here is pure: the same record always renders to the same text.
Multi-line results are joined with ``\\n``; templates decide the surrounding layout.
"""

from collections.abc import Iterable, Mapping, Sequence

from emmylua_stubgen.doc_models import (
    DocConstructor,
    DocMethod,
    DocOperator,
    DocParam,
    DocProperty,
    DocType,
    Returns,
)
from emmylua_stubgen.errors import DocumentError

PRIMITIVES = {
    "int": "integer",
    "float": "number",
    "bool": "boolean",
    "callable": "function",
}

OPERATORS = {
    "add": "add",
    "sub": "sub",
    "mult": "mul",
    "div": "div",
    "mod": "mod",
}


def lua_type(name: str) -> str:
    """Map documentation primitive names to their Lua counterparts."""
    return PRIMITIVES.get(name, name)


def render_type(t: DocType) -> str:
    """
    Render the type expression of a descriptor, including container wrapping
    and the nil marker. The first matching container combination wins.
    """
    base = lua_type(t.type)
    if t.is_vector and t.nested_vector:
        typ = f"vector|{base}[][]"
    elif t.is_vector and t.nested_map:
        typ = f"vector|table<integer, {base}>[]"
    elif t.is_vector:
        typ = f"vector|{base}[]"
    elif t.is_map and t.nested_vector:
        typ = f"table<integer, vector|{base}[]>"
    elif t.is_map and t.nested_map:
        typ = f"table<integer, table<integer, {base}>>"
    elif t.is_map:
        typ = f"table<integer, {base}>"
    else:
        typ = base
    if t.nilable:
        typ += "|nil"
    return typ


def description_lines(description: str | None) -> list[str]:
    if not description:
        return []
    return [line.strip() for line in description.splitlines() if line.strip()]


def render_comment(
    t: DocType,
    *,
    comments: Iterable[str] = (),
    read_only: bool = False,
    default: str | None = None,
) -> str:
    """
    Render the trailing `` @ a | b`` comment of an annotation line.
    Returns an empty string if there is nothing to say.
    """
    fragments = list(comments)
    if read_only:
        fragments.append("**Read Only**")
    if t.is_vector:
        fragments.append(f"**Vector Type: `{t.type}`**")
        fragments.append("**Cannot be instantiated directly**")
    if default is not None:
        fragments.append(f"Default: {default}")
    fragments.extend(description_lines(t.description))
    if not fragments:
        return ""
    return f" @ {' | '.join(fragments)}"


def render_property(
    name: str, prop: DocProperty, comments: Iterable[str] = ()
) -> str:
    return f"---@field {name} {render_type(prop)}" + render_comment(
        prop, comments=comments, read_only=prop.read_only
    )


def render_param(name: str, param: DocParam) -> str:
    if param.variadic:
        # varargs don't have a name
        code = f"---@vararg {render_type(param)}"
    else:
        code = f"---@param {name} {render_type(param)}"
    return code + render_comment(
        param, read_only=param.read_only, default=param.default
    )


def render_returns(returns: Returns) -> list[str]:
    if returns is None:
        return []
    if isinstance(returns, DocType):
        returns = [returns]
    return [f"---@return {render_type(ret)}{render_comment(ret)}" for ret in returns]


def render_operator(op: DocOperator) -> str:
    """
    Unsupported operators are rendered as a warning instead of failing the document.
    """
    rhs, ret = lua_type(op.rhs), lua_type(op.returns)
    if op.kind not in OPERATORS:
        return f'---WARNING: unsupported operator "{op.kind}" ({rhs}): {ret}'
    return f"---@operator {OPERATORS[op.kind]}({rhs}): {ret}"


def stub_args(params: Mapping[str, DocParam] | None) -> str:
    """Parameter list of a function stub. Variadic parameters become ``...``."""
    return ", ".join(
        "..." if param.variadic else name for name, param in (params or {}).items()
    )


def comment_lines(lines: Iterable[str]) -> list[str]:
    return [f"---{line}" for line in lines]


def render_constructor(
    owner: str, cons: DocConstructor, comments: Sequence[str] = ()
) -> str:
    code = [f"---{owner} constructor"]
    code.extend(comment_lines(comments))
    code.extend(comment_lines(description_lines(cons.description)))
    # Only generate parameter documentation for non-default constructors
    if cons.params:
        code.extend(render_param(name, param) for name, param in cons.params.items())
    code.append(f"---@return {owner}")
    code.append(f"function {owner}({stub_args(cons.params)}) end")
    return "\n".join(code)


def render_method(
    owner: str,
    method: DocMethod,
    comments: Sequence[str] = (),
    overloads: Sequence[str] = (),
) -> str:
    code = comment_lines(comments)
    code.extend(comment_lines(description_lines(method.description)))
    code.extend(render_param(name, param) for name, param in method.params.items())
    code.extend(render_returns(method.returns))
    code.extend(overloads)
    code.append(f"function {owner}:{method.name}({stub_args(method.params)}) end")
    return "\n".join(code)


def single_return(returns: Returns, context: str) -> DocType | None:
    """
    Function types can only express a single return value here.

    Raises:
        DocumentError: If more than one return type is declared.
    """
    if returns is None or isinstance(returns, DocType):
        return returns
    if len(returns) > 1:
        raise DocumentError(
            f"{context} declares {len(returns)} return types, only one is supported"
        )
    return returns[0] if returns else None


def render_function_param(name: str, param: DocParam) -> str:
    if param.variadic:
        return f"...: {render_type(param)}"
    if lua_type(param.type) == "function" and param.params is not None:
        sig = render_function_type(param.params, param.returns, context=name)
        return f"{name}?: {sig}" if param.nilable else f"{name}: {sig}"
    return f"{name}: {render_type(param)}"


def render_function_type(
    params: Mapping[str, DocParam], returns: Returns = None, *, context: str = "fun"
) -> str:
    """
    Render ``fun(a: T, cb: fun(x: U): V): R``. Callable parameters carrying their
    own signature are expanded recursively.
    """
    ret = single_return(returns, context)
    args = ", ".join(render_function_param(name, p) for name, p in params.items())
    sig = f"fun({args})"
    if ret is not None:
        sig += f": {render_type(ret)}"
    return sig

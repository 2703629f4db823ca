"""
Synthesize ``---@overload`` annotations for ``Events:Subscribe`` and ``Hooks:Install``
so the language server can narrow callback signatures by the literal event/hook name.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from emmylua_stubgen.annotations import (
    render_function_param,
    render_function_type,
    render_type,
    single_return,
)
from emmylua_stubgen.doc_models import DocEvent, DocHook, DocMethod, DocParam

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Catalog:
    """Events and hooks documented for a single component (shared/server/client)."""

    events: tuple[DocEvent, ...] = ()
    hooks: tuple[DocHook, ...] = ()


EMPTY_CATALOG = Catalog()


def event_overloads(
    library: str, method: DocMethod, events: Sequence[DocEvent]
) -> list[str]:
    """
    One overload per event for ``Subscribe``. If the method accepts a ``context``,
    it is passed to the callback as the first argument (``userData``).
    """
    if method.name != "Subscribe":
        return []
    context = method.params.get("context")
    overloads = []
    for event in events:
        payload: dict[str, DocParam] = {}
        if context is not None:
            payload["userData"] = DocParam(type=context.type)
        payload.update(event.params)

        params = {
            "self": DocParam(type=library),
            "eventName": DocParam(type=f'"{event.name}"'),
        }
        if context is not None:
            params["context"] = context
        params["callback"] = DocParam(type="callable", params=payload)
        sig = render_function_type(
            params, method.returns, context=f"{library}:{method.name}"
        )
        overloads.append(f"---@overload {sig}")
    return overloads


def hook_overloads(
    library: str, method: DocMethod, hooks: Sequence[DocHook]
) -> list[str]:
    """
    One overload per hook for ``Install``. The callback receives the hook context
    followed by the hook parameters and may return the hook's return type.

    Raises:
        DocumentError: If a hook or ``Install`` declares multiple return types.
    """
    if method.name != "Install":
        return []
    if "hookName" not in method.params or "callback" not in method.params:
        logger.debug(
            "%s:%s lacks hookName/callback parameters, not generating hook overloads",
            library,
            method.name,
        )
        return []

    ret = single_return(method.returns, f"{library}:{method.name}")
    rest = [
        render_function_param(name, param)
        for name, param in method.params.items()
        if name not in ("hookName", "callback")
    ]
    overloads = []
    for hook in hooks:
        hook_ret = single_return(hook.returns, f"Hook {hook.name}")
        cb_args = ["hookCtx"]
        cb_args.extend(
            render_function_param(name, param) for name, param in hook.params.items()
        )
        callback = f"fun({', '.join(cb_args)})"
        if hook_ret is not None:
            callback += f": {render_type(hook_ret)}"

        args = [f'hookName: "{hook.name}"', *rest, f"callback: {callback}"]
        code = f"---@overload fun({', '.join(args)})"
        if ret is not None:
            code += f": {render_type(ret)}"
        overloads.append(code)
    return overloads


SYNTHESIZERS: dict[str, Callable[[str, DocMethod, Catalog], list[str]]] = {
    "Events": lambda lib, method, cat: event_overloads(lib, method, cat.events),
    "Hooks": lambda lib, method, cat: hook_overloads(lib, method, cat.hooks),
}


def synthesize_overloads(
    library: str, method: DocMethod, catalog: Catalog = EMPTY_CATALOG
) -> list[str]:
    """Overload lines for a library method. Empty for all other libraries."""
    synth = SYNTHESIZERS.get(library)
    if synth is None:
        return []
    return synth(library, method, catalog)

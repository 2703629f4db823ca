"""
Generation settings.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Component = Literal["shared", "server", "client"]


class StubGroup(BaseModel):
    """A directory of documentation records and how its stubs are labelled."""

    model_config = ConfigDict(frozen=True)

    path: str
    kind: str
    component: Component
    comments: tuple[str, ...] = ()

    @property
    def is_library(self) -> bool:
        return self.path.endswith("library")


DEFAULT_GROUPS = (
    StubGroup(path="fb", kind="Frostbite", component="shared", comments=("`SERVER/CLIENT`",)),
    StubGroup(path="shared/type", kind="Shared", component="shared", comments=("`SERVER/CLIENT`",)),
    StubGroup(path="server/type", kind="Server", component="server", comments=("`SERVER ONLY`",)),
    StubGroup(path="client/type", kind="Client", component="client", comments=("`CLIENT ONLY`",)),
    StubGroup(path="shared/library", kind="Shared", component="shared", comments=("`SERVER/CLIENT`",)),
    StubGroup(path="server/library", kind="Server", component="server", comments=("`SERVER ONLY`",)),
    StubGroup(path="client/library", kind="Client", component="client", comments=("`CLIENT ONLY`",)),
)  # fmt: skip


class StubConfig(BaseModel):
    """Settings for the documentation-driven stub generator."""

    title: str = "Venice Unleashed - Lua bindings"
    website: str = "https://veniceunleashed.net"
    docs_url: str = "https://docs.veniceunleashed.net"
    intermediate_title: str = "Venice Unleashed - Intermediate Lua binding"
    groups: tuple[StubGroup, ...] = Field(default=DEFAULT_GROUPS)


class GenerationConfig(BaseModel):
    """Settings for generating intermediate stubs from Lua source."""

    # Emit classes that are not assigned to a global variable, e.g. ``class 'Foo'``
    force_global: bool = False
    disable: bool = False

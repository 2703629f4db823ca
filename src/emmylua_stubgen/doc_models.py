"""
Pydantic models for the YAML documentation records (VU-Docs layout).
"""

from pathlib import Path
from typing import Annotated, Any, Literal

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from emmylua_stubgen.errors import DocumentError


class DocModel(BaseModel):
    """Documentation records are read-only once loaded."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class DocType(DocModel):
    """Type descriptor shared by parameters, properties and returns."""

    type: str
    description: str | None = None
    nullable: bool = False
    # EASTL vector exposed to Lua
    is_vector: bool = Field(default=False, alias="array")
    # Lua table
    is_map: bool = Field(default=False, alias="table")
    nested_vector: bool = Field(default=False, alias="nestedArray")
    nested_map: bool = Field(default=False, alias="nestedTable")

    @property
    def nilable(self) -> bool:
        """
        Overridden by DocParam
        """
        return self.nullable


class DocParam(DocType):
    default: str | None = None
    variadic: bool = False
    # This is only for hooks
    read_only: bool = Field(default=False, alias="readOnly")
    # Signature of a ``callable`` parameter, if known.
    params: dict[str, "DocParam"] | None = None
    returns: DocType | None = None

    @field_validator("default", mode="before")
    @classmethod
    def _lua_literal(cls, raw: Any) -> str | None:
        """
        YAML parses unquoted defaults. Keep them as the Lua literal text.
        """
        if raw is None or isinstance(raw, str):
            return raw
        if isinstance(raw, bool):
            return "true" if raw else "false"
        return str(raw)

    @property
    def nilable(self) -> bool:
        return self.nullable or self.default is not None


class DocProperty(DocType):
    read_only: bool = Field(default=False, alias="readOnly")


Returns = DocType | list[DocType] | None


class DocMethod(DocModel):
    name: str
    description: str | None = None
    params: dict[str, DocParam] = Field(default_factory=dict)
    returns: Returns = None

    @field_validator("params", mode="before")
    @classmethod
    def _no_params(cls, raw: Any) -> Any:
        return {} if raw is None else raw


class DocConstructor(DocModel):
    description: str | None = None
    # None marks the default constructor
    params: dict[str, DocParam] | None = None


OperatorKind = Literal["add", "sub", "mult", "div", "mod", "eq", "lt", "gt"]


class DocOperator(DocModel):
    kind: OperatorKind = Field(alias="type")
    rhs: str
    returns: str


class DocEnumValue(DocModel):
    value: int
    description: str | None = None


class Document(DocModel):
    """Base for the three document kinds."""

    name: str


class DocClass(Document):
    type: Literal["class"]
    inherits: str | None = None
    constructors: list[DocConstructor] = Field(default_factory=list)
    methods: list[DocMethod] = Field(default_factory=list)
    properties: dict[str, DocProperty] = Field(default_factory=dict)
    static_properties: dict[str, DocProperty] = Field(
        default_factory=dict, alias="static"
    )
    operators: list[DocOperator] = Field(default_factory=list)

    @field_validator("constructors", mode="before")
    @classmethod
    def _default_constructors(cls, raw: Any) -> Any:
        """
        A ``null`` entry in the list documents the default constructor.
        """
        if raw is None:
            return []
        return [{} if cons is None else cons for cons in raw]

    @field_validator("methods", "operators", mode="before")
    @classmethod
    def _empty_lists(cls, raw: Any) -> Any:
        return [] if raw is None else raw

    @field_validator("properties", "static_properties", mode="before")
    @classmethod
    def _empty_maps(cls, raw: Any) -> Any:
        return {} if raw is None else raw


class DocLibrary(Document):
    type: Literal["library"]
    methods: list[DocMethod] = Field(default_factory=list)

    @field_validator("methods", mode="before")
    @classmethod
    def _empty_lists(cls, raw: Any) -> Any:
        return [] if raw is None else raw


class DocEnum(Document):
    type: Literal["enum"]
    values: dict[str, DocEnumValue] = Field(default_factory=dict)

    @field_validator("values", mode="before")
    @classmethod
    def _empty_maps(cls, raw: Any) -> Any:
        return {} if raw is None else raw


# Discriminated union on the ``type`` key
AnyDocument = Annotated[DocClass | DocLibrary | DocEnum, Field(discriminator="type")]


class DocEvent(DocModel):
    """Event that can be subscribed to via ``Events:Subscribe``."""

    name: str
    description: str | None = None
    params: dict[str, DocParam] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def _no_params(cls, raw: Any) -> Any:
        return {} if raw is None else raw


class DocHook(DocModel):
    """Hook that can be installed via ``Hooks:Install``."""

    name: str
    description: str | None = None
    params: dict[str, DocParam] = Field(default_factory=dict)
    returns: Returns = None

    @field_validator("params", mode="before")
    @classmethod
    def _no_params(cls, raw: Any) -> Any:
        return {} if raw is None else raw


_DOCUMENT_ADAPTER = TypeAdapter(AnyDocument)


def read_yaml(path: Path) -> dict[str, Any]:
    """
    Read a single YAML record.

    Raises:
        DocumentError: If the file cannot be read, is not valid YAML or not a mapping.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise DocumentError(f"{path}: cannot read: {err}") from err
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise DocumentError(f"{path}: invalid YAML: {err}") from err
    if not isinstance(data, dict):
        raise DocumentError(f"{path}: expected a mapping, got {type(data).__name__}")
    return data


def parse_document(data: dict[str, Any], source: str = "<document>") -> AnyDocument:
    """
    Validate a raw record as a class, library or enum document.

    Raises:
        DocumentError: On an unknown ``type`` or any structural problem.
    """
    if data.get("type") not in ("class", "library", "enum"):
        raise DocumentError(f"{source}: unknown document type {data.get('type')!r}")
    try:
        return _DOCUMENT_ADAPTER.validate_python(data)
    except ValidationError as err:
        raise DocumentError(f"{source}: {err}") from err


def load_document(path: Path) -> AnyDocument:
    return parse_document(read_yaml(path), str(path))


def load_event(path: Path) -> DocEvent:
    try:
        return DocEvent.model_validate(read_yaml(path))
    except ValidationError as err:
        raise DocumentError(f"{path}: {err}") from err


def load_hook(path: Path) -> DocHook:
    try:
        return DocHook.model_validate(read_yaml(path))
    except ValidationError as err:
        raise DocumentError(f"{path}: {err}") from err

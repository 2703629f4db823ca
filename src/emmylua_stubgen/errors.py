"""
Exceptions raised by the stub generators.

Library code raises these and leaves the decision whether to skip a failing
document/file or abort the whole batch to the caller.
"""


class StubGenError(Exception):
    """Base class for all errors raised by emmylua_stubgen."""


class DocumentError(StubGenError, ValueError):
    """
    A documentation record cannot be turned into a stub: unknown document type,
    missing/invalid fields or an unsupported structure (e.g. multiple returns in
    a function type).
    """


class LuaSyntaxError(StubGenError):
    """A single syntax error reported while parsing Lua source."""

    def __init__(self, message: str, line: int, column: int):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    @property
    def location(self) -> tuple[int, int]:
        return self.line, self.column

    def __str__(self) -> str:
        return f"{self.line}:{self.column}: {self.message}"


class GeneratorError(StubGenError):
    """Lua source could not be parsed. Aggregates all reported syntax errors."""

    def __init__(self, message: str, errors: list[LuaSyntaxError]):
        super().__init__(message)
        self.message = message
        self.errors = errors

    def __str__(self) -> str:
        return "\n\n".join(
            (self.message, "\n".join(str(err) for err in self.errors))
        ).rstrip()

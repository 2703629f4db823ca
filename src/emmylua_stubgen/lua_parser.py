"""
Recover classes and their constructors from Lua source.

Uses an LALR grammar (Lark) for Lua 5.4. ``class`` is not special in Lua syntax,
class declarations are recognized on the parse tree instead:

* ``class 'Name'``, ``class('Name')``, ``class('Name', Base)``, ``class 'Name' (Base)``
* ``[local] Name = class(...)`` with any of the above
* ``[local] Name = class { ... }`` (name taken from the variable)

Constructors are ``function Name:__init(...)`` definitions. Their EmmyLua doc comments
(``---@param``, ``---@vararg``, plain ``---`` descriptions) are attached by adjacency:
the contiguous block of ``---`` lines ending right above the statement.
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from functools import cache
from itertools import chain

from lark import Lark, Token, Tree, Visitor
from lark.exceptions import (
    UnexpectedCharacters,
    UnexpectedEOF,
    UnexpectedInput,
    UnexpectedToken,
)

from emmylua_stubgen.errors import GeneratorError, LuaSyntaxError

logger = logging.getLogger(__name__)

"""
Notes on the grammar:

* Calls and assignment targets share ``suffixedexp``. Whether an expression statement
  is really a call is checked after parsing.
* ``f\\n(g)()`` is ambiguous in Lua. The resulting Shift/Reduce conflict for ``(``
  is resolved as shift by Lark, i.e. it is parsed as a call, same as Lua 5.2+.
* Operator tokens are dropped from the tree, we never evaluate expressions.
"""
LUA_GRAMMAR = r"""
    start: block

    block: stat* [retstat]

    ?stat: ";" -> empty_stat
         | suffixedexp -> call_stat
         | suffixedexp ("," suffixedexp)* "=" explist -> assign_stat
         | "::" NAME "::" -> label_stat
         | "break" -> break_stat
         | "goto" NAME -> goto_stat
         | "do" block "end" -> do_stat
         | "while" exp "do" block "end" -> while_stat
         | "repeat" block "until" exp -> repeat_stat
         | "if" exp "then" block elseif_clause* ["else" block] "end" -> if_stat
         | "for" NAME "=" exp "," exp ["," exp] "do" block "end" -> fornum_stat
         | "for" NAME ("," NAME)* "in" explist "do" block "end" -> forin_stat
         | function_stat
         | local_function_stat
         | local_stat

    elseif_clause: "elseif" exp "then" block
    retstat: "return" [explist] [";"]

    function_stat: "function" funcname funcbody
    funcname: NAME ("." NAME)* [":" NAME]
    local_function_stat: "local" "function" NAME funcbody
    local_stat: "local" attnamelist ["=" explist]
    attnamelist: NAME [attrib] ("," NAME [attrib])*
    attrib: "<" NAME ">"

    funcbody: "(" [parlist] ")" block "end"
    parlist: NAME ("," NAME)* ["," ELLIPSIS]
           | ELLIPSIS

    explist: exp ("," exp)*

    // Precedence climbs from `or` (lowest) to `^` (highest)
    ?exp: or_exp
    ?or_exp: and_exp | or_exp "or" and_exp
    ?and_exp: cmp_exp | and_exp "and" cmp_exp
    ?cmp_exp: bor_exp | cmp_exp ("<" | ">" | "<=" | ">=" | "~=" | "==") bor_exp
    ?bor_exp: bxor_exp | bor_exp "|" bxor_exp
    ?bxor_exp: band_exp | bxor_exp "~" band_exp
    ?band_exp: shift_exp | band_exp "&" shift_exp
    ?shift_exp: concat_exp | shift_exp ("<<" | ">>") concat_exp
    ?concat_exp: add_exp | add_exp ".." concat_exp                 // right associative
    ?add_exp: mul_exp | add_exp ("+" | "-") mul_exp
    ?mul_exp: unary_exp | mul_exp ("*" | "/" | "//" | "%") unary_exp
    ?unary_exp: pow_exp | ("not" | "#" | "-" | "~") unary_exp
    ?pow_exp: atom | atom "^" unary_exp                             // -x^2 == -(x^2)

    ?atom: "nil" -> nil
         | "true" -> true
         | "false" -> false
         | NUMBER -> number
         | string
         | ELLIPSIS -> vararg
         | functiondef
         | suffixedexp
         | table_constructor

    string: STRING
    functiondef: "function" funcbody

    ?suffixedexp: primaryexp
                | suffixedexp "." NAME -> attribute
                | suffixedexp "[" exp "]" -> index
                | suffixedexp ":" NAME args -> method_call
                | suffixedexp args -> call
    ?primaryexp: NAME -> name
               | "(" exp ")" -> paren

    args: "(" [explist] ")"
        | table_constructor
        | string

    table_constructor: "{" [fieldlist] "}"
    fieldlist: table_field (_fieldsep table_field)* [_fieldsep]
    ?table_field: "[" exp "]" "=" exp -> keyed_field
                | NAME "=" exp -> named_field
                | exp -> positional_field
    _fieldsep: "," | ";"

    // Terminals
    ELLIPSIS: "..."
    NAME: /[A-Za-z_][A-Za-z0-9_]*/
    NUMBER: /0[xX](?:[0-9a-fA-F]+(?:\.[0-9a-fA-F]*)?|\.[0-9a-fA-F]+)(?:[pP][+-]?[0-9]+)?|(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?/
    // Long brackets are spelled out up to level 3 ([===[ ... ]===])
    STRING: /"(?:\\[\s\S]|[^"\\\n])*"|'(?:\\[\s\S]|[^'\\\n])*'/
          | /\[\[[\s\S]*?\]\]|\[=\[[\s\S]*?\]=\]|\[==\[[\s\S]*?\]==\]|\[===\[[\s\S]*?\]===\]/
    // Long comments first, otherwise --[[ would be read as a line comment.
    COMMENT: /--(?:\[\[[\s\S]*?\]\]|\[=\[[\s\S]*?\]=\]|\[==\[[\s\S]*?\]==\]|\[===\[[\s\S]*?\]===\]|[^\r\n]*)/

    %import common.WS
    %ignore WS
    %ignore COMMENT
"""

LONG_BRACKET = re.compile(r"^\[(=*)\[\n?(?P<content>[\s\S]*)\]\1\]$")
DOC_TAG = re.compile(r"^@(?P<tag>\w+)\s*(?P<rest>.*)$")
# Lua accepts \r, \r\n and \n\r as line breaks, Lark only counts \n
LINE_BREAK = re.compile(r"\r\n|\n\r|\r")


@dataclass
class LuaParam:
    name: str
    type: str = "any"
    description: str | None = None
    variadic: bool = False


@dataclass
class LuaConstructor:
    params: list[LuaParam] = field(default_factory=list)
    description: list[str] = field(default_factory=list)


@dataclass
class LuaClass:
    name: str
    inherits: str | None = None
    constructors: list[LuaConstructor] = field(default_factory=list)
    # Whether a global variable with the class name is defined
    is_global: bool = False
    # Whether the declaration already has a ---@class annotation
    has_comment: bool = False


@dataclass(frozen=True)
class ClassDecl:
    name: str | None
    base: str | None
    table_form: bool


@dataclass(frozen=True)
class DocTag:
    type: str
    description: str | None = None


def split_type(text: str) -> tuple[str, str | None]:
    """
    Split ``fun(a: integer): string @ Some description`` into type and description.
    Whitespace inside brackets or around ``|`` and after ``:`` belongs to the type.
    """
    text = text.strip()
    depth = 0
    for i, char in enumerate(text):
        if char in "(<{[":
            depth += 1
        elif char in ")>}]":
            depth -= 1
        elif char.isspace() and depth <= 0:
            head, tail = text[:i], text[i:].lstrip()
            if head.endswith((":", "|", ",")) or tail.startswith("|"):
                continue
            description = tail.removeprefix("@").strip()
            return head, description or None
    return text, None


@dataclass
class DocBlock:
    """Parsed contents of a contiguous ``---`` comment block."""

    description: list[str] = field(default_factory=list)
    params: dict[str, DocTag] = field(default_factory=dict)
    vararg: DocTag | None = None
    has_class: bool = False

    @classmethod
    def parse(cls, lines: Iterable[str]) -> "DocBlock":
        block = cls()
        for line in lines:
            content = line.removeprefix("---").rstrip()
            match = DOC_TAG.match(content.strip())
            if not match:
                if content.strip():
                    block.description.append(content)
                continue
            tag, rest = match.group("tag", "rest")
            if tag == "class":
                block.has_class = True
            elif tag == "vararg":
                block.vararg = DocTag(*split_type(rest))
            elif tag == "param":
                name, _, rest = rest.partition(" ")
                doc = DocTag(*split_type(rest or "any"))
                if name == "...":
                    block.vararg = doc
                else:
                    # First one wins, same as the language server
                    block.params.setdefault(name.removesuffix("?"), doc)
        return block

    def annotate(self, params: list[LuaParam]) -> list[LuaParam]:
        """Overlay documented types/descriptions onto a signature's parameters."""
        for param in params:
            doc = self.vararg if param.variadic else self.params.get(param.name)
            if doc is not None:
                param.type = doc.type
                param.description = doc.description
        return params


def normalize_newlines(source: str) -> str:
    return LINE_BREAK.sub("\n", source)


class DocComments:
    """Index of ``---`` line comments that stand on their own line."""

    def __init__(self, comments: Iterable[Token], source: str):
        lines = source.split("\n")
        self.lines: dict[int, str] = {}
        for comment in comments:
            if not comment.value.startswith("---") or comment.value.startswith("---["):
                continue
            prefix = lines[comment.line - 1][: comment.column - 1]
            if prefix.strip():
                # trailing comment after code
                continue
            self.lines[comment.line] = comment.value

    def block_above(self, line: int) -> DocBlock:
        collected = []
        cur = line - 1
        while cur in self.lines:
            collected.append(self.lines[cur])
            cur -= 1
        return DocBlock.parse(reversed(collected))


def unquote(token: Token) -> str:
    value = str(token)
    if match := LONG_BRACKET.match(value):
        return match.group("content")
    return value[1:-1]


def dotted_name(node) -> str | None:
    """``Foo`` or ``Foo.Bar.Baz`` expressions as text, None for anything else."""
    if not isinstance(node, Tree):
        return None
    if node.data == "name":
        return str(node.children[0])
    if node.data == "attribute":
        prefix = dotted_name(node.children[0])
        return prefix and f"{prefix}.{node.children[1]}"
    return None


def call_arguments(args: Tree) -> list[Tree]:
    (inner,) = args.children
    if inner is None:
        return []
    if inner.data == "explist":
        return list(inner.children)
    return [inner]


def _class_call_arguments(node) -> list[list[Tree]] | None:
    if not isinstance(node, Tree) or node.data != "call":
        return None
    callee, args = node.children
    if isinstance(callee, Tree) and callee.data == "name":
        if callee.children[0] != "class":
            return None
        return [call_arguments(args)]
    # class 'Name' (Base)
    inner = _class_call_arguments(callee)
    if inner is None:
        return None
    return [*inner, call_arguments(args)]


def class_declaration(node) -> ClassDecl | None:
    """Inspect an expression for a ``class ...`` call."""
    arg_lists = _class_call_arguments(node)
    if arg_lists is None:
        return None
    name = base = None
    table_form = False
    for arg in chain.from_iterable(arg_lists):
        if not isinstance(arg, Tree):
            continue
        if arg.data == "string":
            if name is None:
                name = unquote(arg.children[0])
        elif arg.data == "table_constructor":
            table_form = True
        elif base is None:
            base = dotted_name(arg)
    return ClassDecl(name, base, table_form)


def signature_params(funcbody: Tree) -> list[LuaParam]:
    """All parameters of a function signature, documented or not."""
    parlist = funcbody.children[0]
    if parlist is None:
        return []
    tokens = [tok for tok in parlist.children if isinstance(tok, Token)]
    params = [LuaParam(name=str(tok)) for tok in tokens if tok.type == "NAME"]
    if any(tok.type == "ELLIPSIS" for tok in tokens):
        params.append(LuaParam(name="...", variadic=True))
    return params


class ClassCollector(Visitor):
    """
    Accumulates classes while walking a chunk top-down, so declarations are
    seen before the constructors that follow them.
    """

    def __init__(self, docs: DocComments):
        self.docs = docs
        self.classes: dict[str, LuaClass] = {}

    def collect(self, tree: Tree) -> dict[str, LuaClass]:
        self.visit_topdown(tree)
        return self.classes

    def _declare(
        self, stat: Tree, decl: ClassDecl, var: str | None, local: bool
    ) -> None:
        name = var if decl.table_form or decl.name is None else decl.name
        if not name:
            logger.debug("Ignoring anonymous class declaration on line %s", stat.meta.line)
            return
        self.classes[name] = LuaClass(
            name=name,
            inherits=decl.base,
            is_global=var is not None and not local,
            has_comment=self.docs.block_above(stat.meta.line).has_class,
        )

    def call_stat(self, tree: Tree) -> None:
        if decl := class_declaration(tree.children[0]):
            self._declare(tree, decl, None, local=False)

    def assign_stat(self, tree: Tree) -> None:
        *targets, values = tree.children
        if len(targets) != 1 or len(values.children) != 1:
            return
        var = dotted_name(targets[0])
        if var and (decl := class_declaration(values.children[0])):
            self._declare(tree, decl, var, local=False)

    def local_stat(self, tree: Tree) -> None:
        names, values = tree.children
        if values is None or len(values.children) != 1:
            return
        var = [tok for tok in names.children if isinstance(tok, Token)]
        if len(var) == 1 and (decl := class_declaration(values.children[0])):
            self._declare(tree, decl, str(var[0]), local=True)

    def function_stat(self, tree: Tree) -> None:
        funcname, funcbody = tree.children
        *path, method = funcname.children
        if method != "__init":
            return
        class_name = ".".join(path)
        cls = self.classes.get(class_name)
        if cls is None:
            logger.debug("Constructor for undeclared class %s, skipping", class_name)
            return

        # The signature defines the parameters, docs only add types and descriptions.
        # This way the stub is callable with all parameters even if docs are missing.
        doc = self.docs.block_above(tree.meta.line)
        cls.constructors.append(
            LuaConstructor(
                params=doc.annotate(signature_params(funcbody)),
                description=doc.description,
            )
        )


def _describe(err: UnexpectedInput) -> str:
    if isinstance(err, UnexpectedToken):
        if err.token.type == "$END":
            return "unexpected end of file"
        return f"unexpected symbol near '{err.token}'"
    if isinstance(err, UnexpectedCharacters):
        return f"unexpected character '{err.char}'"
    if isinstance(err, UnexpectedEOF):
        return "unexpected end of file"
    return str(err).strip().splitlines()[0]


class LuaParser:
    """Parses Lua chunks and keeps the comments seen by the lexer."""

    max_errors = 50

    def __init__(self):
        self._comments: list[Token] = []
        self.parser = Lark(
            LUA_GRAMMAR,
            parser="lalr",
            propagate_positions=True,
            lexer_callbacks={"COMMENT": self._collect_comment},
        )

    def _collect_comment(self, token: Token) -> Token:
        self._comments.append(token)
        return token

    def parse(self, source: str) -> tuple[Tree, list[Token]]:
        """
        Parse a chunk, collecting every syntax error instead of stopping at the first.
        Line breaks must already be normalized, see :func:`normalize_newlines`.

        Raises:
            GeneratorError: If the chunk has syntax errors.
        """
        self._comments = []
        errors: list[LuaSyntaxError] = []
        seen: set[tuple[int, int, str]] = set()

        def record(err: UnexpectedInput) -> bool:
            # The parser re-raises errors at the end of input when giving up
            key = (err.line, err.column, _describe(err))
            if key in seen:
                return False
            seen.add(key)
            errors.append(LuaSyntaxError(key[2], err.line, err.column))
            return True

        def on_error(err: UnexpectedInput) -> bool:
            # Stop recovering once no progress is made
            return record(err) and len(errors) < self.max_errors

        tree = None
        try:
            tree = self.parser.parse(source, on_error=on_error)
        except UnexpectedInput as err:
            record(err)

        if tree is not None and not errors:
            errors.extend(_check_statements(tree))
        if errors:
            raise GeneratorError(f"{len(errors)} syntax error(s)", errors)
        return tree, list(self._comments)


def _check_statements(tree: Tree) -> list[LuaSyntaxError]:
    """Expression statements must be calls, assignment targets must be variables."""
    errors = []
    for stat in tree.find_data("call_stat"):
        if stat.children[0].data not in ("call", "method_call"):
            errors.append(
                LuaSyntaxError("syntax error, expected a call", stat.meta.line, stat.meta.column)
            )
    for stat in tree.find_data("assign_stat"):
        for target in stat.children[:-1]:
            if target.data not in ("name", "attribute", "index"):
                errors.append(
                    LuaSyntaxError(
                        "syntax error, cannot assign to expression",
                        target.meta.line,
                        target.meta.column,
                    )
                )
    return errors


@cache
def default_parser() -> LuaParser:
    return LuaParser()


def extract_classes(source: str, parser: LuaParser | None = None) -> dict[str, LuaClass]:
    """
    Parse ``source`` and collect its classes in declaration order.

    Raises:
        GeneratorError: If the source has syntax errors. No classes are returned then.
    """
    parser = parser or default_parser()
    source = normalize_newlines(source)
    tree, comments = parser.parse(source)
    return ClassCollector(DocComments(comments, source)).collect(tree)

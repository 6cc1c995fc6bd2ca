"""Module declaration parser.

Reads the text of a ``module-info.java`` file into a ModuleDeclaration.
A small scanner splits the text into tokens (identifiers, symbols and
comments, each with its line and column), and a recursive-descent parser
walks the tokens.

Two comment forms carry information and are kept as tokens:

- ``requires foo.bar /*1.2.3*/;`` records version 1.2.3 for foo.bar
- ``// --main-class com.example.Main`` anywhere in the file names the
  entry point class
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from modbuild.errors import DeclarationSyntaxError

from .models import ModuleDeclaration, Provision, Requirement

logger = logging.getLogger(__name__)

MAIN_CLASS_MARKER = "--main-class"
REQUIRES_MODIFIERS = ("transitive", "static")


class TokenKind(Enum):
    IDENTIFIER = "identifier"
    SYMBOL = "symbol"
    BLOCK_COMMENT = "block comment"
    LINE_COMMENT = "line comment"
    END = "end of input"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    line: int
    column: int


def tokenize(text: str, source: Optional[str] = None) -> list[Token]:
    """Split declaration text into tokens.

    String and character literals only appear inside annotation arguments;
    they are returned as single SYMBOL tokens so that their content is
    never mistaken for directives.

    Raises:
        DeclarationSyntaxError: On an unterminated comment or literal, or a
            character that cannot start a token
    """
    tokens: list[Token] = []
    i = 0
    line = 1
    line_start = 0
    length = len(text)

    while i < length:
        ch = text[i]
        column = i - line_start + 1

        if ch == "\n":
            i += 1
            line += 1
            line_start = i
            continue
        if ch.isspace():
            i += 1
            continue

        if text.startswith("//", i):
            end = text.find("\n", i)
            end = length if end < 0 else end
            tokens.append(Token(TokenKind.LINE_COMMENT, text[i + 2 : end].strip(), line, column))
            i = end
            continue

        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end < 0:
                raise DeclarationSyntaxError("unterminated comment", line, column, source)
            body = text[i + 2 : end]
            tokens.append(Token(TokenKind.BLOCK_COMMENT, body.strip(), line, column))
            newlines = body.count("\n")
            if newlines:
                line += newlines
                line_start = i + 2 + body.rfind("\n") + 1
            i = end + 2
            continue

        if ch.isidentifier() or ch == "$":
            start = i
            while i < length and (text[i].isidentifier() or text[i].isdigit() or text[i] == "$"):
                i += 1
            tokens.append(Token(TokenKind.IDENTIFIER, text[start:i], line, column))
            continue

        if ch in "\"'":
            end = i + 1
            while end < length and text[end] != ch:
                if text[end] == "\\":
                    end += 1
                if end < length and text[end] == "\n":
                    break
                end += 1
            if end >= length or text[end] != ch:
                raise DeclarationSyntaxError("unterminated literal", line, column, source)
            tokens.append(Token(TokenKind.SYMBOL, text[i : end + 1], line, column))
            i = end + 1
            continue

        if ch in "{};,.()@=*" or ch.isdigit():
            tokens.append(Token(TokenKind.SYMBOL, ch, line, column))
            i += 1
            continue

        raise DeclarationSyntaxError(f"unexpected character {ch!r}", line, column, source)

    tokens.append(Token(TokenKind.END, "", line, length - line_start + 1))
    return tokens


class _Parser:
    """Recursive-descent parser over the token list."""

    def __init__(self, tokens: list[Token], source: Optional[str]):
        self.source = source
        self.main_class: Optional[str] = None
        self.tokens: list[Token] = []
        # Line comments only matter for the main class marker. Block comments
        # stay in the stream since one may carry a requires version.
        for token in tokens:
            if token.kind is TokenKind.LINE_COMMENT:
                self._inspect_line_comment(token)
                continue
            self.tokens.append(token)
        self.position = 0

    def _inspect_line_comment(self, token: Token) -> None:
        words = token.text.split()
        if len(words) >= 2 and words[0] == MAIN_CLASS_MARKER:
            if self.main_class is not None and self.main_class != words[1]:
                raise DeclarationSyntaxError(
                    f"main class declared twice: {self.main_class} and {words[1]}",
                    token.line,
                    token.column,
                    self.source,
                )
            self.main_class = words[1]

    # ─── Token helpers ───

    def _peek_index(self, skip_comments: bool = True) -> int:
        position = self.position
        while skip_comments and self.tokens[position].kind is TokenKind.BLOCK_COMMENT:
            position += 1
        return position

    def _peek(self, skip_comments: bool = True) -> Token:
        return self.tokens[self._peek_index(skip_comments)]

    def _peek_after(self) -> Token:
        """The token following the next one, comments skipped."""
        last = len(self.tokens) - 1
        position = min(self._peek_index() + 1, last)
        while self.tokens[position].kind is TokenKind.BLOCK_COMMENT and position < last:
            position += 1
        return self.tokens[position]

    def _next(self, skip_comments: bool = True) -> Token:
        while skip_comments and self.tokens[self.position].kind is TokenKind.BLOCK_COMMENT:
            self.position += 1
        token = self.tokens[self.position]
        if token.kind is not TokenKind.END:
            self.position += 1
        return token

    def _error(self, message: str, token: Token) -> DeclarationSyntaxError:
        return DeclarationSyntaxError(message, token.line, token.column, self.source)

    def _accept_symbol(self, symbol: str) -> bool:
        token = self._peek()
        if token.kind is TokenKind.SYMBOL and token.text == symbol:
            self._next()
            return True
        return False

    def _expect_symbol(self, symbol: str) -> Token:
        token = self._next()
        if token.kind is not TokenKind.SYMBOL or token.text != symbol:
            raise self._error(f"expected '{symbol}' but found {_describe(token)}", token)
        return token

    def _accept_keyword(self, keyword: str) -> bool:
        token = self._peek()
        if token.kind is TokenKind.IDENTIFIER and token.text == keyword:
            self._next()
            return True
        return False

    def _identifier(self) -> str:
        token = self._next()
        if token.kind is not TokenKind.IDENTIFIER:
            raise self._error(f"expected identifier but found {_describe(token)}", token)
        return token.text

    def _qualified_name(self) -> str:
        parts = [self._identifier()]
        while self._accept_symbol("."):
            parts.append(self._identifier())
        return ".".join(parts)

    def _name_list(self) -> list[str]:
        names = [self._qualified_name()]
        while self._accept_symbol(","):
            names.append(self._qualified_name())
        return names

    # ─── Grammar ───

    def parse(self) -> ModuleDeclaration:
        self._skip_imports_and_annotations()
        is_open = self._accept_keyword("open")
        token = self._next()
        if token.kind is not TokenKind.IDENTIFIER or token.text != "module":
            raise self._error(f"expected 'module' but found {_describe(token)}", token)
        name = self._qualified_name()
        self._expect_symbol("{")

        requires: list[Requirement] = []
        exports: list[str] = []
        opens: list[str] = []
        uses: list[str] = []
        provides: list[Provision] = []

        while not self._accept_symbol("}"):
            token = self._next()
            if token.kind is TokenKind.END:
                raise self._error("missing '}' at end of module declaration", token)
            if token.kind is not TokenKind.IDENTIFIER:
                raise self._error(f"expected directive but found {_describe(token)}", token)
            if token.text == "requires":
                requires.append(self._requires())
            elif token.text == "exports":
                exports.append(self._qualified_target())
            elif token.text == "opens":
                opens.append(self._qualified_target())
            elif token.text == "uses":
                uses.append(self._qualified_name())
                self._expect_symbol(";")
            elif token.text == "provides":
                service = self._qualified_name()
                with_token = self._next()
                if with_token.kind is not TokenKind.IDENTIFIER or with_token.text != "with":
                    raise self._error(f"expected 'with' but found {_describe(with_token)}", with_token)
                provides.append(Provision(service=service, implementations=tuple(self._name_list())))
                self._expect_symbol(";")
            else:
                raise self._error(f"unknown directive '{token.text}'", token)

        trailing = self._peek()
        if trailing.kind is not TokenKind.END:
            raise self._error(f"unexpected {_describe(trailing)} after module declaration", trailing)

        return ModuleDeclaration(
            name=name,
            open=is_open,
            requires=tuple(requires),
            exports=tuple(exports),
            opens=tuple(opens),
            uses=tuple(uses),
            provides=tuple(provides),
            main_class=self.main_class,
        )

    def _skip_imports_and_annotations(self) -> None:
        while True:
            if self._accept_keyword("import"):
                self._accept_keyword("static")
                self._identifier()
                while self._accept_symbol("."):
                    if self._accept_symbol("*"):
                        break
                    self._identifier()
                self._expect_symbol(";")
            elif self._accept_symbol("@"):
                self._qualified_name()
                if self._accept_symbol("("):
                    self._skip_parenthesized()
            else:
                return

    def _skip_parenthesized(self) -> None:
        depth = 1
        while depth:
            token = self._next()
            if token.kind is TokenKind.END:
                raise self._error("unbalanced parentheses in annotation", token)
            if token.kind is TokenKind.SYMBOL:
                depth += {"(": 1, ")": -1}.get(token.text, 0)

    def _requires(self) -> Requirement:
        modifiers: list[str] = []
        while self._peek().kind is TokenKind.IDENTIFIER and self._peek().text in REQUIRES_MODIFIERS:
            # "requires static;" names a module called static
            after = self._peek_after()
            if after.kind is TokenKind.SYMBOL and after.text in ";.":
                break
            modifiers.append(self._identifier())
        name = self._qualified_name()
        version: Optional[str] = None
        comment = self._peek(skip_comments=False)
        if comment.kind is TokenKind.BLOCK_COMMENT:
            self._next(skip_comments=False)
            version = comment.text or None
        self._expect_symbol(";")
        return Requirement(name=name, version=version, modifiers=frozenset(modifiers))

    def _qualified_target(self) -> str:
        package = self._qualified_name()
        if self._accept_keyword("to"):
            self._name_list()
        self._expect_symbol(";")
        return package


def _describe(token: Token) -> str:
    if token.kind is TokenKind.END:
        return "end of input"
    return f"'{token.text}'"


def parse_declaration(text: str, source: Optional[str] = None) -> ModuleDeclaration:
    """Parse the text of a module declaration.

    Args:
        text: Content of a module-info.java file
        source: Optional file name used in error messages

    Returns:
        The structured declaration

    Raises:
        DeclarationSyntaxError: If the text is not a valid declaration
    """
    declaration = _Parser(tokenize(text, source), source).parse()
    logger.debug(f"Parsed declaration of module {declaration.name} ({len(declaration.requires)} requires)")
    return declaration


def read_declaration(path: Path) -> ModuleDeclaration:
    """Read and parse a module declaration file.

    Raises:
        DeclarationSyntaxError: If the file is not a valid declaration
        OSError: If the file cannot be read
    """
    return parse_declaration(path.read_text(encoding="utf-8"), source=str(path))

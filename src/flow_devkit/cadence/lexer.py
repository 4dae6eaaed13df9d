"""Tokenizer for Cadence source code.

Positions follow the Cadence convention: byte offsets, 1-based lines and
0-based columns counted in characters. A token's end position is inclusive,
pointing at its last character.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from .errors import InvalidSyntaxError, Position

IDENTIFIER = "identifier"
INTEGER = "integer"
FIXED_POINT = "fixed-point"
STRING = "string"
EOF = "eof"

# Longest match first
PUNCTUATION = (
    "<-!",
    "<->",
    "<-",
    "<=",
    "<<",
    "<",
    ">=",
    ">",
    "==",
    "=",
    "!=",
    "!",
    "&&",
    "&",
    "||",
    "|",
    "^",
    "??",
    "?.",
    "?",
    "+",
    "-",
    "*",
    "/",
    "%",
    "(",
    ")",
    "{",
    "}",
    "[",
    "]",
    ",",
    ":",
    ";",
    ".",
    "@",
    "#",
)

ESCAPES = {"0": "\0", "\\": "\\", "t": "\t", "n": "\n", "r": "\r", '"': '"', "'": "'"}

# A decoded string literal is a sequence of text pieces and template expressions
StringPart = Union[str, Tuple[str, Position]]


@dataclass
class Token:
    kind: str
    text: str
    start: Position
    end: Position
    newline_before: bool = False
    doc: Optional[str] = None
    base: int = 10
    parts: List[StringPart] = field(default_factory=list)

    def is_keyword(self, *words: str) -> bool:
        return self.kind == IDENTIFIER and self.text in words

    def __repr__(self) -> str:
        return f"Token({self.kind!r}, {self.text!r}, {self.start.line}:{self.start.column})"


def _utf8_len(ch: str) -> int:
    code = ord(ch)
    if code < 0x80:
        return 1
    if code < 0x800:
        return 2
    if code < 0x10000:
        return 3
    return 4


class Lexer:
    """Produces tokens lazily so callers may stop early (e.g. after imports)."""

    def __init__(self, code: str, start: Optional[Position] = None):
        self.code = code
        self.index = 0
        start = start or Position(0, 1, 0)
        self.offset = start.offset
        self.line = start.line
        self.column = start.column
        self._last = start

    def position(self) -> Position:
        return Position(self.offset, self.line, self.column)

    def _peek(self, ahead: int = 0) -> str:
        i = self.index + ahead
        return self.code[i] if i < len(self.code) else ""

    def _advance(self) -> str:
        ch = self.code[self.index]
        self._last = self.position()
        self.index += 1
        self.offset += _utf8_len(ch)
        if ch == "\n":
            self.line += 1
            self.column = 0
        else:
            self.column += 1
        return ch

    def _skip_trivia(self) -> Tuple[bool, Optional[str]]:
        """Skip whitespace and comments, returning (saw newline, doc comment)."""
        newline = False
        docs: List[str] = []
        while self.index < len(self.code):
            ch = self._peek()
            if ch == "\n":
                newline = True
                self._advance()
            elif ch in " \t\r\f\v\ufeff":
                self._advance()
            elif ch == "/" and self._peek(1) == "/":
                is_doc = self._peek(2) == "/" and self._peek(3) != "/"
                start = self.index
                while self.index < len(self.code) and self._peek() != "\n":
                    self._advance()
                if is_doc:
                    docs.append(self.code[start + 3 : self.index].strip())
            elif ch == "/" and self._peek(1) == "*":
                is_doc = self._peek(2) == "*" and self._peek(3) != "/"
                start_pos = self.position()
                start = self.index
                self._advance()
                self._advance()
                depth = 1
                while depth > 0:
                    if self.index >= len(self.code):
                        raise InvalidSyntaxError("missing comment end '*/'", start_pos, self._last)
                    if self._peek() == "/" and self._peek(1) == "*":
                        self._advance()
                        self._advance()
                        depth += 1
                    elif self._peek() == "*" and self._peek(1) == "/":
                        self._advance()
                        self._advance()
                        depth -= 1
                    else:
                        if self._peek() == "\n":
                            newline = True
                        self._advance()
                if is_doc:
                    docs.append(self.code[start + 3 : self.index - 2].strip(" *\n"))
            else:
                break
        return newline, ("\n".join(docs) if docs else None)

    def next_token(self) -> Token:
        newline, doc = self._skip_trivia()
        start = self.position()
        if self.index >= len(self.code):
            return Token(EOF, "", start, start, newline_before=newline, doc=doc)

        ch = self._peek()
        if ch.isdigit():
            token = self._number(start)
        elif ch == "_" or ch.isalpha():
            begin = self.index
            while self.index < len(self.code) and (self._peek() == "_" or self._peek().isalnum()):
                self._advance()
            token = Token(IDENTIFIER, self.code[begin : self.index], start, self._last)
        elif ch == '"':
            token = self._string(start)
        else:
            for punct in PUNCTUATION:
                if self.code.startswith(punct, self.index):
                    for _ in punct:
                        self._advance()
                    token = Token(punct, punct, start, self._last)
                    break
            else:
                self._advance()
                raise InvalidSyntaxError(f"unexpected character `{ch}`", start, start)

        token.newline_before = newline
        token.doc = doc
        return token

    def _number(self, start: Position) -> Token:
        begin = self.index
        prefixes = {"x": (16, "0123456789abcdefABCDEF_"), "b": (2, "01_"), "o": (8, "01234567_")}
        if self._peek() == "0" and self._peek(1) in prefixes:
            base, digits = prefixes[self._peek(1)]
            self._advance()
            self._advance()
            if not self._peek() or self._peek() not in digits:
                raise InvalidSyntaxError("missing digits after number prefix", start, self._last)
            while self._peek() and self._peek() in digits:
                self._advance()
            return Token(INTEGER, self.code[begin : self.index], start, self._last, base=base)

        while self._peek().isdigit() or self._peek() == "_":
            self._advance()
        if self._peek() == "." and self._peek(1).isdigit():
            self._advance()
            while self._peek().isdigit() or self._peek() == "_":
                self._advance()
            return Token(FIXED_POINT, self.code[begin : self.index], start, self._last)
        return Token(INTEGER, self.code[begin : self.index], start, self._last)

    def _string(self, start: Position) -> Token:
        begin = self.index
        self._advance()
        parts: List[StringPart] = []
        text: List[str] = []
        while True:
            ch = self._peek()
            if ch == "" or ch == "\n":
                raise InvalidSyntaxError("missing end of string literal: expected '\"'", start, self._last)
            if ch == '"':
                self._advance()
                break
            if ch == "\\":
                escape_start = self.position()
                self._advance()
                esc = self._peek()
                if esc in ESCAPES:
                    self._advance()
                    text.append(ESCAPES[esc])
                elif esc == "u":
                    self._advance()
                    if self._peek() != "{":
                        raise InvalidSyntaxError("invalid unicode escape: expected '{'", escape_start, self._last)
                    self._advance()
                    digits = ""
                    while self._peek() and self._peek() != "}":
                        digits += self._advance()
                    if not self._peek() or not digits:
                        raise InvalidSyntaxError("invalid unicode escape", escape_start, self._last)
                    self._advance()
                    try:
                        text.append(chr(int(digits, 16)))
                    except ValueError as e:
                        raise InvalidSyntaxError("invalid unicode escape", escape_start, self._last) from e
                elif esc == "(":
                    self._advance()
                    if text:
                        parts.append("".join(text))
                        text = []
                    expr_start = self.position()
                    expr_begin = self.index
                    depth = 1
                    while depth > 0:
                        c = self._peek()
                        if c == "" or c == "\n":
                            raise InvalidSyntaxError("unterminated string template", escape_start, self._last)
                        if c == "(":
                            depth += 1
                        elif c == ")":
                            depth -= 1
                            if depth == 0:
                                break
                        self._advance()
                    parts.append((self.code[expr_begin : self.index], expr_start))
                    self._advance()
                else:
                    raise InvalidSyntaxError(f"invalid escape character `{esc}`", escape_start, self.position())
            else:
                text.append(self._advance())
        if text or not parts:
            parts.append("".join(text))
        return Token(STRING, self.code[begin : self.index], start, self._last, parts=parts)


def decode_source(code: Union[bytes, str]) -> str:
    if isinstance(code, bytes):
        return code.decode("utf-8", errors="replace")
    return code


def tokenize(code: Union[bytes, str], start: Optional[Position] = None) -> List[Token]:
    lexer = Lexer(decode_source(code), start)
    tokens = []
    while True:
        token = lexer.next_token()
        tokens.append(token)
        if token.kind == EOF:
            return tokens

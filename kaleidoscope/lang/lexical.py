"""Lexical analysis for the Kaleidoscope language. The Lexer is pull-based: it reads characters from its source
only when the next token is requested, so a form typed at the prompt is handled before the next line is read.

Tokens can be loosely defined as follows:

```
<def>        ::= "def"
<extern>     ::= "extern"
<identifier> ::= [A-Za-z][A-Za-z0-9]*      ; any identifier other than the two keywords
<number>     ::= [0-9.]+                   ; converted like strtod: "1.2.3" is 1.2
<char>       ::= <any other character>     ; operators, parentheses, commas, ';' and anything unrecognized

<comment>    ::= "#" <char>* <end of line>
```

There are no lexical errors: characters the language does not know are rejected later on by the parser.
"""

import re
import string
from dataclasses import dataclass
from enum import Enum, auto


class TokenKind(Enum):
    EOF = auto()
    DEF = auto()
    EXTERN = auto()
    IDENTIFIER = auto()
    NUMBER = auto()
    CHAR = auto()


@dataclass(frozen=True)
class Token:
    """A single lexical unit. text holds the identifier or character, value the number."""
    kind: TokenKind
    text: str = ""
    value: float = 0.0
    line: int = 0
    col: int = 0

    def is_char(self, char):
        """Whether this is the single-character token char."""
        return self.kind is TokenKind.CHAR and self.text == char

    @property
    def loc(self):
        return self.line, self.col

    def __str__(self):
        if self.kind is TokenKind.NUMBER:
            return f"{self.value:g}"
        if self.kind in (TokenKind.IDENTIFIER, TokenKind.CHAR):
            return self.text
        if self.kind is TokenKind.EOF:
            return "<eof>"
        return self.kind.name.lower()


class Lexer:
    """Produces Tokens one at a time from an iterable of characters."""
    KEYWORDS = {"def": TokenKind.DEF, "extern": TokenKind.EXTERN}
    IDENTIFIER_START = string.ascii_letters
    IDENTIFIER_BODY = string.ascii_letters + string.digits
    NUMBER_BODY = string.digits + "."
    NUMBER_PREFIX = re.compile(r"[0-9]*(\.[0-9]*)?")
    EOF = ""

    def __init__(self, source):
        self._chars = iter(source)
        self._last_char = " "
        self.line = 1
        self.col = 0

    def _getchar(self):
        """Reads the next character, or EOF once the source is exhausted (and on every call after that)."""
        char = next(self._chars, Lexer.EOF)
        if char == "\n":
            self.line += 1
            self.col = 0
        elif char:
            self.col += 1
        return char

    def next_token(self):
        """Returns the next Token from the source."""
        while True:
            while self._last_char and self._last_char in string.whitespace:
                self._last_char = self._getchar()

            if self._last_char != "#":
                break
            while self._last_char not in (Lexer.EOF, "\n", "\r"):  # comment runs until end of line
                self._last_char = self._getchar()

        line, col = self.line, self.col

        if self._last_char == Lexer.EOF:
            return Token(TokenKind.EOF, line=line, col=col)

        if self._last_char in Lexer.IDENTIFIER_START:
            word = self._last_char
            self._last_char = self._getchar()
            while self._last_char and self._last_char in Lexer.IDENTIFIER_BODY:
                word += self._last_char
                self._last_char = self._getchar()

            kind = Lexer.KEYWORDS.get(word, TokenKind.IDENTIFIER)
            return Token(kind, word, line=line, col=col)

        if self._last_char in Lexer.NUMBER_BODY:
            num = ""
            while self._last_char and self._last_char in Lexer.NUMBER_BODY:
                num += self._last_char
                self._last_char = self._getchar()
            return Token(TokenKind.NUMBER, num, Lexer.strtod(num), line=line, col=col)

        char = self._last_char
        self._last_char = self._getchar()
        return Token(TokenKind.CHAR, char, line=line, col=col)

    @staticmethod
    def strtod(text):
        """Converts the longest numeric prefix of text to a float. A prefix without digits converts to 0.0."""
        prefix = Lexer.NUMBER_PREFIX.match(text).group()
        if not prefix.strip("."):
            return 0.0
        return float(prefix)

    def __iter__(self):
        """Yields tokens up to and including the first EOF token."""
        while True:
            token = self.next_token()
            yield token
            if token.kind is TokenKind.EOF:
                return


def characters(stream):
    """Yields the characters of a text stream one by one, reading lazily."""
    while True:
        char = stream.read(1)
        if not char:
            return
        yield char

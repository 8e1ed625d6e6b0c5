"""Recursive-descent parser for the Kaleidoscope language. Binary operators are parsed by precedence climbing
over a table of binding powers, so adding an operator only needs a new table entry.

```
<toplevel>   ::= <definition> | <external> | <expression> | ";"
<definition> ::= "def" <prototype> <expression>
<external>   ::= "extern" <prototype>
<prototype>  ::= <identifier> "(" <identifier>* ")"
<expression> ::= <primary> <binoprhs>
<binoprhs>   ::= (<op> <primary>)*
<primary>    ::= <identifierexpr> | <numberexpr> | <parenexpr>
<identifierexpr> ::= <identifier> | <identifier> "(" [<expression> ("," <expression>)*] ")"
<parenexpr>  ::= "(" <expression> ")"
```

Every parse method returns either a node or a Failure. On failure the token stream is left right after the point
of failure: there is no backtracking.
"""

from kaleidoscope.lang.ast import BinaryExpr, CallExpr, FunctionDecl, NumberExpr, Prototype, VariableExpr
from kaleidoscope.lang.error import ErrorKind, Failure, failed
from kaleidoscope.lang.lexical import TokenKind


DEFAULT_PRECEDENCE = {
    "<": 10,
    "+": 20,
    "-": 20,
    "*": 40,  # highest
}


class Parser:
    """Parses top-level forms from a Lexer, one token of lookahead deep."""

    def __init__(self, lexer, precedence=None):
        self.lexer = lexer
        self.precedence = DEFAULT_PRECEDENCE if precedence is None else precedence
        self._current = None

    @property
    def current(self):
        """Current lookahead token. The first token is only read on first access."""
        if self._current is None:
            self._current = self.lexer.next_token()
        return self._current

    def advance(self):
        """Consumes the current token and returns the new lookahead."""
        if self._current is None:  # the first token has to be read before it can be consumed
            self.lexer.next_token()
        self._current = self.lexer.next_token()
        return self._current

    def token_precedence(self):
        """Binding power of the current token, or -1 if it is not a binary operator."""
        if self.current.kind is not TokenKind.CHAR:
            return -1
        prec = self.precedence.get(self.current.text, -1)
        return prec if prec > 0 else -1

    def _fail(self, kind):
        return Failure.of(kind, loc=self.current.loc)

    def parse_number_expr(self):
        result = NumberExpr(self.current.value)
        self.advance()
        return result

    def parse_paren_expr(self):
        self.advance()  # (
        expr = self.parse_expression()
        if failed(expr):
            return expr
        if not self.current.is_char(")"):
            return self._fail(ErrorKind.EXPECTED_CLOSE_PAREN)
        self.advance()
        return expr

    def parse_identifier_expr(self):
        name = self.current.text
        self.advance()

        if not self.current.is_char("("):
            return VariableExpr(name)

        self.advance()  # (
        args = []
        if not self.current.is_char(")"):
            while True:
                arg = self.parse_expression()
                if failed(arg):
                    return arg
                args.append(arg)

                if self.current.is_char(")"):
                    break
                if not self.current.is_char(","):
                    return self._fail(ErrorKind.EXPECTED_ARGUMENT_SEPARATOR)
                self.advance()

        self.advance()  # )
        return CallExpr(name, tuple(args))

    def parse_primary(self):
        kind = self.current.kind
        if kind is TokenKind.IDENTIFIER:
            return self.parse_identifier_expr()
        if kind is TokenKind.NUMBER:
            return self.parse_number_expr()
        if self.current.is_char("("):
            return self.parse_paren_expr()
        return Failure(ErrorKind.UNKNOWN_TOKEN, f"{ErrorKind.UNKNOWN_TOKEN.msg}, got '{self.current}'",
                       self.current.loc)

    def parse_binop_rhs(self, min_prec, lhs):
        """Folds (<op> <primary>)* into lhs for every operator that binds at least as tightly as min_prec."""
        while True:
            prec = self.token_precedence()
            if prec < min_prec:
                return lhs

            op = self.current.text
            self.advance()
            rhs = self.parse_primary()
            if failed(rhs):
                return rhs

            # if the next operator binds tighter, it takes rhs as its lhs
            if prec < self.token_precedence():
                rhs = self.parse_binop_rhs(prec + 1, rhs)
                if failed(rhs):
                    return rhs

            lhs = BinaryExpr(op, lhs, rhs)

    def parse_expression(self):
        lhs = self.parse_primary()
        if failed(lhs):
            return lhs
        return self.parse_binop_rhs(0, lhs)

    def parse_prototype(self):
        if self.current.kind is not TokenKind.IDENTIFIER:
            return self._fail(ErrorKind.EXPECTED_FUNCTION_NAME)
        name = self.current.text

        if not self.advance().is_char("("):
            return self._fail(ErrorKind.EXPECTED_PROTOTYPE_OPEN_PAREN)

        params = []
        while self.advance().kind is TokenKind.IDENTIFIER:
            params.append(self.current.text)
        if not self.current.is_char(")"):
            return self._fail(ErrorKind.EXPECTED_PROTOTYPE_CLOSE_PAREN)

        self.advance()  # )
        return Prototype(name, tuple(params))

    def parse_definition(self):
        self.advance()  # def
        proto = self.parse_prototype()
        if failed(proto):
            return proto
        body = self.parse_expression()
        if failed(body):
            return body
        return FunctionDecl(proto, body)

    def parse_extern(self):
        self.advance()  # extern
        return self.parse_prototype()

    def parse_top_level_expr(self):
        """Parses a bare expression and wraps it into an anonymous, parameterless function."""
        body = self.parse_expression()
        if failed(body):
            return body
        return FunctionDecl(Prototype(""), body)

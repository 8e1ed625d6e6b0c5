"""Abstract syntax tree for the Kaleidoscope language.

```
<expr>      ::= <number> | <variable> | <expr> <op> <expr> | <identifier> "(" [<expr> ("," <expr>)*] ")"
<prototype> ::= <identifier> "(" <identifier>* ")"
<function>  ::= <prototype> [<expr>]        ; no body means an extern declaration
```

Nodes are immutable and own their children exclusively: trees never share subtrees and hold no references back
to their parents.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class NumberExpr:
    """Numeric literal, like '1.0'."""
    value: float

    def __str__(self):
        return f"{self.value:g}"


@dataclass(frozen=True)
class VariableExpr:
    """Reference to a function parameter, like 'a'."""
    name: str

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class BinaryExpr:
    op: str
    lhs: "Expr"
    rhs: "Expr"

    def __str__(self):
        return f"({self.lhs} {self.op} {self.rhs})"


@dataclass(frozen=True)
class CallExpr:
    callee: str
    args: Tuple["Expr", ...] = ()

    def __str__(self):
        return f"{self.callee}({', '.join(str(arg) for arg in self.args)})"


Expr = Union[NumberExpr, VariableExpr, BinaryExpr, CallExpr]


@dataclass(frozen=True)
class Prototype:
    """Name and parameter names of a function. An empty name denotes the wrapper of a top-level expression."""
    name: str
    params: Tuple[str, ...] = ()

    @property
    def is_anonymous(self):
        return not self.name

    def __str__(self):
        return f"{self.name}({' '.join(self.params)})"


@dataclass(frozen=True)
class FunctionDecl:
    proto: Prototype
    body: Optional[Expr] = None

    @property
    def is_extern(self):
        return self.body is None

    def __str__(self):
        if self.is_extern:
            return f"extern {self.proto}"
        if self.proto.is_anonymous:
            return str(self.body)
        return f"def {self.proto} {self.body}"

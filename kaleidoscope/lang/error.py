"""Error handling for the Kaleidoscope language. Parsing and code generation never raise for malformed input:
they return a Failure, which propagates upwards by early return until the Shell reports it through an
ErrorHandler. If a Python exception makes it all the way to ErrorHandler, it is assumed to be an internal issue.
"""

import sys
from dataclasses import dataclass
from enum import Enum

from termcolor import colored


class ErrorKind(Enum):
    """Every way a top-level form can fail, with its category and default message."""
    UNKNOWN_TOKEN = ("syntax", "unknown token when expecting an expression")
    EXPECTED_CLOSE_PAREN = ("syntax", "expected ')'")
    EXPECTED_ARGUMENT_SEPARATOR = ("syntax", "expected ')' or ',' in argument list")
    EXPECTED_FUNCTION_NAME = ("syntax", "expected function name in prototype")
    EXPECTED_PROTOTYPE_OPEN_PAREN = ("syntax", "expected '(' in prototype")
    EXPECTED_PROTOTYPE_CLOSE_PAREN = ("syntax", "expected ')' in prototype")

    UNKNOWN_VARIABLE = ("semantic", "unknown variable name")
    UNKNOWN_FUNCTION = ("semantic", "unknown function referenced")
    ARGUMENT_COUNT = ("semantic", "incorrect number of arguments passed")
    INVALID_OPERATOR = ("semantic", "invalid binary operator")
    REDEFINITION = ("semantic", "function cannot be redefined")
    REDECLARATION = ("semantic", "function redeclared with a different number of arguments")
    VERIFICATION = ("semantic", "generated function failed verification")
    UNRESOLVED_FUNCTION = ("semantic", "no definition found for external function")

    def __init__(self, category, msg):
        self.category = category
        self.msg = msg

    @property
    def is_syntax(self):
        return self.category == "syntax"


@dataclass(frozen=True)
class Failure:
    """Explicit failure result of a parse or lowering step. loc is a (line, column) pair when it is known."""
    kind: ErrorKind
    msg: str
    loc: tuple = None

    @classmethod
    def of(cls, kind, detail=None, loc=None):
        """Builds a Failure with kind's message, optionally followed by detail (usually the offending name)."""
        msg = kind.msg if detail is None else f"{kind.msg}: '{detail}'"
        return cls(kind, msg, loc)

    def __str__(self):
        if self.loc is None:
            return self.msg
        return f"{self.msg} (line {self.loc[0]}, column {self.loc[1]})"


def failed(result):
    """Whether result is a Failure rather than a value."""
    return isinstance(result, Failure)


class ErrorHandler:
    """Reports failures as colored diagnostics. Also a context manager that keeps the session alive on keyboard
    interrupts and reports unexpected Python errors. Those are re-raised if fatal is set; otherwise (the
    interactive shell) the session carries on with the next form.
    """
    ERROR = "red"
    PREFIX = "Error: "

    def __init__(self, stream=None, fatal=True):
        self.stream = stream if stream is not None else sys.stderr
        self.fatal = fatal
        self.errors = []

    def report(self, failure):
        """Prints failure to the error stream and records it."""
        self.errors.append(failure)
        print(colored(ErrorHandler.PREFIX, ErrorHandler.ERROR, attrs=["bold"]) + str(failure), file=self.stream)

    def internal(self, exc_type, exc_val):
        print(colored("[internal] ", ErrorHandler.ERROR, attrs=["bold"])
              + colored(ErrorHandler.PREFIX, ErrorHandler.ERROR, attrs=["bold"])
              + f"unknown error: '{exc_type.__name__}: {exc_val}'", file=self.stream)

    @property
    def last(self):
        return self.errors[-1] if self.errors else None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is KeyboardInterrupt:
            print(colored(ErrorHandler.PREFIX, ErrorHandler.ERROR, attrs=["bold"]) + "keyboard interrupt",
                  file=self.stream)
            return True
        if exc_type is not None and exc_type is not SystemExit:
            self.internal(exc_type, exc_val)
            return not self.fatal
        return False

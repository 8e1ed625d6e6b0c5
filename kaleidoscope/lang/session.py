"""Session control for the Kaleidoscope language. A Session owns all state that lives longer than a single
top-level form: the operator precedence table, the backend module (which is also the global function table),
the optimizer and the execution engine.

Lifecycle: create a Session, optionally reset() it to start a fresh compilation unit, and close() it (or use it
as a context manager) when done.
"""

import sys

from kaleidoscope.backend.llvm import Backend, ExecutionEngine, Optimizer
from kaleidoscope.lang.codegen import CodeGenerator
from kaleidoscope.lang.error import ErrorHandler
from kaleidoscope.lang.lexical import Lexer
from kaleidoscope.lang.parser import DEFAULT_PRECEDENCE, Parser


class Session:
    """Governs a Kaleidoscope session, with control over the functions defined in it."""

    def __init__(self, opt_level=2, precedence=None, out=None, err=None, fatal=True):
        self.opt_level = opt_level
        self.precedence = dict(DEFAULT_PRECEDENCE if precedence is None else precedence)

        self.out = out if out is not None else sys.stdout
        self.error_handler = ErrorHandler(err, fatal=fatal)

        self.backend = None
        self.optimizer = None
        self.engine = None
        self.codegen = None
        self.reset()

    def reset(self):
        """Starts a fresh compilation unit: every extern and definition made so far is forgotten."""
        self.backend = Backend()
        self.optimizer = Optimizer(self.backend, self.opt_level)
        self.engine = ExecutionEngine(self.backend, self.optimizer)
        self.codegen = CodeGenerator(self.backend, self.optimizer)

    def close(self):
        self.backend = self.optimizer = self.engine = self.codegen = None

    @property
    def closed(self):
        return self.backend is None

    def parser(self, source):
        """Returns a Parser reading source (any iterable of characters) with this session's precedence table."""
        return Parser(Lexer(source), self.precedence)

    @property
    def functions(self):
        """Names of every function currently in the global function table."""
        return [fn.name for fn in self.backend.module.functions]

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

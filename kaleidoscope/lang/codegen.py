"""Code generation for the Kaleidoscope language: lowers AST nodes into calls against the backend's IR builder.

The generator owns the active scope table (parameter name: backend value), rebuilt for every function it lowers.
The global function table is the backend module itself, so calls resolve against every extern and definition
the session has seen so far.
"""

from kaleidoscope.lang.ast import BinaryExpr, CallExpr, NumberExpr, VariableExpr
from kaleidoscope.lang.error import ErrorKind, Failure, failed


class CodeGenerator:
    """Lowers Prototypes and FunctionDecls. Every lower_* method returns a backend value or a Failure."""
    ANONYMOUS = "__anon_expr"

    def __init__(self, backend, optimizer):
        self.backend = backend
        self.optimizer = optimizer
        self.scope = {}
        self._anonymous_count = 0

    def backend_name(self, proto):
        """Name of proto in the backend: anonymous prototypes each get a fresh one."""
        if not proto.is_anonymous:
            return proto.name
        self._anonymous_count += 1
        return f"{CodeGenerator.ANONYMOUS}.{self._anonymous_count}"

    def lower_prototype(self, proto, name=None):
        """Declares proto, or reuses the existing declaration of a function with the same name."""
        name = self.backend_name(proto) if name is None else name
        fn = self.backend.get_function(name)
        if fn is None:
            return self.backend.declare_function(name, proto.params)

        if len(fn.args) != len(proto.params):
            return Failure(ErrorKind.REDECLARATION,
                           f"{ErrorKind.REDECLARATION.msg}: '{name}' takes {len(fn.args)}, got {len(proto.params)}")
        return fn

    def lower_function(self, decl):
        """Lowers a definition (or anonymous top-level expression), then verifies and optimizes it."""
        name = self.backend_name(decl.proto)
        existing = self.backend.get_function(name)

        fn = self.lower_prototype(decl.proto, name)
        if failed(fn):
            return fn
        if self.backend.has_body(fn):
            return Failure.of(ErrorKind.REDEFINITION, name)

        self.backend.begin_function_body(fn)
        self.scope = dict(zip(decl.proto.params, fn.args))

        result = self.lower_expr(decl.body)
        if not failed(result):
            self.backend.emit_return(result)
            if self.backend.verify(fn):
                self.optimizer.run_pipeline(fn)
                return fn
            result = Failure.of(ErrorKind.VERIFICATION, name)

        # discard the body; an earlier extern declaration goes back to being a plain declaration
        params = self.backend.param_names(fn)
        self.backend.remove_function(fn)
        if existing is not None:
            self.backend.declare_function(name, params)
        return result

    def lower_expr(self, expr):
        if isinstance(expr, NumberExpr):
            return self.backend.emit_constant(expr.value)
        if isinstance(expr, VariableExpr):
            return self.lower_variable(expr)
        if isinstance(expr, BinaryExpr):
            return self.lower_binary(expr)
        if isinstance(expr, CallExpr):
            return self.lower_call(expr)
        raise TypeError(f"unexpected expression node '{type(expr).__name__}'")

    def lower_variable(self, expr):
        value = self.scope.get(expr.name)
        if value is None:
            return Failure.of(ErrorKind.UNKNOWN_VARIABLE, expr.name)
        return value

    def lower_binary(self, expr):
        lhs = self.lower_expr(expr.lhs)
        if failed(lhs):
            return lhs
        rhs = self.lower_expr(expr.rhs)
        if failed(rhs):
            return rhs

        if expr.op == "+":
            return self.backend.emit_add(lhs, rhs)
        if expr.op == "-":
            return self.backend.emit_sub(lhs, rhs)
        if expr.op == "*":
            return self.backend.emit_mul(lhs, rhs)
        if expr.op == "<":
            return self.backend.emit_bool_to_numeric(self.backend.emit_less_than(lhs, rhs))
        return Failure.of(ErrorKind.INVALID_OPERATOR, expr.op)

    def lower_call(self, expr):
        callee = self.backend.get_function(expr.callee)
        if callee is None:
            return Failure.of(ErrorKind.UNKNOWN_FUNCTION, expr.callee)
        if len(callee.args) != len(expr.args):
            return Failure(ErrorKind.ARGUMENT_COUNT,
                           f"{ErrorKind.ARGUMENT_COUNT.msg} to '{expr.callee}': "
                           f"expected {len(callee.args)}, got {len(expr.args)}")

        args = []
        for arg in expr.args:
            value = self.lower_expr(arg)
            if failed(value):
                return value
            args.append(value)
        return self.backend.emit_call(callee, args)

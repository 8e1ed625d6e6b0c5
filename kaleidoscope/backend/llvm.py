"""LLVM backend for the Kaleidoscope language, built on llvmlite. The code generator only talks to the three
collaborators in this module:

- Backend: builds IR into an llvmlite.ir module, which doubles as the global function table
- Optimizer: runs LLVM's function simplification pipeline over a single function
- ExecutionEngine: JIT-compiles the module with MCJIT and calls a parameterless function

Every value in the language is a double, so every function has the type double(double, ...).
"""

import sys
from ctypes import CDLL, CFUNCTYPE, c_double, c_void_p, cast

from llvmlite import binding as llvm
from llvmlite import ir

from kaleidoscope.lang.error import ErrorKind, Failure


DOUBLE = ir.DoubleType()

_initialized = False


@CFUNCTYPE(c_double, c_double)
def putchard(x):
    """Writes the character with code x to stdout. Returns 0."""
    sys.stdout.write(chr(int(x)))
    sys.stdout.flush()
    return 0.0


@CFUNCTYPE(c_double, c_double)
def printd(x):
    """Prints x followed by a newline to stdout. Returns 0."""
    print(f"{x:f}", flush=True)
    return 0.0


BUILTINS = {"putchard": putchard, "printd": printd}


def initialize():
    """Initializes the native target once per process and makes BUILTINS callable from JIT-compiled code."""
    global _initialized
    if _initialized:
        return

    llvm.initialize_native_target()
    llvm.initialize_native_asmprinter()
    for name, func in BUILTINS.items():
        llvm.add_symbol(name, cast(func, c_void_p).value)
    _initialized = True


def create_target_machine():
    initialize()
    return llvm.Target.from_default_triple().create_target_machine()


def resolve_symbol(name):
    """Address of an external symbol the JIT would link against, or None when nothing provides it."""
    initialize()
    address = llvm.address_of_symbol(name)
    if address is None:
        try:
            address = cast(getattr(CDLL(None), name), c_void_p).value
        except AttributeError:
            return None
    return address


def release_global_name(module, name):
    """Removes the global called name from an llvmlite.ir module so the name can be declared again.

    llvmlite has no public API for this. As of llvmlite 0.50 the module's NameScope records every name handed
    out in its _useset.
    """
    del module.globals[name]
    module.scope._useset.discard(name)


def unresolved_callees(module):
    """Names of the declared-only functions called from module that no loaded symbol provides."""
    missing = []
    for fn in module.functions:
        for block in fn.blocks:
            for instr in block.instructions:
                if not isinstance(instr, ir.CallInstr) or not isinstance(instr.callee, ir.Function):
                    continue
                callee = instr.callee
                if callee.is_declaration and callee.name not in missing and resolve_symbol(callee.name) is None:
                    missing.append(callee.name)
    return missing


class Backend:
    """IR builder for one compilation unit. Functions are addressed by their llvmlite.ir.Function handle."""

    def __init__(self, name="kaleidoscope"):
        target_machine = create_target_machine()

        self.module = ir.Module(name=name)
        self.module.triple = llvm.get_process_triple()
        self.module.data_layout = str(target_machine.target_data)

        self.builder = None
        self.listings = {}  # name: optimized IR of the function, see Optimizer.run_pipeline

    def get_function(self, name):
        """Returns the function called name, or None if it was never declared."""
        value = self.module.globals.get(name)
        return value if isinstance(value, ir.Function) else None

    @staticmethod
    def has_body(fn):
        return not fn.is_declaration

    @staticmethod
    def param_names(fn):
        return tuple(arg.name for arg in fn.args)

    def declare_function(self, name, params):
        fn_type = ir.FunctionType(DOUBLE, [DOUBLE] * len(params))
        fn = ir.Function(self.module, fn_type, name)
        for arg, param in zip(fn.args, params):
            arg.name = param
        return fn

    def begin_function_body(self, fn):
        block = fn.append_basic_block("entry")
        self.builder = ir.IRBuilder(block)
        return block

    @staticmethod
    def emit_constant(value):
        return ir.Constant(DOUBLE, value)

    def emit_add(self, lhs, rhs):
        return self.builder.fadd(lhs, rhs, "addtmp")

    def emit_sub(self, lhs, rhs):
        return self.builder.fsub(lhs, rhs, "subtmp")

    def emit_mul(self, lhs, rhs):
        return self.builder.fmul(lhs, rhs, "multmp")

    def emit_less_than(self, lhs, rhs):
        """Ordered less-than: the result is an i1, false if either operand is NaN."""
        return self.builder.fcmp_ordered("<", lhs, rhs, "cmptmp")

    def emit_bool_to_numeric(self, value):
        return self.builder.uitofp(value, DOUBLE, "booltmp")

    def emit_call(self, fn, args):
        return self.builder.call(fn, args, "calltmp")

    def emit_return(self, value):
        self.builder.ret(value)

    def verify(self, fn):
        """Whether the module holding fn passes the LLVM verifier."""
        try:
            llvm.parse_assembly(str(self.module)).verify()
        except RuntimeError:
            return False
        return True

    def remove_function(self, fn):
        """Erases fn from the module, freeing its name for a later declaration."""
        release_global_name(self.module, fn.name)
        self.listings.pop(fn.name, None)
        self.builder = None

    def render(self, fn):
        """Textual IR of fn, optimized if it went through the Optimizer."""
        return self.listings.get(fn.name, str(fn)).strip()


class Optimizer:
    """Per-function optimizer. speed_level follows clang's -O levels; 0 turns optimization off.

    The function simplification pipeline of LLVM's pass builder covers instruction combining, reassociation,
    global value numbering and CFG simplification.
    """

    def __init__(self, backend, speed_level=2):
        self.backend = backend
        self.speed_level = speed_level
        self.pass_builder = None
        if speed_level > 0:
            self._target_machine = create_target_machine()
            options = llvm.create_pipeline_tuning_options(speed_level=speed_level)
            self.pass_builder = llvm.create_pass_builder(self._target_machine, options)

    def optimize(self, llvm_fn):
        """Optimizes a parsed (llvmlite.binding) function in place."""
        if self.pass_builder is None:
            return
        self.pass_builder.getFunctionPassManager().run(llvm_fn, self.pass_builder)

    def run_pipeline(self, fn):
        """Optimizes fn and records the optimized IR as the backend's listing of it."""
        llvm_module = llvm.parse_assembly(str(self.backend.module))
        llvm_fn = llvm_module.get_function(fn.name)
        self.optimize(llvm_fn)
        self.backend.listings[fn.name] = str(llvm_fn)


class ExecutionEngine:
    """Runs parameterless functions of the backend's module through MCJIT."""

    def __init__(self, backend, optimizer):
        self.backend = backend
        self.optimizer = optimizer

    def execute(self, fn):
        """JIT-compiles the whole module and returns the result of calling fn.

        MCJIT cannot report a missing external symbol, so calls to externs nothing provides are rejected
        beforehand with an UNRESOLVED_FUNCTION failure.
        """
        missing = unresolved_callees(self.backend.module)
        if missing:
            return Failure.of(ErrorKind.UNRESOLVED_FUNCTION, missing[0])

        llvm_module = llvm.parse_assembly(str(self.backend.module))
        llvm_module.verify()
        for llvm_fn in llvm_module.functions:
            if not llvm_fn.is_declaration:
                self.optimizer.optimize(llvm_fn)

        # the engine takes ownership of its target machine, so each compilation needs a new one
        with llvm.create_mcjit_compiler(llvm_module, create_target_machine()) as engine:
            engine.finalize_object()
            address = engine.get_function_address(fn.name)
            return CFUNCTYPE(c_double)(address)()

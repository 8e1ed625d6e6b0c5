import unittest

from kaleidoscope.backend.llvm import (Backend, ExecutionEngine, Optimizer, release_global_name, resolve_symbol,
                                       unresolved_callees)
from kaleidoscope.lang.error import ErrorKind, Failure


class BackendTestCase(unittest.TestCase):

    def setUp(self):
        self.backend = Backend()
        self.optimizer = Optimizer(self.backend)
        self.engine = ExecutionEngine(self.backend, self.optimizer)

    def define(self, name, params, build):
        """Declares name and emits the return of build(args) as its body."""
        fn = self.backend.declare_function(name, params)
        self.backend.begin_function_body(fn)
        self.backend.emit_return(build(*fn.args))
        return fn

    def test_declare_function(self):
        fn = self.backend.declare_function("atan2", ("y", "x"))
        self.assertIs(fn, self.backend.get_function("atan2"))
        self.assertEqual(("y", "x"), Backend.param_names(fn))
        self.assertFalse(Backend.has_body(fn))
        self.assertIn("declare", self.backend.render(fn))
        self.assertIsNone(self.backend.get_function("atan"))

    def test_execute_constant(self):
        fn = self.define("answer", (), lambda: self.backend.emit_constant(42.0))
        self.assertTrue(self.backend.verify(fn))
        self.assertEqual(42.0, self.engine.execute(fn))

    def test_execute_arithmetic_and_calls(self):
        b = self.backend
        square = self.define("square", ("x",), lambda x: b.emit_mul(x, x))
        self.define("less", ("a", "b"), lambda x, y: b.emit_bool_to_numeric(b.emit_less_than(x, y)))
        main = self.define("main", (), lambda: b.emit_sub(
            b.emit_call(square, [b.emit_constant(3.0)]),
            b.emit_add(b.emit_constant(1.0), b.emit_call(b.get_function("less"),
                                                          [b.emit_constant(1.0), b.emit_constant(2.0)]))))
        self.assertTrue(b.verify(main))
        self.assertEqual(7.0, self.engine.execute(main))

    def test_run_pipeline_records_listing(self):
        b = self.backend
        fn = self.define("fold", (), lambda: b.emit_add(b.emit_constant(1.0), b.emit_constant(2.0)))
        self.optimizer.run_pipeline(fn)
        listing = b.render(fn)
        self.assertIn("ret double 3", listing)
        self.assertNotIn("fadd", listing)

    def test_verify_rejects_missing_terminator(self):
        fn = self.backend.declare_function("broken", ())
        self.backend.begin_function_body(fn)
        self.assertFalse(self.backend.verify(fn))

    def test_remove_function_frees_name(self):
        fn = self.backend.declare_function("foo", ("a",))
        self.backend.remove_function(fn)
        self.assertIsNone(self.backend.get_function("foo"))

        fn = self.backend.declare_function("foo", ("a", "b"))
        self.assertEqual(2, len(fn.args))

    def test_release_global_name(self):
        self.backend.declare_function("bar", ())
        self.assertTrue(self.backend.module.scope.is_used("bar"))
        release_global_name(self.backend.module, "bar")
        self.assertFalse(self.backend.module.scope.is_used("bar"))
        self.assertNotIn("bar", self.backend.module.globals)

    def test_less_than_is_ordered(self):
        b = self.backend
        fn = self.define("lt", ("a", "b"), lambda x, y: b.emit_bool_to_numeric(b.emit_less_than(x, y)))
        self.assertIn("fcmp olt", str(fn))

    def test_execute_rejects_unresolved_extern(self):
        b = self.backend
        missing = b.declare_function("nosuchfn", ("a",))
        b.declare_function("printd", ("x",))
        fn = self.define("main", (), lambda: b.emit_call(missing, [b.emit_constant(2.0)]))

        self.assertEqual(["nosuchfn"], unresolved_callees(b.module))
        result = self.engine.execute(fn)
        self.assertIsInstance(result, Failure)
        self.assertIs(ErrorKind.UNRESOLVED_FUNCTION, result.kind)
        self.assertEqual("no definition found for external function: 'nosuchfn'", result.msg)

    def test_resolve_symbol(self):
        self.assertIsNotNone(resolve_symbol("printd"))
        self.assertIsNotNone(resolve_symbol("sin"))
        self.assertIsNone(resolve_symbol("nosuchfn"))


class UnoptimizedBackendTestCase(unittest.TestCase):

    def test_listing_is_unchanged(self):
        backend = Backend()
        optimizer = Optimizer(backend, speed_level=0)
        fn = backend.declare_function("fold", ())
        backend.begin_function_body(fn)
        backend.emit_return(backend.emit_add(backend.emit_constant(1.0), backend.emit_constant(2.0)))
        optimizer.run_pipeline(fn)
        self.assertIn("ret double", backend.render(fn))


if __name__ == '__main__':
    unittest.main()

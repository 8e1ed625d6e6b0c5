import io
import unittest

from kaleidoscope.lang.ast import BinaryExpr, CallExpr, FunctionDecl, NumberExpr, Prototype, VariableExpr
from kaleidoscope.lang.error import ErrorKind, Failure
from kaleidoscope.lang.session import Session


class CodeGeneratorTestCase(unittest.TestCase):

    def setUp(self):
        self.sess = Session(opt_level=0, out=io.StringIO(), err=io.StringIO())
        self.codegen = self.sess.codegen
        self.backend = self.sess.backend

    def tearDown(self):
        self.sess.close()

    def lower(self, source):
        return self.codegen.lower_function(self.sess.parser(source).parse_definition())

    def assertFails(self, kind, result):
        self.assertIsInstance(result, Failure)
        self.assertIs(kind, result.kind)

    def test_extern_declares_function(self):
        fn = self.codegen.lower_prototype(Prototype("sin", ("x",)))
        self.assertIs(fn, self.backend.get_function("sin"))
        self.assertFalse(self.backend.has_body(fn))
        self.assertEqual(("x",), self.backend.param_names(fn))

    def test_definition(self):
        fn = self.lower("def foo(a b) a*b+1")
        self.assertTrue(self.backend.has_body(fn))
        listing = self.backend.render(fn)
        self.assertIn("foo", listing)
        self.assertIn("fmul", listing)
        self.assertIn("fadd", listing)

    def test_comparison_is_widened(self):
        listing = self.backend.render(self.lower("def lt(a b) a<b"))
        self.assertIn("fcmp olt", listing)
        self.assertIn("uitofp", listing)

    def test_extern_then_definition_reuses_declaration(self):
        declared = self.codegen.lower_prototype(Prototype("foo", ("a",)))
        defined = self.lower("def foo(a) a+1")
        self.assertIs(declared, defined)
        self.assertTrue(self.backend.has_body(defined))

        # an extern after the definition is harmless
        self.assertIs(defined, self.codegen.lower_prototype(Prototype("foo", ("a",))))

    def test_definition_binds_its_own_parameter_names(self):
        self.codegen.lower_prototype(Prototype("foo", ("x",)))
        self.assertNotIsInstance(self.lower("def foo(a) a+1"), Failure)

    def test_redefinition_is_rejected(self):
        first = self.lower("def foo(a) a+1")
        listing = self.backend.render(first)
        self.assertFails(ErrorKind.REDEFINITION, self.lower("def foo(a) a+2"))
        self.assertIs(first, self.backend.get_function("foo"))
        self.assertEqual(listing, self.backend.render(first))

    def test_redeclaration_with_other_arity_is_rejected(self):
        self.codegen.lower_prototype(Prototype("foo", ("a",)))
        self.assertFails(ErrorKind.REDECLARATION, self.codegen.lower_prototype(Prototype("foo", ("a", "b"))))
        self.assertFails(ErrorKind.REDECLARATION, self.lower("def foo(a b) a+b"))
        self.assertEqual(1, len(self.backend.get_function("foo").args))

    def test_failed_body_discards_function(self):
        self.assertFails(ErrorKind.UNKNOWN_VARIABLE, self.lower("def foo(a) b"))
        self.assertIsNone(self.backend.get_function("foo"))
        self.assertNotIsInstance(self.lower("def foo(a) a"), Failure)

    def test_failed_body_keeps_extern_declaration(self):
        self.codegen.lower_prototype(Prototype("foo", ("a",)))
        self.assertFails(ErrorKind.UNKNOWN_FUNCTION, self.lower("def foo(a) bar(a)"))

        fn = self.backend.get_function("foo")
        self.assertIsNotNone(fn)
        self.assertFalse(self.backend.has_body(fn))
        self.assertNotIsInstance(self.lower("def foo(a) a+1"), Failure)

    def test_scope_does_not_leak(self):
        self.lower("def foo(a) a")
        self.assertFails(ErrorKind.UNKNOWN_VARIABLE, self.lower("def bar(b) a"))

    def test_calls(self):
        self.lower("def add(a b) a+b")
        self.assertNotIsInstance(self.lower("def twice(x) add(x, x)"), Failure)
        self.assertFails(ErrorKind.ARGUMENT_COUNT, self.lower("def once(x) add(x)"))
        self.assertFails(ErrorKind.UNKNOWN_FUNCTION, self.lower("def nope(x) missing(x)"))
        self.assertFails(ErrorKind.UNKNOWN_VARIABLE, self.lower("def bad(x) add(x, y)"))

    def test_invalid_operator(self):
        decl = FunctionDecl(Prototype("div", ("a",)), BinaryExpr("/", VariableExpr("a"), NumberExpr(2.0)))
        self.assertFails(ErrorKind.INVALID_OPERATOR, self.codegen.lower_function(decl))
        self.assertIsNone(self.backend.get_function("div"))

    def test_anonymous_functions_get_unique_names(self):
        first = self.codegen.lower_function(FunctionDecl(Prototype(""), NumberExpr(1.0)))
        second = self.codegen.lower_function(FunctionDecl(Prototype(""), CallExpr("first", ())))
        self.assertFails(ErrorKind.UNKNOWN_FUNCTION, second)
        third = self.codegen.lower_function(FunctionDecl(Prototype(""), NumberExpr(2.0)))
        self.assertNotEqual(first.name, third.name)
        self.assertEqual(0, len(first.args))


class OptimizedCodeGeneratorTestCase(unittest.TestCase):

    def test_listing_is_optimized(self):
        with Session(opt_level=2) as sess:
            fn = sess.codegen.lower_function(sess.parser("def foo(x) (1+2+x)*(x+(1+2))").parse_definition())
            listing = sess.backend.render(fn)

        self.assertNotIsInstance(fn, Failure)
        self.assertIn("fmul", listing)
        self.assertEqual(1, listing.count("fadd"))


if __name__ == '__main__':
    unittest.main()

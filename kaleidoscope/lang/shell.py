"""Read-eval loop for the Kaleidoscope language. Each top-level form is parsed, lowered and (for bare expressions)
executed before the next token is read, so definitions from earlier forms are visible to later ones.
"""

from kaleidoscope.lang.error import failed
from kaleidoscope.lang.lexical import TokenKind


class Shell:
    """Drives a Session over one source of characters."""
    prompt = "ready> "

    def __init__(self, sess, source):
        self.sess = sess
        self.parser = sess.parser(source)

    @property
    def codegen(self):
        return self.sess.codegen

    def loop(self):
        """Handles top-level forms until the end of input."""
        while True:
            self.write(Shell.prompt, end="")
            with self.sess.error_handler:
                token = self.parser.current
                if token.kind is TokenKind.EOF:
                    return
                if token.is_char(";"):  # top-level separator
                    self.parser.advance()
                elif token.kind is TokenKind.DEF:
                    self.handle_definition()
                elif token.kind is TokenKind.EXTERN:
                    self.handle_extern()
                else:
                    self.handle_top_level_expression()

    def handle_definition(self):
        decl = self.parser.parse_definition()
        if failed(decl):
            return self.recover(decl)

        fn = self.codegen.lower_function(decl)
        if failed(fn):
            return self.report(fn)

        self.write("Parsed a function definition.")
        self.write(self.sess.backend.render(fn))
        return fn

    def handle_extern(self):
        proto = self.parser.parse_extern()
        if failed(proto):
            return self.recover(proto)

        fn = self.codegen.lower_prototype(proto)
        if failed(fn):
            return self.report(fn)

        self.write("Parsed an extern.")
        self.write(self.sess.backend.render(fn))
        return fn

    def handle_top_level_expression(self):
        """Evaluates a bare expression inside an anonymous function, which is removed again afterwards."""
        decl = self.parser.parse_top_level_expr()
        if failed(decl):
            return self.recover(decl)

        fn = self.codegen.lower_function(decl)
        if failed(fn):
            return self.report(fn)

        self.write("Parsed a top-level expression.")
        self.write(self.sess.backend.render(fn))
        try:
            result = self.sess.engine.execute(fn)
        finally:
            self.sess.backend.remove_function(fn)
        if failed(result):
            return self.report(result)

        self.write(f"Evaluated to {result}")
        return result

    def report(self, failure):
        self.sess.error_handler.report(failure)
        return failure

    def recover(self, failure):
        """Reports a parse failure and skips one token, so a bad token cannot be retried forever."""
        self.report(failure)
        self.parser.advance()
        return failure

    def write(self, text, end="\n"):
        print(text, end=end, file=self.sess.out, flush=True)

"""Command-line entry point for the Kaleidoscope JIT. Reads source from a file, or from standard input if no file
is given, and compiles and runs it one top-level form at a time.
"""

import argparse
import sys

from kaleidoscope.lang.lexical import characters
from kaleidoscope.lang.session import Session
from kaleidoscope.lang.shell import Shell


def main(argv=None):
    """Runs the Kaleidoscope read-eval loop until the end of input."""
    parser = argparse.ArgumentParser(prog="kaleidoscope")
    parser.add_argument("file", help="file to compile and run (if empty, reads standard input)", nargs="?")
    args = parser.parse_args(argv)

    # only an interactive session survives internal errors
    with Session(fatal=args.file is not None) as sess:
        if args.file is None:
            Shell(sess, characters(sys.stdin)).loop()
        else:
            with open(args.file, "r") as file:
                Shell(sess, characters(file)).loop()
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Recognize command-line operators: separators, links and redirections."""

from dataclasses import dataclass

PIPE = "|"
OR = "||"
AND = "&&"
BACKGROUND = "&"
BACKGROUND_BUFFERED = "&!"
BACKGROUND_NEW_CONSOLE = "&!!"
NEWLINE = "\n"

REDIRECT_IN = "<"
REDIRECT_OUT = ">"
REDIRECT_APPEND = ">>"
REDIRECT_OUT_TO_ERR = ">&2"
REDIRECT_STDOUT = "1>"
REDIRECT_STDOUT_APPEND = "1>>"
REDIRECT_STDOUT_TO_ERR = "1>&2"
REDIRECT_STDERR = "2>"
REDIRECT_STDERR_APPEND = "2>>"
REDIRECT_STDERR_TO_OUT = "2>&1"


@dataclass(frozen=True)
class Operator:
    """An operator found in a command line.

    ``terminates_arg`` means the operator forms an argument of its own.
    Otherwise the text after it (a redirection target) is glued onto the
    same argument.
    """

    text: str
    terminates_arg: bool

    @property
    def length(self) -> int:
        return len(self.text)


# Longer forms first, so "||" wins over "|" and "1>>" over "1>".
OPERATOR_TABLE: tuple[Operator, ...] = (
    Operator(OR, True),
    Operator(PIPE, True),
    Operator(AND, True),
    Operator(BACKGROUND_NEW_CONSOLE, True),
    Operator(BACKGROUND_BUFFERED, True),
    Operator(BACKGROUND, True),
    Operator(NEWLINE, True),
    Operator(REDIRECT_APPEND, False),
    Operator(REDIRECT_OUT_TO_ERR, True),
    Operator(REDIRECT_OUT, False),
    Operator(REDIRECT_IN, False),
    Operator(REDIRECT_STDOUT_APPEND, False),
    Operator(REDIRECT_STDOUT_TO_ERR, True),
    Operator(REDIRECT_STDOUT, False),
    Operator(REDIRECT_STDERR_APPEND, False),
    Operator(REDIRECT_STDERR_TO_OUT, True),
    Operator(REDIRECT_STDERR, False),
)

OPERATOR_START_CHARS = frozenset(op.text[0] for op in OPERATOR_TABLE)

PROGRAM_SEPARATORS = frozenset({BACKGROUND, AND, NEWLINE, PIPE, OR})
END_OF_EXPRESSION_SEPARATORS = frozenset({BACKGROUND_BUFFERED, BACKGROUND_NEW_CONSOLE})
TRAILING_SEPARATORS = frozenset({BACKGROUND, BACKGROUND_BUFFERED, BACKGROUND_NEW_CONSOLE})
REDIRECTIONS = frozenset(
    {
        REDIRECT_IN,
        REDIRECT_OUT,
        REDIRECT_APPEND,
        REDIRECT_OUT_TO_ERR,
        REDIRECT_STDOUT,
        REDIRECT_STDOUT_APPEND,
        REDIRECT_STDOUT_TO_ERR,
        REDIRECT_STDERR,
        REDIRECT_STDERR_APPEND,
        REDIRECT_STDERR_TO_OUT,
    }
)


def recognize_operator(text: str, pos: int = 0) -> Operator | None:
    """Return the operator starting at text[pos], or None.

    Quote tracking is the caller's job: inside a quoted region this
    must not be called at all.
    """
    if pos >= len(text) or text[pos] not in OPERATOR_START_CHARS:
        return None
    for op in OPERATOR_TABLE:
        if text.startswith(op.text, pos):
            return op
    return None


def is_argument_separator(text: str, pos: int = 0) -> bool:
    """True if text[pos] is a space or starts an operator."""
    if pos >= len(text):
        return False
    return text[pos] == " " or recognize_operator(text, pos) is not None


def is_program_separator(arg: str, end_of_expression: bool = False) -> bool:
    """True if a whole, unquoted argument separates two programs.

    ``&!`` and ``&!!`` only count as the final argument of an expression;
    anywhere else they are ordinary text.
    """
    if arg in PROGRAM_SEPARATORS:
        return True
    return end_of_expression and arg in END_OF_EXPRESSION_SEPARATORS

"""Split a command line into arguments, and join arguments back into a line.

Splitting honours double quotes, backslash runs in front of quotes, a
one-character escape and the operators in shellplan.operators.
Nothing is rejected: an unterminated quote still yields an argument, so
tab completion can work on half-typed input.
"""

from collections.abc import Callable

from loguru import logger

from shellplan import host
from shellplan.context import ArgContext, CmdContext, strip_escapes
from shellplan.operators import Operator, is_argument_separator, recognize_operator

QUOTE = '"'
BACKSLASH = "\\"
SPACE = " "


class _Splitter:
    """Single scan over a command line, building one argument at a time."""

    def __init__(self, text: str, cursor: int, is_escape_char: Callable[[str], bool]) -> None:
        self.text = text
        self.cursor = cursor
        self.is_escape_char = is_escape_char
        self.pos = 0

        self.ctx = CmdContext()
        self.chars: list[str] = []
        self.arg_ctx = ArgContext()
        self.arg_open = False
        self.arg_start = 0

        self.quote_open = False
        self.looking_for_first_quote = False
        # Where the opening quote sits in the argument and in the input.
        self.quote_anchor = 0
        self.opener_pos = -1
        self.first_quote_end: int | None = None
        self.awaiting_payload = False
        # The input ended right after an argument that was already closed.
        self.closed_at_end = False

        self.cursor_found = False
        self.cursor_pos = 0

    def split(self) -> CmdContext:
        text = self.text
        self._skip(" @")
        if self.pos < len(text):
            self._start_arg()

        while self.pos < len(text):
            self._note_cursor()
            c = text[self.pos]

            if self.is_escape_char(c):
                self._consume_escape()
                continue

            if c == BACKSLASH:
                self._consume_backslashes()
                continue

            if c == QUOTE:
                if self.quote_open and self.looking_for_first_quote:
                    self.quote_open = False
                    self.looking_for_first_quote = False
                    self.arg_ctx.quote_terminated = True
                    self.first_quote_end = len(self.chars)
                    self.chars.append(c)
                    self.pos += 1
                    continue
                self.quote_open = not self.quote_open
                if self.looking_for_first_quote:
                    self.opener_pos = self.pos
                    self.pos += 1
                    continue
                self.chars.append(c)
                self.pos += 1
                continue

            if not self.quote_open:
                if c == SPACE:
                    self._end_arg()
                    self._skip_spaces_then_start()
                    continue

                op = recognize_operator(text, self.pos)
                if op is not None:
                    self._consume_operator(op)
                    continue

            self.awaiting_payload = False
            self.chars.append(c)
            self.pos += 1

        if self.arg_open:
            self._end_arg()
        self._place_cursor_at_end()

        logger.debug(
            "tokenizer.parsed argc={} current_arg={} offset={} trailing={}",
            self.ctx.argc,
            self.ctx.current_arg,
            self.ctx.current_arg_offset,
            self.ctx.trailing_chars,
        )
        return self.ctx

    def _skip(self, chars: str) -> None:
        while self.pos < len(self.text) and self.text[self.pos] in chars:
            self.pos += 1

    def _skip_spaces_then_start(self) -> None:
        start = self.pos
        self._skip(SPACE)
        if self.pos >= len(self.text):
            self.closed_at_end = True
            self.ctx.trailing_chars = self.pos > start
        else:
            self._start_arg()

    def _note_cursor(self) -> None:
        if not self.cursor_found and self.pos >= self.cursor:
            self.cursor_found = True
            self.cursor_pos = self.pos
            self.ctx.current_arg = self.ctx.argc
            self.ctx.current_arg_offset = len(self.chars)

    def _start_arg(self) -> None:
        self.chars = []
        self.arg_ctx = ArgContext()
        self.arg_open = True
        self.arg_start = self.pos
        self.quote_open = False
        self.first_quote_end = None
        self.quote_anchor = 0
        self.opener_pos = -1
        self.awaiting_payload = False
        if self.text[self.pos] == QUOTE:
            self.arg_ctx.quoted = True
            self.looking_for_first_quote = True
        else:
            self.looking_for_first_quote = False

    def _end_arg(self) -> None:
        """Finish the current argument, settling where its first quote pair goes.

        The quote that closed the opener is dropped unless more text
        followed it and the argument still ends in a quote; then the
        opener is put back so the argument keeps both of its quotes.
        """
        chars = self.chars
        mine = self.cursor_found and self.ctx.current_arg == self.ctx.argc
        if self.first_quote_end is not None:
            closer = self.first_quote_end
            if closer == len(chars) - 1 or chars[-1] != QUOTE:
                del chars[closer]
                if mine and self.ctx.current_arg_offset > closer:
                    self.ctx.current_arg_offset -= 1
            else:
                chars.insert(self.quote_anchor, QUOTE)
                if mine:
                    offset = self.ctx.current_arg_offset
                    if offset > self.quote_anchor or (
                        offset == self.quote_anchor and self.cursor_pos > self.opener_pos
                    ):
                        self.ctx.current_arg_offset += 1

        self.ctx.append("".join(chars), self.arg_ctx.quoted, self.arg_ctx.quote_terminated)
        self.chars = []
        self.arg_open = False
        self.quote_open = False
        self.looking_for_first_quote = False
        self.first_quote_end = None

    def _consume_escape(self) -> None:
        text = self.text
        if self.pos + 1 >= len(text):
            # A lone escape at the very end; keep it unless it would
            # escape the quote the writer appends for this argument.
            if not self.arg_ctx.quote_terminated:
                self.chars.append(text[self.pos])
            self.pos += 1
            return
        self.chars.append(text[self.pos])
        self.chars.append(text[self.pos + 1])
        self.pos += 2
        self.awaiting_payload = False

    def _ends_arg(self, pos: int) -> bool:
        return pos >= len(self.text) or is_argument_separator(self.text, pos)

    def _consume_backslashes(self) -> None:
        """Handle a run of backslashes, which only matter in front of a quote.

        An odd run escapes the quote. An even run inside an argument's
        first quote pair, with more text after the quote, is halved and
        the quote moves to follow it. A run that ends an argument whose
        quote will be written back at the end is doubled.
        """
        text = self.text
        end = self.pos
        while end < len(text) and text[end] == BACKSLASH:
            end += 1
        count = end - self.pos
        self.awaiting_payload = False

        if end < len(text) and text[end] == QUOTE:
            if count % 2:
                self.chars.extend(BACKSLASH * count + QUOTE)
                self.pos = end + 1
                return
            if self.quote_open and self.looking_for_first_quote and not self._ends_arg(end + 1):
                self.chars.extend(BACKSLASH * (count // 2))
            else:
                self.chars.extend(BACKSLASH * count)
            self.pos = end
            return

        if not self.quote_open and self._ends_arg(end) and self.arg_ctx.quote_terminated:
            count *= 2
        self.chars.extend(BACKSLASH * count)
        self.pos = end

    def _consume_operator(self, op: Operator) -> None:
        if self.pos > self.arg_start:
            self._end_arg()
            self._start_arg()
        self.chars.extend(op.text)
        self.pos += op.length

        if op.terminates_arg:
            self._end_arg()
            self._skip_spaces_then_start()
            return

        # A redirection keeps its target in the same argument, spaces
        # between the two collapsed; a quoted target opens a quote pair
        # anchored after the operator without marking the argument quoted.
        self._skip(SPACE)
        self.awaiting_payload = True
        if self.pos >= len(self.text):
            self.ctx.trailing_chars = self.pos > self.arg_start + op.length
        elif self.text[self.pos] == QUOTE:
            self.looking_for_first_quote = True
            self.quote_anchor = len(self.chars)

    def _place_cursor_at_end(self) -> None:
        ctx = self.ctx
        if self.cursor_found:
            return
        if ctx.argc and self.cursor <= len(self.text) and (
            not (ctx.trailing_chars or self.closed_at_end) or self.awaiting_payload
        ):
            ctx.current_arg = ctx.argc - 1
            ctx.current_arg_offset = len(ctx.argv[-1])
        else:
            ctx.current_arg = ctx.argc
            ctx.current_arg_offset = 0


def parse_cmdline(
    cmdline: str,
    cursor: int = 0,
    *,
    is_escape_char: Callable[[str], bool] = host.is_escape_char,
) -> CmdContext:
    """Split cmdline into a CmdContext.

    Leading spaces and ``@`` characters are ignored. ``cursor`` is an
    index into cmdline; the argument holding it and the offset inside
    that argument are reported as ``current_arg``/``current_arg_offset``.
    """
    return _Splitter(cmdline, cursor, is_escape_char).split()


def _encode_head(
    text: str, tail_follows: bool, is_escape_char: Callable[[str], bool]
) -> str | None:
    """Write text to sit inside an argument's first quote pair, or None if it can't."""
    i = 0
    while i < len(text):
        c = text[i]
        if is_escape_char(c):
            if i + 1 >= len(text):
                return None
            i += 2
            continue
        if c == BACKSLASH:
            end = i
            while end < len(text) and text[end] == BACKSLASH:
                end += 1
            count = end - i
            if end == len(text):
                # The closing quote comes next; the reader halves an even
                # run there unless the argument ends with that quote.
                if tail_follows:
                    return text + BACKSLASH * count
                return None if count % 2 else text
            if text[end] == QUOTE:
                if count % 2 == 0:
                    return None
                end += 1
            i = end
            continue
        if c == QUOTE:
            return None
        i += 1
    return text


def _encode_tail(text: str, is_last: bool, is_escape_char: Callable[[str], bool]) -> str | None:
    """Write text to follow an argument's first quote pair, or None if it can't."""
    in_quote = False
    i = 0
    while i < len(text):
        c = text[i]
        if is_escape_char(c):
            if i + 1 >= len(text):
                return None
            i += 2
            continue
        if c == BACKSLASH:
            end = i
            while end < len(text) and text[end] == BACKSLASH:
                end += 1
            count = end - i
            if end == len(text) and not in_quote:
                # The reader doubles a run that ends the argument.
                if count % 2:
                    return None
                return text[: i + count // 2]
            if end < len(text) and text[end] == QUOTE and count % 2:
                end += 1
            i = end
            continue
        if c == QUOTE:
            in_quote = not in_quote
        elif not in_quote and (c == SPACE or recognize_operator(text, i) is not None):
            return None
        i += 1
    if in_quote and not is_last:
        return None
    return text


def _quote_arg(arg: str, is_last: bool, is_escape_char: Callable[[str], bool]) -> str:
    """Quote arg so that splitting the result gives arg back, quote terminated.

    The first quote pair may close part way through. The reader drops the
    closing quote, or puts the opening one back when the argument ends in
    a quote, so the split point is chosen to match.
    """
    head = _encode_head(arg, False, is_escape_char)
    if head is not None:
        return QUOTE + head + QUOTE

    if arg.startswith(QUOTE) and arg.endswith(QUOTE):
        splits = [(arg[1:k], arg[k + 1 :]) for k in range(len(arg) - 2, 0, -1) if arg[k] == QUOTE]
    elif not arg.endswith(QUOTE):
        splits = [(arg[:k], arg[k:]) for k in range(len(arg) - 1, -1, -1)]
    else:
        splits = []
    for inside, after in splits:
        head = _encode_head(inside, True, is_escape_char)
        if head is None:
            continue
        tail = _encode_tail(after, is_last, is_escape_char)
        if tail is not None:
            return QUOTE + head + QUOTE + tail

    # Text that never came from a split, such as a whole line wrapped for cmd /c.
    return QUOTE + arg + QUOTE


def _redirect_length(arg: str) -> int:
    """Length of the redirection operator that arg starts with, or 0."""
    for end in range(min(len(arg), 3), 0, -1):
        op = recognize_operator(arg[:end])
        if op is not None and not op.terminates_arg:
            return op.length
    return 0


def _quote_for_cmdline(
    arg: str, arg_ctx: ArgContext, is_last: bool, is_escape_char: Callable[[str], bool]
) -> str:
    if arg_ctx.quoted:
        if not arg_ctx.quote_terminated:
            return QUOTE + arg
        return _quote_arg(arg, is_last, is_escape_char)

    if arg_ctx.quote_terminated:
        # A redirection whose target was quoted, as in >"my file".
        length = _redirect_length(arg)
        if length:
            return arg[:length] + _quote_arg(arg[length:], is_last, is_escape_char)
    return arg


def build_cmdline_from_context(
    ctx: CmdContext,
    remove_escapes: bool = False,
    *,
    is_escape_char: Callable[[str], bool] = host.is_escape_char,
) -> tuple[str, int, int]:
    """Join ctx back into one command line.

    Returns ``(cmdline, begin, end)`` where ``cmdline[begin:end]`` is the
    current argument as written, quotes included. If the cursor is past
    the last argument both offsets equal ``len(cmdline)``.
    """
    ctx.validate()
    pieces: list[str] = []
    length = 0
    begin = end = 0

    for index, (arg, arg_ctx) in enumerate(zip(ctx.argv, ctx.arg_contexts)):
        if index:
            pieces.append(SPACE)
            length += 1
        if remove_escapes:
            arg = strip_escapes(arg, is_escape_char)
        piece = _quote_for_cmdline(arg, arg_ctx, index == ctx.argc - 1, is_escape_char)
        if index == ctx.current_arg:
            begin = length
            end = length + len(piece)
        pieces.append(piece)
        length += len(piece)

    if ctx.current_arg >= ctx.argc:
        begin = end = length
    return "".join(pieces), begin, end

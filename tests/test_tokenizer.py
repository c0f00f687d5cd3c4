"""Tests for the tokenizer module."""

import random

import pytest

from shellplan.context import ArgContext, CmdContext
from shellplan.errors import InvalidArgumentError
from shellplan.tokenizer import build_cmdline_from_context, parse_cmdline

LINE_ALPHABET = 'ab "\\^|>&2@'


def argv(line: str) -> list[str]:
    return parse_cmdline(line).argv


def random_lines(count: int, seed: int = 7) -> list[str]:
    rng = random.Random(seed)
    return [
        "".join(rng.choice(LINE_ALPHABET) for _ in range(rng.randint(0, 12)))
        for _ in range(count)
    ]


class TestBasicSplitting:
    def test_simple_command(self):
        assert argv("echo hello") == ["echo", "hello"]

    def test_multiple_args(self):
        assert argv("dir /s /b C:\\temp") == ["dir", "/s", "/b", "C:\\temp"]

    def test_empty_string(self):
        ctx = parse_cmdline("")
        assert ctx.argc == 0
        assert ctx.current_arg == 0

    def test_whitespace_only(self):
        assert argv("   ") == []

    def test_repeated_spaces(self):
        assert argv("a    b") == ["a", "b"]

    def test_leading_at_and_spaces_stripped(self):
        assert argv("  @@ echo hi") == ["echo", "hi"]

    def test_at_not_special_later(self):
        assert argv("echo @x") == ["echo", "@x"]

    def test_tab_is_not_a_separator(self):
        assert argv("a\tb") == ["a\tb"]

    def test_arg_contexts_parallel_to_argv(self):
        ctx = parse_cmdline('a "b c" d')
        assert len(ctx.arg_contexts) == ctx.argc == 3


class TestQuoting:
    def test_double_quotes(self):
        ctx = parse_cmdline('echo "hello world"')
        assert ctx.argv == ["echo", "hello world"]
        assert ctx.arg_contexts[1] == ArgContext(quoted=True, quote_terminated=True)

    def test_unquoted_arg_context(self):
        ctx = parse_cmdline("echo hi")
        assert ctx.arg_contexts[1] == ArgContext(quoted=False, quote_terminated=False)

    def test_unterminated_quote(self):
        ctx = parse_cmdline('echo "abc def')
        assert ctx.argv == ["echo", "abc def"]
        assert ctx.arg_contexts[1] == ArgContext(quoted=True, quote_terminated=False)

    def test_quoted_path_with_trailing_text(self):
        ctx = parse_cmdline('"C:\\Program Files"\\foo')
        assert ctx.argv == ["C:\\Program Files\\foo"]
        assert ctx.arg_contexts[0] == ArgContext(quoted=True, quote_terminated=True)

    def test_even_backslashes_move_the_quote(self):
        ctx = parse_cmdline('"C:\\Program Files\\\\"WindowsApps')
        assert ctx.argv == ["C:\\Program Files\\WindowsApps"]
        assert ctx.arg_contexts[0].quote_terminated

    def test_both_quotes_kept_when_arg_ends_in_quote(self):
        ctx = parse_cmdline('if "."=="." echo yes')
        assert ctx.argv == ["if", '"."=="."', "echo", "yes"]
        assert ctx.arg_contexts[1] == ArgContext(quoted=True, quote_terminated=True)

    def test_empty_quotes(self):
        ctx = parse_cmdline('echo ""')
        assert ctx.argv == ["echo", ""]
        assert ctx.arg_contexts[1].quoted

    def test_quote_in_middle_is_literal(self):
        assert argv('say a"b c"d') == ["say", 'a"b c"d']

    def test_odd_backslashes_escape_quote(self):
        assert argv('echo \\"x') == ["echo", '\\"x']

    def test_plain_backslashes_kept(self):
        assert argv("type C:\\a\\\\b") == ["type", "C:\\a\\\\b"]

    def test_trailing_backslash_doubled_after_closed_quote(self):
        ctx = parse_cmdline('"a b"c\\')
        assert ctx.argv == ["a bc\\\\"]

    def test_operators_inside_quotes_are_text(self):
        ctx = parse_cmdline('echo "a | b && c > d"')
        assert ctx.argv == ["echo", "a | b && c > d"]


class TestEscapes:
    def test_escape_keeps_operator_literal(self):
        assert argv("echo ^&x") == ["echo", "^&x"]

    def test_escape_keeps_space_literal(self):
        assert argv("echo a^ b") == ["echo", "a^ b"]

    def test_escape_keeps_quote_literal(self):
        ctx = parse_cmdline('echo ^"a b')
        assert ctx.argv == ["echo", '^"a', "b"]
        assert not ctx.arg_contexts[1].quoted

    def test_trailing_escape_written(self):
        assert argv("echo a^") == ["echo", "a^"]

    def test_trailing_escape_dropped_after_closed_quote(self):
        assert argv('echo "a b"^') == ["echo", "a b"]

    def test_custom_escape_predicate(self):
        ctx = parse_cmdline("echo `&x", is_escape_char=lambda c: c == "`")
        assert ctx.argv == ["echo", "`&x"]


class TestOperators:
    def test_self_contained_operators(self):
        assert argv("a && b | c") == ["a", "&&", "b", "|", "c"]

    def test_operators_without_spaces(self):
        assert argv("a&&b||c") == ["a", "&&", "b", "||", "c"]

    def test_newline_is_separator(self):
        assert argv("a\nb") == ["a", "\n", "b"]

    def test_redirect_attached_to_target(self):
        assert argv("dir >out.txt") == ["dir", ">out.txt"]

    def test_redirect_space_collapsed(self):
        ctx = parse_cmdline("dir > out.txt")
        assert ctx.argc == 2
        assert ctx.argv == ["dir", ">out.txt"]

    def test_redirect_splits_preceding_word(self):
        assert argv("type file>out") == ["type", "file", ">out"]

    def test_numbered_redirects(self):
        assert argv("cmd 1>>log 2>err") == ["cmd", "1>>log", "2>err"]

    def test_stream_merge_is_self_contained(self):
        assert argv("cmd 2>&1 >&2 x") == ["cmd", "2>&1", ">&2", "x"]

    def test_background_forms(self):
        assert argv("echo hi &!") == ["echo", "hi", "&!"]
        assert argv("echo hi &!!") == ["echo", "hi", "&!!"]

    def test_operator_at_start(self):
        assert argv("&& b") == ["&&", "b"]

    def test_digit_not_followed_by_redirect(self):
        assert argv("echo 1 2") == ["echo", "1", "2"]

    def test_quoted_redirect_target(self):
        ctx = parse_cmdline('cmd >"my file.txt"')
        assert ctx.argv == ["cmd", ">my file.txt"]
        assert ctx.arg_contexts[1] == ArgContext(quoted=False, quote_terminated=True)

    def test_quoted_redirect_target_after_space(self):
        ctx = parse_cmdline('cmd > "my file.txt" next')
        assert ctx.argv == ["cmd", ">my file.txt", "next"]

    def test_redirect_then_pipe(self):
        assert argv("dir > | more") == ["dir", ">", "|", "more"]


class TestTrailingChars:
    def test_trailing_space(self):
        assert parse_cmdline("cd ").trailing_chars

    def test_no_trailing_space(self):
        assert not parse_cmdline("cd").trailing_chars

    def test_trailing_space_after_operator(self):
        assert parse_cmdline("a | ").trailing_chars

    @pytest.mark.parametrize("line", ["a |", "a|", "a &&", "a &"])
    def test_separator_at_end_is_not_trailing(self, line):
        assert not parse_cmdline(line).trailing_chars


class TestCursor:
    def test_cursor_at_start(self):
        ctx = parse_cmdline("  cd foo", 0)
        assert (ctx.current_arg, ctx.current_arg_offset) == (0, 0)

    def test_cursor_inside_argument(self):
        ctx = parse_cmdline("cd foo", 4)
        assert (ctx.current_arg, ctx.current_arg_offset) == (1, 1)

    def test_cursor_at_end_of_argument(self):
        ctx = parse_cmdline("cd foo", 2)
        assert (ctx.current_arg, ctx.current_arg_offset) == (0, 2)

    def test_cursor_at_end_of_input(self):
        ctx = parse_cmdline("cd", 2)
        assert (ctx.current_arg, ctx.current_arg_offset) == (0, 2)

    def test_cursor_after_trailing_space(self):
        ctx = parse_cmdline("cd ", 3)
        assert ctx.argc == 1
        assert (ctx.current_arg, ctx.current_arg_offset) == (1, 0)

    def test_cursor_beyond_input(self):
        ctx = parse_cmdline("cd", 50)
        assert (ctx.current_arg, ctx.current_arg_offset) == (1, 0)

    def test_cursor_after_self_contained_operator(self):
        ctx = parse_cmdline("a |", 3)
        assert (ctx.current_arg, ctx.current_arg_offset) == (2, 0)

    def test_cursor_on_pending_redirect(self):
        ctx = parse_cmdline("dir > ", 6)
        assert (ctx.current_arg, ctx.current_arg_offset) == (1, 1)

    def test_cursor_skips_dropped_quote(self):
        ctx = parse_cmdline('"ab"c', 4)
        assert ctx.argv == ["abc"]
        assert (ctx.current_arg, ctx.current_arg_offset) == (0, 2)

    def test_cursor_within_bounds(self):
        line = 'echo "a b" | more >x &'
        for cursor in range(len(line) + 2):
            ctx = parse_cmdline(line, cursor)
            assert 0 <= ctx.current_arg <= ctx.argc
            if ctx.current_arg < ctx.argc:
                assert ctx.current_arg_offset <= len(ctx.argv[ctx.current_arg])

    def test_cursor_within_bounds_generated(self):
        for line in random_lines(400):
            for cursor in range(len(line) + 1):
                ctx = parse_cmdline(line, cursor)
                assert 0 <= ctx.current_arg <= ctx.argc, (line, cursor)
                if ctx.current_arg < ctx.argc:
                    assert ctx.current_arg_offset <= len(ctx.argv[ctx.current_arg]), (line, cursor)
                else:
                    assert ctx.current_arg_offset == 0, (line, cursor)


class TestBuildCmdline:
    def test_plain(self):
        ctx = parse_cmdline("echo hello")
        assert build_cmdline_from_context(ctx)[0] == "echo hello"

    def test_quoted_arg_requoted(self):
        ctx = parse_cmdline('echo "hello world"')
        assert build_cmdline_from_context(ctx)[0] == 'echo "hello world"'

    def test_unterminated_quote_stays_open(self):
        ctx = parse_cmdline('echo "abc')
        assert build_cmdline_from_context(ctx)[0] == 'echo "abc'

    def test_quoted_redirect_target_requoted(self):
        ctx = parse_cmdline('cmd > "my file.txt"')
        assert build_cmdline_from_context(ctx)[0] == 'cmd >"my file.txt"'

    def test_arg_carrying_own_quotes(self):
        ctx = parse_cmdline('if "."=="." echo')
        assert build_cmdline_from_context(ctx)[0] == 'if "."=="." echo'

    def test_first_quote_pair_placed_before_later_quotes(self):
        ctx = parse_cmdline('echo ""a""b')
        assert ctx.argv == ["echo", 'a""b']
        assert build_cmdline_from_context(ctx)[0] == 'echo "a"""b'

    def test_leading_quote_pair_kept_empty(self):
        ctx = parse_cmdline('echo """"x')
        assert ctx.argv == ["echo", '""x']
        assert build_cmdline_from_context(ctx)[0] == 'echo """"x'

    def test_trailing_backslashes_inside_quotes(self):
        ctx = parse_cmdline('"a b"c\\')
        assert ctx.argv == ["a bc\\\\"]
        assert build_cmdline_from_context(ctx)[0] == '"a bc\\\\"'

    def test_backslashes_before_closing_quote_doubled(self):
        ctx = parse_cmdline('"a\\\\"\\x')
        assert ctx.argv == ["a\\\\x"]
        assert build_cmdline_from_context(ctx)[0] == '"a\\\\x"'

    def test_redirect_target_that_looks_like_operator(self):
        ctx = parse_cmdline('dir > "&2"')
        assert ctx.argv == ["dir", ">&2"]
        assert build_cmdline_from_context(ctx)[0] == 'dir >"&2"'

    def test_remove_escapes(self):
        ctx = parse_cmdline("echo ^&x a^^b")
        assert build_cmdline_from_context(ctx, remove_escapes=True)[0] == "echo &x a^b"

    def test_escapes_kept_by_default(self):
        ctx = parse_cmdline("echo ^&x")
        assert build_cmdline_from_context(ctx)[0] == "echo ^&x"

    def test_current_arg_span(self):
        ctx = parse_cmdline("echo hello", 7)
        assert build_cmdline_from_context(ctx) == ("echo hello", 5, 10)

    def test_current_arg_span_includes_quotes(self):
        ctx = parse_cmdline('cd "my dir"', 5)
        assert build_cmdline_from_context(ctx) == ('cd "my dir"', 3, 11)

    def test_cursor_past_end(self):
        ctx = parse_cmdline("cd ", 3)
        assert build_cmdline_from_context(ctx) == ("cd", 2, 2)

    def test_empty_context(self):
        assert build_cmdline_from_context(CmdContext()) == ("", 0, 0)

    def test_mismatched_context_rejected(self):
        ctx = CmdContext(argv=["a"], arg_contexts=[])
        with pytest.raises(InvalidArgumentError):
            build_cmdline_from_context(ctx)


class TestRoundTrip:
    @pytest.mark.parametrize(
        "line",
        [
            "echo hello",
            'echo "hello world" x',
            '"C:\\Program Files"\\foo',
            'if "."=="." echo yes',
            "a && b | c || d",
            "dir >out.txt 2>&1",
            'type >"my file.txt"',
            '"a b"c\\',
            'echo "unterminated',
            'echo ""a""b',
            'echo """"x',
            '"a\\\\"b"',
            '"ab""c',
            '"a"b"c d" e',
            'dir > "&2"',
            'dir 2> ">x"',
            '"a"b^',
        ],
    )
    def test_reparse_is_equivalent(self, line):
        ctx = parse_cmdline(line)
        rebuilt, _, _ = build_cmdline_from_context(ctx)
        again = parse_cmdline(rebuilt)
        assert again.argv == ctx.argv
        assert again.arg_contexts == ctx.arg_contexts

    def test_reparse_is_equivalent_generated(self):
        for line in random_lines(2000):
            ctx = parse_cmdline(line)
            rebuilt, _, _ = build_cmdline_from_context(ctx)
            again = parse_cmdline(rebuilt)
            assert (again.argv, again.arg_contexts) == (ctx.argv, ctx.arg_contexts), (
                line,
                rebuilt,
            )

"""Tests for command tokenization."""

from clibridge.core.tokenizer import ensure_flag, has_flag, tokenize_command


class TestTokenizeCommand:
    """Tests for tokenize_command()."""

    def test_quoted_span_is_one_token(self):
        assert tokenize_command('foo "bar baz" qux') == ["foo", "bar baz", "qux"]

    def test_single_quotes(self):
        assert tokenize_command("-p 'hello world'") == ["-p", "hello world"]

    def test_empty_input(self):
        assert tokenize_command("") == []

    def test_whitespace_only(self):
        assert tokenize_command("   \t\n ") == []

    def test_any_whitespace_separates(self):
        assert tokenize_command("a  b\tc\nd") == ["a", "b", "c", "d"]

    def test_unterminated_quote_keeps_remainder(self):
        """Unterminated quote does not raise; the rest becomes the last token."""
        assert tokenize_command('say "hello world') == ["say", "hello world"]

    def test_unterminated_quote_at_end(self):
        assert tokenize_command("run '") == ["run"]

    def test_other_quote_kind_is_literal_inside_quotes(self):
        assert tokenize_command("\"it's here\"") == ["it's here"]
        assert tokenize_command("'say \"hi\"'") == ['say "hi"']

    def test_empty_quotes_produce_no_token(self):
        """Tokens never contain an empty string."""
        assert tokenize_command('a "" b') == ["a", "b"]
        assert "" not in tokenize_command("'' \"\" x")

    def test_quotes_join_adjacent_text(self):
        assert tokenize_command('--flag="x y"') == ["--flag=x y"]
        assert tokenize_command('a"b"c') == ["abc"]

    def test_no_escape_support_inside_quotes(self):
        """Backslash is literal and cannot protect a closing quote."""
        assert tokenize_command(r'"a\"b"') == ["a\\b"]

    def test_backslash_outside_quotes_is_literal(self):
        assert tokenize_command(r"path\ with") == ["path\\", "with"]


class TestFlags:
    """Tests for has_flag() and ensure_flag()."""

    def test_has_flag_bare(self):
        assert has_flag(["-p", "x", "--output-format", "json"], "--output-format")

    def test_has_flag_with_equals(self):
        assert has_flag(["--output-format=json"], "--output-format")

    def test_has_flag_absent(self):
        assert not has_flag(["-p", "--output-formats"], "--output-format")

    def test_ensure_flag_appends(self):
        tokens = ["-p", "hi"]
        result = ensure_flag(tokens, "--output-format", "stream-json")

        assert result == ["-p", "hi", "--output-format", "stream-json"]
        assert tokens == ["-p", "hi"]  # input untouched

    def test_ensure_flag_keeps_existing(self):
        tokens = ["--output-format", "json"]
        assert ensure_flag(tokens, "--output-format", "stream-json") == tokens

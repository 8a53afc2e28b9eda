"""Shell-like tokenization of CLI command strings.

Deliberately simpler than shlex: quotes group words and are stripped, but
there is no escape character. A backslash inside quotes is kept literally
and cannot protect a closing quote.
"""

QUOTE_CHARS = ('"', "'")


def tokenize_command(command: str) -> list[str]:
    """Split a command string into argument tokens.

    Splits on whitespace outside quotes. Either quote character opens a
    quoted span that runs until the same character appears again; the
    quotes themselves never appear in a token. An unterminated quote is not
    an error: the rest of the string becomes the final token.

    Example:
        >>> tokenize_command('foo "bar baz" qux')
        ['foo', 'bar baz', 'qux']
    """
    tokens: list[str] = []
    current: list[str] = []
    quote: str | None = None

    for char in command:
        if quote is None and char in QUOTE_CHARS:
            quote = char
        elif quote is not None and char == quote:
            quote = None
        elif quote is None and char.isspace():
            if current:
                tokens.append("".join(current))
                current = []
        else:
            current.append(char)

    if current:
        tokens.append("".join(current))

    return tokens


def has_flag(tokens: list[str], flag: str) -> bool:
    """Return True if tokens contain flag, either bare or as --flag=value."""
    prefix = f"{flag}="
    return any(token == flag or token.startswith(prefix) for token in tokens)


def ensure_flag(tokens: list[str], flag: str, value: str) -> list[str]:
    """Return a copy of tokens with `flag value` appended unless already present."""
    if has_flag(tokens, flag):
        return list(tokens)
    return [*tokens, flag, value]

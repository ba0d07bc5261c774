"""Lexer for the model declaration DSL."""

import ply.lex as lex


class ModelLexer:
    """Lexer for tokenizing model declarations."""

    # Keywords; any other word lexes as IDENTIFIER
    reserved = {
        "define": "DEFINE",
        "as": "AS",
        "enum": "ENUM",
        "union": "UNION",
        "extends": "EXTENDS",
    }

    # Declaration punctuation, literals and names
    tokens = [
        "IDENTIFIER",
        "INTEGER",
        "STRING",
        "LBRACE",
        "RBRACE",
        "LBRACKET",
        "RBRACKET",
        "COLON",
        "COMMA",
        "EQUALS",
        "QUESTION",
        "PIPE",
        "AT",
    ] + list(reserved.values())

    # Punctuation
    t_LBRACE = r"\{"
    t_RBRACE = r"\}"
    t_LBRACKET = r"\["
    t_RBRACKET = r"\]"
    t_COLON = r":"
    t_COMMA = r","
    t_EQUALS = r"="
    t_QUESTION = r"\?"
    t_PIPE = r"\|"
    t_AT = r"@"

    # Whitespace; semicolons are optional member terminators
    t_ignore = " \t\r;"

    # "# ..." runs to end of line
    t_ignore_COMMENT = r"\#[^\n]*"

    def __init__(self) -> None:
        self.lexer: lex.Lexer = None  # type: ignore

    def t_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r"\"([^\"\\\n]|\\.)*\"|'([^'\\\n]|\\.)*'"
        quote = t.value[0]
        t.value = t.value[1:-1].replace("\\" + quote, quote).replace("\\\\", "\\")
        return t

    def t_INTEGER(self, t: lex.LexToken) -> lex.LexToken:
        r"-?\d+"
        t.value = int(t.value)
        return t

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[a-zA-Z_][a-zA-Z0-9_]*"
        # Check if it's a reserved word
        t.type = self.reserved.get(t.value, "IDENTIFIER")
        return t

    def t_NEWLINE(self, t: lex.LexToken) -> None:
        r"\n+"
        t.lexer.lineno += len(t.value)

    def t_error(self, t: lex.LexToken) -> None:
        raise SyntaxError(f"Illegal character '{t.value[0]}' at line {t.lineno}")

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string and reset the line counter."""
        self.lexer.input(data)
        self.lexer.lineno = 1

    def token(self) -> lex.LexToken | None:
        """Return the next token."""
        return self.lexer.token()

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Tokenize the input and return all tokens."""
        self.input(data)
        return list(iter(self.token, None))

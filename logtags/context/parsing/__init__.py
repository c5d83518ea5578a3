"""
Parsing: pipeline expression text into ordered stages

Grammar:
    pipeline    := ["|"] application ("|" application)*
    application := IDENT "(" [argument ("," argument)*] ")"
    argument    := INT | STRING | SYMBOL | COMPARATOR

- SYMBOL is a quote-prefixed name: 'apache
- STRING is double-quoted; only \\" is an escape, every other backslash is
  kept verbatim so regex patterns need no doubling: "\\[(error|notice)\\]"
- COMPARATOR is one of == != <= >= < >

A leading "|" marks a piped continuation of the previous line's pipeline.
Text that stops inside a string or before a closing parenthesis raises
IncompleteExpression so interactive callers can ask for another line.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from logtags.exceptions import IncompleteExpression, PipelineSyntaxError
from logtags.models import Comparator

__all__ = [
    'TokenType',
    'Token',
    'Symbol',
    'Argument',
    'Application',
    'PipelineTokenizer',
    'parse_pipeline',
    'CursorState',
    'PipelineBuffer',
]


class TokenType(Enum):
    """Types of tokens in pipeline text"""
    IDENT = "ident"            # take, filter
    SYMBOL = "symbol"          # 'apache
    STRING = "string"          # "..."
    INT = "int"                # 42
    COMPARATOR = "comparator"  # == != <= >= < >
    LPAREN = "lparen"
    RPAREN = "rparen"
    COMMA = "comma"
    PIPE = "pipe"


@dataclass
class Token:
    """A single token and its offset in the source text"""
    type: TokenType
    value: str
    position: int

    def __repr__(self):
        return f"Token({self.type.value}, {self.value!r}, @{self.position})"


@dataclass(frozen=True)
class Symbol:
    """A quote-prefixed name referring to a view or a tag"""
    name: str

    def __str__(self):
        return f"'{self.name}"


Argument = Union[int, str, Symbol, Comparator]


@dataclass
class Application:
    """A function applied to arguments: `filter('level, ==, "error")`"""
    function: str
    arguments: List[Argument] = field(default_factory=list)
    piped: bool = False
    position: int = 0

    def __str__(self):
        rendered = []
        for argument in self.arguments:
            if isinstance(argument, Comparator):
                rendered.append(argument.value)
            elif isinstance(argument, str):
                rendered.append(f'"{argument}"')
            else:
                rendered.append(str(argument))
        prefix = "| " if self.piped else ""
        return f"{prefix}{self.function}({', '.join(rendered)})"


class PipelineTokenizer:
    """Split pipeline text into tokens"""

    IDENT_PATTERN = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')
    INT_PATTERN = re.compile(r'\d+')
    COMPARATOR_PATTERN = re.compile(r'==|!=|<=|>=|<|>')
    WHITESPACE_PATTERN = re.compile(r'\s+')

    PUNCTUATION = {
        '(': TokenType.LPAREN,
        ')': TokenType.RPAREN,
        ',': TokenType.COMMA,
        '|': TokenType.PIPE,
    }

    def tokenize(self, text: str) -> List[Token]:
        tokens = []
        pos = 0

        while pos < len(text):
            whitespace = self.WHITESPACE_PATTERN.match(text, pos)
            if whitespace:
                pos = whitespace.end()
                continue

            char = text[pos]
            if char == '"':
                value, pos_after = self._read_string(text, pos)
                tokens.append(Token(TokenType.STRING, value, pos))
                pos = pos_after
            elif char == "'":
                ident = self.IDENT_PATTERN.match(text, pos + 1)
                if not ident:
                    raise PipelineSyntaxError(f"Expected a name after ' at column {pos + 1}",
                                              value=text)
                tokens.append(Token(TokenType.SYMBOL, ident.group(0), pos))
                pos = ident.end()
            elif char in self.PUNCTUATION:
                tokens.append(Token(self.PUNCTUATION[char], char, pos))
                pos += 1
            else:
                for token_type, pattern in ((TokenType.COMPARATOR, self.COMPARATOR_PATTERN),
                                            (TokenType.INT, self.INT_PATTERN),
                                            (TokenType.IDENT, self.IDENT_PATTERN)):
                    match = pattern.match(text, pos)
                    if match:
                        tokens.append(Token(token_type, match.group(0), pos))
                        pos = match.end()
                        break
                else:
                    raise PipelineSyntaxError(f"Unexpected character {char!r} at column {pos + 1}",
                                              value=text)

        return tokens

    def _read_string(self, text: str, start: int):
        """Read a double-quoted string starting at `start`"""
        chunks = []
        pos = start + 1
        while pos < len(text):
            char = text[pos]
            if char == '\\' and text.startswith('"', pos + 1):
                chunks.append('"')
                pos += 2
            elif char == '"':
                return ''.join(chunks), pos + 1
            else:
                chunks.append(char)
                pos += 1
        raise IncompleteExpression("Unterminated string", value=text[start:])


class _Parser:
    """Recursive descent over a token list"""

    def __init__(self, tokens: List[Token], text: str):
        self.tokens = tokens
        self.text = text
        self.pos = 0

    def peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def next(self) -> Token:
        token = self.peek()
        if token is None:
            raise IncompleteExpression("Unexpected end of expression", value=self.text)
        self.pos += 1
        return token

    def expect(self, token_type: TokenType) -> Token:
        token = self.next()
        if token.type is not token_type:
            raise PipelineSyntaxError(
                f"Expected {token_type.value} at column {token.position + 1}, got {token.value!r}",
                value=self.text,
            )
        return token

    def pipeline(self) -> List[Application]:
        applications = []
        piped = False
        first = self.peek()
        if first is not None and first.type is TokenType.PIPE:
            self.next()
            piped = True

        applications.append(self.application(piped))
        while self.peek() is not None:
            self.expect(TokenType.PIPE)
            applications.append(self.application(True))
        return applications

    def application(self, piped: bool) -> Application:
        name = self.expect(TokenType.IDENT)
        self.expect(TokenType.LPAREN)
        arguments = []

        token = self.peek()
        if token is not None and token.type is TokenType.RPAREN:
            self.next()
            return Application(name.value, arguments, piped, name.position)

        while True:
            arguments.append(self.argument())
            separator = self.next()
            if separator.type is TokenType.RPAREN:
                break
            if separator.type is not TokenType.COMMA:
                raise PipelineSyntaxError(
                    f"Expected ',' or ')' at column {separator.position + 1}",
                    value=self.text,
                )
        return Application(name.value, arguments, piped, name.position)

    def argument(self) -> Argument:
        token = self.next()
        if token.type is TokenType.INT:
            return int(token.value)
        if token.type is TokenType.STRING:
            return token.value
        if token.type is TokenType.SYMBOL:
            return Symbol(token.value)
        if token.type is TokenType.COMPARATOR:
            return Comparator.from_symbol(token.value)
        raise PipelineSyntaxError(
            f"Unexpected {token.value!r} at column {token.position + 1}",
            value=self.text,
        )


def parse_pipeline(text: str) -> List[Application]:
    """
    Parse one line (or a multi-line chunk) of pipeline text

    Returns:
        Applications in order; the first is marked piped when the text
        starts with "|"

    Raises:
        IncompleteExpression: Text ends inside a string or argument list
        PipelineSyntaxError: Any other malformed input
    """
    tokens = PipelineTokenizer().tokenize(text)
    if not tokens:
        raise PipelineSyntaxError("Empty expression")
    return _Parser(tokens, text).pipeline()


class CursorState(Enum):
    """Where the input buffer expects the next line to go"""
    ROOT = "root"
    PIPELINED = "pipelined"
    MULTILINE = "multiline"


class PipelineBuffer:
    """
    Accumulate input lines into one pipeline

    A root line starts a pipeline, piped lines ("| ...") extend it, and the
    caller drains the buffer to run it (on a blank line, in the CLI).
    """

    def __init__(self):
        self.applications: List[Application] = []
        self.pending = ""

    @property
    def is_empty(self) -> bool:
        return not self.applications and not self.pending

    @property
    def state(self) -> CursorState:
        if self.pending:
            return CursorState.MULTILINE
        return CursorState.PIPELINED if self.applications else CursorState.ROOT

    def add_segment(self, segment: str) -> CursorState:
        text = self.pending + segment
        if not text.strip():
            return self.state

        try:
            applications = parse_pipeline(text)
        except IncompleteExpression:
            self.pending = text + "\n"
            return CursorState.MULTILINE
        except PipelineSyntaxError:
            self.pending = ""
            raise

        self.pending = ""
        if applications[0].piped and not self.applications:
            raise PipelineSyntaxError("Piped stage has no pipeline to continue", value=segment)
        if not applications[0].piped and self.applications:
            raise PipelineSyntaxError("Run the current pipeline (blank line) before starting another",
                                      value=segment)
        self.applications.extend(applications)
        return CursorState.PIPELINED

    def drain(self) -> List[Application]:
        applications, self.applications, self.pending = self.applications, [], ""
        return applications

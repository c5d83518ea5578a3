"""
Unit tests for the pipeline expression parser and input buffer
"""

import pytest

from logtags.context.parsing import (
    CursorState, PipelineBuffer, PipelineTokenizer, Symbol, TokenType, parse_pipeline,
)
from logtags.exceptions import IncompleteExpression, PipelineSyntaxError
from logtags.models import Comparator


class TestTokenizer:

    def test_token_types(self):
        tokens = PipelineTokenizer().tokenize("filter('level, >=, \"05\") | take(3)")
        assert [token.type for token in tokens] == [
            TokenType.IDENT, TokenType.LPAREN, TokenType.SYMBOL, TokenType.COMMA,
            TokenType.COMPARATOR, TokenType.COMMA, TokenType.STRING, TokenType.RPAREN,
            TokenType.PIPE, TokenType.IDENT, TokenType.LPAREN, TokenType.INT, TokenType.RPAREN,
        ]

    def test_regex_backslashes_kept(self):
        tokens = PipelineTokenizer().tokenize(r'regex("\[(error|notice)\]")')
        assert tokens[2].value == r"\[(error|notice)\]"

    def test_escaped_quote(self):
        tokens = PipelineTokenizer().tokenize(r'filter("chunk == \"x\"")')
        assert tokens[2].value == 'chunk == "x"'

    def test_unexpected_character(self):
        with pytest.raises(PipelineSyntaxError):
            PipelineTokenizer().tokenize("take(#)")


class TestParsePipeline:

    def test_root_application(self):
        (app,) = parse_pipeline("load('apache, \"apache.log\")")
        assert app.function == "load"
        assert app.arguments == [Symbol("apache"), "apache.log"]
        assert not app.piped

    def test_piped_chain(self):
        apps = parse_pipeline("tag('apache, 'level) | regex(\"x(y)\") | take(5)")
        assert [app.function for app in apps] == ["tag", "regex", "take"]
        assert [app.piped for app in apps] == [False, True, True]
        assert apps[2].arguments == [5]

    def test_leading_pipe_marks_continuation(self):
        (app,) = parse_pipeline("| take(5)")
        assert app.piped

    def test_comparator_argument(self):
        (app,) = parse_pipeline("filter('hour, >, \"05\")")
        assert app.arguments[1] is Comparator.GREATER_THAN

    def test_empty_argument_list(self):
        (app,) = parse_pipeline("count()")
        assert app.arguments == []

    def test_str_round_trips_shape(self):
        (app,) = parse_pipeline("| filter('hour, >, \"05\")")
        assert str(app) == "| filter('hour, >, \"05\")"

    def test_unterminated_string_is_incomplete(self):
        with pytest.raises(IncompleteExpression):
            parse_pipeline("filter(\"chunk")

    def test_open_paren_is_incomplete(self):
        with pytest.raises(IncompleteExpression):
            parse_pipeline("take('apache,")

    def test_missing_comma(self):
        with pytest.raises(PipelineSyntaxError) as excinfo:
            parse_pipeline("take('apache 5)")
        assert not isinstance(excinfo.value, IncompleteExpression)

    def test_empty(self):
        with pytest.raises(PipelineSyntaxError):
            parse_pipeline("   ")


class TestPipelineBuffer:

    def test_states(self):
        buffer = PipelineBuffer()
        assert buffer.state is CursorState.ROOT

        assert buffer.add_segment("tag('apache, 'level)") is CursorState.PIPELINED
        assert buffer.add_segment("| regex(\"[") is CursorState.MULTILINE
        assert buffer.add_segment("(error)\")") is CursorState.PIPELINED

        apps = buffer.drain()
        assert [app.function for app in apps] == ["tag", "regex"]
        assert apps[1].arguments == ["[\n(error)"]
        assert buffer.is_empty

    def test_pipe_without_pipeline(self):
        with pytest.raises(PipelineSyntaxError):
            PipelineBuffer().add_segment("| take(1)")

    def test_second_root_rejected(self):
        buffer = PipelineBuffer()
        buffer.add_segment("take('a, 1)")
        with pytest.raises(PipelineSyntaxError):
            buffer.add_segment("take('b, 1)")

    def test_syntax_error_clears_pending(self):
        buffer = PipelineBuffer()
        buffer.add_segment("take('a,")
        with pytest.raises(PipelineSyntaxError):
            buffer.add_segment("#)")
        assert buffer.state is CursorState.ROOT

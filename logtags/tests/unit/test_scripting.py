"""
Unit tests for the script bridge and its persistent scope
"""

import signal
import threading

import pytest

from logtags.context.scripting import ScriptBridge, ScriptScope, compile_script
from logtags.exceptions import InvalidTagRule, ScriptError, ScriptTimeout


class TestCompileScript:

    def test_expression(self):
        compiled = compile_script("1 + 1")
        assert compiled.body is None
        assert compiled.result is not None

    def test_block_with_trailing_expression(self):
        compiled = compile_script("x = 2\nx * 3")
        assert compiled.body is not None
        assert compiled.result is not None

    def test_block_without_result(self):
        compiled = compile_script("x = 2")
        assert compiled.result is None

    def test_indented_source_is_dedented(self):
        assert compile_script("    1 + 1").result is not None


class TestScriptBridge:

    def test_evaluate_expression(self):
        bridge = ScriptBridge()
        assert bridge.evaluate("chunk * 2", {'chunk': 21}, ScriptScope()) == 42

    def test_scope_persists_between_calls(self):
        bridge = ScriptBridge()
        scope = ScriptScope()

        bridge.execute("seen = []", scope)
        for value in ("a", "b"):
            bridge.evaluate("seen.append(chunk)", {'chunk': value}, scope)

        assert scope['seen'] == ["a", "b"]
        assert 'seen' in scope.names()

    def test_block_without_expression_returns_none(self):
        assert ScriptBridge().evaluate("y = 1", {}, ScriptScope()) is None

    def test_check_rejects_bad_syntax(self):
        with pytest.raises(InvalidTagRule):
            ScriptBridge().check("def (")

    def test_runtime_error_wrapped(self):
        with pytest.raises(ScriptError) as excinfo:
            ScriptBridge().evaluate("undefined_name", {}, ScriptScope())
        assert "NameError" in str(excinfo.value)
        assert excinfo.value.value == "undefined_name"

    def test_counts_evaluations(self):
        bridge = ScriptBridge()
        scope = ScriptScope()
        for _ in range(3):
            bridge.evaluate("1", {}, scope)
        assert bridge.evaluations == 3

    @pytest.mark.skipif(not hasattr(signal, 'setitimer'), reason="needs interval timers")
    def test_timeout(self):
        if threading.current_thread() is not threading.main_thread():
            pytest.skip("timers only run on the main thread")
        bridge = ScriptBridge(timeout=0.05)
        with pytest.raises(ScriptTimeout):
            bridge.evaluate("while True: pass", {}, ScriptScope())

    def test_timeout_is_a_script_error(self):
        assert issubclass(ScriptTimeout, ScriptError)

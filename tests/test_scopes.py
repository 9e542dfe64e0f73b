"""Tests for the scope stack."""

import pytest

from varaudit.lint.scopes import Mode, ScopeStack, VarStatus
from varaudit.parsers import Token, TokenKind


def var_token(name, index=0, line=1):
    return Token(TokenKind.VARIABLE, name, line, index)


class TestFrames:
    def test_file_scope_is_relaxed(self):
        stack = ScopeStack()
        assert stack.depth == 1
        assert stack.current is stack.file_scope
        assert stack.current_mode is Mode.RELAXED

    def test_push_and_pop(self):
        stack = ScopeStack()
        scope = stack.push(Mode.STRICT, end_index=42)
        assert stack.current is scope
        assert stack.current_mode is Mode.STRICT
        assert scope.end_index == 42
        assert stack.scope(1) is stack.file_scope
        assert stack.pop() is scope
        assert stack.depth == 1

    def test_file_scope_cannot_be_popped(self):
        with pytest.raises(IndexError):
            ScopeStack().pop()

    def test_truncate(self):
        stack = ScopeStack()
        outer = stack.push(Mode.STRICT)
        inner = stack.push(Mode.STRICT)
        assert stack.truncate(1) == [outer, inner]
        assert stack.depth == 1


class TestVariables:
    def test_get_or_create(self):
        stack = ScopeStack()
        first = var_token("$a", 1, line=1)
        var = stack.get_or_create(first)
        assert var.status is VarStatus.UNKNOWN
        assert var.token is first
        assert stack.is_declared("$a")

        later = var_token("$a", 9, line=3)
        assert stack.get_or_create(later) is var
        assert var.token is later

    def test_depth_selects_outer_scope(self):
        stack = ScopeStack()
        stack.push(Mode.STRICT)
        stack.get_or_create(var_token("$outer"), depth=1)
        assert stack.is_declared("$outer", depth=1)
        assert not stack.is_declared("$outer")


class TestPendingSwitch:
    def test_applied_at_statement_end(self):
        stack = ScopeStack()
        stack.push(Mode.STRICT)
        trigger = Token(TokenKind.STRING, "extract", 2, 5)
        stack.schedule_relaxed_switch(trigger, effective_at=10)

        assert stack.apply_pending_switch(9) is None
        assert stack.current_mode is Mode.STRICT
        assert stack.apply_pending_switch(10) is trigger
        assert stack.current_mode is Mode.RELAXED
        assert stack.apply_pending_switch(11) is None

    def test_later_trigger_replaces_earlier(self):
        stack = ScopeStack()
        stack.push(Mode.STRICT)
        first = Token(TokenKind.STRING, "extract", 2, 5)
        second = Token(TokenKind.INCLUDE, "include", 3, 12)
        stack.schedule_relaxed_switch(first, effective_at=20)
        stack.schedule_relaxed_switch(second, effective_at=15)
        assert stack.apply_pending_switch(15) is second

    def test_no_notice_when_already_relaxed(self):
        stack = ScopeStack()
        stack.schedule_relaxed_switch(Token(TokenKind.EVAL, "eval", 1, 1), effective_at=3)
        assert stack.apply_pending_switch(3) is None
        assert stack.current_mode is Mode.RELAXED

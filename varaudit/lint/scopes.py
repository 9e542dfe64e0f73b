"""Scope stack with Strict/Relaxed modes and deferred mode switching.

    <?php
        include "foo.php";          // relaxed from here: nobody knows what foo.php defines
        if (isset($x)) ...          // relaxed mode: $x becomes known
        function bar($a, $b) {      // strict mode: new scope
            if (isset($y)) ...;     // error, $y can't exist here
            extract($a);            // relaxed mode after this statement
            if (empty($z)) ...      // fine, relaxed
        }

The file scope starts relaxed, function scopes start strict. A switch to
relaxed mode is scheduled by the handler that sees the trigger and applied
once the scanner reaches the end of the triggering statement.
"""

from dataclasses import dataclass, field
from enum import Enum

from varaudit.parsers import Token


class VarStatus(Enum):
    UNKNOWN = 0
    ASSIGNED = 1
    USED = 2


class Mode(Enum):
    STRICT = "strict"
    RELAXED = "relaxed"


@dataclass
class Variable:
    """Definedness state of one variable name within one scope."""

    name: str
    token: Token
    status: VarStatus = VarStatus.UNKNOWN
    is_ref_param: bool = False
    is_catch_var: bool = False
    is_global: bool = False


@dataclass
class Scope:
    """One frame of the scope stack.

    end_index is the token index at which the frame is dropped; the file
    scope never ends (-1).
    """

    mode: Mode
    end_index: int = -1
    vars: dict[str, Variable] = field(default_factory=dict)
    var_types: dict[str, str] = field(default_factory=dict)


@dataclass
class _PendingSwitch:
    trigger: Token
    effective_at: int


class ScopeStack:
    """Stack of scopes; the file scope is always at the bottom."""

    def __init__(self):
        self._frames: list[Scope] = [Scope(Mode.RELAXED)]
        self._pending: _PendingSwitch | None = None

    def push(self, mode: Mode, end_index: int = -1) -> Scope:
        scope = Scope(mode, end_index)
        self._frames.append(scope)
        return scope

    def pop(self) -> Scope:
        if len(self._frames) == 1:
            raise IndexError("cannot pop the file scope")
        return self._frames.pop()

    def truncate(self, depth: int) -> list[Scope]:
        """Drop every frame above depth; returns the dropped frames, innermost last."""
        dropped = self._frames[depth:]
        del self._frames[depth:]
        return dropped

    @property
    def depth(self) -> int:
        return len(self._frames)

    @property
    def current(self) -> Scope:
        return self._frames[-1]

    @property
    def current_mode(self) -> Mode:
        return self._frames[-1].mode

    @property
    def file_scope(self) -> Scope:
        return self._frames[0]

    def scope(self, depth: int = 0) -> Scope:
        """Scope `depth` levels above the innermost one (0 = current)."""
        return self._frames[-1 - depth]

    def get_or_create(self, token: Token, depth: int = 0) -> Variable:
        """Variable for the token's name, created Unknown if missing.

        The variable's most-recent occurrence is updated either way.
        """
        scope = self.scope(depth)
        var = scope.vars.get(token.text)
        if var is None:
            var = Variable(token.text, token)
            scope.vars[token.text] = var
        else:
            var.token = token
        return var

    def is_declared(self, name: str, depth: int = 0) -> bool:
        return name in self.scope(depth).vars

    def schedule_relaxed_switch(self, trigger: Token, effective_at: int) -> None:
        # single slot: a later trigger replaces an unapplied earlier one
        self._pending = _PendingSwitch(trigger, effective_at)

    def apply_pending_switch(self, index: int) -> Token | None:
        """Apply a due switch; returns the trigger if the current scope just became relaxed."""
        pending = self._pending
        if pending is None or index < pending.effective_at:
            return None
        self._pending = None
        scope = self.current
        if scope.mode is Mode.RELAXED:
            return None
        scope.mode = Mode.RELAXED
        return pending.trigger

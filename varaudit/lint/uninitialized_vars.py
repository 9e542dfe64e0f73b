"""Lint: use of possibly-uninitialized variables.

A variable is "known" in its scope once one of these is seen:

     1. assignment:             $foo = expr, $foo[...] = expr, $foo ??= expr
     2. loop binding:           foreach ($list as $key => $foo)
     3. function parameter:     function bar($foo), closure capture use ($foo)
     4. catch:                  catch (Exception $foo)
     5. autovivification:       $foo[...]++, $count++, $text .= ...
     6. superglobals:           $_GET, $_SERVER, ...
     7. destructuring:          list($foo) = ..., [$foo, $bar] = ...
     8. import:                 global $foo; static $foo;
     9. by-reference argument:  preg_match($re, $text, $foo)
    10. relaxed mode only:      isset($foo), empty($foo), /** @var $foo */

Functions with by-reference parameters, by mode:

    strict mode:
        known_function_that_assigns_variable($unknown_var);         // ok
        known_function_that_doesnt_assign_variable($unknown_var);  // error
        unknown_function($unknown_var);                             // warning
        unknown_function($unknown_var_in_expression * 2);           // error
    relaxed mode:
        known_function_that_assigns_variable($unknown_var);         // ok
        known_function_that_doesnt_assign_variable($unknown_var);  // warning
        unknown_function($unknown_var);                             // warning
        unknown_function($unknown_var_in_expression * 2);           // warning
"""

import re

from varaudit.config_runtime import LintConfig
from varaudit.exceptions import AnalysisError
from varaudit.parsers import PhpFile, Token, TokenKind
from varaudit.utils.logging import logger

from .base import (
    MSG_ARRAY_AUTOVIVIFICATION,
    MSG_EMPTY_DECLARATION,
    MSG_NON_VARIABLE_BY_REF,
    MSG_POSSIBLY_UNDEFINED,
    MSG_RELAXED_MODE,
    MSG_SCALAR_AUTOVIVIFICATION,
    MSG_UNDEFINED,
    MSG_VALUE_NOT_USED,
    CodeDefect,
    LintPlugin,
    Severity,
)
from .call_names import resolve_call_name
from .doc_comments import parse_doc_comment
from .scopes import Mode, Scope, ScopeStack, Variable, VarStatus
from .signatures import (
    SignatureTable,
    build_configured_signatures,
    collect_file_signatures,
    get_builtin_signatures,
)

SUPERGLOBALS = frozenset(
    {
        "$GLOBALS",
        "$_REQUEST",
        "$_GET",
        "$_POST",
        "$_FILES",
        "$_ENV",
        "$_SERVER",
        "$_COOKIE",
        "$_SESSION",
        "$HTTP_RAW_POST_DATA",
        "$http_response_header",
        "$php_errormsg",
        # context of $this is checked elsewhere; here it's always defined
        "$this",
    }
)

# defined in the file scope of CLI scripts only
DEFAULT_GLOBALS = frozenset({"$argv", "$argc"})

_INCLUDE_KINDS = frozenset(
    {TokenKind.INCLUDE, TokenKind.INCLUDE_ONCE, TokenKind.REQUIRE, TokenKind.REQUIRE_ONCE}
)
_LOOP_KINDS = frozenset({TokenKind.FOR, TokenKind.FOREACH, TokenKind.WHILE, TokenKind.DO})
_LOOP_END_KINDS = {
    TokenKind.FOR: TokenKind.ENDFOR,
    TokenKind.FOREACH: TokenKind.ENDFOREACH,
    TokenKind.WHILE: TokenKind.ENDWHILE,
}
_OBJECT_OPERATORS = frozenset({TokenKind.OBJECT_OPERATOR, TokenKind.NULLSAFE_OBJECT_OPERATOR})
_MEMBER_ACCESS = _OBJECT_OPERATORS | {TokenKind.DOUBLE_COLON}
_UPDATE_KINDS = frozenset({TokenKind.CONCAT_EQUAL, TokenKind.PLUS_EQUAL})
_INC_DEC_KINDS = frozenset({TokenKind.INC, TokenKind.DEC})
_CLASS_REF_KINDS = frozenset({TokenKind.STRING, TokenKind.NS_SEPARATOR, TokenKind.STATIC})
_TYPE_KINDS = frozenset({TokenKind.STRING, TokenKind.NS_SEPARATOR})

# $name = ... inside a literal passed to eval
_EVAL_ASSIGNMENT_RE = re.compile(r"\\?\$([A-Za-z_\x80-\uffff][\w\x80-\uffff]*)\s*=(?![=>])")
# label of a named argument; reserved words are allowed too
_IDENTIFIER_RE = re.compile(r"[A-Za-z_\x80-\uffff][\w\x80-\uffff]*")


class UninitializedVarsLint(LintPlugin):
    """Reports reads of variables that no statement in scope could have set."""

    report_id = "lint-uninitialized-vars"
    report_name = "Lint (use of uninitialized vars)"

    def __init__(self, config: LintConfig | None = None):
        super().__init__()
        config = config or LintConfig()
        self.check_global_scope = config.check_global_scope
        self.known_globals = DEFAULT_GLOBALS | {
            name if name.startswith("$") else f"${name}" for name in config.global_vars
        }
        self.configured_signatures = build_configured_signatures(
            config.init_by_reference, config.function_signatures
        )
        self.builtin_signatures = get_builtin_signatures()

    def get_report(self, pf: PhpFile) -> list[CodeDefect]:
        if not self.supports(pf):
            return []
        signatures = SignatureTable(
            collect_file_signatures(pf), self.configured_signatures, self.builtin_signatures
        )
        resolver = VariableResolver(
            pf,
            signatures,
            report_level=self.report_level,
            check_global_scope=self.check_global_scope,
            known_globals=self.known_globals,
        )
        return resolver.run()


class VariableResolver:
    """Single left-to-right pass over one file's tokens.

    All per-file state lives here; one instance analyzes one file once.
    """

    def __init__(
        self,
        pf: PhpFile,
        signatures: SignatureTable,
        report_level: Severity = Severity.WARNING,
        check_global_scope: bool = True,
        known_globals: frozenset[str] = DEFAULT_GLOBALS,
    ):
        self.pf = pf
        self.tokens = pf.tokens
        self.signatures = signatures
        self.report_level = report_level
        self.check_global_scope = check_global_scope
        self.known_globals = known_globals

        self.scopes = ScopeStack()
        self.report: list[CodeDefect] = []
        # tokens whose occurrence was fully handled by a construct handler
        self._consumed: set[int] = set()
        self._annotations: dict[str, str | None] = {}
        self._annotations_end = -1

    # ------------------------------------------------------------------
    # driver
    # ------------------------------------------------------------------

    def run(self) -> list[CodeDefect]:
        i = 0
        count = len(self.tokens)
        while i < count:
            i = self._process(i) + 1

        self._drop_finished_scopes(count)
        if self.scopes.depth != 1:
            raise AnalysisError(
                f"internal error: size of stack = {self.scopes.depth}, {self.pf.filename}"
            )

        for name, var in self.scopes.file_scope.vars.items():
            if var.status is not VarStatus.USED and name not in SUPERGLOBALS:
                self._add_defect(var.token, Severity.NOTICE, MSG_VALUE_NOT_USED)

        logger.debug(
            "{file}: {count} defects", file=self.pf.filename, count=len(self.report)
        )
        return self.report

    def _process(self, i: int) -> int:
        """Handle the token at i; returns the index of the last token consumed."""
        t = self.tokens[i]

        trigger = self.scopes.apply_pending_switch(i)
        if trigger is not None:
            self._add_defect(trigger, Severity.NOTICE, MSG_RELAXED_MODE)
        self._drop_finished_scopes(i)
        if i > self._annotations_end:
            self._annotations = {}

        kind = t.kind
        if kind is TokenKind.DOC_COMMENT:
            self._start_annotation(t)
            return i
        if t.is_trivial:
            return i

        if kind is TokenKind.VARIABLE:
            return self._handle_variable(t)
        if kind is TokenKind.STRING:
            return self._handle_identifier(t)
        if kind is TokenKind.ONE_CHAR:
            if t.text == "$":
                self._schedule_variable_variable(t)
            elif t.text == "[":
                self._handle_short_list(t)
            return i
        if kind is TokenKind.STRING_VARNAME:
            # "${name}" reads $name
            self._read(Token(TokenKind.VARIABLE, f"${t.text}", t.line, t.index))
            return i
        if kind in _INCLUDE_KINDS:
            end = self.pf.statement_end(i)
            if end is not None:
                self.scopes.schedule_relaxed_switch(t, end.index)
            return i
        if kind is TokenKind.EVAL:
            return self._handle_eval(t)
        if kind in _LOOP_KINDS:
            return self._handle_loop(t)
        if kind is TokenKind.FUNCTION:
            return self._handle_function(t)
        if kind is TokenKind.FN:
            return self._handle_arrow_function(t)
        if kind is TokenKind.CATCH:
            return self._handle_catch(t)
        if kind is TokenKind.LIST:
            return self._handle_list(t)
        if kind is TokenKind.GLOBAL:
            return self._handle_global(t)
        if kind is TokenKind.STATIC:
            return self._handle_static(t)
        if kind in (TokenKind.ISSET, TokenKind.EMPTY):
            return self._handle_isset(t)
        return i

    def _drop_finished_scopes(self, index: int) -> None:
        stack = self.scopes
        keep = stack.depth
        # innermost frames end first
        while keep > 1 and index >= stack.scope(stack.depth - keep).end_index:
            keep -= 1
        if keep < stack.depth:
            stack.truncate(keep)

    # ------------------------------------------------------------------
    # defects and variable state
    # ------------------------------------------------------------------

    def _add_defect(self, token: Token, severity: Severity, message: str) -> None:
        if severity >= self.report_level:
            self.report.append(CodeDefect(token, severity, message))

    def _is_known(self, name: str, depth: int = 0) -> bool:
        if name in SUPERGLOBALS:
            return True
        if self.scopes.depth - depth == 1 and name in self.known_globals:
            return True
        return self.scopes.is_declared(name, depth)

    def _check_var(
        self, token: Token, force_warning: bool = False, depth: int = 0, create: bool = True
    ) -> bool:
        """Read check: True if known (and then marked used), else report a defect.

        A missing variable is created as assigned so repeated reads aren't
        reported again.
        """
        name = token.text
        if name in SUPERGLOBALS:
            return True
        if self.scopes.depth - depth == 1 and name in self.known_globals:
            return True

        scope = self.scopes.scope(depth)
        var = scope.vars.get(name)
        if var is not None:
            var.status = VarStatus.USED
            return True

        if scope.mode is Mode.RELAXED or force_warning:
            self._add_defect(token, Severity.WARNING, MSG_POSSIBLY_UNDEFINED)
        else:
            self._add_defect(token, Severity.ERROR, MSG_UNDEFINED)
        if create:
            self._assign(token, depth)
        return False

    def _assign(self, token: Token, depth: int = 0) -> Variable:
        var = self.scopes.get_or_create(token, depth)
        var.status = VarStatus.ASSIGNED
        return var

    def _declare(self, token: Token, depth: int = 0) -> None:
        """Make a name known without touching the status of an existing variable."""
        if not self.scopes.is_declared(token.text, depth):
            self._assign(token, depth)

    def _read(self, token: Token) -> None:
        if token.index in self._consumed:
            return
        if not self.check_global_scope and self.scopes.depth == 1:
            return
        self._check_var(token)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _next(self, token: Token) -> Token | None:
        return self.pf.next_ns(token.index)

    def _prev(self, token: Token) -> Token | None:
        return self.pf.prev_ns(token.index)

    def _expect(self, token: Token | None, char: str, context: str, anchor: Token) -> Token:
        if token is None or not token.is_char(char):
            raise AnalysisError(
                f"Invalid {context}: '{char}' expected, found {token.text if token else 'end of file'!r}",
                token or anchor,
            )
        return token

    def _skip_indexes(self, token: Token | None) -> tuple[Token | None, bool]:
        """Skip `[...]` groups following a variable; returns (next token, any skipped)."""
        skipped = False
        while token is not None and token.is_char("["):
            token = self.pf.next_ns(self.pf.paired_bracket(token.index))
            skipped = True
        return token, skipped

    def _in_class_body(self, index: int) -> bool:
        """Directly inside a class body, outside of any method (property declarations)."""
        cls = self.pf.class_at(index)
        if cls is None:
            return False
        method = self.pf.method_at(index)
        return method is None or method.keyword_index < cls.body_start

    def _start_annotation(self, t: Token) -> None:
        annotations = parse_doc_comment(t.text)
        if not annotations:
            return
        end = self.pf.statement_end(t.index)
        self._annotations = annotations
        self._annotations_end = end.index if end is not None else len(self.tokens)

    # ------------------------------------------------------------------
    # construct handlers
    # ------------------------------------------------------------------

    def _handle_variable(self, t: Token) -> int:
        i = t.index
        # property declarations: public $foo; private static $bar = 1; var $baz;
        if self._in_class_body(i):
            return i

        p = self._prev(t)
        # static properties: Foo::$bar, self::$baz
        if p is not None and p.kind is TokenKind.DOUBLE_COLON:
            return i

        if t.text in self._annotations:
            self._apply_annotation(t)

        # $$name and $obj->$name only read $name
        if p is not None and (p.is_char("$") or p.kind in _OBJECT_OPERATORS):
            self._read(t)
            return i

        n, is_array = self._skip_indexes(self._next(t))

        if n is not None and n.is_char("="):
            if is_array and not self._is_known(t.text):
                self._add_defect(t, Severity.WARNING, MSG_ARRAY_AUTOVIVIFICATION)
            self._assign(t)
            return i

        if n is not None and n.kind is TokenKind.COALESCE_EQUAL:
            if self._is_known(t.text):
                self._check_var(t)
            else:
                self._assign(t)
            return i

        if (
            n is not None
            and (n.kind in _INC_DEC_KINDS or n.kind in _UPDATE_KINDS)
            or p is not None
            and p.kind in _INC_DEC_KINDS
        ):
            if not self._is_known(t.text):
                message = MSG_ARRAY_AUTOVIVIFICATION if is_array else MSG_SCALAR_AUTOVIVIFICATION
                self._add_defect(t, Severity.WARNING, message)
                self._assign(t)
                return i

        if n is not None and n.is_char(";") and not is_array:
            if p is not None and p.is_char(";", "{"):
                # declaration without value: $foo;
                self._add_defect(t, Severity.NOTICE, MSG_EMPTY_DECLARATION)
                self._assign(t)
                return i

        self._read(t)
        return i

    def _apply_annotation(self, t: Token) -> None:
        scope = self.scopes.current
        type_name = self._annotations[t.text]
        if type_name:
            scope.var_types[t.text] = type_name
        if scope.mode is Mode.RELAXED:
            self._declare(t)

    def _schedule_variable_variable(self, t: Token) -> None:
        """$$name = ..., $$name[...] = ..., ${expr} = ... switch to relaxed mode."""
        n = self._next(t)
        if n is None:
            return
        if n.kind is TokenKind.VARIABLE:
            target = n
        elif n.is_char("{"):
            target = self.tokens[self.pf.paired_bracket(n.index)]
        else:
            return
        nn, _ = self._skip_indexes(self._next(target))
        if nn is not None and nn.is_char("="):
            end = self.pf.statement_end(n.index)
            self.scopes.schedule_relaxed_switch(n, end.index if end else len(self.tokens))

    def _handle_identifier(self, t: Token) -> int:
        i = t.index
        n = self._next(t)
        if n is None or not n.is_char("("):
            return i
        p = self._prev(t)
        if p is not None and p.kind is TokenKind.FUNCTION:
            return i

        is_plain_call = p is None or p.kind not in _MEMBER_ACCESS
        if is_plain_call and t.text.lower() == "extract":
            # everything extract() defines is unknown from the next statement on
            end = self.pf.statement_end(i)
            self.scopes.schedule_relaxed_switch(t, end.index if end else len(self.tokens))

        self._handle_call(t, n)
        return i

    def _handle_call(self, t: Token, paren: Token) -> None:
        positional, named = self._split_arguments(paren)
        candidates = resolve_call_name(self.pf, t, self.scopes.current)
        sig = self.signatures.lookup(candidates)

        if sig is None:
            for arg in positional + named:
                self._pass_to_unknown(arg)
            return

        if not sig.ref_positions:
            return

        # parameter names aren't recorded, so a named argument may be any of them
        for arg in named:
            self._pass_to_unknown(arg)

        for pos in sorted(sig.ref_positions):
            if pos >= len(positional):
                break
            arg = positional[pos]
            if arg.is_char("&"):
                arg = self._next(arg)
            if arg is None or arg.kind is TokenKind.ELLIPSIS:
                continue

            if arg.kind is TokenKind.VARIABLE:
                n, is_array = self._skip_indexes(self._next(arg))
                if n is None or not n.is_char(",", ")"):
                    # $foo->bar: an lvalue, $foo itself is read
                    continue
                if sig.does_not_initialize:
                    if is_array:
                        continue
                    self._check_var(arg)
                else:
                    # preg_match($re, $text, $matches['all']) creates $matches
                    self._assign(arg)
                self._consumed.add(arg.index)
            elif not self._is_class_variable(arg):
                self._add_defect(arg, Severity.ERROR, MSG_NON_VARIABLE_BY_REF)

    def _split_arguments(self, paren: Token) -> tuple[list[Token], list[Token]]:
        """First tokens of the positional arguments, and values of the named ones.

        foo($a, flags: $b) gives ([$a], [$b]).
        """
        positional, named = [], []
        for arg in self.pf.extract_list(paren.index + 1):
            n = self._next(arg)
            if _IDENTIFIER_RE.fullmatch(arg.text) and n is not None and n.is_char(":"):
                value = self._next(n)
                if value is not None:
                    named.append(value)
            else:
                positional.append(arg)
        return positional, named

    def _pass_to_unknown(self, arg: Token) -> None:
        """A standalone variable passed to an unknown callee may be initialized by it."""
        if arg.is_char("&"):
            arg = self._next(arg)
        if arg is None or arg.kind is not TokenKind.VARIABLE or not self._is_standalone(arg):
            return
        if not (self.scopes.depth == 1 and not self.check_global_scope):
            self._check_var(arg, force_warning=True)
        self._consumed.add(arg.index)

    def _is_standalone(self, arg: Token) -> bool:
        n = self._next(arg)
        return n is not None and n.is_char(",", ")")

    def _is_class_variable(self, token: Token) -> bool:
        """Foo::$bar, \\Some\\Foo::$bar, static::$bar"""
        while token is not None and token.kind in _CLASS_REF_KINDS:
            token = self._next(token)
        if token is None or token.kind is not TokenKind.DOUBLE_COLON:
            return False
        token = self._next(token)
        return token is not None and token.kind is TokenKind.VARIABLE

    def _handle_eval(self, t: Token) -> int:
        end = self.pf.statement_end(t.index)
        self.scopes.schedule_relaxed_switch(t, end.index if end else len(self.tokens))

        n = self._next(t)
        if n is not None and n.is_char("("):
            n = self._next(n)
        if n is not None and n.kind is TokenKind.CONSTANT_ENCAPSED_STRING:
            for name in _EVAL_ASSIGNMENT_RE.findall(n.text):
                self._declare(Token(TokenKind.VARIABLE, f"${name}", n.line, n.index))
        return t.index

    # --- loops ------------------------------------------------------------

    def _handle_loop(self, t: Token) -> int:
        """Pre-declare everything plainly assigned in the loop, then bind foreach targets.

        Loops are not simulated twice; a read that precedes the assignment
        within the loop body is accepted because of later iterations.
        """
        end = self._loop_end(t)
        if end is not None:
            self._predeclare_loop_assignments(t, end)
        if t.kind is TokenKind.FOREACH:
            self._bind_foreach(t)
        return t.index

    def _loop_end(self, t: Token) -> int | None:
        pf = self.pf
        if t.kind is TokenKind.DO:
            body = self._next(t)
            if body is None:
                return None
            end = pf.paired_bracket(body.index) if body.is_char("{") else None
            if end is None:
                stmt = pf.statement_end(t.index)
                end = stmt.index if stmt else None
            if end is None:
                return None
            tail = pf.next_ns(end)
            if tail is not None and tail.kind is TokenKind.WHILE:
                paren = self._next(tail)
                if paren is not None and paren.is_char("("):
                    return pf.paired_bracket(paren.index)
            return end

        paren = self._next(t)
        if paren is None or not paren.is_char("("):
            return None
        close = pf.paired_bracket(paren.index)
        n = pf.next_ns(close)
        if n is None:
            return close
        if n.is_char("{"):
            return pf.paired_bracket(n.index)
        if n.is_char(";"):
            return n.index
        if n.is_char(":"):
            return self._alternative_syntax_end(t)
        stmt = pf.statement_end(close)
        return stmt.index if stmt is not None else None

    def _alternative_syntax_end(self, t: Token) -> int | None:
        """Index of the endfor/endforeach/endwhile closing `t`."""
        end_kind = _LOOP_END_KINDS[t.kind]
        depth = 0
        for token in self.tokens[t.index :]:
            if token.kind is t.kind:
                paren = self.pf.next_ns(token.index)
                if paren is not None and paren.is_char("("):
                    after = self.pf.next_ns(self.pf.paired_bracket(paren.index))
                    if after is not None and after.is_char(":"):
                        depth += 1
            elif token.kind is end_kind:
                depth -= 1
                if depth == 0:
                    return token.index
        return None

    def _predeclare_loop_assignments(self, t: Token, end: int) -> None:
        owner = self.pf.method_at(t.index)
        for token in self.tokens[t.index : end + 1]:
            if token.kind is not TokenKind.VARIABLE:
                continue
            if self.pf.method_at(token.index) is not owner or self._in_class_body(token.index):
                continue
            p = self.pf.prev_ns(token.index)
            n = self.pf.next_ns(token.index)
            if p is not None and (p.is_char("$") or p.kind in _MEMBER_ACCESS):
                continue
            if (n is not None and n.is_char("=")) or self._is_foreach_target(token, p):
                self._declare(token)

    def _is_foreach_target(self, token: Token, p: Token | None) -> bool:
        if p is not None and p.is_char("&"):
            p = self.pf.prev_ns(p.index)
        if p is None:
            return False
        if p.kind is TokenKind.AS:
            return True
        if p.kind is TokenKind.DOUBLE_ARROW:
            key = self.pf.prev_ns(p.index)
            if key is not None and key.kind is TokenKind.VARIABLE:
                before = self.pf.prev_ns(key.index)
                return before is not None and before.kind is TokenKind.AS
        return False

    def _bind_foreach(self, t: Token) -> None:
        paren = self._expect(self._next(t), "(", "foreach", t)
        close = self.pf.paired_bracket(paren.index)

        token = self._next(paren)
        while token is not None and token.index < close and token.kind is not TokenKind.AS:
            position = token.index
            if self.pf.is_opening_bracket(position):
                position = self.pf.paired_bracket(position)
            token = self.pf.next_ns(position)
        if token is None or token.kind is not TokenKind.AS:
            raise AnalysisError("Invalid foreach: 'as' expected", t)

        target = self._bind_foreach_target(self._next(token))
        if target is not None and target.kind is TokenKind.DOUBLE_ARROW:
            self._bind_foreach_target(self._next(target))

    def _bind_foreach_target(self, token: Token | None) -> Token | None:
        """Bind one `as` target; returns the token following it."""
        if token is not None and token.is_char("&"):
            token = self._next(token)
        if token is None:
            return None

        if token.kind is TokenKind.VARIABLE:
            n = self._next(token)
            if n is not None and (n.is_char(")") or n.kind is TokenKind.DOUBLE_ARROW):
                self._assign(token)
                self._consumed.add(token.index)
            # otherwise an lvalue like $this->vars['x'], scanned as a read
            return n

        if token.kind is TokenKind.LIST or token.is_char("["):
            opening = self._next(token) if token.kind is TokenKind.LIST else token
            if opening is None or not opening.is_char("[", "("):
                return opening
            close = self.pf.paired_bracket(opening.index)
            self._bind_destructuring(opening.index, close)
            return self.pf.next_ns(close)
        return self._next(token)

    # --- destructuring ----------------------------------------------------

    def _bind_destructuring(self, opening: int, close: int) -> None:
        """Mark every variable slot of list(...) / [...] between the brackets as assigned.

        A slot may be indexed, list($rows[$i], $b), which autovivifies the array.
        """
        position = opening + 1
        while position < close:
            token = self.tokens[position]
            position += 1
            if token.is_char("[", "(") and self._follows_operand(token):
                # index or call: $rows[$i], $obj->get($i)
                position = self.pf.paired_bracket(token.index) + 1
                continue
            if token.kind is not TokenKind.VARIABLE:
                continue
            p = self.pf.prev_ns(token.index)
            if p is not None and p.is_char("&"):
                p = self.pf.prev_ns(p.index)
            if p is None or not (p.is_char("(", "[", ",") or p.kind is TokenKind.DOUBLE_ARROW):
                continue
            n, is_array = self._skip_indexes(self.pf.next_ns(token.index))
            if n is None or not n.is_char(",", ")", "]"):
                continue
            if is_array and not self._is_known(token.text):
                self._add_defect(token, Severity.WARNING, MSG_ARRAY_AUTOVIVIFICATION)
            self._assign(token)
            self._consumed.add(token.index)

    def _follows_operand(self, token: Token) -> bool:
        p = self._prev(token)
        return p is not None and (
            p.kind in (TokenKind.VARIABLE, TokenKind.STRING, TokenKind.CONSTANT_ENCAPSED_STRING)
            or p.is_char(")", "]", "}")
        )

    def _handle_list(self, t: Token) -> int:
        paren = self._expect(self._next(t), "(", "list declaration", t)
        self._bind_destructuring(paren.index, self.pf.paired_bracket(paren.index))
        return t.index

    def _handle_short_list(self, t: Token) -> None:
        """[$a, $b] = ...; but not $x[...] = ... (indexing)."""
        if self._follows_operand(t):
            return
        close = self.pf.paired_bracket(t.index)
        n = self.pf.next_ns(close)
        if n is not None and n.is_char("="):
            self._bind_destructuring(t.index, close)

    # --- functions --------------------------------------------------------

    def _handle_function(self, t: Token) -> int:
        """function &name($a, &$b = 1) { ... } / function ($x) use ($y, &$z): T { ... }"""
        p = self._prev(t)
        if p is not None and p.kind is TokenKind.USE:
            # use function Foo\bar;
            return t.index

        outer_mode = self.scopes.current_mode
        self.scopes.push(Mode.STRICT)

        n = self._next(t)
        if n is not None and n.is_char("&"):
            n = self._next(n)
        is_closure = True
        if n is not None and n.kind is TokenKind.STRING:
            is_closure = False
            n = self._next(n)

        paren = self._expect(n, "(", "function declaration", t)
        self._declare_parameters(paren)
        n = self.pf.next_ns(self.pf.paired_bracket(paren.index))

        if is_closure and n is not None and n.kind is TokenKind.USE:
            use_paren = self._expect(self._next(n), "(", "closure declaration", t)
            self._capture_variables(use_paren, outer_mode)
            n = self.pf.next_ns(self.pf.paired_bracket(use_paren.index))

        if n is not None and n.is_char(":"):
            # return type
            while n is not None and not n.is_char("{", ";"):
                position = n.index
                if n.is_char("("):
                    position = self.pf.paired_bracket(position)
                n = self.pf.next_ns(position)

        if n is not None and n.is_char(";"):
            # declaration only: abstract or interface method
            self.scopes.pop()
        elif n is not None and n.is_char("{"):
            self.scopes.current.end_index = self.pf.paired_bracket(n.index)
        else:
            raise AnalysisError(
                f"Invalid function declaration: {n.text if n else 'end of file'!r} found instead of '{{' or ';'",
                n or t,
            )
        return n.index

    def _declare_parameters(self, paren: Token) -> None:
        scope = self.scopes.current
        for first in self.pf.extract_list(paren.index + 1):
            param = self.pf.parameter_at(first)
            if param.variable is None:
                raise AnalysisError("Invalid function declaration: parameter expected", first)
            scope.vars[param.variable.text] = Variable(
                param.variable.text,
                param.variable,
                VarStatus.ASSIGNED,
                is_ref_param=param.is_ref,
            )

    def _capture_variables(self, paren: Token, outer_mode: Mode) -> None:
        """Closure `use (...)` list.

        By value: must exist in the enclosing scope. By reference: may be
        created by the closure, so it becomes known in both scopes.
        """
        for arg in self.pf.extract_list(paren.index + 1):
            by_ref = False
            if arg.is_char("&"):
                by_ref = True
                arg = self._next(arg)
            if arg is None or arg.kind is not TokenKind.VARIABLE:
                raise AnalysisError("Invalid closure declaration: variable expected", arg or paren)

            if by_ref:
                self._declare(arg, depth=1)
            else:
                self._check_var(arg, depth=1, create=False)
            var = self._assign(arg)
            var.is_ref_param = by_ref
            self._consumed.add(arg.index)

    def _handle_arrow_function(self, t: Token) -> int:
        """fn ($x) => expr: captures the whole enclosing scope by value."""
        outer = self.scopes.current

        n = self._next(t)
        if n is not None and n.is_char("&"):
            n = self._next(n)
        paren = self._expect(n, "(", "arrow function", t)

        n = self.pf.next_ns(self.pf.paired_bracket(paren.index))
        while n is not None and n.kind is not TokenKind.DOUBLE_ARROW:
            position = n.index
            if n.is_char("(", "{", ";"):
                if n.is_char(";"):
                    break
                position = self.pf.paired_bracket(position)
            n = self.pf.next_ns(position)
        if n is None or n.kind is not TokenKind.DOUBLE_ARROW:
            raise AnalysisError("Invalid arrow function: '=>' expected", t)

        scope: Scope = self.scopes.push(outer.mode, self._expression_end(n))
        scope.vars.update(outer.vars)
        scope.var_types.update(outer.var_types)
        self._declare_parameters(paren)
        return n.index

    def _expression_end(self, token: Token) -> int:
        """Index of the token terminating the expression that follows token."""
        n = self.pf.next_ns(token.index)
        while n is not None:
            if n.kind is TokenKind.CLOSE_TAG or n.is_char(";", ",", ")", "]", "}"):
                return n.index
            position = n.index
            if self.pf.is_opening_bracket(position):
                position = self.pf.paired_bracket(position)
            n = self.pf.next_ns(position)
        return len(self.tokens)

    # --- other statements -------------------------------------------------

    def _handle_catch(self, t: Token) -> int:
        """catch (Foo|\\Bar\\Baz $e) / catch (Foo)"""
        n = self._expect(self._next(t), "(", "catch", t)
        n = self._next(n)
        has_type = False
        while n is not None and (n.kind in _TYPE_KINDS or n.is_char("|")):
            has_type = True
            n = self._next(n)
        if not has_type:
            raise AnalysisError("No exception type found", n or t)

        if n is not None and n.kind is TokenKind.VARIABLE:
            var = self._assign(n)
            var.is_catch_var = True
            n = self._next(n)
        return self._expect(n, ")", "catch", t).index

    def _handle_global(self, t: Token) -> int:
        """global $foo, $bar; / global $$name; (relaxed mode afterwards)"""
        n = self._next(t)
        while True:
            if n is not None and n.kind is TokenKind.VARIABLE:
                var = self._assign(n)
                var.is_global = True
                n = self._next(n)
            elif n is not None and n.is_char("$"):
                holder = self._next(n)
                if holder is None or holder.kind is not TokenKind.VARIABLE:
                    raise AnalysisError("Invalid 'global' declaration", holder or n)
                self._check_var(holder)
                end = self.pf.statement_end(holder.index)
                self.scopes.schedule_relaxed_switch(holder, end.index if end else len(self.tokens))
                n = self._next(holder)
            else:
                raise AnalysisError("Invalid 'global' declaration", n or t)

            if n is not None and n.is_char(","):
                n = self._next(n)
                continue
            if n is not None and (n.is_char(";") or n.kind is TokenKind.CLOSE_TAG):
                return n.index
            raise AnalysisError("Invalid 'global' declaration", n or t)

    def _handle_static(self, t: Token) -> int:
        """static $foo, $bar = 10; inside a function body.

        Other uses of the keyword (static::foo(), new static, instanceof
        static, static function) are not declarations.
        """
        i = t.index
        if self.pf.method_at(i) is None or self._in_class_body(i):
            return i
        n = self._next(t)
        p = self._prev(t)
        if n is None or n.kind is not TokenKind.VARIABLE:
            return i
        if p is not None and p.kind in (TokenKind.NEW, TokenKind.INSTANCEOF):
            return i

        for var in self.pf.extract_list(n.index, (",",), (";",)):
            if var.kind is not TokenKind.VARIABLE:
                raise AnalysisError("Invalid 'static' declaration", var)
            self._assign(var)
            self._consumed.add(var.index)
        # initializers are scanned as ordinary expressions
        return i

    def _handle_isset(self, t: Token) -> int:
        """isset($foo) / empty($foo) declare $foo in relaxed mode; strict mode reads it."""
        n = self._next(t)
        if n is None or not n.is_char("("):
            return t.index
        var = self._next(n)
        if var is None or var.kind is not TokenKind.VARIABLE:
            return t.index
        close = self._next(var)
        if close is None or not close.is_char(")"):
            return t.index
        if self.scopes.current_mode is Mode.RELAXED:
            self._declare(var)
            self._consumed.add(var.index)
        return t.index

"""
Kite Programming Language Parser
Tokenizer with exact source spans, recursive-descent statement parser and
precedence-climbing expression parser
"""

from typing import List, Dict, Any, Iterator, Optional
from dataclasses import dataclass
import re

from pyparsing import MatchFirst, ParserElement, Regex, one_of

from error_handling import (
    KiteLexError, KiteParseError,
    UNEXPECTED_CHAR, UNTERMINATED_STRING,
    UNEXPECTED_TOKEN, EXPECTED_TOKEN, NESTING_TOO_DEEP,
)
from semantics import (
    make_number_node, make_string_node, make_boolean_node, make_nil_node,
    make_identifier_node, make_assign_node, make_let_node, make_unary_node,
    make_binary_node, make_logical_node, make_call_node, make_function_def_node,
    make_block_node, make_if_node, make_while_node, make_return_node,
    make_break_node, make_continue_node, make_expression_stmt_node,
    make_program_node, desugar_for,
)


@dataclass(frozen=True)
class SourceSpan:
    """Source location: 0-based offsets (end exclusive), 1-based lines/columns"""
    filename: str
    start: int
    end: int
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    text: str = ""

    def __str__(self) -> str:
        if self.start_line == self.end_line:
            return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_col}"
        return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_line}:{self.end_col}"


@dataclass(frozen=True)
class Token:
    """Kite token with source information"""
    kind: str
    lexeme: str
    value: Any
    span: SourceSpan

    def __str__(self) -> str:
        return f"{self.kind}({self.lexeme!r})"


KEYWORDS = frozenset({
    'let', 'fn', 'if', 'else', 'while', 'for', 'return',
    'break', 'continue', 'true', 'false', 'nil',
})

# one_of puts longer operators ahead of their prefixes (== before =)
OPERATORS = ('==', '!=', '<=', '>=', '&&', '||', '=', '!', '<', '>', '+', '-', '*', '/', '%')
PUNCTUATION = ('(', ')', '{', '}', ',', ';')

TRIVIA_KINDS = frozenset({'WHITESPACE', 'COMMENT'})

STRING_ESCAPES = {
    'n': '\n', 't': '\t', 'r': '\r', '0': '\0', '"': '"', '\\': '\\'
}


def _tagged(kind: str, element: ParserElement) -> ParserElement:
    return element.set_parse_action(lambda t: (kind, t[0]))


def _classify_word(t):
    word = t[0]
    return ("KEYWORD" if word in KEYWORDS else "IDENTIFIER", word)


class KiteTokenizer:
    """Lazy Kite tokenizer; every character of the source belongs to exactly one token"""

    def __init__(self, filename: str = "<input>"):
        self.filename = filename
        self._setup_token_patterns()

    def _setup_token_patterns(self):
        """Setup all token patterns for Kite"""
        whitespace = _tagged("WHITESPACE", Regex(r'\s+'))
        comment = _tagged("COMMENT", Regex(r'//[^\n]*'))
        number = _tagged("NUMBER", Regex(r'\d+(?:\.\d*)?'))
        string = _tagged("STRING", Regex(r'"(?:[^"\\]|\\.)*"', flags=re.DOTALL))
        word = Regex(r'[A-Za-z_][A-Za-z0-9_]*').set_parse_action(_classify_word)
        operator = _tagged("OPERATOR", one_of(OPERATORS))
        punctuation = _tagged("PUNCTUATION", one_of(PUNCTUATION))

        # Comments must win over the '/' operator
        pattern = MatchFirst([whitespace, comment, number, string, word, operator, punctuation])
        # Match exactly at each offset: no implicit whitespace skipping, tabs kept
        pattern = pattern.leave_whitespace().parse_with_tabs()
        pattern.set_whitespace_chars("")
        self.token_pattern = pattern

    def tokens(self, text: str, include_trivia: bool = False) -> Iterator[Token]:
        """
        Yield tokens lazily, ending with a single EOF token. Re-invoking on the
        same text restarts from offset 0 and yields the identical sequence.
        Whitespace and comment tokens are only yielded when include_trivia is set.
        """
        pos, line, col = 0, 1, 1

        for matched, start, end in self.token_pattern.scan_string(text):
            if start != pos:
                self._raise_lex_error(text, pos, line, col)

            kind, lexeme = matched[0]
            span, line, col = self._span(text, start, end, line, col)
            pos = end

            if kind in TRIVIA_KINDS and not include_trivia:
                continue
            if kind == "NUMBER":
                value = float(lexeme)
            elif kind == "STRING":
                value = self._process_string_escapes(lexeme[1:-1])
            else:
                value = lexeme
            yield Token(kind, lexeme, value, span)

        if pos != len(text):
            self._raise_lex_error(text, pos, line, col)

        eof_span = SourceSpan(self.filename, pos, pos, line, col, line, col, "")
        yield Token("EOF", "", None, eof_span)

    def tokenize(self, text: str, include_trivia: bool = False) -> List[Token]:
        """Tokenize Kite source code into a list"""
        return list(self.tokens(text, include_trivia))

    def _span(self, text: str, start: int, end: int, line: int, col: int):
        """Build the span for text[start:end] and return the position after it"""
        lexeme = text[start:end]
        newlines = lexeme.count('\n')
        if newlines:
            end_line = line + newlines
            end_col = len(lexeme) - lexeme.rfind('\n')
        else:
            end_line = line
            end_col = col + len(lexeme)
        span = SourceSpan(self.filename, start, end, line, col, end_line, end_col, lexeme)
        return span, end_line, end_col

    def _raise_lex_error(self, text: str, pos: int, line: int, col: int):
        char = text[pos]
        span = SourceSpan(self.filename, pos, pos + 1, line, col, line, col + 1, char)
        if char == '"':
            raise KiteLexError("Unterminated string literal", UNTERMINATED_STRING, span,
                               got=repr(text[pos:pos + 10]))
        raise KiteLexError(f"Unexpected character {char!r}", UNEXPECTED_CHAR, span,
                           got=f"'{char}'")

    def _process_string_escapes(self, s: str) -> str:
        """Process escape sequences in strings"""
        result = []
        i = 0
        while i < len(s):
            if s[i] == '\\' and i + 1 < len(s):
                next_char = s[i + 1]
                if next_char in STRING_ESCAPES:
                    result.append(STRING_ESCAPES[next_char])
                else:
                    # Unknown escape, keep as-is
                    result.append(s[i:i + 2])
                i += 2
            else:
                result.append(s[i])
                i += 1

        return ''.join(result)


# Binding power of the binary operators, loosest first
BINARY_PRECEDENCE = {
    '||': 1,
    '&&': 2,
    '==': 3, '!=': 3,
    '<': 4, '<=': 4, '>': 4, '>=': 4,
    '+': 5, '-': 5,
    '*': 6, '/': 6, '%': 6,
}
LOGICAL_OPERATORS = frozenset({'&&', '||'})
UNARY_OPERATORS = frozenset({'!', '-'})


def describe_token(token: Token) -> str:
    """Human readable form of a token for error messages"""
    if token.kind == "EOF":
        return "end of input"
    return f"'{token.lexeme}'"


class KiteGrammar:
    """Recursive-descent Kite grammar over a lazily pulled token stream"""

    def __init__(self, debug: bool = False):
        self.debug = debug

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def parse_program(self, text: str, filename: str = "<input>") -> Dict:
        """Parse a complete program into a PROGRAM node"""
        self._reset(text, filename)
        start = self.current.span
        statements = []
        try:
            while not self._check("EOF"):
                statement = self.statement()
                if self.debug:
                    print(f"Parsed statement: {statement['type']}")
                statements.append(statement)
        except RecursionError:
            raise KiteParseError("Program is nested too deeply", NESTING_TOO_DEEP,
                                 self.current.span) from None
        return make_program_node(statements, self._span_from(start, self.current.span))

    def parse_expression(self, text: str, filename: str = "<input>") -> Dict:
        """Parse a single expression that must span the whole text"""
        self._reset(text, filename)
        try:
            expression = self.expression()
        except RecursionError:
            raise KiteParseError("Expression is nested too deeply", NESTING_TOO_DEEP,
                                 self.current.span) from None
        self._expect("EOF", None, "end of input")
        return expression

    # ------------------------------------------------------------------
    # Token cursor
    # ------------------------------------------------------------------

    def _reset(self, text: str, filename: str):
        self.source = text
        self.filename = filename
        self._tokens = KiteTokenizer(filename).tokens(text)
        self.previous: Optional[Token] = None
        self.current: Token = next(self._tokens)

    def _advance(self) -> Token:
        token = self.current
        if token.kind != "EOF":
            self.previous = token
            self.current = next(self._tokens)
        return token

    def _check(self, kind: str, lexeme: Optional[str] = None) -> bool:
        if self.current.kind != kind:
            return False
        return lexeme is None or self.current.lexeme == lexeme

    def _match(self, kind: str, lexeme: Optional[str] = None) -> Optional[Token]:
        if self._check(kind, lexeme):
            return self._advance()
        return None

    def _expect(self, kind: str, lexeme: Optional[str] = None, description: Optional[str] = None) -> Token:
        if self._check(kind, lexeme):
            return self._advance()
        expected = description or (f"'{lexeme}'" if lexeme else kind.lower())
        raise KiteParseError(
            f"Expected {expected} but found {describe_token(self.current)}",
            EXPECTED_TOKEN, self.current.span,
            expected=[expected], found=describe_token(self.current)
        )

    def _unexpected(self, expected: str) -> KiteParseError:
        return KiteParseError(
            f"Unexpected {describe_token(self.current)}, expected {expected}",
            UNEXPECTED_TOKEN, self.current.span,
            expected=[expected], found=describe_token(self.current)
        )

    def _span_from(self, start: SourceSpan, end: Optional[SourceSpan] = None) -> SourceSpan:
        """Span covering start through end (default: the last consumed token)"""
        if end is None:
            end = self.previous.span if self.previous else start
        return SourceSpan(
            self.filename, start.start, end.end,
            start.start_line, start.start_col, end.end_line, end.end_col,
            self.source[start.start:end.end]
        )

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def statement(self) -> Dict:
        token = self.current
        if token.kind == "KEYWORD":
            handler = {
                'let': self.let_statement,
                'fn': self.function_definition,
                'if': self.if_statement,
                'while': self.while_statement,
                'for': self.for_statement,
                'return': self.return_statement,
                'break': self.break_statement,
                'continue': self.continue_statement,
            }.get(token.lexeme)
            if handler is not None:
                return handler()
        if self._check("PUNCTUATION", "{"):
            return self.block()
        return self.expression_statement()

    def let_declaration(self) -> Dict:
        start = self._expect("KEYWORD", "let").span
        name = self._expect("IDENTIFIER", None, "variable name").lexeme
        self._expect("OPERATOR", "=")
        value = self.expression()
        return make_let_node(name, value, self._span_from(start))

    def let_statement(self) -> Dict:
        start = self.current.span
        declaration = self.let_declaration()
        self._expect("PUNCTUATION", ";")
        return make_let_node(declaration['value']['name'], declaration['value']['value'],
                             self._span_from(start))

    def function_definition(self) -> Dict:
        start = self._expect("KEYWORD", "fn").span
        name = self._expect("IDENTIFIER", None, "function name").lexeme
        self._expect("PUNCTUATION", "(")
        params: List[str] = []
        if not self._check("PUNCTUATION", ")"):
            while True:
                param = self._expect("IDENTIFIER", None, "parameter name")
                if param.lexeme in params:
                    raise KiteParseError(
                        f"Duplicate parameter '{param.lexeme}' in function '{name}'",
                        UNEXPECTED_TOKEN, param.span,
                        expected=["parameter name"], found=describe_token(param)
                    )
                params.append(param.lexeme)
                if not self._match("PUNCTUATION", ","):
                    break
        self._expect("PUNCTUATION", ")")
        body = self.block()
        return make_function_def_node(name, params, body, self._span_from(start))

    def if_statement(self) -> Dict:
        start = self._expect("KEYWORD", "if").span
        self._expect("PUNCTUATION", "(")
        condition = self.expression()
        self._expect("PUNCTUATION", ")")
        then_branch = self.statement()
        else_branch = None
        if self._match("KEYWORD", "else"):
            else_branch = self.statement()
        return make_if_node(condition, then_branch, else_branch, self._span_from(start))

    def while_statement(self) -> Dict:
        start = self._expect("KEYWORD", "while").span
        self._expect("PUNCTUATION", "(")
        condition = self.expression()
        self._expect("PUNCTUATION", ")")
        body = self.statement()
        return make_while_node(condition, body, None, self._span_from(start))

    def for_statement(self) -> Dict:
        start = self._expect("KEYWORD", "for").span
        self._expect("PUNCTUATION", "(")

        init = None
        if self._check("KEYWORD", "let"):
            init = self.let_declaration()
        elif not self._check("PUNCTUATION", ";"):
            init_start = self.current.span
            init = make_expression_stmt_node(self.expression(), self._span_from(init_start))
        self._expect("PUNCTUATION", ";")

        condition = None
        if not self._check("PUNCTUATION", ";"):
            condition = self.expression()
        self._expect("PUNCTUATION", ";")

        increment = None
        if not self._check("PUNCTUATION", ")"):
            increment = self.expression()
        self._expect("PUNCTUATION", ")")

        body = self.statement()
        return desugar_for(init, condition, increment, body, self._span_from(start))

    def return_statement(self) -> Dict:
        start = self._expect("KEYWORD", "return").span
        value = None
        if not self._check("PUNCTUATION", ";"):
            value = self.expression()
        self._expect("PUNCTUATION", ";")
        return make_return_node(value, self._span_from(start))

    def break_statement(self) -> Dict:
        start = self._expect("KEYWORD", "break").span
        self._expect("PUNCTUATION", ";")
        return make_break_node(self._span_from(start))

    def continue_statement(self) -> Dict:
        start = self._expect("KEYWORD", "continue").span
        self._expect("PUNCTUATION", ";")
        return make_continue_node(self._span_from(start))

    def block(self) -> Dict:
        start = self._expect("PUNCTUATION", "{").span
        statements = []
        while not self._check("PUNCTUATION", "}"):
            if self._check("EOF"):
                self._expect("PUNCTUATION", "}")
            statements.append(self.statement())
        self._expect("PUNCTUATION", "}")
        return make_block_node(statements, self._span_from(start))

    def expression_statement(self) -> Dict:
        start = self.current.span
        expression = self.expression()
        # The final statement of a program or block may omit its semicolon
        if not (self._check("EOF") or self._check("PUNCTUATION", "}")):
            self._expect("PUNCTUATION", ";")
        return make_expression_stmt_node(expression, self._span_from(start))

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def expression(self) -> Dict:
        return self.assignment()

    def assignment(self) -> Dict:
        start = self.current.span
        target = self.binary(1)
        if self._check("OPERATOR", "="):
            equals = self._advance()
            value = self.assignment()
            if target['type'] != "IDENTIFIER":
                raise KiteParseError(
                    "Invalid assignment target", UNEXPECTED_TOKEN, equals.span,
                    expected=["variable name before '='"], found="'='"
                )
            return make_assign_node(target['value'], value, self._span_from(start))
        return target

    def binary(self, min_precedence: int) -> Dict:
        """Precedence climbing over BINARY_PRECEDENCE; all binary levels are left-associative"""
        start = self.current.span
        left = self.unary()
        while self.current.kind == "OPERATOR":
            op = self.current.lexeme
            precedence = BINARY_PRECEDENCE.get(op)
            if precedence is None or precedence < min_precedence:
                break
            self._advance()
            right = self.binary(precedence + 1)
            span = self._span_from(start)
            if op in LOGICAL_OPERATORS:
                left = make_logical_node(op, left, right, span)
            else:
                left = make_binary_node(op, left, right, span)
        return left

    def unary(self) -> Dict:
        if self.current.kind == "OPERATOR" and self.current.lexeme in UNARY_OPERATORS:
            operator_token = self._advance()
            operand = self.unary()
            return make_unary_node(operator_token.lexeme, operand, self._span_from(operator_token.span))
        return self.call()

    def call(self) -> Dict:
        start = self.current.span
        expression = self.primary()
        while self._match("PUNCTUATION", "("):
            args = []
            if not self._check("PUNCTUATION", ")"):
                while True:
                    args.append(self.expression())
                    if not self._match("PUNCTUATION", ","):
                        break
            self._expect("PUNCTUATION", ")")
            expression = make_call_node(expression, args, self._span_from(start))
        return expression

    def primary(self) -> Dict:
        token = self.current
        if token.kind == "NUMBER":
            self._advance()
            return make_number_node(token.value, token.span)
        if token.kind == "STRING":
            self._advance()
            return make_string_node(token.value, token.span)
        if token.kind == "IDENTIFIER":
            self._advance()
            return make_identifier_node(token.lexeme, token.span)
        if token.kind == "KEYWORD" and token.lexeme in ('true', 'false'):
            self._advance()
            return make_boolean_node(token.lexeme == 'true', token.span)
        if token.kind == "KEYWORD" and token.lexeme == 'nil':
            self._advance()
            return make_nil_node(token.span)
        if self._match("PUNCTUATION", "("):
            expression = self.expression()
            self._expect("PUNCTUATION", ")")
            return expression
        raise self._unexpected("expression")


class KiteParser:
    """Main Kite parser combining tokenizer and grammar"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.grammar = KiteGrammar(debug)

    def parse_file(self, filepath: str) -> Dict:
        """Parse a Kite source file"""
        with open(filepath, 'r', encoding='utf-8') as f:
            content = f.read()
        return self.grammar.parse_program(content, filepath)

    def parse_string(self, text: str, filename: str = "<input>") -> Dict:
        """Parse Kite source code from string"""
        return self.grammar.parse_program(text, filename)

    def parse_expression(self, text: str, filename: str = "<input>") -> Dict:
        """Parse a single Kite expression"""
        return self.grammar.parse_expression(text, filename)

    def tokenize(self, text: str, filename: str = "<input>", include_trivia: bool = False) -> List[Token]:
        """Tokenize Kite source code"""
        tokenizer = KiteTokenizer(filename)
        return tokenizer.tokenize(text, include_trivia)


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> KiteParser:
    """Create a Kite parser"""
    return KiteParser(debug=debug)


def create_debug_parser() -> KiteParser:
    """Create a Kite parser with debug enabled"""
    return KiteParser(debug=True)


# Utility functions for working with the AST
def iter_child_nodes(node: Dict) -> Iterator[Dict]:
    """Yield the direct child nodes of an AST node"""
    value = node['value']
    if isinstance(value, dict) and 'type' in value and 'span' in value:
        yield value
    elif isinstance(value, dict):
        for field_value in value.values():
            if isinstance(field_value, dict):
                yield field_value
            elif isinstance(field_value, tuple):
                for item in field_value:
                    if isinstance(item, dict):
                        yield item


def find_nodes_by_type(ast: Dict, node_type: str) -> List[Dict]:
    """Find all nodes of a specific type in the AST"""
    result = []

    def search(node: Dict):
        if node['type'] == node_type:
            result.append(node)
        for child in iter_child_nodes(node):
            search(child)

    search(ast)
    return result


def _leaf_value(node: Dict) -> Any:
    """Non-node payload of a node: a literal, a name, an operator, parameter names"""
    value = node['value']
    if isinstance(value, dict) and 'type' in value and 'span' in value:
        return None
    if isinstance(value, dict):
        leaves = {k: v for k, v in value.items()
                  if v is not None and (not isinstance(v, (dict, tuple)) or k == 'params')}
        return leaves or None
    return value


def pretty_print_ast(ast: Dict, indent: int = 0) -> str:
    """Pretty print an AST node for debugging"""
    result = "  " * indent + f"{ast['type']}"
    leaf = _leaf_value(ast)
    if leaf is not None:
        result += f"({repr(leaf)})"
    result += "\n"

    for child in iter_child_nodes(ast):
        result += pretty_print_ast(child, indent + 1)

    return result


def ast_to_dict(ast: Dict, include_spans: bool = False) -> Dict[str, Any]:
    """Convert an AST to plain nested dicts/lists for comparison or serialization"""
    value = ast['value']
    if isinstance(value, dict) and 'type' in value and 'span' in value:
        converted = ast_to_dict(value, include_spans)
    elif isinstance(value, dict):
        converted = {}
        for key, field_value in value.items():
            if isinstance(field_value, dict):
                converted[key] = ast_to_dict(field_value, include_spans)
            elif isinstance(field_value, tuple):
                converted[key] = [ast_to_dict(item, include_spans) if isinstance(item, dict) else item
                                  for item in field_value]
            else:
                converted[key] = field_value
    else:
        converted = value

    result = {"type": ast['type'], "value": converted}
    if include_spans:
        span = ast['span']
        result["span"] = {
            "filename": span.filename,
            "start": span.start,
            "end": span.end,
            "start_line": span.start_line,
            "start_col": span.start_col,
            "end_line": span.end_line,
            "end_col": span.end_col,
        } if span else None
    return result

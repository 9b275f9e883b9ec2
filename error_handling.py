"""
Error handling for the Kite interpreter with detailed error messages
Every user-facing failure is a KiteError carrying a kind and a source span
"""

from typing import List, Optional, Dict, Tuple


# ============================================================================
# ERROR KINDS
# ============================================================================

# Lexical errors
UNEXPECTED_CHAR = "UnexpectedChar"
UNTERMINATED_STRING = "UnterminatedString"

# Syntax errors
UNEXPECTED_TOKEN = "UnexpectedToken"
EXPECTED_TOKEN = "ExpectedToken"
NESTING_TOO_DEEP = "NestingTooDeep"

# Static analysis errors
INVALID_CONTROL_FLOW = "InvalidControlFlow"

# Runtime errors
UNDEFINED_VARIABLE = "UndefinedVariable"
UNDEFINED_ASSIGNMENT_TARGET = "UndefinedAssignmentTarget"
TYPE_MISMATCH = "TypeMismatch"
DIVISION_BY_ZERO = "DivisionByZero"
ARITY_MISMATCH = "ArityMismatch"
NOT_CALLABLE = "NotCallable"
STACK_OVERFLOW = "StackOverflow"


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_error_report(
    message: str,
    kind: str,
    location: int,
    line: int,
    column: int,
    expected: Optional[List[str]] = None,
    got: Optional[str] = None,
    context: Optional[str] = None,
    suggestions: Optional[List[str]] = None
) -> Dict:
    """Create an immutable error report structure"""
    return {
        'message': message,
        'kind': kind,
        'location': location,
        'line': line,
        'column': column,
        'expected': expected or [],
        'got': got,
        'context': context,
        'suggestions': suggestions or []
    }


def format_error_report(report: Dict, label: str = "Error") -> str:
    """Format an error report as string"""
    if report['line']:
        error_msg = f"{label} at line {report['line']}, column {report['column']}:\n"
    else:
        error_msg = f"{label}:\n"
    error_msg += f"  {report['message']}\n"

    if report['expected']:
        error_msg += f"  Expected: {', '.join(report['expected'])}\n"

    if report['got']:
        error_msg += f"  Got: {report['got']}\n"

    if report['context']:
        error_msg += f"{report['context']}\n"

    if report['suggestions']:
        error_msg += f"  Suggestions:\n"
        for suggestion in report['suggestions']:
            error_msg += f"    - {suggestion}\n"

    return error_msg.rstrip('\n')


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def get_context_lines(source_text: str, line_num: int, col_num: int, context_lines: int = 2) -> str:
    """Get context lines around the error"""
    lines = source_text.split('\n')
    start_line = max(0, line_num - context_lines - 1)
    end_line = min(len(lines), line_num + context_lines)

    context_parts = []
    for i in range(start_line, end_line):
        line_prefix = f"{i+1:4d}: "
        if i == line_num - 1:  # Error line
            context_parts.append(f"{line_prefix}{lines[i]}")
            context_parts.append(f"{'':6}{' ' * (col_num - 1)}^ Error here")
        else:
            context_parts.append(f"{line_prefix}{lines[i]}")

    return '\n'.join(context_parts)


def get_source_line(source_text: str, line_num: int) -> Optional[str]:
    """Return the source line with the given 1-based number, if any"""
    lines = source_text.split('\n')
    if 1 <= line_num <= len(lines):
        return lines[line_num - 1]
    return None


def get_span_context(span) -> Tuple[str, str]:
    """
    Source line and caret excerpt rebuilt from a span's own text, for spans
    whose full source is not at hand. Text before the span is left blank so
    the caret still lines up with the span's column.
    """
    fragment_lines = span.text.split('\n')
    first_line = f"{' ' * (span.start_col - 1)}{fragment_lines[0]}"

    context_parts = [f"{span.start_line:4d}: {first_line}",
                     f"{'':6}{' ' * (span.start_col - 1)}^ Error here"]
    for offset, line in enumerate(fragment_lines[1:], start=1):
        context_parts.append(f"{span.start_line + offset:4d}: {line}")

    return first_line, "\n".join(context_parts)


def generate_suggestions(kind: str, got: Optional[str], expected: List[str]) -> List[str]:
    """Generate helpful suggestions based on the error"""
    suggestions = []

    if kind == UNTERMINATED_STRING:
        suggestions.append('Close the string literal with a matching "')

    if kind == UNEXPECTED_CHAR and got in ("'&'", "'|'"):
        suggestions.append("Logical operators are written && and ||")

    if "';'" in expected:
        suggestions.append("Statements end with a semicolon")

    if "')'" in expected or "'}'" in expected:
        suggestions.append("Check that every ( and { has a matching closer")

    if got == "'='" and "expression" in expected:
        suggestions.append("Use == to compare values, = only assigns")

    if kind == INVALID_CONTROL_FLOW:
        suggestions.append("break and continue may only appear inside a loop body")

    if kind == UNDEFINED_ASSIGNMENT_TARGET:
        suggestions.append("Declare the variable with let before assigning to it")

    return suggestions


# ============================================================================
# ERROR CLASSES
# ============================================================================

class KiteError(Exception):
    """Base class for every error reported to a Kite host"""
    label = "Error"

    def __init__(self, message: str, kind: str, span=None,
                 expected: Optional[List[str]] = None, got: Optional[str] = None):
        self.message = message
        self.kind = kind
        self.span = span
        self.expected = expected or []
        self.got = got
        self.source_line: Optional[str] = None
        self.context: Optional[str] = None
        super().__init__(message)

    @property
    def line(self) -> int:
        return self.span.start_line if self.span else 0

    @property
    def column(self) -> int:
        return self.span.start_col if self.span else 0

    def report(self) -> Dict:
        """Build the error report dict for this error"""
        return make_error_report(
            message=self.message,
            kind=self.kind,
            location=self.span.start if self.span else 0,
            line=self.line,
            column=self.column,
            expected=self.expected,
            got=self.got,
            context=self.context,
            suggestions=generate_suggestions(self.kind, self.got, self.expected)
        )

    def __str__(self) -> str:
        return format_error_report(self.report(), self.label)


class KiteLexError(KiteError):
    """Tokenization failure: UnexpectedChar or UnterminatedString"""
    label = "Lex error"


class KiteParseError(KiteError):
    """Syntax failure: UnexpectedToken, ExpectedToken or NestingTooDeep"""
    label = "Parse error"

    def __init__(self, message: str, kind: str = UNEXPECTED_TOKEN, span=None,
                 expected: Optional[List[str]] = None, found: Optional[str] = None):
        super().__init__(message, kind, span, expected, found)

    @property
    def found(self) -> Optional[str]:
        return self.got


class KiteSemanticsError(KiteError):
    """Static analysis failure, such as break outside of a loop"""
    label = "Semantic error"

    def __init__(self, message: str, span=None, kind: str = INVALID_CONTROL_FLOW):
        super().__init__(message, kind, span)


class KiteRuntimeError(KiteError):
    """Evaluation failure; kind names the runtime error category"""
    label = "Runtime error"

    def __init__(self, message: str, kind: str, span=None):
        super().__init__(message, kind, span)


class KiteErrorHandler:
    """Attaches source context to errors raised while processing one source unit"""

    def __init__(self, source_text: str, filename: str = "<input>"):
        self.source_text = source_text
        self.filename = filename
        self.lines = source_text.split('\n')

    def owns(self, span) -> bool:
        """True when span points into this handler's source text"""
        return (span.filename == self.filename
                and self.source_text[span.start:span.end] == span.text)

    def enhance(self, error: KiteError) -> KiteError:
        """
        Fill in the source line and caret excerpt for the error's span.
        A span from another source unit (a function defined by an earlier
        input, say) gets an excerpt built from the span's own text instead.
        """
        if error.span is not None and error.context is None:
            if self.owns(error.span):
                error.source_line = get_source_line(self.source_text, error.line)
                error.context = get_context_lines(self.source_text, error.line, error.column)
            else:
                error.source_line, error.context = get_span_context(error.span)
        return error

    def format(self, error: KiteError) -> str:
        return str(self.enhance(error))

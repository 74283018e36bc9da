import os
from typing import List, Optional

from lark import Lark, Token, Transformer
from lark.exceptions import LarkError, UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from ..exceptions import ErrorCode, VopgenError
from ..synthesis.nodes import Assign, Binary, Call, Cast, Const, Declare, If, Indexed, Name, Ternary, Unary

LARK_PARSER = None

try:
    from importlib.resources import files as pkg_files

    unit_grammar = (pkg_files("vopgen.unit") / "unit.lark").read_text()
except (ModuleNotFoundError, FileNotFoundError):
    # Fallback for running from a source checkout
    grammar_path = os.path.join(os.path.dirname(__file__), "unit.lark")
    with open(grammar_path, "r") as f:
        unit_grammar = f.read()

# The grammar is LALR(1); the contextual lexer keeps type tokens such as 'T'
# from shadowing identifiers where only an identifier is legal.
LARK_PARSER = Lark(unit_grammar, start=["start", "expression"], parser="lalr", lexer="contextual")

TOKEN_FRIENDLY_NAMES = {
    "NAME": "an identifier",
    "NUMBER": "a number",
    "TYPE": "a type name such as 'T' or 'U32'",
    "COMPOUND_OP": "a compound assignment such as '+='",
    "SEMICOLON": "a semicolon ';'",
    "EQUAL": "an equals sign '='",
    "LPAR": "an opening parenthesis '('",
    "RPAR": "a closing parenthesis ')'",
    "LBRACE": "an opening brace '{'",
    "RBRACE": "a closing brace '}'",
    "LSQB": "an opening bracket '['",
    "RSQB": "a closing bracket ']'",
}


class UnitTransformer(Transformer):
    """
    Transforms the Lark parse tree of a unit computation into unbound routine
    nodes. Each method is called when the parser reduces the rule or alias of
    the same name, bottom-up; pass-through rules are inlined by the grammar.
    """

    # --- Terminal Transformations ---
    def NUMBER(self, n: Token):
        text = n.value
        if "." in text or "e" in text.lower():
            return Const(value=float(text))
        return Const(value=int(text))

    def NAME(self, n: Token):
        return n.value

    def TYPE(self, t: Token):
        return t.value

    def COMPOUND_OP(self, op: Token):
        return op.value[0]

    # --- Atoms ---
    def number(self, items):
        return items[0]

    def true(self, _items):
        return Const(value=True)

    def false(self, _items):
        return Const(value=False)

    def name(self, items):
        return Name(id=items[0])

    def indexed(self, items):
        identifier, component = items
        if not isinstance(component.value, int):
            raise ValueError(f"component index of '{identifier}' must be an integer")
        return Indexed(id=identifier, component=component.value)

    def call(self, items):
        function, args = items
        return Call(function=function, args=args or [])

    def arguments(self, items):
        return list(items)

    # --- Operators ---
    def _binary(op):
        def build(self, items):
            return Binary(op=op, left=items[0], right=items[1])

        return build

    add = _binary("+")
    sub = _binary("-")
    mul = _binary("*")
    div = _binary("/")
    mod = _binary("%")
    lt = _binary("<")
    gt = _binary(">")
    le = _binary("<=")
    ge = _binary(">=")
    eq = _binary("==")
    ne = _binary("!=")
    and_op = _binary("&&")
    or_op = _binary("||")

    def neg(self, items):
        operand = items[0]
        # Fold negative literals so '-1' stays a constant
        if isinstance(operand, Const) and not isinstance(operand.value, bool):
            return Const(value=-operand.value)
        return Unary(op="-", operand=operand)

    def not_op(self, items):
        return Unary(op="!", operand=items[0])

    def cast(self, items):
        type_token, operand = items
        return Cast(type=type_token, operand=operand)

    def ternary(self, items):
        condition, then, otherwise = items
        return Ternary(condition=condition, then=then, otherwise=otherwise)

    # --- Statements ---
    def declaration(self, items):
        type_token, name, value = items
        return Declare(name=name, type=type_token, value=value)

    def assignment(self, items):
        target, value = items
        return Assign(target=target, value=value)

    def compound_assignment(self, items):
        target, op, value = items
        return Assign(target=target, value=Binary(op=op, left=target, right=value))

    def block(self, items):
        return list(items)

    def if_statement(self, items):
        condition, then, otherwise = items
        if otherwise is None:
            otherwise = []
        elif isinstance(otherwise, If):
            otherwise = [otherwise]
        return If(condition=condition, then=then, otherwise=otherwise)

    def start(self, items):
        return list(items)

    # Pass-through for the expression start symbol
    def expression(self, items):
        return items[0]


def _translate_lark_error(error: LarkError, source: str) -> str:
    """Builds a readable description of where and why the unit failed to parse."""
    if isinstance(error, UnexpectedCharacters):
        return f"Invalid character '{error.char}' at line {error.line}, column {error.column}."
    if isinstance(error, UnexpectedEOF):
        return "The unit computation ends unexpectedly. Is a ';' or '}' missing?"
    if isinstance(error, UnexpectedToken):
        expected = sorted(TOKEN_FRIENDLY_NAMES.get(name, f"'{name.lower()}'") for name in error.expected)
        found = error.token.value if error.token.type != "$END" else "the end of the unit"
        return f"Unexpected '{found}' at line {error.line}, column {error.column}. Expected {' or '.join(expected[:4])}."
    if isinstance(error, UnexpectedInput):
        return f"Invalid syntax at line {error.line}, column {error.column}."
    return str(error)


def parse_unit(source: str, declaration: Optional[str] = None) -> List:
    """Parses a unit computation into a list of unbound statements."""
    return _parse(source, "start", declaration)


def parse_expression(source: str, declaration: Optional[str] = None):
    """Parses a single unit-language expression, e.g. a combine step."""
    return _parse(source, "expression", declaration)


def _parse(source: str, start: str, declaration: Optional[str]):
    try:
        tree = LARK_PARSER.parse(source, start=start)
    except LarkError as e:
        raise VopgenError(ErrorCode.UNIT_SYNTAX_ERROR, declaration=declaration, details=_translate_lark_error(e, source))
    try:
        return UnitTransformer().transform(tree)
    except LarkError as e:
        # Transformer callbacks are wrapped in VisitError by lark
        raise VopgenError(ErrorCode.UNIT_SYNTAX_ERROR, declaration=declaration, details=str(getattr(e, "orig_exc", e)))

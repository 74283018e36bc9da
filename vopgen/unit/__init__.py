from .parser import parse_expression, parse_unit

"""Expression DSL for colderive derived columns.

This module provides:
- FunctionRegistry: Registry for builtin expression functions
- Lexer: Tokenizes expression strings
- Parser: Produces AST from tokens
- Evaluator: Evaluates AST against an item
- compile_expression: Parses and checks once, returns a reusable CompiledExpression
- Value / NO_VALUE: The two outcomes of evaluating a compiled expression
"""

from colderive.errors import CompilationError, EvaluationError
from colderive.expressions.compiler import (
    CompiledExpression,
    FunctionTable,
    build_function_table,
    compile_expression,
)
from colderive.expressions.evaluator import (
    AttributeSource,
    EvaluationContext,
    Evaluator,
    evaluate,
    evaluate_bool,
)
from colderive.expressions.functions import (
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    FunctionRegistry,
)
from colderive.expressions.lexer import Lexer, LexerError, Token, TokenType
from colderive.expressions.parser import (
    ASTNode,
    ArrayLiteral,
    BinaryOp,
    FunctionCall,
    Identifier,
    IndexAccess,
    Literal,
    MemberAccess,
    ParseError,
    Parser,
    UnaryOp,
    parse,
)
from colderive.expressions.result import NO_VALUE, EvaluationResult, NoValueSignal, Value

__all__ = [
    # Compiler
    "CompilationError",
    "CompiledExpression",
    "FunctionTable",
    "build_function_table",
    "compile_expression",
    # Evaluator
    "AttributeSource",
    "EvaluationContext",
    "EvaluationError",
    "Evaluator",
    "evaluate",
    "evaluate_bool",
    # Results
    "EvaluationResult",
    "NO_VALUE",
    "NoValueSignal",
    "Value",
    # Functions
    "FunctionCategory",
    "FunctionDefinition",
    "FunctionParameter",
    "FunctionRegistry",
    # Lexer
    "Lexer",
    "LexerError",
    "Token",
    "TokenType",
    # Parser
    "ASTNode",
    "ArrayLiteral",
    "BinaryOp",
    "FunctionCall",
    "Identifier",
    "IndexAccess",
    "Literal",
    "MemberAccess",
    "ParseError",
    "Parser",
    "UnaryOp",
    "parse",
]

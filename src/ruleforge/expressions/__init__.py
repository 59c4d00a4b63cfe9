"""Expression language for ruleforge rules.

This module provides:
- FunctionRegistry: Registry for expression functions
- Lexer: Tokenizes expression strings
- Parser: Produces AST from tokens
- compile_expression: Parses and resolves an expression once
- Evaluator: Evaluates a compiled expression against parameters
"""

from ruleforge.expressions.builtins import default_registry, register_all_builtins
from ruleforge.expressions.compiler import CompiledExpression, compile_expression
from ruleforge.expressions.evaluator import Evaluator, evaluate, evaluate_bool, to_bool
from ruleforge.expressions.functions import (
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    FunctionRegistry,
)
from ruleforge.expressions.lexer import Lexer, LexerError, Token, TokenType
from ruleforge.expressions.parser import (
    ASTNode,
    BinaryOp,
    FunctionCall,
    Identifier,
    Literal,
    ParseError,
    Parser,
    UnaryOp,
    parse,
)

__all__ = [
    # Builtins
    "default_registry",
    "register_all_builtins",
    # Compiler
    "CompiledExpression",
    "compile_expression",
    # Evaluator
    "Evaluator",
    "evaluate",
    "evaluate_bool",
    "to_bool",
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
    "BinaryOp",
    "FunctionCall",
    "Identifier",
    "Literal",
    "ParseError",
    "Parser",
    "UnaryOp",
    "parse",
]

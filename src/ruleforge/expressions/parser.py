"""Parser for the ruleforge expression language.

Converts a stream of tokens into an Abstract Syntax Tree (AST).
Uses recursive descent parsing with operator precedence.

Operator Precedence (lowest to highest):
1. || (or)
2. && (and)
3. == != < <= > >=
4. + -
5. * / %
6. ! (not) - (unary)
7. () (function call)

AST nodes are frozen so a parsed tree can be shared between threads.
"""

from dataclasses import dataclass, field
from typing import Any

from ruleforge.errors import ExpressionSyntaxError
from ruleforge.expressions.lexer import Lexer, Token, TokenType


# -----------------------------------------------------------------------------
# AST Node Types
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ASTNode:
    """Base class for AST nodes."""
    pass


@dataclass(frozen=True)
class Literal(ASTNode):
    """A literal value (number, string, boolean, null)."""
    value: Any


@dataclass(frozen=True)
class Identifier(ASTNode):
    """A field reference."""
    name: str


@dataclass(frozen=True)
class BinaryOp(ASTNode):
    """Binary operation (e.g., a + b, x == y)."""
    operator: str
    left: ASTNode
    right: ASTNode


@dataclass(frozen=True)
class UnaryOp(ASTNode):
    """Unary operation (e.g., !x, -y)."""
    operator: str
    operand: ASTNode


@dataclass(frozen=True)
class FunctionCall(ASTNode):
    """Function call (e.g., regexMatch(tag, "^JIRA:"))."""
    name: str
    arguments: tuple[ASTNode, ...]
    position: int = field(default=0, compare=False)


def walk(node: ASTNode):
    """Yield node and all of its descendants, depth first.

    Iterative, so long operator chains do not hit the recursion limit.
    """
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        if isinstance(current, BinaryOp):
            stack.append(current.right)
            stack.append(current.left)
        elif isinstance(current, UnaryOp):
            stack.append(current.operand)
        elif isinstance(current, FunctionCall):
            stack.extend(reversed(current.arguments))


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------


class ParseError(ExpressionSyntaxError):
    """Error during parsing."""

    def __init__(self, message: str, token: Token):
        self.token = token
        super().__init__(f"{message} at position {token.position}", token.position)


_COMPARISON_OPS = {
    TokenType.EQ: "==",
    TokenType.NEQ: "!=",
    TokenType.LT: "<",
    TokenType.LTE: "<=",
    TokenType.GT: ">",
    TokenType.GTE: ">=",
}

_MULTIPLICATIVE_OPS = {
    TokenType.MULTIPLY: "*",
    TokenType.DIVIDE: "/",
    TokenType.MODULO: "%",
}


def _describe(token: Token) -> str:
    if token.type == TokenType.EOF:
        return "end of expression"
    return f"token '{token.value}'"


class Parser:
    """Recursive descent parser for the expression language.

    Usage:
        parser = Parser('status == "active" && count > 0')
        ast = parser.parse()
    """

    def __init__(self, source: str):
        self.source = source
        self.tokens = Lexer(source).tokenize()
        self.position = 0

    def parse(self) -> ASTNode:
        """Parse the expression and return the AST root."""
        if not self.tokens or self.tokens[0].type == TokenType.EOF:
            raise ParseError("Empty expression", Token(TokenType.EOF, None, 0))

        ast = self._parse_or()

        if not self._is_at_end():
            raise ParseError(f"Unexpected {_describe(self._current())}", self._current())

        return ast

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _current(self) -> Token:
        """Get current token."""
        if self.position >= len(self.tokens):
            return Token(TokenType.EOF, None, len(self.source))
        return self.tokens[self.position]

    def _is_at_end(self) -> bool:
        """Check if we've consumed all tokens."""
        return self._current().type == TokenType.EOF

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current()
        self.position += 1
        return token

    def _match(self, *types: TokenType) -> bool:
        """Check if current token matches any of the given types."""
        return self._current().type in types

    def _consume(self, token_type: TokenType, message: str) -> Token:
        """Consume a token of the expected type, or raise error."""
        if self._current().type == token_type:
            return self._advance()
        raise ParseError(message, self._current())

    # -------------------------------------------------------------------------
    # Parsing methods (in order of precedence, lowest to highest)
    # -------------------------------------------------------------------------

    def _parse_or(self) -> ASTNode:
        """Parse OR expression (lowest precedence)."""
        left = self._parse_and()

        while self._match(TokenType.OR):
            self._advance()
            right = self._parse_and()
            left = BinaryOp("||", left, right)

        return left

    def _parse_and(self) -> ASTNode:
        """Parse AND expression."""
        left = self._parse_comparison()

        while self._match(TokenType.AND):
            self._advance()
            right = self._parse_comparison()
            left = BinaryOp("&&", left, right)

        return left

    def _parse_comparison(self) -> ASTNode:
        """Parse comparison expression (==, !=, <, <=, >, >=)."""
        left = self._parse_additive()

        while self._current().type in _COMPARISON_OPS:
            op = _COMPARISON_OPS[self._advance().type]
            right = self._parse_additive()
            left = BinaryOp(op, left, right)

        return left

    def _parse_additive(self) -> ASTNode:
        """Parse additive expression (+, -)."""
        left = self._parse_multiplicative()

        while self._match(TokenType.PLUS, TokenType.MINUS):
            op = "+" if self._advance().type == TokenType.PLUS else "-"
            right = self._parse_multiplicative()
            left = BinaryOp(op, left, right)

        return left

    def _parse_multiplicative(self) -> ASTNode:
        """Parse multiplicative expression (*, /, %)."""
        left = self._parse_unary()

        while self._current().type in _MULTIPLICATIVE_OPS:
            op = _MULTIPLICATIVE_OPS[self._advance().type]
            right = self._parse_unary()
            left = BinaryOp(op, left, right)

        return left

    def _parse_unary(self) -> ASTNode:
        """Parse unary expression (!, not, -)."""
        if self._match(TokenType.NOT):
            self._advance()
            return UnaryOp("!", self._parse_unary())

        if self._match(TokenType.MINUS):
            self._advance()
            return UnaryOp("-", self._parse_unary())

        return self._parse_primary()

    def _parse_primary(self) -> ASTNode:
        """Parse primary expression (literals, identifiers, calls, groups)."""
        token = self._current()

        if token.type in (TokenType.NUMBER, TokenType.STRING, TokenType.BOOLEAN):
            self._advance()
            return Literal(token.value)

        if token.type == TokenType.NULL:
            self._advance()
            return Literal(None)

        # Identifier (field reference or function name)
        if token.type == TokenType.IDENTIFIER:
            self._advance()
            if self._match(TokenType.LPAREN):
                return self._parse_function_call(token)
            return Identifier(str(token.value))

        # Grouped expression
        if token.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_or()
            self._consume(TokenType.RPAREN, "Expected ')' after expression")
            return expr

        raise ParseError(f"Unexpected {_describe(token)}", token)

    def _parse_function_call(self, name_token: Token) -> FunctionCall:
        """Parse a function call (arguments in parentheses)."""
        self._consume(TokenType.LPAREN, "Expected '(' after function name")

        arguments: list[ASTNode] = []

        if not self._match(TokenType.RPAREN):
            arguments.append(self._parse_or())

            while self._match(TokenType.COMMA):
                self._advance()
                arguments.append(self._parse_or())

        self._consume(TokenType.RPAREN, "Expected ')' after arguments")

        return FunctionCall(str(name_token.value), tuple(arguments), name_token.position)


def parse(source: str) -> ASTNode:
    """Convenience function to parse an expression string.

    Args:
        source: The expression string

    Returns:
        The AST root node
    """
    return Parser(source).parse()

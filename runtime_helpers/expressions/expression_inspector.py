"""
Expression tree inspection for property selectors and filter expressions.

Works on Python ``ast`` trees (or source text of a single expression) and
answers two questions:
- which property/member does this expression refer to?
- what literal value does it carry, when one can be recovered?

Node kinds handled form a closed set:
    lambda       ast.Lambda
    binary       ast.BinOp, ast.Compare, ast.BoolOp
    member       ast.Attribute
    unary        ast.UnaryOp
    call         ast.Call
    conditional  ast.IfExp
Every other node is "other" and resolves to nothing.

Member resolution and evaluation are lenient: unresolvable or unparseable
expressions produce None rather than an exception. Only the explicitly strict
helpers (require_property_info, get_property_chain) raise.
"""

import ast
import builtins
import copy
import logging
import textwrap
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ..exceptions import ExpressionError, InvalidArgumentError
from ..interfaces import ExpressionInspectorInterface
from ..mapping.member_cache import MemberCache, MemberDescriptor, get_member_cache, strip_optional


class NodeKind(Enum):
    """Syntactic kinds of expression nodes the inspector distinguishes."""
    LAMBDA = "lambda"
    BINARY = "binary"
    MEMBER = "member"
    UNARY = "unary"
    CALL = "call"
    CONDITIONAL = "conditional"
    OTHER = "other"


class MemberKind(Enum):
    """Shape of a resolved member."""
    PROPERTY = "property"
    METHOD = "method"


_NODE_KINDS = (
    (ast.Lambda, NodeKind.LAMBDA),
    ((ast.BinOp, ast.Compare, ast.BoolOp), NodeKind.BINARY),
    (ast.Attribute, NodeKind.MEMBER),
    (ast.UnaryOp, NodeKind.UNARY),
    (ast.Call, NodeKind.CALL),
    (ast.IfExp, NodeKind.CONDITIONAL),
)


def node_kind(node: Any) -> NodeKind:
    """Classify an ast node into one of the NodeKind variants."""
    for node_types, kind in _NODE_KINDS:
        if isinstance(node, node_types):
            return kind
    return NodeKind.OTHER


def binary_left(node: ast.AST) -> ast.AST:
    """Left operand of a binary node (first value of a boolean chain)."""
    if isinstance(node, ast.BoolOp):
        return node.values[0]
    return node.left


def binary_right(node: ast.AST) -> ast.AST:
    """Right operand of a binary node (last comparator / last value of a chain)."""
    if isinstance(node, ast.Compare):
        return node.comparators[-1]
    if isinstance(node, ast.BoolOp):
        return node.values[-1]
    return node.right


@dataclass(frozen=True)
class MemberInfo:
    """
    A member resolved from an expression.

    Attributes:
        name: Member name
        kind: PROPERTY for data attributes, METHOD for callables
        declaring_type: Type the member was resolved against, None when unknown
        member_type: Declared type of the member, None when unknown
        descriptor: Cached property descriptor when the declaring type is known
    """
    name: str
    kind: MemberKind = MemberKind.PROPERTY
    declaring_type: Optional[type] = None
    member_type: Any = None
    descriptor: Optional[MemberDescriptor] = field(default=None, compare=False, repr=False)

    @property
    def is_property(self) -> bool:
        return self.kind is MemberKind.PROPERTY


@dataclass(frozen=True)
class _Scope:
    # Owner type bound to the lambda parameter (or to any bare name when no lambda)
    owner_type: Optional[type] = None
    parameter: Optional[str] = None

    def type_of(self, name: str) -> Optional[type]:
        if self.parameter is None or self.parameter == name:
            return self.owner_type
        return None


SAFE_BUILTINS: Dict[str, Any] = {
    name: getattr(builtins, name)
    for name in (
        "abs", "all", "any", "bool", "dict", "float", "frozenset", "int", "len", "list",
        "max", "min", "round", "set", "sorted", "str", "sum", "tuple",
    )
}


class ExpressionInspector(ExpressionInspectorInterface):
    """
    Resolves members and best-effort values from expression trees.

    Heuristics applied by get_value, each assuming the caller passes a
    comparison- or assignment-shaped expression whose literal sits on the right:
    - right operand of a binary node (``field == 5`` -> ``5``)
    - second argument of a two-argument call (``eq(field, 5)`` -> ``5``)
    - ``not flag`` evaluates to False, any other unary operator is unknown (None)
    - a bare reference to a bool property that cannot be evaluated means True
    """

    def __init__(self, member_cache: Optional[MemberCache] = None, logger=None):
        self.logger = logger or logging.getLogger(__name__)
        self.member_cache = member_cache or get_member_cache()

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, expression: Any) -> Optional[ast.AST]:
        """Parse an expression leniently, returning None when it cannot be parsed."""
        try:
            return self._parse(expression)
        except ExpressionError as e:
            self.logger.debug(f"Could not parse expression {expression!r}: {e}")
            return None

    def _parse(self, expression: Any) -> ast.AST:
        if expression is None:
            raise ExpressionError("Expression is None")
        if isinstance(expression, ast.Expression):
            return expression.body
        if isinstance(expression, ast.Expr):
            return expression.value
        if isinstance(expression, ast.Module):
            if len(expression.body) == 1 and isinstance(expression.body[0], ast.Expr):
                return expression.body[0].value
            raise ExpressionError("Module must hold exactly one expression statement")
        if isinstance(expression, ast.AST):
            return expression
        if isinstance(expression, str):
            source = textwrap.dedent(expression).strip()
            if not source:
                raise ExpressionError("Expression source is empty")
            try:
                return ast.parse(source, mode="eval").body
            except SyntaxError as e:
                raise ExpressionError(f"Invalid expression syntax: {e.msg}") from e
        raise ExpressionError(f"Unsupported expression object of type {type(expression).__name__}")

    # ------------------------------------------------------------------
    # Member resolution
    # ------------------------------------------------------------------

    def get_member_info(self, expression: Any, owner_type: Optional[type] = None) -> Optional[MemberInfo]:
        """
        Resolve the member an expression refers to.

        Args:
            expression: ast node or expression source text
            owner_type: Type of the lambda parameter (or of bare names in a plain expression)

        Returns:
            MemberInfo, or None when no member can be resolved
        """
        node = self.parse(expression)
        if node is None:
            return None
        return self._member_of(node, _Scope(owner_type))

    def get_property_info(self, expression: Any, owner_type: Optional[type] = None) -> Optional[MemberInfo]:
        """Resolve the member and keep it only when it is property-shaped."""
        info = self.get_member_info(expression, owner_type)
        return info if info is not None and info.is_property else None

    def get_property_name(self, expression: Any, owner_type: Optional[type] = None) -> Optional[str]:
        info = self.get_property_info(expression, owner_type)
        return info.name if info is not None else None

    def get_member_descriptor(self, expression: Any, owner_type: type) -> Optional[MemberDescriptor]:
        """Resolve an expression to the cached descriptor of a property of owner_type."""
        info = self.get_property_info(expression, owner_type)
        return info.descriptor if info is not None else None

    def require_property_info(self, expression: Any, owner_type: Optional[type] = None) -> MemberInfo:
        """
        Strict variant of get_property_info.

        Raises:
            InvalidArgumentError: If the expression does not reference a property
        """
        info = self.get_property_info(expression, owner_type)
        if info is None:
            raise InvalidArgumentError("Expression must be a property access expression", "expression")
        return info

    def get_property_chain(self, expression: Any, owner_type: Optional[type] = None) -> List[MemberInfo]:
        """
        Resolve a nested property path such as ``lambda x: x.address.city``.

        Returns:
            Members from the outermost receiver inwards, e.g. [address, city]

        Raises:
            InvalidArgumentError: If the expression is not a plain property access path
        """
        try:
            node = self._parse(expression)
        except ExpressionError as e:
            raise InvalidArgumentError(f"Expression must be a property access: {e}", "expression") from e

        scope = _Scope(owner_type)
        if isinstance(node, ast.Lambda):
            scope = self._lambda_scope(node, owner_type)
            node = node.body

        attributes: List[ast.Attribute] = []
        while isinstance(node, ast.Attribute):
            attributes.append(node)
            node = node.value
        if not attributes or not isinstance(node, ast.Name):
            raise InvalidArgumentError("Expression must be a property access", "expression")
        if scope.parameter is not None and node.id != scope.parameter:
            raise InvalidArgumentError(
                f"Property path must start at lambda parameter '{scope.parameter}'", "expression")

        chain: List[MemberInfo] = []
        current_type = scope.type_of(node.id)
        for attribute in reversed(attributes):
            info = self._resolve_name(attribute.attr, current_type)
            if not info.is_property:
                raise InvalidArgumentError(f"'{attribute.attr}' is not a property", "expression")
            chain.append(info)
            current_type = self._value_type(info)
        return chain

    def _member_of(self, node: ast.AST, scope: _Scope) -> Optional[MemberInfo]:
        kind = node_kind(node)
        if kind is NodeKind.LAMBDA:
            return self._member_of(node.body, self._lambda_scope(node, scope.owner_type))
        if kind is NodeKind.BINARY:
            return self._member_of(binary_left(node), scope)
        if kind is NodeKind.MEMBER:
            return self._resolve_name(node.attr, self._receiver_type(node.value, scope))
        if kind is NodeKind.UNARY:
            return self._member_of(node.operand, scope)
        if kind is NodeKind.CALL:
            # Assumed to wrap a member access, e.g. coalesce(x.name, '') or int(x.code)
            if not node.args:
                return None
            return self._member_of(node.args[0], scope)
        if kind is NodeKind.CONDITIONAL:
            return self._member_of(node.body, scope) or self._member_of(node.orelse, scope)
        return None

    @staticmethod
    def _lambda_scope(node: ast.Lambda, owner_type: Optional[type]) -> _Scope:
        parameters = node.args.posonlyargs + node.args.args
        return _Scope(owner_type, parameters[0].arg if parameters else None)

    def _receiver_type(self, node: ast.AST, scope: _Scope) -> Optional[type]:
        if isinstance(node, ast.Name):
            return scope.type_of(node.id)
        if isinstance(node, ast.Attribute):
            receiver = self._receiver_type(node.value, scope)
            if receiver is None:
                return None
            return self._value_type(self._resolve_name(node.attr, receiver))
        return None

    @staticmethod
    def _value_type(info: MemberInfo) -> Optional[type]:
        member_type = strip_optional(info.member_type) if info.member_type is not None else None
        return member_type if isinstance(member_type, type) else None

    def _resolve_name(self, name: str, declaring_type: Optional[type]) -> MemberInfo:
        if declaring_type is None or not isinstance(declaring_type, type):
            return MemberInfo(name)

        descriptor = self.member_cache.get_member(declaring_type, name)
        if descriptor is not None:
            return MemberInfo(name, MemberKind.PROPERTY, declaring_type, descriptor.property_type, descriptor)

        attribute = getattr(declaring_type, name, None)
        if callable(attribute) and not isinstance(attribute, type):
            return MemberInfo(name, MemberKind.METHOD, declaring_type)
        return MemberInfo(name, MemberKind.PROPERTY, declaring_type)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def get_value(self, expression: Any, namespace: Optional[Mapping[str, Any]] = None,
                  owner_type: Optional[type] = None) -> Any:
        """
        Best-effort evaluation of an expression node. Never raises.

        Args:
            expression: ast node or expression source text
            namespace: Names visible to the evaluated expression
            owner_type: Type of the lambda parameter, used by the bool-property fallback

        Returns:
            The recovered value, or None when it is unknown
        """
        try:
            node = self._parse(expression)
            scope = _Scope(owner_type)
            if isinstance(node, ast.Lambda):
                scope = self._lambda_scope(node, owner_type)
                node = node.body
            return self._evaluate(node, namespace, scope)
        except Exception as e:
            if self.logger.isEnabledFor(logging.DEBUG):
                self.logger.debug(f"Could not evaluate expression {expression!r}: {e}")
            return None

    def _evaluate(self, node: ast.AST, namespace: Optional[Mapping[str, Any]], scope: _Scope) -> Any:
        if node_kind(node) is NodeKind.BINARY:
            node = binary_right(node)
        if node_kind(node) is NodeKind.CALL and len(node.args) == 2:
            node = node.args[1]
        if node_kind(node) is NodeKind.UNARY:
            return False if isinstance(node.op, ast.Not) else None

        try:
            return self._compile_and_run(node, namespace)
        except Exception:
            if node_kind(node) is NodeKind.MEMBER:
                info = self._member_of(node, scope)
                member_type = strip_optional(info.member_type) if info is not None else None
                return True if member_type is bool else None
            raise

    @staticmethod
    def _compile_and_run(node: ast.AST, namespace: Optional[Mapping[str, Any]]) -> Any:
        # Work on a copy so the caller's tree never gains location attributes
        expression = ast.fix_missing_locations(ast.Expression(body=copy.deepcopy(node)))
        code = compile(expression, "<expression>", "eval")
        environment: Dict[str, Any] = {"__builtins__": SAFE_BUILTINS}
        if namespace:
            environment.update(namespace)
        return eval(code, environment)

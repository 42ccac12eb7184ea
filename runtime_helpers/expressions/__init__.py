"""Expression tree inspection components."""

from .expression_inspector import ExpressionInspector, MemberInfo, MemberKind, NodeKind, node_kind

__all__ = ['ExpressionInspector', 'MemberInfo', 'MemberKind', 'NodeKind', 'node_kind']

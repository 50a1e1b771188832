"""
Flattening of the requested field selection of a resolver invocation
"""

from typing import Any

from graphql import (
    FieldNode,
    FragmentSpreadNode,
    GraphQLIncludeDirective,
    GraphQLResolveInfo,
    GraphQLSkipDirective,
    InlineFragmentNode,
    SelectionSetNode,
)
from graphql.execution.values import get_directive_values

FieldTree = dict[str, "FieldTree"]


def _included(node: Any, variables: dict[str, Any]) -> bool:
    """Evaluate ``@skip`` and ``@include`` on a selection."""
    skip = get_directive_values(GraphQLSkipDirective, node, variables)
    if skip and skip["if"] is True:
        return False
    include = get_directive_values(GraphQLIncludeDirective, node, variables)
    if include and include["if"] is False:
        return False
    return True


def _flatten(
    selection_set: SelectionSetNode | None,
    fragments: dict[str, Any],
    variables: dict[str, Any],
    tree: FieldTree,
) -> FieldTree:
    if selection_set is None:
        return tree
    for selection in selection_set.selections:
        if not _included(selection, variables):
            continue
        if isinstance(selection, InlineFragmentNode):
            _flatten(selection.selection_set, fragments, variables, tree)
        elif isinstance(selection, FragmentSpreadNode):
            fragment = fragments.get(selection.name.value)
            if fragment is not None:
                _flatten(fragment.selection_set, fragments, variables, tree)
        elif isinstance(selection, FieldNode):
            subtree = tree.setdefault(selection.name.value, {})
            _flatten(selection.selection_set, fragments, variables, subtree)
    return tree


def requested_fields(info: GraphQLResolveInfo) -> FieldTree:
    """Return the tree of sub-fields requested below the current field.

    Fragment spreads and inline fragments are expanded in place, selections
    excluded by ``@skip``/``@include`` are dropped, and repeated selections
    of the same field are merged.
    """
    tree: FieldTree = {}
    variables = info.variable_values or {}
    for node in info.field_nodes:
        _flatten(node.selection_set, info.fragments, variables, tree)
    return tree

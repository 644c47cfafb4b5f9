"""
Label selector evaluation.

Pure helpers used to decide which declared resources belong to an instance
or organization, to build label selector strings for namespace scoped list
calls, and to intersect the selectors of an instance and an organization.

An unset or empty selector matches every resource.
"""

from ..errors import SelectorInvalidError
from ..models.common import LabelSelector, LabelSelectorRequirement

OP_IN = "In"
OP_NOT_IN = "NotIn"
OP_EXISTS = "Exists"
OP_DOES_NOT_EXIST = "DoesNotExist"

_VALUE_OPERATORS = (OP_IN, OP_NOT_IN)
_KEY_OPERATORS = (OP_EXISTS, OP_DOES_NOT_EXIST)


def validate(selector: LabelSelector | None) -> None:
    """
    Check that every requirement of a selector can be evaluated.

    Raises:
        SelectorInvalidError: On unknown operators or value lists that do
            not fit the operator
    """
    if selector is None:
        return

    for key in selector.match_labels:
        if not key:
            raise SelectorInvalidError("matchLabels contains an empty key")

    for requirement in selector.match_expressions:
        if not requirement.key:
            raise SelectorInvalidError("matchExpressions contains an empty key")
        if requirement.operator in _VALUE_OPERATORS:
            if not requirement.values:
                raise SelectorInvalidError(
                    f"operator {requirement.operator} on key {requirement.key!r} "
                    "requires at least one value"
                )
        elif requirement.operator in _KEY_OPERATORS:
            if requirement.values:
                raise SelectorInvalidError(
                    f"operator {requirement.operator} on key {requirement.key!r} "
                    "does not take values"
                )
        else:
            raise SelectorInvalidError(
                f"unknown operator {requirement.operator!r} on key {requirement.key!r}"
            )


def matches(labels: dict[str, str] | None, selector: LabelSelector | None) -> bool:
    """
    Evaluate a label selector against the labels of a resource.

    Args:
        labels: Labels of the candidate resource
        selector: Selector to evaluate, None matches everything

    Returns:
        True if every requirement of the selector is satisfied
    """
    if selector is None:
        return True

    validate(selector)
    labels = labels or {}

    for key, value in selector.match_labels.items():
        if labels.get(key) != value:
            return False

    return all(_requirement_matches(labels, r) for r in selector.match_expressions)


def _requirement_matches(
    labels: dict[str, str], requirement: LabelSelectorRequirement
) -> bool:
    present = requirement.key in labels
    if requirement.operator == OP_IN:
        return present and labels[requirement.key] in requirement.values
    if requirement.operator == OP_NOT_IN:
        return not present or labels[requirement.key] not in requirement.values
    if requirement.operator == OP_EXISTS:
        return present
    return not present


def merge_selectors(*selectors: LabelSelector | None) -> LabelSelector:
    """
    Intersect label selectors into one selector (logical AND).

    Conflicting matchLabels values are kept as an additional In requirement,
    which makes the merged selector match nothing rather than widening it.
    """
    merged = LabelSelector()
    for selector in selectors:
        if selector is None:
            continue
        validate(selector)
        for key, value in selector.match_labels.items():
            if key not in merged.match_labels:
                merged.match_labels[key] = value
            elif merged.match_labels[key] != value:
                merged.match_expressions.append(
                    LabelSelectorRequirement(key=key, operator=OP_IN, values=[value])
                )
        merged.match_expressions.extend(
            r.model_copy(deep=True) for r in selector.match_expressions
        )
    return merged


def to_label_selector_string(selector: LabelSelector | None) -> str:
    """
    Render a selector in the API server's label selector syntax.

    Returns:
        Selector string for list calls, empty for "everything"
    """
    if selector is None:
        return ""

    validate(selector)

    parts = [f"{key}={value}" for key, value in selector.match_labels.items()]
    for requirement in selector.match_expressions:
        values = ",".join(sorted(requirement.values))
        if requirement.operator == OP_IN:
            parts.append(f"{requirement.key} in ({values})")
        elif requirement.operator == OP_NOT_IN:
            parts.append(f"{requirement.key} notin ({values})")
        elif requirement.operator == OP_EXISTS:
            parts.append(requirement.key)
        else:
            parts.append(f"!{requirement.key}")
    return ",".join(parts)

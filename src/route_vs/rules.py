"""Policy rule compilation for route groups.

Each route contributes one forwarding rule matching its host and path. The
rules of a virtual server are collected into a single policy whose ordinals
give the evaluation order: exact hosts first, wildcard hosts after them, and
within each bucket the rule with more conditions (the deeper path) first.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Iterable, List, Sequence, Tuple

from .config import Condition, MatchKind, Policy, Rule
from .errors import RuleCompilationError
from .models import Route
from .naming import rule_name

LOG = logging.getLogger(__name__)

WILDCARD_PREFIX = "*."


def _host_condition(host: str) -> Condition:
    if host.startswith(WILDCARD_PREFIX):
        return Condition("host", "ends-with", (host[1:],))
    return Condition("host", "equals", (host,))


def _path_conditions(path: str) -> Tuple[Condition, ...]:
    segments = [segment for segment in path.split("/") if segment]
    return tuple(
        Condition("path-segment", "equals", (segment,), index=position)
        for position, segment in enumerate(segments, start=1)
    )


def compile_route_rule(
    route: Route, pool_name: str, route_group: str, ordinal: int
) -> Rule:
    """Build the forwarding rule sending ``route`` traffic to ``pool_name``."""

    host = route.host
    path = route.path
    if not host or any(ch.isspace() for ch in host) or "/" in host:
        raise RuleCompilationError(
            f"invalid host {host!r} for route {route.key} in route group {route_group}"
        )
    if path and not path.startswith("/"):
        raise RuleCompilationError(
            f"invalid path {path!r} for route {route.key} in route group {route_group}"
        )

    uri = host + path
    match = MatchKind.WILDCARD if uri.startswith(WILDCARD_PREFIX) else MatchKind.EXACT
    return Rule(
        name=rule_name(host, path, pool_name),
        uri=uri,
        pool_name=pool_name,
        ordinal=ordinal,
        match=match,
        conditions=(_host_condition(host),) + _path_conditions(path),
    )


def _staging_key(rule: Rule):
    return (-len(rule.conditions), rule.uri, rule.name)


def _stage(bucket: Sequence[Rule], first_ordinal: int) -> List[Rule]:
    staged = sorted(bucket, key=_staging_key)
    return [
        replace(rule, ordinal=ordinal)
        for ordinal, rule in enumerate(staged, start=first_ordinal)
    ]


def assign_ordinals(rules: Iterable[Rule]) -> List[Rule]:
    """Return copies of ``rules`` numbered exact bucket first, then wildcards.

    The two buckets are staged in parallel; each task only touches its own
    list, so nothing is shared until both are joined.
    """

    exact: List[Rule] = []
    wildcards: List[Rule] = []
    for rule in rules:
        (wildcards if rule.match is MatchKind.WILDCARD else exact).append(rule)

    with ThreadPoolExecutor(max_workers=2) as executor:
        exact_future = executor.submit(_stage, exact, 0)
        wildcard_future = executor.submit(_stage, wildcards, len(exact))
        combined = exact_future.result() + wildcard_future.result()

    combined.sort(key=lambda rule: rule.ordinal)
    return combined


def build_policy(name: str, partition: str, rules: Iterable[Rule]) -> Policy:
    ordered = assign_ordinals(rules)
    LOG.debug("Policy %s/%s compiled with %d rules", partition, name, len(ordered))
    return Policy(name=name, partition=partition, rules=ordered)

"""
auth/policy.py -- Static path/role authorization policy.

An ordered list of rules, evaluated top to bottom; the first rule whose
method set and path pattern match decides. Paths no rule matches require an
authenticated caller with any role.

Patterns are Ant-style:
  *   one path segment (no "/")
  **  any number of segments, including none

Role checks are a logical OR across a rule's role set.

Usage:
    policy = AuthorizationPolicy(DEFAULT_RULES)
    decision = policy.decide("GET", "/api/admin/users", principal)
    if decision is Decision.UNAUTHENTICATED: ... 401
    if decision is Decision.FORBIDDEN: ... 403
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from auth.models import AppRole, Principal

PUBLIC: frozenset[str] = frozenset()
AUTHENTICATED = frozenset({"*"})


class Decision(Enum):
    ALLOW = "allow"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"


def compile_pattern(pattern: str) -> re.Pattern:
    """Translate an Ant-style path pattern into an anchored regex."""
    out: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("/**", i):
            out.append("(?:/.*)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return re.compile("^" + "".join(out) + "/?$")


@dataclass(frozen=True)
class Rule:
    """One policy line. roles == PUBLIC permits everyone; AUTHENTICATED any signed-in caller."""

    pattern: str
    roles: frozenset[str] = AUTHENTICATED
    methods: frozenset[str] = frozenset()  # empty = any method
    _regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_regex", compile_pattern(self.pattern))

    def matches(self, method: str, path: str) -> bool:
        if self.methods and method.upper() not in self.methods:
            return False
        return self._regex.match(path) is not None


def _roles(*roles: AppRole) -> frozenset[str]:
    return frozenset(r.value for r in roles)


DEFAULT_RULES: tuple[Rule, ...] = (
    Rule("/**", PUBLIC, methods=frozenset({"OPTIONS"})),
    Rule("/api/auth/signin", PUBLIC),
    Rule("/api/auth/signup", PUBLIC),
    Rule("/api/auth/signout", PUBLIC),
    Rule("/api/public/**", PUBLIC),
    Rule("/api/health", PUBLIC),
    Rule("/docs", PUBLIC),
    Rule("/docs/**", PUBLIC),
    Rule("/redoc", PUBLIC),
    Rule("/openapi.json", PUBLIC),
    Rule("/api/admin/**", _roles(AppRole.ADMIN)),
    Rule("/api/cache/**", _roles(AppRole.ADMIN)),
    Rule("/api/seller/**", _roles(AppRole.ADMIN, AppRole.SELLER)),
)


class AuthorizationPolicy:
    def __init__(self, rules=DEFAULT_RULES) -> None:
        self.rules: tuple[Rule, ...] = tuple(rules)

    def required_roles(self, method: str, path: str) -> frozenset[str]:
        for rule in self.rules:
            if rule.matches(method, path):
                return rule.roles
        return AUTHENTICATED

    def decide(self, method: str, path: str, principal: Principal | None) -> Decision:
        required = self.required_roles(method, path)
        if required is PUBLIC or not required:
            return Decision.ALLOW
        if principal is None:
            return Decision.UNAUTHENTICATED
        if required == AUTHENTICATED or principal.has_any_role(required):
            return Decision.ALLOW
        return Decision.FORBIDDEN

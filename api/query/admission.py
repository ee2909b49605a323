"""
Read-only admission filter for user-submitted SQL.

This is a keyword denylist, not a parser: a query is rejected when any rule
matches anywhere in the text (so a trailing `; DROP TABLE x` is caught), and
admitted otherwise. It does not check that the query is a SELECT, nor that it
is valid SQL.

Known gaps:
- mutations outside the fixed list pass (`MERGE`, `COPY`, `CREATE TABLE`,
  `GRANT`, stored procedure calls, comment-split keywords like `DROP/**/TABLE`);
- matching is on substrings, so identifiers can trip a rule
  (`SELECT truncated FROM t` is rejected).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

REJECTION_REASON = "Only SELECT queries are allowed"


@dataclass(frozen=True)
class AdmissionRule:
    name: str
    pattern: re.Pattern[str]

    def matches(self, query: str) -> bool:
        return self.pattern.search(query) is not None


def _rule(name: str, regex: str) -> AdmissionRule:
    return AdmissionRule(name=name, pattern=re.compile(regex, re.IGNORECASE))


# Order decides which rule is reported when several match.
DEFAULT_RULES: tuple[AdmissionRule, ...] = (
    _rule("drop_table", r"DROP\s+TABLE"),
    _rule("drop_database", r"DROP\s+DATABASE"),
    _rule("delete_from", r"DELETE\s+FROM"),
    _rule("update_set", r"UPDATE\s+.*\s+SET"),
    _rule("alter_table", r"ALTER\s+TABLE"),
    _rule("truncate", r"TRUNCATE"),
    _rule("insert_into", r"INSERT\s+INTO"),
)


@dataclass(frozen=True)
class Allowed:
    @property
    def is_allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    rule: str
    reason: str = REJECTION_REASON

    @property
    def is_allowed(self) -> bool:
        return False


AdmissionVerdict = Allowed | Rejected

ALLOWED = Allowed()


def admit(query: str, rules: tuple[AdmissionRule, ...] = DEFAULT_RULES) -> AdmissionVerdict:
    for rule in rules:
        if rule.matches(query):
            return Rejected(rule=rule.name)
    return ALLOWED

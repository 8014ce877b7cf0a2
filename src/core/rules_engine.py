"""Rule compilation and account evaluation logic (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Iterable, List, Sequence

from core.errors import ConfigError
from core.models import UserSnapshot, Verdict

# Flag letters accepted after a delimited pattern such as /spam/i.
_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "u": 0,
}
# Brackets are left out so bare patterns like [abc] keep their meaning.
_DELIMITERS = "/#~!%@"


@dataclass(frozen=True)
class RegexRule:
    """Compiled regex rule; ``raw`` is the configured text used in reasons."""

    raw: str
    pattern: re.Pattern


@dataclass(frozen=True)
class RuleSet:
    """Blacklist and ordered regex rules, immutable once loaded."""

    blacklist: frozenset[str]
    regex_rules: tuple[RegexRule, ...]


def _split_delimited(raw: str) -> tuple[str, int] | None:
    """Split ``/body/flags`` into (body, flags), or None for a bare pattern."""

    if len(raw) < 2 or raw[0] not in _DELIMITERS:
        return None
    end = raw.rfind(raw[0])
    if end <= 0:
        return None
    suffix = raw[end + 1 :]
    if any(letter not in _FLAG_MAP for letter in suffix):
        return None
    flags = 0
    for letter in suffix:
        flags |= _FLAG_MAP[letter]
    return raw[1:end], flags


def compile_rule(raw: str) -> RegexRule:
    """Compile one configured regex.

    Delimited patterns (``/broadcast/i``) honor their trailing flags; any other
    string is compiled as-is.
    """

    delimited = _split_delimited(raw)
    body, flags = delimited if delimited else (raw, 0)
    try:
        return RegexRule(raw=raw, pattern=re.compile(body, flags))
    except re.error as exc:
        raise ConfigError(f"Invalid regex {raw!r}: {exc}") from exc


def build_rule_set(bad_names: Iterable[str], bad_name_regexes: Iterable[str]) -> RuleSet:
    """Build the immutable rule set from configured names and regexes."""

    return RuleSet(
        blacklist=frozenset(bad_names),
        regex_rules=tuple(compile_rule(raw) for raw in bad_name_regexes),
    )


def evaluate(user: UserSnapshot, rules: RuleSet, test_fields: Sequence[str]) -> Verdict:
    """Return the verdict for one user.

    Matching logic:
    - Fields are visited in configured order; absent fields are skipped.
    - An exact (case-sensitive) blacklist hit adds "<field> is a blacklisted name".
    - Every regex rule that matches adds "<field> matches regex <raw>".
    - Nothing short-circuits, so the reason trail lists every hit.
    """

    reasons: List[str] = []
    for field_name in test_fields:
        value = user.fields.get(field_name)
        if value is None:
            continue
        if value in rules.blacklist:
            reasons.append(f"{field_name} is a blacklisted name")
        for rule in rules.regex_rules:
            if rule.pattern.search(value):
                reasons.append(f"{field_name} matches regex {rule.raw}")

    return Verdict(bad=bool(reasons), reasons=tuple(reasons))

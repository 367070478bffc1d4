# Spotcast Connector
# Copyright (C) 2026 Spotcast Connector contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Playlist inclusion filtering.

Rules come from the ``include_playlists`` config list:

    "Discover"            -> name matches /Discover/
    "owner:^spotify$"     -> owner matches /^spotify$/
    "Daily:^Daily Mix"    -> "Daily" is a label, name matches /^Daily Mix/

A playlist is kept when any rule matches.  A broken pattern never fails the
fetch: the caller gets the unfiltered list back and a warning in the log.
evaluate() exposes which path was taken; filter_playlists() just returns
the list.
"""

import logging
import re

from .errors import FilterError, FilterSyntaxError

log = logging.getLogger(__name__)

DEFAULT_KEY = "name"
SEPARATOR = ":"

# Playlist record fields are lowercase snake_case (name, owner, uri, ...)
_FIELD_KEY = re.compile(r"^[a-z_][a-z0-9_]*$")


class InclusionRule:
    def __init__(self, key: str, pattern: re.Pattern, source: str = ""):
        self.key = key
        self.pattern = pattern
        self.source = source

    def matches(self, playlist: dict) -> bool:
        value = playlist.get(self.key)
        if value is None:
            return False
        if not isinstance(value, str):
            value = str(value)
        return self.pattern.search(value) is not None

    def __repr__(self):
        return f"InclusionRule(key={self.key!r}, pattern={self.pattern.pattern!r})"


def parse_rule(text: str) -> InclusionRule:
    """Parse ``key:pattern`` or a bare ``pattern`` into an InclusionRule.

    Raises FilterSyntaxError if the pattern does not compile.
    """
    key = DEFAULT_KEY
    source = text
    if SEPARATOR in text:
        prefix, _, rest = text.partition(SEPARATOR)
        if _FIELD_KEY.match(prefix):
            key = prefix
        source = rest
    source = source.strip()
    try:
        pattern = re.compile(source)
    except re.error as e:
        raise FilterSyntaxError(text, e) from e
    return InclusionRule(key, pattern, text)


# -- Result type -----------------------------------------------------------

class FilterOutcome:
    """Base for the three evaluate() results.

    ``playlists`` is always the list the caller should use.
    """

    fallback = False

    def __init__(self, playlists: list, error: FilterSyntaxError | None = None):
        self.playlists = playlists
        self.error = error


class Filtered(FilterOutcome):
    """Rules applied (or there were none)."""


class CompileFailed(FilterOutcome):
    """A pattern did not compile; playlists are the unfiltered input."""

    fallback = True


class EvaluateFailed(FilterOutcome):
    """A pattern compiled but raised while matching; unfiltered input."""

    fallback = True


def evaluate(playlists, rule_strings) -> FilterOutcome:
    """Apply inclusion rules and report how the result was produced.

    Raises FilterError for anything that is not a pattern syntax problem
    (bad record types, non-string rules, ...).
    """
    items = list(playlists or [])
    if not rule_strings:
        return Filtered(items)

    try:
        rules = [parse_rule(text) for text in rule_strings]
    except FilterSyntaxError as e:
        log.warning("Ignoring playlist filter: %s", e)
        return CompileFailed(items, e)
    except Exception as e:
        raise FilterError(f"Failed to filter playlists: {e}") from e

    included = []
    for playlist in items:
        for rule in rules:
            try:
                hit = rule.matches(playlist)
            except re.error as e:
                err = FilterSyntaxError(rule.source, e)
                log.warning("Ignoring playlist filter: %s", err)
                return EvaluateFailed(items, err)
            except Exception as e:
                raise FilterError(f"Failed to filter playlists: {e}") from e
            if hit:
                included.append(playlist)
                break

    log.debug("Playlist filter kept %d of %d", len(included), len(items))
    return Filtered(included)


def filter_playlists(playlists, rule_strings) -> list:
    """Return the playlists matching at least one inclusion rule."""
    return evaluate(playlists, rule_strings).playlists

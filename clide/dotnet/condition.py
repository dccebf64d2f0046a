"""Parse MSBuild property group conditions into configuration keys.

Only the declarative form Visual Studio writes is understood::

    '$(Configuration)|$(Platform)' == 'Debug|x86'
    '$(Configuration)' == 'Release'
    '$(Platform)' == 'AnyCPU'

Platform-only conditions and anything else (and/or chains, function calls,
comparisons against empty strings) yield no key; such groups are not
treated as configurations.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

CONFIGURATION = "Configuration"
PLATFORM = "Platform"

# 'lhs' == 'rhs', surrounding whitespace allowed
_EQUALITY_RE = re.compile(r"^\s*'([^']*)'\s*==\s*'([^']*)'\s*$")
_VARIABLE_RE = re.compile(r"^\s*\$\(\s*(\w+)\s*\)\s*$")


@dataclass(frozen=True)
class ConditionKey:
    configuration: str | None = None
    platform: str | None = None

    def matches(self, configuration: str, platform: str | None = None) -> bool:
        """Compare against a requested configuration.

        The platform only takes part when it is requested.
        """
        if self.configuration is None or self.configuration.lower() != configuration.lower():
            return False
        if platform is None:
            return True
        return (self.platform or "").lower() == platform.lower()

    def __str__(self) -> str:
        if self.platform:
            return f"{self.configuration}|{self.platform}"
        return self.configuration or ""


def parse_condition(text: str | None) -> ConditionKey | None:
    """Return the configuration key a condition selects, or None."""
    if not text:
        return None

    match = _EQUALITY_RE.match(text)
    if match is None:
        return None

    variables = match.group(1).split("|")
    values = match.group(2).split("|")
    if len(variables) != len(values):
        return None

    found: dict[str, str] = {}
    for variable, value in zip(variables, values):
        var_match = _VARIABLE_RE.match(variable)
        if var_match is None:
            return None
        found[var_match.group(1).lower()] = value.strip()

    configuration = found.get(CONFIGURATION.lower()) or None
    platform = found.get(PLATFORM.lower()) or None
    if configuration is None:
        return None
    return ConditionKey(configuration, platform)


def parse_config_name(name: str) -> tuple[str, str | None]:
    """Split ``Debug|x86`` into ``("Debug", "x86")``; platform may be absent."""
    configuration, _, platform = name.partition("|")
    return configuration.strip(), (platform.strip() or None)

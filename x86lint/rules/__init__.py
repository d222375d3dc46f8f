"""Rule engine for detecting suboptimal x86-64 encodings.

The rule engine provides a pluggable system for detecting instructions
that an equivalent, shorter or safer encoding could replace.

Each rule:
1. Examines one decoded instruction (or a short window after it)
2. Returns OPTIMAL for instructions it does not apply to
3. Returns a FLAGGED verdict with a reason otherwise
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import Rule, RuleContext, RuleRegistry
from .atomics import MissingLockPrefixRule, SuperfluousLockPrefixRule
from .encoding import ImplicitImmediateRule, ImplicitRegisterRule, UnneededRexRule
from .immediates import (
    AndStrengthReduceRule,
    CmpZeroRule,
    MovZeroRule,
    OversizedAdd128Rule,
    OversizedImmediateRule,
)
from .nops import SuboptimalNopsRule, check_suboptimal_nops

if TYPE_CHECKING:
    from ..config import LintConfig

# Register all rules
_registry = RuleRegistry()
_registry.register(SuboptimalNopsRule())
_registry.register(OversizedImmediateRule())
_registry.register(OversizedAdd128Rule())
_registry.register(UnneededRexRule())
_registry.register(CmpZeroRule())
_registry.register(MovZeroRule())
_registry.register(ImplicitRegisterRule())
_registry.register(ImplicitImmediateRule())
_registry.register(AndStrengthReduceRule())
_registry.register(MissingLockPrefixRule())
_registry.register(SuperfluousLockPrefixRule())


def get_registry() -> RuleRegistry:
    """Get the global rule registry."""
    return _registry


def build_registry(config: "LintConfig") -> RuleRegistry:
    """Copy the global registry and apply a configuration's rule toggles.

    Args:
        config: Configuration naming rules to enable and disable.

    Returns:
        A registry independent of the global one.

    Raises:
        ConfigError: If a rule name is unknown.
    """
    registry = _registry.copy()
    for name in config.enable:
        registry.enable(name)
    for name in config.disable:
        registry.disable(name)
    return registry


__all__ = [
    "Rule",
    "RuleContext",
    "RuleRegistry",
    "get_registry",
    "build_registry",
    "check_suboptimal_nops",
    "SuboptimalNopsRule",
    "OversizedImmediateRule",
    "OversizedAdd128Rule",
    "UnneededRexRule",
    "CmpZeroRule",
    "MovZeroRule",
    "ImplicitRegisterRule",
    "ImplicitImmediateRule",
    "AndStrengthReduceRule",
    "MissingLockPrefixRule",
    "SuperfluousLockPrefixRule",
]

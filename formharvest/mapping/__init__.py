"""
Mapping layer: role classification and per-role validation of observations.
"""

from formharvest.mapping.classifier import ROLE_RULES, RoleRule, classify
from formharvest.mapping.validator import VALIDATORS, validate, validate_field, validate_observations

__all__ = [
    "ROLE_RULES",
    "RoleRule",
    "classify",
    "VALIDATORS",
    "validate",
    "validate_field",
    "validate_observations",
]

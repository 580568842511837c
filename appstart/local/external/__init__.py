"""
This module initializes the base template upgrade system.
It exposes the `TemplateUpgrader` class and the `upgrade` command entry point.
"""

from .external import TemplateUpgrader, UpgradePlan, run_upgrade

__all__ = ["TemplateUpgrader", "UpgradePlan", "run_upgrade"]

from __future__ import annotations

from src.tools.builtins.analyzer import register_analyzer_tools
from src.tools.builtins.executive import register_executive_tools
from src.tools.builtins.pricer import register_pricer_tools
from src.tools.builtins.strategist import register_strategist_tools
from src.tools.builtins.vault import register_vault_tools

__all__ = [
    "register_analyzer_tools",
    "register_executive_tools",
    "register_pricer_tools",
    "register_strategist_tools",
    "register_vault_tools",
]

"""
AutoCFO: Autonomous Treasury Agent
==================================

An agent that keeps a DAO treasury split between a yield-bearing RWA vault
position and a USDC reserve, rebalances to a minimum reserve and pays
payroll to ENS-named recipients.
"""

from .core.config import settings
from .core.exceptions import AutoCFOError

__version__ = "0.1.0"
__author__ = "AutoCFO Team"

__all__ = [
    "settings",
    "AutoCFOError",
]

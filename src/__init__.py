"""
Governance oracle daemon.

Mirrors Dash Core governance state (proposals, masternodes and their votes)
into a Dash Platform data contract on a fixed schedule.
"""

__all__ = [
]

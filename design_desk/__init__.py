"""
Design Desk.

Chat bot that turns `!request` commands into tracked design requests
with per-client monthly quotas.
"""

__version__ = "0.1.0"

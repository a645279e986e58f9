"""Werewolf game rule engine.

Drives lobby setup, role dealing, night actions, nominations and votes,
death chains and win detection for any number of independent sessions.
"""

__version__ = "0.1.0"

"""Game domain services: action rules, room registry and local sessions.

This package contains pure(ish) domain logic that is imported by socket
handlers and the command line, keeping transport concerns separated from
core game mechanics.
"""

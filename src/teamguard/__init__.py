"""teamguard — multi-tenant role-based access control backend.

Tenants own teams, teams own users and groups, groups carry roles, and
roles grant actions on modules. The core resolves a user's effective
permissions within a team, makes allow/deny decisions, and runs the
passwordless-login and session lifecycle that establishes identity.
"""

__version__ = "0.1.0"

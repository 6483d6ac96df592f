"""Time Tracker package.

Feature modules (access, time_entries, teams, users, ...) follow the same
shape: frozen dataclass models, a repository Protocol with a MySQL
implementation, a service layer holding the rules and a thin Flask controller.
"""

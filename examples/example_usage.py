"""Example: drive the service layer directly, without Flask.

Controllers are a thin layer; every rule (single running timer, tenant
scoping, durations) lives in the services.
"""

import importlib

from config import get_settings_module

from time_tracker.access.roles import Caller
from time_tracker.container import build_container
from time_tracker.core.enums import Role


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG)
    caller = Caller(user_id=1, role=Role.EMPLOYEE, company_id=1)

    entry = container.time_entry_service.start_timer(caller, description="Example entry", is_billable=True)
    stopped = container.time_entry_service.stop_timer(caller, entry.entry_id)
    print(stopped)
    print(container.time_entry_service.summarize(caller, "today").formatted_total)


if __name__ == "__main__":
    main()

from __future__ import annotations

from typing import Optional, Protocol

from .model import Client, Project


class ProjectLookup(Protocol):
    """Source of truth for the project/client names snapshotted onto time entries."""

    def get_project(self, project_id: int) -> Optional[Project]:
        raise NotImplementedError

    def get_client(self, client_id: int) -> Optional[Client]:
        raise NotImplementedError

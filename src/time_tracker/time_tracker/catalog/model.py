from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Project:
    project_id: int
    name: str
    company_id: Optional[int]
    client_id: Optional[int] = None


@dataclass(frozen=True)
class Client:
    client_id: int
    name: str
    company_id: Optional[int]

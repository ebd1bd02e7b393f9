from __future__ import annotations

from dataclasses import dataclass

from .base import BaseModel


@dataclass(frozen=True, slots=True)
class UpdateModel:
    model: BaseModel
    priority: int

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Branch


class BranchRepository(Protocol):
    def get_by_id(self, branch_id: int) -> Optional[Branch]:
        raise NotImplementedError

    def get_by_code(self, code: str) -> Optional[Branch]:
        raise NotImplementedError

    def get_by_name(self, name: str) -> Optional[Branch]:
        raise NotImplementedError

    def list_active(self) -> Sequence[Branch]:
        """Active branches ordered by name."""

        raise NotImplementedError

    def create(self, branch: Branch) -> int:
        """Insert and return branch_id (``branch.branch_id`` is ignored)."""

        raise NotImplementedError

    def update(self, branch: Branch) -> bool:
        raise NotImplementedError

    def set_active(self, branch_id: int, is_active: bool) -> bool:
        raise NotImplementedError

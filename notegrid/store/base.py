from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from .. import db
from ..models import Link, LinkUpdate, Task, TaskUpdate, UserData


class UserDataStore(ABC):
    """Server-side persistence of every identity's tasks and links.

    All mutating calls take ``now`` (epoch ms) and bump the owner's
    ``updatedAt``; writes for an identity with no user record create it.
    """

    def __init__(self, db_path: Path | str = db.DEFAULT_DB_PATH, *, check_same_thread: bool = True):
        self.db_path = Path(db_path).expanduser()
        self.conn = db.connect(self.db_path, check_same_thread=check_same_thread)
        db.initialize_schema(self.conn)

    def close(self) -> None:
        self.conn.close()

    @abstractmethod
    def user_exists(self, uuid: str) -> bool: ...

    @abstractmethod
    def register_user(self, uuid: str, *, now: int) -> UserData: ...

    @abstractmethod
    def delete_user(self, uuid: str) -> None: ...

    @abstractmethod
    def get_user_data(self, uuid: str) -> UserData | None: ...

    @abstractmethod
    def put_user_data(self, uuid: str, data: UserData, *, now: int) -> UserData: ...

    @abstractmethod
    def list_tasks(self, uuid: str) -> list[Task]: ...

    @abstractmethod
    def create_task(self, uuid: str, task: Task, *, now: int) -> Task: ...

    @abstractmethod
    def update_task(self, uuid: str, task_id: str, update: TaskUpdate, *, now: int) -> Task: ...

    @abstractmethod
    def delete_task(self, uuid: str, task_id: str, *, now: int) -> None: ...

    @abstractmethod
    def reorder_tasks(self, uuid: str, task_ids: Sequence[str], *, now: int) -> None: ...

    @abstractmethod
    def list_links(self, uuid: str) -> list[Link]: ...

    @abstractmethod
    def create_link(self, uuid: str, link: Link, *, now: int) -> Link: ...

    @abstractmethod
    def update_link(self, uuid: str, link_id: str, update: LinkUpdate, *, now: int) -> Link: ...

    @abstractmethod
    def delete_link(self, uuid: str, link_id: str, *, now: int) -> None: ...

    @abstractmethod
    def reorder_links(self, uuid: str, link_ids: Sequence[str], *, now: int) -> None: ...

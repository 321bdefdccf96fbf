from __future__ import annotations

from typing import Any, Dict

from controle_pedidos.domain.contracts import Actor, ServiceOutput
from controle_pedidos.errors import NotFoundError, ValidationError
from controle_pedidos.formatting import parse_int
from controle_pedidos.infrastructure.repositories import StickyNoteRepository, TaskListRepository, TaskRepository
from controle_pedidos.ui_strings import status_keys_for_group, success_message


NOTE_DEFAULTS: Dict[str, Any] = {
    "content": "",
    "color": "#fef08a",
    "pos_x": 0,
    "pos_y": 0,
    "width": 200,
    "height": 150,
    "priority": "medium",
}
TASK_LIST_DEFAULTS: Dict[str, Any] = {
    "title": "Nova Lista",
    "color": "#bfdbfe",
    "pos_x": 0,
    "pos_y": 0,
}
_GEOMETRY_FIELDS = ("pos_x", "pos_y", "width", "height")


class WorkspaceService:
    """Sticky notes and task boards. Every row is private to the user who created it."""

    def __init__(
        self,
        note_repository: StickyNoteRepository | None = None,
        list_repository: TaskListRepository | None = None,
        task_repository: TaskRepository | None = None,
    ) -> None:
        self.notes = note_repository or StickyNoteRepository()
        self.lists = list_repository or TaskListRepository()
        self.tasks = task_repository or TaskRepository()

    # -- sticky notes ------------------------------------------------------

    def list_notes(self, db, *, actor: Actor) -> ServiceOutput:
        return ServiceOutput(payload={"notes": self.notes.list_for_user(db, actor.user_id)})

    def create_note(self, db, *, actor: Actor, payload: Dict[str, Any]) -> ServiceOutput:
        values = dict(NOTE_DEFAULTS)
        values.update(self._note_values(payload))
        values["user_id"] = actor.user_id
        note_id = self.notes.insert(db, values)
        return ServiceOutput(payload={"note": self.notes.get_by_id(db, note_id)}, status_code=201)

    def update_note(self, db, *, actor: Actor, note_id: int, payload: Dict[str, Any]) -> ServiceOutput:
        self._owned_note(db, actor, note_id)
        values = self._note_values(payload)
        if not values:
            raise ValidationError(code="no_changes")
        self.notes.update_fields(db, note_id, values)
        return ServiceOutput(payload={"note": self.notes.get_by_id(db, note_id)})

    def delete_note(self, db, *, actor: Actor, note_id: int) -> ServiceOutput:
        self._owned_note(db, actor, note_id)
        self.notes.delete(db, note_id)
        return ServiceOutput(payload={"deleted": True, "message": success_message("deleted")})

    # -- task lists --------------------------------------------------------

    def list_task_lists(self, db, *, actor: Actor) -> ServiceOutput:
        tasks_by_list: Dict[int, list] = {}
        for task in self.tasks.list_for_user(db, actor.user_id):
            tasks_by_list.setdefault(int(task["list_id"]), []).append(task)
        task_lists = []
        for task_list in self.lists.list_for_user(db, actor.user_id):
            task_list["tasks"] = tasks_by_list.get(int(task_list["id"]), [])
            task_lists.append(task_list)
        return ServiceOutput(payload={"task_lists": task_lists})

    def create_task_list(self, db, *, actor: Actor, payload: Dict[str, Any]) -> ServiceOutput:
        values = dict(TASK_LIST_DEFAULTS)
        values.update(self._list_values(payload))
        if not values.get("title"):
            values["title"] = TASK_LIST_DEFAULTS["title"]
        values["user_id"] = actor.user_id
        list_id = self.lists.insert(db, values)
        task_list = self.lists.get_by_id(db, list_id)
        task_list["tasks"] = []
        return ServiceOutput(payload={"task_list": task_list}, status_code=201)

    def update_task_list(self, db, *, actor: Actor, list_id: int, payload: Dict[str, Any]) -> ServiceOutput:
        self._owned_list(db, actor, list_id)
        values = self._list_values(payload)
        if not values:
            raise ValidationError(code="no_changes")
        self.lists.update_fields(db, list_id, values, touch=False)
        return ServiceOutput(payload={"task_list": self.lists.get_by_id(db, list_id)})

    def delete_task_list(self, db, *, actor: Actor, list_id: int) -> ServiceOutput:
        self._owned_list(db, actor, list_id)
        self.lists.delete_with_tasks(db, list_id)
        return ServiceOutput(payload={"deleted": True, "message": success_message("deleted")})

    # -- tasks -------------------------------------------------------------

    def create_task(self, db, *, actor: Actor, list_id: int, text: str) -> ServiceOutput:
        self._owned_list(db, actor, list_id)
        cleaned = str(text or "").strip()
        if not cleaned:
            raise ValidationError(code="task_text_required")
        task_id = self.tasks.insert(
            db,
            {
                "user_id": actor.user_id,
                "list_id": list_id,
                "text": cleaned,
                "done": False,
                "position": self.tasks.next_position(db, list_id),
            },
        )
        return ServiceOutput(payload={"task": self.tasks.get_by_id(db, task_id)}, status_code=201)

    def update_task(self, db, *, actor: Actor, task_id: int, payload: Dict[str, Any]) -> ServiceOutput:
        self._owned_task(db, actor, task_id)
        values: Dict[str, Any] = {}
        if "text" in payload:
            cleaned = str(payload.get("text") or "").strip()
            if not cleaned:
                raise ValidationError(code="task_text_required")
            values["text"] = cleaned
        if "done" in payload:
            values["done"] = bool(payload.get("done"))
        if "position" in payload:
            values["position"] = parse_int(payload.get("position"), default=0)
        if not values:
            raise ValidationError(code="no_changes")
        self.tasks.update_fields(db, task_id, values, touch=False)
        return ServiceOutput(payload={"task": self.tasks.get_by_id(db, task_id)})

    def delete_task(self, db, *, actor: Actor, task_id: int) -> ServiceOutput:
        self._owned_task(db, actor, task_id)
        self.tasks.delete(db, task_id)
        return ServiceOutput(payload={"deleted": True, "message": success_message("deleted")})

    # -- helpers -----------------------------------------------------------

    @staticmethod
    def _note_values(payload: Dict[str, Any]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        if "content" in payload:
            values["content"] = str(payload.get("content") or "")
        if "color" in payload:
            values["color"] = str(payload.get("color") or NOTE_DEFAULTS["color"]).strip()
        for name in _GEOMETRY_FIELDS:
            if name in payload:
                values[name] = parse_int(payload.get(name), default=int(NOTE_DEFAULTS[name]))
        if "priority" in payload:
            priority = str(payload.get("priority") or "").strip().lower()
            if priority not in status_keys_for_group("priority"):
                raise ValidationError(code="priority_invalid")
            values["priority"] = priority
        return values

    @staticmethod
    def _list_values(payload: Dict[str, Any]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        if "title" in payload:
            values["title"] = str(payload.get("title") or "").strip() or TASK_LIST_DEFAULTS["title"]
        if "color" in payload:
            values["color"] = str(payload.get("color") or TASK_LIST_DEFAULTS["color"]).strip()
        for name in ("pos_x", "pos_y"):
            if name in payload:
                values[name] = parse_int(payload.get(name), default=0)
        return values

    def _owned_note(self, db, actor: Actor, note_id: int) -> dict:
        note = self.notes.get_owned(db, note_id, actor.user_id)
        if not note:
            raise NotFoundError(code="note_not_found")
        return note

    def _owned_list(self, db, actor: Actor, list_id: int) -> dict:
        task_list = self.lists.get_owned(db, list_id, actor.user_id)
        if not task_list:
            raise NotFoundError(code="task_list_not_found")
        return task_list

    def _owned_task(self, db, actor: Actor, task_id: int) -> dict:
        task = self.tasks.get_owned(db, task_id, actor.user_id)
        if not task:
            raise NotFoundError(code="task_not_found")
        return task

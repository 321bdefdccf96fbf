from __future__ import annotations

from flask import Blueprint, jsonify, request

from controle_pedidos.application.workspace_service import WorkspaceService
from controle_pedidos.db import get_db
from controle_pedidos.policies import current_actor
from controle_pedidos.routes.common import json_payload


workspace_bp = Blueprint("workspace", __name__)

_WORKSPACE_SERVICE = WorkspaceService()


@workspace_bp.route("/api/workspace/notes", methods=["GET", "POST"])
def notes():
    db = get_db()
    actor = current_actor()
    if request.method == "GET":
        result = _WORKSPACE_SERVICE.list_notes(db, actor=actor)
        return jsonify(result.payload), result.status_code
    result = _WORKSPACE_SERVICE.create_note(db, actor=actor, payload=json_payload())
    db.commit()
    return jsonify(result.payload), result.status_code


@workspace_bp.route("/api/workspace/notes/<int:note_id>", methods=["PATCH", "DELETE"])
def note_detail(note_id: int):
    db = get_db()
    actor = current_actor()
    if request.method == "DELETE":
        result = _WORKSPACE_SERVICE.delete_note(db, actor=actor, note_id=note_id)
    else:
        result = _WORKSPACE_SERVICE.update_note(db, actor=actor, note_id=note_id, payload=json_payload())
    db.commit()
    return jsonify(result.payload), result.status_code


@workspace_bp.route("/api/workspace/task-lists", methods=["GET", "POST"])
def task_lists():
    db = get_db()
    actor = current_actor()
    if request.method == "GET":
        result = _WORKSPACE_SERVICE.list_task_lists(db, actor=actor)
        return jsonify(result.payload), result.status_code
    result = _WORKSPACE_SERVICE.create_task_list(db, actor=actor, payload=json_payload())
    db.commit()
    return jsonify(result.payload), result.status_code


@workspace_bp.route("/api/workspace/task-lists/<int:list_id>", methods=["PATCH", "DELETE"])
def task_list_detail(list_id: int):
    db = get_db()
    actor = current_actor()
    if request.method == "DELETE":
        result = _WORKSPACE_SERVICE.delete_task_list(db, actor=actor, list_id=list_id)
    else:
        result = _WORKSPACE_SERVICE.update_task_list(db, actor=actor, list_id=list_id, payload=json_payload())
    db.commit()
    return jsonify(result.payload), result.status_code


@workspace_bp.route("/api/workspace/task-lists/<int:list_id>/tasks", methods=["POST"])
def create_task(list_id: int):
    db = get_db()
    result = _WORKSPACE_SERVICE.create_task(
        db,
        actor=current_actor(),
        list_id=list_id,
        text=str(json_payload().get("text") or ""),
    )
    db.commit()
    return jsonify(result.payload), result.status_code


@workspace_bp.route("/api/workspace/tasks/<int:task_id>", methods=["PATCH", "DELETE"])
def task_detail(task_id: int):
    db = get_db()
    actor = current_actor()
    if request.method == "DELETE":
        result = _WORKSPACE_SERVICE.delete_task(db, actor=actor, task_id=task_id)
    else:
        result = _WORKSPACE_SERVICE.update_task(db, actor=actor, task_id=task_id, payload=json_payload())
    db.commit()
    return jsonify(result.payload), result.status_code

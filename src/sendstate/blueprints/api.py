"""JSON API blueprint for message send state."""

from typing import Any

from flask import Blueprint, jsonify, request
from werkzeug.wrappers import Response

from sendstate.messages.send_state import (
    SendActionType,
    UpdateEvent,
    send_state_map_from_dict,
    send_state_map_to_dict,
    summarize,
)
from sendstate.models.conversation import Conversation
from sendstate.models.message import Message
from sendstate.services.migration import load_message

bp = Blueprint("api", __name__, url_prefix="/api/v1")


def _is_timestamp(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@bp.route("/messages", methods=["POST"])
def create_message() -> Response | tuple[Response, int]:
    """Store a message record."""
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON body"}), 400

    message_id = data.get("id")
    conversation_id = data.get("conversation_id")
    message_type = data.get("type", "outgoing")
    sent_at = data.get("sent_at")
    body = data.get("body", "")
    legacy = data.get("legacy")
    send_state = data.get("send_state")

    if message_id is not None and (not isinstance(message_id, str) or not message_id):
        return jsonify({"error": "id must be a non-empty string"}), 400
    if conversation_id is not None and (
        not isinstance(conversation_id, str) or not conversation_id
    ):
        return jsonify({"error": "conversation_id must be a non-empty string"}), 400
    if not isinstance(body, str):
        return jsonify({"error": "body must be a string"}), 400
    if message_type not in ("outgoing", "incoming"):
        return jsonify({"error": "type must be outgoing or incoming"}), 400
    if sent_at is not None and not _is_timestamp(sent_at):
        return jsonify({"error": "sent_at must be an integer timestamp"}), 400
    if legacy is not None and not isinstance(legacy, dict):
        return jsonify({"error": "legacy must be an object"}), 400
    if message_id and Message.get_by_id(message_id) is not None:
        return jsonify({"error": "Message already exists"}), 409

    message = Message.create(
        conversation_id=conversation_id,
        message_type=message_type,
        sent_at=sent_at,
        body=body,
        send_state=send_state_map_from_dict(send_state),
        legacy=legacy,
        message_id=message_id,
    )
    return jsonify(_message_to_dict(message)), 201


@bp.route("/messages/<message_id>")
def get_message(message_id: str) -> Response | tuple[Response, int]:
    """Get a message and its per-recipient send state."""
    message = load_message(message_id)
    if message is None:
        return jsonify({"error": "Message not found"}), 404

    return jsonify(_message_to_dict(message))


@bp.route("/messages/<message_id>/events", methods=["POST"])
def post_event(message_id: str) -> Response | tuple[Response, int]:
    """Apply a delivery event (send result or receipt) for one recipient."""
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON body"}), 400

    conversation_id = data.get("conversation_id")
    updated_at = data.get("updated_at")
    if not conversation_id or not isinstance(conversation_id, str):
        return jsonify({"error": "conversation_id is required"}), 400
    try:
        action = SendActionType(data.get("type"))
    except ValueError:
        allowed = ", ".join(t.value for t in SendActionType)
        return jsonify({"error": f"type must be one of: {allowed}"}), 400
    if updated_at is not None and not _is_timestamp(updated_at):
        return jsonify({"error": "updated_at must be an integer timestamp"}), 400

    message = load_message(message_id)
    if message is None:
        return jsonify({"error": "Message not found"}), 404
    if not message.is_outgoing():
        return jsonify({"error": "Send state applies to outgoing messages only"}), 400

    state = message.apply_event(
        UpdateEvent(recipient_id=conversation_id, type=action, updated_at=updated_at)
    )
    return jsonify({"conversation_id": conversation_id, **state.to_dict()})


@bp.route("/conversations/resolve")
def resolve_conversation() -> Response | tuple[Response, int]:
    """Resolve a legacy identifier to a conversation."""
    conversation = Conversation.lookup(request.args.get("identifier"))
    if conversation is None:
        return jsonify({"error": "Conversation not found"}), 404

    return jsonify(
        {
            "id": conversation.id,
            "e164": conversation.e164,
            "service_id": conversation.service_id,
            "name": conversation.name,
        }
    )


def _message_to_dict(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "type": message.type,
        "sent_at": message.sent_at,
        "body": message.body,
        "send_state": send_state_map_to_dict(message.send_state),
        "summary": summarize(message.send_state),
        "created_at": message.created_at,
        "updated_at": message.updated_at,
    }

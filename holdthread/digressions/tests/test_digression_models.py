import pytest
from pydantic import ValidationError

from holdthread.digressions.models import DigressionSession
from holdthread.sessions.models import Message, Role


def test_parent_session_required():
    with pytest.raises(ValidationError):
        DigressionSession(parent_session_id="")
    with pytest.raises(ValidationError):
        DigressionSession(parent_session_id="   ")


def test_add_message_bumps_last_updated():
    digression = DigressionSession(parent_session_id="s1", selected_text="photosynthesis")
    before = digression.last_updated_at
    digression.add_message(Message(role=Role.system, content="seed"))
    assert len(digression.messages) == 1
    assert digression.last_updated_at >= before


def test_update_selected_text():
    digression = DigressionSession(parent_session_id="s1")
    assert digression.selected_text is None
    digression.update_selected_text("chlorophyll")
    assert digression.selected_text == "chlorophyll"


def test_last_assistant_message():
    digression = DigressionSession(parent_session_id="s1")
    assert digression.last_assistant_message() is None
    for role, content in [
        (Role.system, "seed"),
        (Role.user, "q1"),
        (Role.assistant, "A1"),
        (Role.user, "q2"),
        (Role.assistant, "A2"),
        (Role.user, "q3"),
    ]:
        digression.add_message(Message(role=role, content=content))
    assert digression.last_assistant_message().content == "A2"

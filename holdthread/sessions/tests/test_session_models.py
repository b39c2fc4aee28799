import pytest
from pydantic import ValidationError

from holdthread.sessions.models import Message, Role, Session


def test_message_requires_role_and_content():
    with pytest.raises(ValidationError):
        Message(role=Role.user, content="")
    with pytest.raises(ValidationError):
        Message(role="", content="hello")
    with pytest.raises(ValidationError):
        Message(role="narrator", content="hello")


def test_message_is_immutable():
    msg = Message(role=Role.user, content="hello")
    with pytest.raises(ValidationError):
        msg.content = "changed"


def test_session_append_bumps_last_updated():
    session = Session()
    before = session.last_updated_at
    session.append(Message(role="user", content="hi"))
    assert [m.content for m in session.main_chain] == ["hi"]
    assert session.last_updated_at >= before
    assert session.created_at <= session.last_updated_at


def test_session_ids_are_unique():
    assert Session().id != Session().id

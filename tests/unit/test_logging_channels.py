from core.logging import LogChannel, _redact_sensitive
from core.logging.channels import get_channel_for_component


def test_component_channels():
    assert get_channel_for_component("connection_manager") == LogChannel.STREAM
    assert get_channel_for_component("snapshot_loader") == LogChannel.SNAPSHOT
    assert get_channel_for_component("auth") == LogChannel.AUDIT
    assert get_channel_for_component("something_else") == LogChannel.APPLICATION


def test_credentials_are_redacted():
    event = {
        "event": "login",
        "username": "bob",
        "password": "hunter2",
        "body": {"apiKey": "k-1", "nested": [{"token": "t"}]},
    }

    redacted = _redact_sensitive(None, "info", event)

    assert redacted["username"] == "bob"
    assert redacted["password"] == "[REDACTED]"
    assert redacted["body"]["apiKey"] == "[REDACTED]"
    assert redacted["body"]["nested"][0]["token"] == "[REDACTED]"

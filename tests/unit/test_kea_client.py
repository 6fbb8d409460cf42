"""Unit tests for the Kea command channel client."""

import pytest
import requests

from conftest import KEA_URL, NOT_JSON, FakeKeaSession, FakeResponse
from core.kea_client import (
    KeaClient,
    KeaCommandError,
    KeaTransportError,
    build_session,
    is_read_only,
)
from models import KeaSettings, RunMode


@pytest.mark.parametrize(
    "command",
    ["list-commands", "subnet4-list", "reservation-get", "config-get", "status-get", "version-get", "list-hooks"],
)
def test_read_only_commands(command):
    assert is_read_only(command)


@pytest.mark.parametrize(
    "command",
    ["subnet4-add", "subnet4-del", "reservation-add", "reservation-del", "config-write", "config-set", "shutdown"],
)
def test_mutating_commands(command):
    assert not is_read_only(command)


def test_envelope_without_arguments(kea, make_client):
    make_client(kea).invoke("config-write")

    assert kea.posts[0]["url"] == KEA_URL
    assert kea.calls[0] == {"command": "config-write", "service": ["dhcp4"]}


def test_envelope_with_arguments_and_timeouts(kea):
    client = KeaClient(url=KEA_URL, session=kea, mode=RunMode.APPLY, connect_timeout=2.0, request_timeout=9.0)
    client.invoke("subnet4-del", {"id": 4})

    assert kea.calls[0] == {"command": "subnet4-del", "service": ["dhcp4"], "arguments": {"id": 4}}
    assert kea.posts[0]["timeout"] == (2.0, 9.0)


def test_build_session_sets_basic_auth_and_json_headers():
    session = build_session("kea-api", "secret")

    assert session.auth == ("kea-api", "secret")
    assert session.headers["Content-Type"] == "application/json"
    session.close()


def test_build_session_without_credentials():
    session = build_session(None, None)

    assert session.auth is None
    session.close()


def test_build_session_sends_user_with_empty_password():
    session = build_session("kea-api", "")

    assert session.auth == ("kea-api", "")
    session.close()


def test_build_session_password_without_user_warns(caplog):
    with caplog.at_level("WARNING", logger="core.kea_client"):
        session = build_session(None, "secret")

    assert session.auth is None
    assert "without KEA_USERNAME" in caplog.text
    session.close()


def test_from_settings_uses_configured_mode():
    settings = KeaSettings(api_url="http://kea.example:8000/", username="u", password="p", mode="apply")
    client = KeaClient.from_settings(settings)

    assert client.url == "http://kea.example:8000"
    assert client.mode is RunMode.APPLY
    assert client.session.auth == ("u", "p")
    assert KeaClient.from_settings(settings, mode=RunMode.DRY_RUN).dry_run
    client.close()


def test_dry_run_holds_back_mutations(kea, make_client):
    client = make_client(kea, RunMode.DRY_RUN)

    results = client.invoke("subnet4-add", {"subnet4": [{"id": 1, "subnet": "10.0.0.0/24"}]})

    assert kea.calls == []
    assert results[0].result == 0
    assert results[0].text == "simulated"


def test_dry_run_still_sends_reads(kea, make_client):
    client = make_client(kea, RunMode.DRY_RUN)

    client.invoke("subnet4-list")

    assert kea.commands == ["subnet4-list"]


def test_apply_sends_mutations(kea, make_client):
    make_client(kea, RunMode.APPLY).invoke("config-write")

    assert kea.commands == ["config-write"]


def test_logical_failure_raises_with_text(kea, make_client):
    kea.fail("reservation-add", text="Database duplicate entry error")

    with pytest.raises(KeaCommandError) as excinfo:
        make_client(kea).invoke("reservation-add", {"reservation": {}})

    assert excinfo.value.result == 1
    assert excinfo.value.text == "Database duplicate entry error"
    assert excinfo.value.command == "reservation-add"


def test_empty_result_is_not_a_failure(kea, make_client):
    results = make_client(kea).invoke("subnet4-list")

    assert results[0].result == 3
    assert results[0].get_list("subnets") == []


def test_http_error_is_transport_failure(kea, make_client):
    kea.queue(FakeResponse({"detail": "unauthorized"}, status_code=401))

    with pytest.raises(KeaTransportError):
        make_client(kea).invoke("subnet4-list")


def test_connection_error_is_transport_failure(kea, make_client):
    kea.queue(requests.ConnectionError("refused"))

    with pytest.raises(KeaTransportError):
        make_client(kea).invoke("subnet4-list")


def test_non_json_body_is_transport_failure(kea, make_client):
    kea.queue(FakeResponse(NOT_JSON, raw="<html>"))

    with pytest.raises(KeaTransportError):
        make_client(kea).invoke("subnet4-list")


def test_entry_without_result_is_transport_failure(kea, make_client):
    kea.queue(FakeResponse([{"text": "???"}]))

    with pytest.raises(KeaTransportError):
        make_client(kea).invoke("subnet4-list")


def test_single_object_response_is_accepted(kea, make_client):
    kea.queue(FakeResponse({"result": 0, "text": "ok", "arguments": {"subnets": []}}))

    results = make_client(kea).invoke("subnet4-list")

    assert len(results) == 1
    assert results[0].text == "ok"


def test_list_commands(kea, make_client):
    commands = make_client(kea, RunMode.DRY_RUN).list_commands()

    assert "subnet4-add" in commands
    assert kea.commands == ["list-commands"]


def test_close_closes_session():
    session = FakeKeaSession()
    KeaClient(url=KEA_URL, session=session).close()

    assert session.closed

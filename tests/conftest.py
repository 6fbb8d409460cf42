"""Shared fixtures: an in-memory Kea control agent standing in for requests.Session."""

from __future__ import annotations

from typing import Any, Callable

import pytest
import requests

from core.kea_client import KeaClient
from models import RunMode

KEA_URL = "http://kea.test:8000"


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200, *, raw: str | None = None) -> None:
        self._payload = payload
        self.status_code = status_code
        self.text = raw if raw is not None else "json"

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error", response=self)

    def json(self) -> Any:
        if self._payload is NOT_JSON:
            raise ValueError("Expecting value")
        return self._payload


NOT_JSON = object()


class FakeKeaSession:
    """Keeps subnets and reservations in memory and records every envelope posted."""

    def __init__(self, subnets: list[dict[str, Any]] | None = None) -> None:
        self.subnets: list[dict[str, Any]] = [dict(item) for item in subnets or []]
        self.reservations: list[dict[str, Any]] = []
        self.calls: list[dict[str, Any]] = []
        self.posts: list[dict[str, Any]] = []
        self.headers: dict[str, str] = {}
        self.auth: tuple[str, str] | None = None
        self.closed = False
        self._failures: dict[tuple[str, int], tuple[int, str]] = {}
        self._transport_failures: set[str] = set()
        self._queued: list[Any] = []
        self._counts: dict[str, int] = {}

    @property
    def commands(self) -> list[str]:
        return [call["command"] for call in self.calls]

    def calls_for(self, command: str) -> list[dict[str, Any]]:
        return [call for call in self.calls if call["command"] == command]

    def fail(self, command: str, *, nth: int = 1, result: int = 1, text: str = "command failed") -> None:
        self._failures[(command, nth)] = (result, text)

    def break_transport(self, command: str) -> None:
        self._transport_failures.add(command)

    def queue(self, response: Any) -> None:
        """Answer the next post with ``response`` (a FakeResponse or an exception)."""

        self._queued.append(response)

    def post(self, url: str, json: Any = None, timeout: Any = None) -> FakeResponse:
        self.posts.append({"url": url, "json": json, "timeout": timeout})
        self.calls.append(json)
        if self._queued:
            queued = self._queued.pop(0)
            if isinstance(queued, Exception):
                raise queued
            return queued

        command = json["command"]
        if command in self._transport_failures:
            raise requests.ConnectionError(f"connection refused during {command}")

        self._counts[command] = self._counts.get(command, 0) + 1
        failure = self._failures.get((command, self._counts[command]))
        if failure is not None:
            result, text = failure
            return FakeResponse([{"result": result, "text": text}])

        handler = getattr(self, "_" + command.replace("-", "_"), None)
        if handler is None:
            return FakeResponse([{"result": 2, "text": f"'{command}' command not supported."}])
        return FakeResponse([handler(json.get("arguments") or {})])

    def close(self) -> None:
        self.closed = True

    def _list_commands(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return {
            "result": 0,
            "arguments": ["config-write", "list-commands", "reservation-add", "subnet4-add", "subnet4-list"],
        }

    def _subnet4_list(self, arguments: dict[str, Any]) -> dict[str, Any]:
        if not self.subnets:
            return {"result": 3, "text": "0 IPv4 subnets found", "arguments": {"subnets": []}}
        return {
            "result": 0,
            "text": f"{len(self.subnets)} IPv4 subnets found",
            "arguments": {"subnets": [dict(item) for item in self.subnets]},
        }

    def _subnet4_add(self, arguments: dict[str, Any]) -> dict[str, Any]:
        for subnet in arguments["subnet4"]:
            if any(item["id"] == subnet["id"] for item in self.subnets):
                return {"result": 1, "text": f"ID of the new IPv4 subnet '{subnet['id']}' is already in use"}
            self.subnets.append({"id": subnet["id"], "subnet": subnet["subnet"]})
        return {"result": 0, "text": "IPv4 subnet added"}

    def _subnet4_del(self, arguments: dict[str, Any]) -> dict[str, Any]:
        before = len(self.subnets)
        self.subnets = [item for item in self.subnets if item["id"] != arguments["id"]]
        if len(self.subnets) == before:
            return {"result": 3, "text": "no subnet deleted"}
        return {"result": 0, "text": "IPv4 subnet deleted"}

    def _reservation_add(self, arguments: dict[str, Any]) -> dict[str, Any]:
        self.reservations.append(dict(arguments["reservation"]))
        return {"result": 0, "text": "Host added."}

    def _reservation_del(self, arguments: dict[str, Any]) -> dict[str, Any]:
        self.reservations = [
            item
            for item in self.reservations
            if (item["subnet-id"], item["ip-address"]) != (arguments["subnet-id"], arguments["ip-address"])
        ]
        return {"result": 0, "text": "Host deleted."}

    def _config_write(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return {"result": 0, "text": "Configuration written to /etc/kea/kea-dhcp4.conf successfully"}


@pytest.fixture
def kea() -> FakeKeaSession:
    return FakeKeaSession()


@pytest.fixture
def make_client() -> Callable[..., KeaClient]:
    def _make(session: FakeKeaSession, mode: RunMode = RunMode.APPLY) -> KeaClient:
        return KeaClient(url=KEA_URL, session=session, mode=mode)  # type: ignore[arg-type]

    return _make

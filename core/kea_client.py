"""Thin client for the Kea control agent's JSON command channel."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, MutableMapping, Sequence

import requests

from models.settings import RunMode

if TYPE_CHECKING:
    from models.settings import KeaSettings

logger = logging.getLogger(__name__)

DHCP4_SERVICE = ("dhcp4",)

RESULT_SUCCESS = 0
RESULT_ERROR = 1
RESULT_UNSUPPORTED = 2
RESULT_EMPTY = 3

SIMULATED_TEXT = "simulated"

READ_ONLY_COMMANDS = frozenset(
    {
        "list-commands",
        "subnet4-list",
        "subnet4-get",
        "reservation-get",
        "reservation-get-all",
        "config-get",
        "status-get",
        "version-get",
        "build-report",
    }
)


class KeaError(RuntimeError):
    """Base class for failures talking to Kea."""


class KeaTransportError(KeaError):
    """The request never produced a usable response (network, HTTP status, body)."""


class KeaCommandError(KeaError):
    """Kea answered, but reported the command as failed."""

    def __init__(self, command: str, result: int, text: str) -> None:
        super().__init__(f"{command} failed with result {result}: {text}")
        self.command = command
        self.result = result
        self.text = text


def is_read_only(command: str) -> bool:
    """Classify a command by name; anything not known to be read-only mutates."""

    return command in READ_ONLY_COMMANDS or command.startswith("list-")


@dataclass(slots=True)
class KeaResult:
    """One decoded entry of a Kea response array.

    ``arguments`` keeps whatever JSON value Kea sent: an object for most
    commands, a plain list for ``list-commands``.
    """

    result: int
    text: str = ""
    arguments: Any = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "KeaResult":
        result = data.get("result")
        if isinstance(result, bool) or not isinstance(result, int):
            raise KeaTransportError(f"Response entry has no integer 'result': {data!r}")
        text = data.get("text")
        return cls(
            result=result,
            text=text if isinstance(text, str) else "",
            arguments=data.get("arguments"),
        )

    @property
    def ok(self) -> bool:
        return self.result in (RESULT_SUCCESS, RESULT_EMPTY)

    def argument(self, key: str, default: Any = None) -> Any:
        if isinstance(self.arguments, Mapping):
            return self.arguments.get(key, default)
        return default

    def get_list(self, key: str) -> list[Any]:
        value = self.argument(key)
        return list(value) if isinstance(value, list) else []


def build_session(username: str | None = None, password: str | None = None) -> requests.Session:
    session = requests.Session()
    session.headers.update({"Accept": "application/json", "Content-Type": "application/json"})
    if username is not None:
        session.auth = (username, password or "")
    elif password:
        logger.warning("KEA_PASSWORD is set without KEA_USERNAME; sending no credentials")
    return session


@dataclass(slots=True)
class KeaClient:
    """Send command envelopes to Kea, holding back mutations in dry-run mode."""

    url: str
    session: requests.Session
    mode: RunMode = RunMode.DRY_RUN
    connect_timeout: float = 5.0
    request_timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: "KeaSettings", *, mode: RunMode | None = None) -> "KeaClient":
        return cls(
            url=settings.api_url,
            session=build_session(settings.username, settings.password),
            mode=mode or settings.mode,
            connect_timeout=settings.connect_timeout,
            request_timeout=settings.request_timeout,
        )

    @property
    def dry_run(self) -> bool:
        return self.mode is RunMode.DRY_RUN

    def invoke(
        self,
        command: str,
        arguments: Mapping[str, Any] | None = None,
        *,
        service: Sequence[str] = DHCP4_SERVICE,
    ) -> list[KeaResult]:
        envelope: MutableMapping[str, Any] = {"command": command, "service": list(service)}
        if arguments is not None:
            envelope["arguments"] = dict(arguments)

        if self.dry_run and not is_read_only(command):
            logger.debug("Dry-run, not sending %s: %s", command, json.dumps(envelope, indent=4))
            return [KeaResult(result=RESULT_SUCCESS, text=SIMULATED_TEXT)]

        logger.debug("Sending %s: %s", command, json.dumps(envelope, indent=4))
        results = self._post(command, envelope)
        first = results[0]
        if not first.ok:
            raise KeaCommandError(command, first.result, first.text)
        return results

    def list_commands(self) -> list[str]:
        results = self.invoke("list-commands")
        commands = results[0].arguments
        if not isinstance(commands, list):
            return []
        return [str(name) for name in commands]

    def close(self) -> None:
        self.session.close()

    def _post(self, command: str, envelope: Mapping[str, Any]) -> list[KeaResult]:
        try:
            response = self.session.post(
                self.url,
                json=envelope,
                timeout=(self.connect_timeout, self.request_timeout),
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise KeaTransportError(f"{command}: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise KeaTransportError(f"{command}: response is not JSON") from exc

        if isinstance(body, Mapping):
            body = [body]
        if not isinstance(body, list) or not body:
            raise KeaTransportError(f"{command}: expected a non-empty JSON array, got {body!r}")
        for entry in body:
            if not isinstance(entry, Mapping):
                raise KeaTransportError(f"{command}: malformed response entry {entry!r}")

        results = [KeaResult.from_mapping(entry) for entry in body]
        logger.debug("Response to %s: %s", command, json.dumps(body, indent=4))
        return results

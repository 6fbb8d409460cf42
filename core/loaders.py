"""Load device workflows and port stencils from JSON files."""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Iterator, Mapping, Sequence

from pydantic import ValidationError

from models.workflow import PortDescriptor, Stencil, Workflow

PLACEHOLDER_RE = re.compile(r"\{\{\s*SUBNET_(\d+)\s*\}\}")
LEFTOVER_RE = re.compile(r"\{\{[^{}]*\}\}")


class LoaderError(ValueError):
    """Raised when an input document cannot be turned into a model."""


class WorkflowError(LoaderError):
    pass


class StencilError(LoaderError):
    pass


def _read_text(path: str | os.PathLike[str], error: type[LoaderError]) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise error(f"File not found: {path}") from exc
    except OSError as exc:
        raise error(f"Cannot read {path}: {exc}") from exc


def parse_workflow(data: Any) -> Workflow:
    if not isinstance(data, Mapping):
        raise WorkflowError("Workflow must be a JSON object")
    try:
        return Workflow.model_validate(data)
    except ValidationError as exc:
        raise WorkflowError(f"Invalid workflow: {exc}") from exc


def load_workflow(path: str | os.PathLike[str]) -> Workflow:
    text = _read_text(path, WorkflowError)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise WorkflowError(f"Malformed workflow JSON in {path}: {exc}") from exc
    return parse_workflow(data)


def substitute_placeholders(text: str, subnets: Sequence[str]) -> str:
    """Replace ``{{SUBNET_i}}`` tokens with the i-th workflow subnet."""

    def _replace(match: re.Match[str]) -> str:
        index = int(match.group(1))
        if index >= len(subnets):
            raise StencilError(
                f"Placeholder {match.group(0)} refers to subnet #{index}, "
                f"but the workflow only has {len(subnets)}"
            )
        return subnets[index]

    result = PLACEHOLDER_RE.sub(_replace, text)
    leftover = LEFTOVER_RE.search(result)
    if leftover:
        raise StencilError(f"Unresolved placeholder {leftover.group(0)}")
    return result


def parse_stencil(text: str, subnets: Sequence[str]) -> Stencil:
    content = substitute_placeholders(text, subnets)
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise StencilError(f"Malformed stencil JSON: {exc}") from exc
    if not isinstance(data, Mapping):
        raise StencilError("Stencil must be a JSON object keyed by port ordinal")

    stencil: Stencil = {}
    for key, value in data.items():
        if not (key.isascii() and key.isdigit()) or int(key) < 1:
            raise StencilError(f"Stencil key '{key}' is not a positive decimal ordinal")
        try:
            stencil[key] = PortDescriptor.model_validate(value)
        except ValidationError as exc:
            raise StencilError(f"Invalid port descriptor for ordinal {key}: {exc}") from exc

    ordinals = sorted(int(key) for key in stencil)
    if ordinals != list(range(1, len(ordinals) + 1)):
        raise StencilError(f"Stencil ordinals must run 1..{len(ordinals)} without gaps, got {ordinals}")
    return stencil


def load_stencil(path: str | os.PathLike[str], subnets: Sequence[str]) -> Stencil:
    return parse_stencil(_read_text(path, StencilError), subnets)


def ordered_ports(stencil: Mapping[str, PortDescriptor]) -> Iterator[tuple[int, PortDescriptor]]:
    """Yield ``(ordinal, port)`` pairs in numeric, not lexical, key order."""

    for key in sorted(stencil, key=int):
        yield int(key), stencil[key]

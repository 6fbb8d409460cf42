#!/usr/bin/env python3
"""
Provision Kea DHCPv4 subnets and host reservations for a newly activated device.

- Reads the device workflow (workflow.json) and the model's port stencil (template.json).
- Substitutes {{SUBNET_i}} placeholders in the stencil with the workflow subnets.
- For each workflow subnet: picks the first free subnet id, skips subnets that overlap
  existing ones, creates the subnet with a single pool, then one reservation per stencil port.
- Writes the Kea config to disk at the end (config-write).
- dry-run (default) only sends read-only commands; apply sends everything.

Connection settings come from KEA_API_URL, KEA_USERNAME, KEA_PASSWORD, KEA_DEBUG and
KEA_MODE (a .env file is honoured); command-line flags win over the environment.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Sequence

from dotenv import load_dotenv
from pydantic import ValidationError

from core.journal_store import JournalStore
from core.kea_client import KeaClient, KeaError
from core.loaders import LoaderError, load_stencil, load_workflow
from core.provisioner import (
    ProvisionResult,
    Provisioner,
    ProvisioningConfigError,
    ProvisioningError,
    validate_inputs,
)
from models import KeaSettings, RunMode

logger = logging.getLogger("provision_device")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Provision Kea DHCPv4 subnets and reservations for a device workflow")
    ap.add_argument("--mode", choices=[m.value for m in RunMode], help="dry-run suppresses mutating commands (default: KEA_MODE or dry-run)")
    ap.add_argument("--workflow", help="Workflow JSON path (default: workflow.json)")
    ap.add_argument("--template", help="Port stencil JSON path (default: template.json)")
    ap.add_argument("--url", help="Kea control agent URL, e.g. http://127.0.0.1:8000")
    ap.add_argument("--user", help="HTTP Basic user")
    ap.add_argument("--password", help="HTTP Basic password")
    ap.add_argument("--journal-out", help="Write the run report JSON to this path")
    ap.add_argument("--no-rollback", action="store_true", help="Leave created subnets in place if a subnet4-add fails")
    ap.add_argument("--debug", action="store_true", default=None, help="Log payloads and Kea responses")
    return ap.parse_args(argv)


def load_settings(args: argparse.Namespace) -> KeaSettings:
    overrides: dict[str, Any] = {
        "mode": args.mode,
        "workflow_path": args.workflow,
        "template_path": args.template,
        "api_url": args.url,
        "username": args.user,
        "password": args.password,
        "debug": args.debug,
    }
    if args.no_rollback:
        overrides["rollback_on_failure"] = False
    return KeaSettings(**{key: value for key, value in overrides.items() if value is not None})


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="[%(levelname)s] %(name)s: %(message)s",
    )
    # urllib3 connection chatter drowns out the payload dumps.
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def write_report(path: str | None, result: ProvisionResult) -> None:
    if not path:
        return
    JournalStore.from_path(path).write(result)
    logger.info("Wrote run report -> %s", path)


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)

    try:
        settings = load_settings(args)
    except ValidationError as exc:
        configure_logging(False)
        logger.error("Invalid configuration: %s", exc)
        return EXIT_CONFIG

    configure_logging(settings.debug)

    try:
        workflow = load_workflow(settings.workflow_path)
        stencil = load_stencil(settings.template_path, workflow.subnets)
        validate_inputs(workflow, stencil)
    except (LoaderError, ProvisioningConfigError) as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG

    logger.debug("Workflow:\n%s", json.dumps(workflow.model_dump(), indent=4))
    logger.debug(
        "Stencil:\n%s",
        json.dumps({key: port.model_dump() for key, port in stencil.items()}, indent=4),
    )
    logger.info("Will provision %d subnet(s) for %s against %s", len(workflow.subnets), workflow.hostname, settings.api_url)

    client = KeaClient.from_settings(settings)
    provisioner = Provisioner(client, lifetime=settings.valid_lifetime, rollback=settings.rollback_on_failure)
    try:
        if settings.debug:
            logger.debug("Kea commands available: %s", ", ".join(client.list_commands()))
        result = provisioner.provision(workflow, stencil)
    except ProvisioningConfigError as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG
    except ProvisioningError as exc:
        logger.error("Provisioning stopped: %s", exc)
        write_report(args.journal_out, exc.result)
        print(json.dumps(exc.result.to_dict(), indent=4))
        return EXIT_FAILURE
    except KeaError as exc:
        logger.error("Kea unreachable: %s", exc)
        return EXIT_FAILURE
    finally:
        client.close()

    write_report(args.journal_out, result)
    print(json.dumps(result.to_dict(), indent=4))
    if result.mode is RunMode.DRY_RUN:
        logger.info("Dry run: no mutating command was sent to Kea")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

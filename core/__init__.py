"""Kea provisioning services: address math, control-channel client, orchestrator."""

"""FastAPI service exposing the provisioner."""

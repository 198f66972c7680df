# src/vpsforge/helm/errors.py
from vpsforge.errors import CommandFailedError


class HelmError(CommandFailedError):
    """Base class for Helm-related failures."""

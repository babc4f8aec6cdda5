"""Backend entrypoint."""

from backend.factory import BackendServices, build_backend_services


def create_backend_services() -> BackendServices:
    """Factory used by the API and local integrations."""
    return build_backend_services()

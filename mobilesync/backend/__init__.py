from mobilesync.backend.base import BackendService, RemoteSnapshot


def create_backend_service(config=None):
    """Create the backend service client from config.

    Config keys:
        backend: "mobilehub" (default)
        region: AWS region of the backend project
        profile: optional named AWS profile
    """
    config = config or {}
    backend = config.get("backend", "mobilehub")

    if backend == "mobilehub":
        from mobilesync.backend.mobile import MobileHubBackend
        return MobileHubBackend(region=config.get("region"), profile=config.get("profile"))

    raise ValueError(f"Unknown backend service: {backend!r}. Use 'mobilehub'.")

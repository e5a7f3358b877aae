"""Contains exceptions raised when reconciling application configuration."""


class SyncConfigurationFileError(Exception):
    """Raised when the sync configuration file cannot be read or validated."""

    def __init__(self, path: str, reason: str) -> None:
        """Initializes the exception with the offending path and the reason."""
        super().__init__(f"Invalid sync configuration file {path}: {reason}")
        self.path = path
        self.reason = reason


class RequiredConfigurationElementError(Exception):
    """Raised when a required configuration element is missing."""

    def __init__(self, name: str, cli_name: str, env_name: str) -> None:
        """Initializes the exception with the name of the missing element."""
        super().__init__(f"Missing required configuration element: {name} (set {cli_name} or {env_name})")
        self.name = name
        self.cli_name = cli_name
        self.env_name = env_name

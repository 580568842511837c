"""Exception types raised by the supervisor and its collaborators."""


class AppStartError(Exception):
    """Base class for all appstart failures."""
    pass


class LayoutError(AppStartError):
    """The installation root is missing a required directory."""
    pass


class StartError(AppStartError):
    """A child process could not be located or spawned."""
    pass


class BuildError(AppStartError):
    """Installing frontend dependencies or building the frontend failed."""
    pass


class PortCleanupError(AppStartError):
    """Stale listeners on the allocated ports could not be cleared."""
    pass


class UpgradeError(AppStartError):
    """Fetching or applying the base template failed."""
    pass

"""Error types raised by the build pipeline. The CLI turns any of them into exit code 1."""


class BuildError(Exception):
    """Base class for every fatal pipeline condition."""


class ConfigError(BuildError):
    """Manifest missing, malformed, or the requested build does not exist."""


class FetchError(BuildError):
    """Cloning or fetching the application sources failed."""


class IntegrityError(BuildError):
    """A downloaded file does not match its declared checksum."""


class ToolError(BuildError):
    """An external tool is missing or exited with a non-zero status."""

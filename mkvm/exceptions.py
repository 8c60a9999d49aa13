"""Custom exceptions for mkvm."""


class ManagerError(RuntimeError):
    """Raised on unrecoverable configuration or runtime errors."""


class CatalogUnavailable(ManagerError):
    """The distro catalog could not be read or parsed."""


class DistroNotFound(ManagerError):
    def __init__(self, name: str, known: list) -> None:
        super().__init__(f"can't find distro {name} in my list")
        self.name = name
        self.known = known


class EntropyUnavailable(ManagerError):
    """The random source could not supply bytes."""


class DownloadFailed(ManagerError):
    pass


class TemplateRenderFailed(ManagerError):
    pass


class PackagingFailed(ManagerError):
    """genisoimage exited non-zero."""


class VolumeCreateFailed(ManagerError):
    pass


class ImageImportFailed(ManagerError):
    pass


class DialTimeout(ManagerError):
    """The libvirt socket could not be dialed in time."""


class AuthorizationDenied(ManagerError):
    """polkit refused to let us manage virtualization resources."""


class ConnectRejected(ManagerError):
    pass


class CreateError(ManagerError):
    """libvirt refused to create the domain.

    ``message`` holds the daemon's diagnostic text verbatim.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Interrupted(ManagerError):
    """The operator pressed Ctrl-C."""

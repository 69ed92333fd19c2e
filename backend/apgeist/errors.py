from __future__ import annotations

from typing import Optional


class ProvisioningError(Exception):
    """Base for every condition that aborts the provisioning pipeline."""


class PrivilegeError(ProvisioningError):
    pass


class NoInterfaceFound(ProvisioningError):
    pass


class InterfaceUnusable(ProvisioningError):
    pass


class PackageInstallError(ProvisioningError):
    pass


class ConfigurationError(ProvisioningError):
    pass


class WriteError(ProvisioningError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"could not write {path}: {reason}")
        self.path = path


class RuleInstallError(ProvisioningError):
    def __init__(self, command: str, output: str = "") -> None:
        msg = f"firewall command failed: {command}"
        if output:
            msg += f" ({output})"
        super().__init__(msg)
        self.command = command
        self.output = output


class ServiceStartError(ProvisioningError):
    def __init__(self, daemon: str, reason: str, diagnostics: Optional[str] = None) -> None:
        super().__init__(f"{daemon}: {reason}")
        self.daemon = daemon
        self.diagnostics = diagnostics or ""


class VerificationError(ProvisioningError):
    pass


class ProvisioningLocked(ProvisioningError):
    pass


class ProvisioningCancelled(ProvisioningError):
    pass


class ProvisioningWarning(UserWarning):
    """Non-fatal condition: logged and collected, never raised."""


class VerificationWarning(ProvisioningWarning):
    pass


class NoUpstreamInterface(ProvisioningWarning):
    pass


class NoPersistence(ProvisioningWarning):
    pass

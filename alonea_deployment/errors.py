from typing import List, Optional


class DeploymentError(Exception):
    """
    Base class for all orchestration errors.

    The failing module name is attached (when known) so that the operator
    gets a single line naming the module and the underlying cause.
    """

    def __init__(self, message: str, module: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.module = module

    def __str__(self) -> str:
        if self.module:
            return f"{self.module}: {self.message}"
        return self.message


class CatalogError(DeploymentError):
    """Raised when the module catalog is malformed."""


class CyclicDependencyError(CatalogError):
    """Raised when module address references form a cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        super().__init__(f"Cyclic module dependency detected: {' -> '.join(self.cycle)}")


class UnresolvedDependencyError(DeploymentError):
    """Raised when an argument references something that is not available yet."""


class RegistryError(DeploymentError):
    """Raised when a registry file cannot be read or written."""


class RegistryMismatchError(RegistryError):
    """Raised when a registry belongs to a different network than the connected one."""


class NotDeployedError(DeploymentError):
    """Raised when an upgrade is requested for a module that was never deployed."""


class NotUpgradeableError(DeploymentError):
    """Raised when an upgrade is requested for a module without a proxy."""


class TransactionFailure(DeploymentError):
    """Raised when the chain rejects or reverts a transaction."""

    def __init__(
        self, message: str, module: Optional[str] = None, revert_message: Optional[str] = None
    ):
        if revert_message:
            message = f"{message} (revert reason: {revert_message})"
        super().__init__(message, module=module)
        self.revert_message = revert_message


class UpgradeAuthorizationError(DeploymentError):
    """Raised when the upgrade call path does not match the proxy's permission model."""


class UpgradeVerificationError(DeploymentError):
    """
    Raised when the implementation observed on chain differs from the submitted one.
    Carries the proxy address when the proxy itself was already deployed.
    """

    def __init__(
        self,
        message: str,
        module: Optional[str] = None,
        proxy: Optional[str] = None,
        implementation: Optional[str] = None,
    ):
        super().__init__(message, module=module)
        self.proxy = proxy
        self.implementation = implementation


class PartialDeploymentError(DeploymentError):
    """Raised when a recorded proxy cannot be confirmed on chain."""

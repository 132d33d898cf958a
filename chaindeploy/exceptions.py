"""Exception classes raised while planning and running deployments."""


class DeploymentError(Exception):
    """Base exception for deployment-related errors."""


class ConfigurationError(DeploymentError, ValueError):
    """Raised before any transaction is sent when the run cannot be planned."""


class UnknownNetworkError(ConfigurationError):
    """Raised when a network name is not in the chain table."""


class CyclicDependencyError(ConfigurationError):
    """Raised when task tag dependencies form a cycle."""


class UnresolvedTagError(ConfigurationError):
    """Raised when a tag is depended upon or selected but declared by no task."""


class InvalidTaskError(ConfigurationError):
    """Raised when a task declaration is malformed."""


class ArtifactNotFoundError(ConfigurationError):
    """Raised when no compiled artifact exists for a contract."""


class DeploymentTransactionError(DeploymentError):
    """Raised when a creation transaction is rejected or reverts."""


class UnconfirmedDeploymentError(DeploymentError):
    """
    Raised when a creation transaction was sent but its fate is unknown,
    e.g. the node stopped answering. The transaction may still be mined later.
    """

    def __init__(self, message: str, tx_hash: str = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class ConfirmationTimeoutError(UnconfirmedDeploymentError):
    """Raised when a transaction did not reach the required depth in time."""


class UnresolvedVariableError(DeploymentError):
    """Raised when a constructor variable cannot be resolved at execution time."""


class VerificationError(DeploymentError):
    """Raised when explorer verification fails. Never fatal for a run."""


class MissingApiKeyError(VerificationError):
    """Raised when no explorer API key is configured for the network."""

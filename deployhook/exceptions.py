"""Errors raised by the status record pipeline."""


class DeployHookError(Exception):
    """Base error. Carries optional package/component context."""

    def __init__(self, message: str, package: str = "", component: str = ""):
        super().__init__(message)
        self.message = message
        self.package = package
        self.component = component

    def __str__(self):
        context = ", ".join(
            f"{k}: {v}" for k, v in (("package", self.package), ("component", self.component)) if v
        )
        return f"{self.message} [{context}]" if context else self.message


class RecordDecodeError(DeployHookError):
    """The status record payload could not be decoded or parsed."""


class WebhookCallError(DeployHookError):
    """The external webhook reported a failure."""

    def __init__(self, message: str, package: str = "", component: str = "", status_code: int | None = None):
        super().__init__(message, package, component)
        self.status_code = status_code


class WebhookWaitTimeout(DeployHookError):
    """Timed out waiting for running webhooks to finish."""


class ConfigError(DeployHookError):
    """Invalid configuration."""

from __future__ import annotations


class ProviderNotConfiguredError(RuntimeError):
    """Raised when an external provider is missing its credential."""

    def __init__(self, provider: str, env_var: str):
        self.provider = provider
        self.env_var = env_var
        super().__init__(f"{env_var} is not configured ({provider})")


class InvalidNicheError(ValueError):
    pass


class RunNotFoundError(KeyError):
    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(run_id)

    def __str__(self) -> str:
        return f"Run not found: {self.run_id}"

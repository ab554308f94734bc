from dataclasses import dataclass
import dataconf
from typing import Union


@dataclass
class TokenPollingConfig:
    """How long to wait for the control plane to populate a service account token."""

    settle_seconds: Union[str, float] = 5
    retry_interval_seconds: Union[str, float] = 3
    max_attempts: Union[str, int] = 3

    def __post_init__(self):
        if type(self.settle_seconds) is str:
            self.settle_seconds = float(self.settle_seconds)
        if type(self.retry_interval_seconds) is str:
            self.retry_interval_seconds = float(self.retry_interval_seconds)
        if type(self.max_attempts) is str:
            self.max_attempts = int(self.max_attempts)
        if self.max_attempts < 1:
            raise ValueError("At least one attempt to read the token is required.")
        if self.settle_seconds < 0 or self.retry_interval_seconds < 0:
            raise ValueError("The token polling delays cannot be negative.")

    @classmethod
    def dataconf_from_env(cls, prefix="TOKEN_POLLING_"):
        return dataconf.env(prefix, cls)

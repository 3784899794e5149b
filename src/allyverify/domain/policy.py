"""Runtime policy values the verification core is constructed with."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

DEFAULT_NICK_TEMPLATE: Final[str] = "{ALLIANCE} | {IGN}"
DEFAULT_VERIFIED_ROLE_NAME: Final[str] = "Verified"
DEFAULT_LOG_CHANNEL_NAME: Final[str] = "verification-log"

# Discord rejects nicknames longer than this
MAX_NICKNAME_LENGTH: Final[int] = 32
IGN_MIN_LENGTH: Final[int] = 2
IGN_MAX_LENGTH: Final[int] = 20


@dataclass(frozen=True, slots=True)
class VerificationPolicy:
    nick_template: str = DEFAULT_NICK_TEMPLATE
    bypass_role_names: frozenset[str] = field(default_factory=frozenset[str])
    verified_role_name: str | None = DEFAULT_VERIFIED_ROLE_NAME
    log_channel_name: str | None = DEFAULT_LOG_CHANNEL_NAME
    enforce_on_manual_nick_change: bool = False
    ign_min_length: int = IGN_MIN_LENGTH
    ign_max_length: int = IGN_MAX_LENGTH
    max_nickname_length: int = MAX_NICKNAME_LENGTH

    def __post_init__(self) -> None:
        if self.ign_min_length < 1 or self.ign_max_length < self.ign_min_length:
            raise ValueError("IGN length bounds must satisfy 1 <= min <= max")
        if self.max_nickname_length < 1:
            raise ValueError("max_nickname_length must be positive")

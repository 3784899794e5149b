"""Loading of the verification policy file."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from allyverify.domain.policy import (
    DEFAULT_LOG_CHANNEL_NAME,
    DEFAULT_NICK_TEMPLATE,
    DEFAULT_VERIFIED_ROLE_NAME,
    IGN_MAX_LENGTH,
    IGN_MIN_LENGTH,
    MAX_NICKNAME_LENGTH,
    VerificationPolicy,
)

from .env import optional_env_var
from .errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class PolicyFile(BaseModel):
    """Schema of the JSON policy file (camelCase keys, unknown keys ignored)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    nick_template: str = Field(default=DEFAULT_NICK_TEMPLATE, alias="nickTemplate", min_length=1)
    bypass_role_names: list[str] = Field(default_factory=list, alias="bypassRoleNames")
    verified_role_name: str | None = Field(
        default=DEFAULT_VERIFIED_ROLE_NAME, alias="verifiedRoleName"
    )
    log_channel_name: str | None = Field(default=DEFAULT_LOG_CHANNEL_NAME, alias="logChannelName")
    enforce_on_manual_nick_change: bool = Field(default=False, alias="enforceOnManualNickChange")
    ign_min_length: int = Field(default=IGN_MIN_LENGTH, alias="ignMinLength", ge=1)
    ign_max_length: int = Field(default=IGN_MAX_LENGTH, alias="ignMaxLength", ge=1)
    max_nickname_length: int = Field(
        default=MAX_NICKNAME_LENGTH, alias="maxNicknameLength", ge=1, le=MAX_NICKNAME_LENGTH
    )

    _normalize_verified = field_validator("verified_role_name", mode="before")(_blank_to_none)
    _normalize_log_channel = field_validator("log_channel_name", mode="before")(_blank_to_none)

    @field_validator("bypass_role_names", mode="after")
    @classmethod
    def _strip_names(cls, value: list[str]) -> list[str]:
        return [name.strip() for name in value if name.strip()]

    def to_policy(self) -> VerificationPolicy:
        return VerificationPolicy(
            nick_template=self.nick_template,
            bypass_role_names=frozenset(self.bypass_role_names),
            verified_role_name=self.verified_role_name,
            log_channel_name=self.log_channel_name,
            enforce_on_manual_nick_change=self.enforce_on_manual_nick_change,
            ign_min_length=self.ign_min_length,
            ign_max_length=self.ign_max_length,
            max_nickname_length=self.max_nickname_length,
        )


def parse_policy(payload: Mapping[str, object]) -> VerificationPolicy:
    """Validate a decoded policy document."""

    try:
        return PolicyFile.model_validate(payload).to_policy()
    except (ValidationError, ValueError) as exc:
        raise ConfigurationError(f"Invalid verification policy: {exc}") from exc


def load_policy(path: Path | None = None) -> VerificationPolicy:
    """Load the policy from ``path`` or ``ALLYVERIFY_POLICY_FILE``; defaults when neither is set."""

    if path is None:
        env_path = optional_env_var("ALLYVERIFY_POLICY_FILE")
        if env_path is None:
            return VerificationPolicy()
        path = Path(env_path)

    try:
        with path.expanduser().open(encoding="utf-8") as handle:
            document = json.load(handle)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Policy file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Policy file is not valid JSON: {path}") from exc

    if not isinstance(document, dict):
        raise ConfigurationError(f"Policy file must contain a JSON object: {path}")
    return parse_policy(document)

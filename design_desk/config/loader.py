"""
Configuration management and loading.

Handles workflow settings from YAML and secrets from the process environment.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import yaml

from design_desk.core.errors import ConfigIntegrityError

# Auto-archive durations (minutes) accepted by the chat platform
VALID_ARCHIVE_MINUTES = (60, 1440, 4320, 10080)


class MultipleClientPolicy(Enum):
    """How to resolve a requester holding more than one client role."""
    LOWEST_ROLE_ID = "lowest_role_id"
    REJECT = "reject"


@dataclass(frozen=True)
class QuotaPolicy:
    """Single rule applied to every client when deciding remaining requests."""
    unlimited_cutoff: datetime = datetime(2026, 1, 31, 23, 59, 59)
    display_ceiling: int = 999
    unlimited_sentinel: int = -1

    def __post_init__(self):
        """Validate the display ceiling is positive."""
        if self.display_ceiling <= 0:
            raise ValueError("display_ceiling must be > 0")

    @property
    def capped_display(self) -> str:
        return f"{self.display_ceiling}+"


@dataclass(frozen=True)
class CommandConfig:
    """Prefix and word that trigger a design request."""
    prefix: str = "!"
    name: str = "request"

    def __post_init__(self):
        if not self.prefix or self.prefix != self.prefix.strip():
            raise ValueError("command prefix must be a non-empty string without whitespace")
        if not self.name or any(ch.isspace() for ch in self.name):
            raise ValueError("command name must be a single word")


@dataclass(frozen=True)
class WorkflowConfig:
    """Thread and approval behaviour."""
    approval_emoji: str = "✅"
    thread_auto_archive_minutes: int = 1440
    mention_admin_in_thread: bool = True
    add_requester_to_thread: bool = True
    on_multiple_clients: MultipleClientPolicy = MultipleClientPolicy.LOWEST_ROLE_ID

    def __post_init__(self):
        if not self.approval_emoji:
            raise ValueError("approval_emoji must not be empty")
        if self.thread_auto_archive_minutes not in VALID_ARCHIVE_MINUTES:
            raise ValueError(
                f"thread_auto_archive_minutes must be one of: {list(VALID_ARCHIVE_MINUTES)}"
            )


@dataclass(frozen=True)
class BotSettings:
    """Complete workflow configuration."""
    command: CommandConfig = field(default_factory=CommandConfig)
    quota: QuotaPolicy = field(default_factory=QuotaPolicy)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)


@dataclass(frozen=True)
class Secrets:
    """Values that must come from the environment."""
    discord_token: str
    admin_user_id: int
    completed_channel_id: int

    def __repr__(self) -> str:
        return (
            f"Secrets(discord_token='***', admin_user_id={self.admin_user_id}, "
            f"completed_channel_id={self.completed_channel_id})"
        )


def load_settings(path: Optional[str] = None) -> BotSettings:
    """Load and validate workflow settings from a YAML file.

    Every key is optional, but unknown keys and malformed values are
    rejected so a typo never silently falls back to a default.

    Args:
        path: Path to YAML settings file, or None for the built-in defaults

    Returns:
        Validated BotSettings object

    Raises:
        FileNotFoundError: If settings file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If settings are invalid
    """
    if path is None:
        return BotSettings()

    settings_path = Path(path)
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    with open(settings_path, 'r', encoding='utf-8') as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in settings file {path}: {e}")

    if raw is None:
        return BotSettings()
    if not isinstance(raw, dict):
        raise ValueError("Settings file must contain a mapping")

    allowed_top_keys = {'command', 'quota', 'workflow'}
    unknown_keys = set(raw.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown settings keys: {unknown_keys}")

    return BotSettings(
        command=_parse_command(_section(raw, 'command')),
        quota=_parse_quota(_section(raw, 'quota')),
        workflow=_parse_workflow(_section(raw, 'workflow')),
    )


def _section(raw: Dict, name: str) -> Dict:
    data = raw.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    return data


def _check_keys(data: Dict, allowed: set, path: str) -> None:
    unknown_keys = set(data.keys()) - allowed
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")


def _require_int(data: Dict, key: str, path: str) -> int:
    value = data[key]
    # bool is a subclass of int; never accept it as a number
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' in {path} must be an integer")
    return value


def _require_bool(data: Dict, key: str, path: str) -> bool:
    value = data[key]
    if not isinstance(value, bool):
        raise ValueError(f"'{key}' in {path} must be true or false")
    return value


def _require_str(data: Dict, key: str, path: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"'{key}' in {path} must be a string")
    return value


def _parse_command(data: Dict) -> CommandConfig:
    _check_keys(data, {'prefix', 'name'}, 'command')
    kwargs = {}
    if 'prefix' in data:
        kwargs['prefix'] = _require_str(data, 'prefix', 'command')
    if 'name' in data:
        kwargs['name'] = _require_str(data, 'name', 'command').lower()
    return CommandConfig(**kwargs)


def _parse_quota(data: Dict) -> QuotaPolicy:
    _check_keys(data, {'unlimited_cutoff', 'display_ceiling', 'unlimited_sentinel'}, 'quota')
    kwargs = {}
    if 'unlimited_cutoff' in data:
        cutoff = data['unlimited_cutoff']
        # PyYAML already turns unquoted timestamps into datetime objects
        if isinstance(cutoff, str):
            try:
                cutoff = datetime.fromisoformat(cutoff)
            except ValueError:
                raise ValueError(f"'unlimited_cutoff' in quota is not an ISO datetime: {cutoff!r}")
        if not isinstance(cutoff, datetime):
            raise ValueError("'unlimited_cutoff' in quota must be a datetime")
        if cutoff.tzinfo is not None:
            # Compared against naive local time
            cutoff = cutoff.astimezone().replace(tzinfo=None)
        kwargs['unlimited_cutoff'] = cutoff
    if 'display_ceiling' in data:
        kwargs['display_ceiling'] = _require_int(data, 'display_ceiling', 'quota')
    if 'unlimited_sentinel' in data:
        kwargs['unlimited_sentinel'] = _require_int(data, 'unlimited_sentinel', 'quota')
    return QuotaPolicy(**kwargs)


def _parse_workflow(data: Dict) -> WorkflowConfig:
    _check_keys(data, {
        'approval_emoji', 'thread_auto_archive_minutes', 'mention_admin_in_thread',
        'add_requester_to_thread', 'on_multiple_clients',
    }, 'workflow')
    kwargs = {}
    if 'approval_emoji' in data:
        kwargs['approval_emoji'] = _require_str(data, 'approval_emoji', 'workflow')
    if 'thread_auto_archive_minutes' in data:
        kwargs['thread_auto_archive_minutes'] = _require_int(
            data, 'thread_auto_archive_minutes', 'workflow'
        )
    for flag in ('mention_admin_in_thread', 'add_requester_to_thread'):
        if flag in data:
            kwargs[flag] = _require_bool(data, flag, 'workflow')
    if 'on_multiple_clients' in data:
        policy = _require_str(data, 'on_multiple_clients', 'workflow')
        try:
            kwargs['on_multiple_clients'] = MultipleClientPolicy(policy.lower())
        except ValueError:
            valid = [p.value for p in MultipleClientPolicy]
            raise ValueError(f"'on_multiple_clients' in workflow must be one of: {valid}")
    return WorkflowConfig(**kwargs)


def load_secrets(environ: Optional[Mapping[str, str]] = None) -> Secrets:
    """Read required secrets from the environment.

    All problems are collected and reported together so an operator can
    fix the deployment in one pass.

    Raises:
        ConfigIntegrityError: If any variable is missing or not a valid ID
    """
    env = os.environ if environ is None else environ
    problems: List[str] = []

    token = (env.get("DISCORD_TOKEN") or "").strip()
    if not token:
        problems.append("DISCORD_TOKEN is not set")

    ids = {}
    for name in ("ADMIN_USER_ID", "COMPLETED_CHANNEL_ID"):
        raw = (env.get(name) or "").strip()
        if not raw:
            problems.append(f"{name} is not set")
        elif not raw.isdigit() or int(raw) <= 0:
            problems.append(f"{name} must be a positive integer ID, got {raw!r}")
        else:
            ids[name] = int(raw)

    if problems:
        raise ConfigIntegrityError("; ".join(problems))

    return Secrets(
        discord_token=token,
        admin_user_id=ids["ADMIN_USER_ID"],
        completed_channel_id=ids["COMPLETED_CHANNEL_ID"],
    )

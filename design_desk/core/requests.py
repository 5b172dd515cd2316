"""
Design request intake.

Parses the request command, resolves the requester's client plan and
charges the quota. Platform-independent: callers pass plain IDs and text.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from design_desk.config.loader import CommandConfig, MultipleClientPolicy, QuotaPolicy
from design_desk.storage.models import ClientDirectory, ClientRecord
from design_desk.storage.repository import ClientRepository
from .errors import ClientNotAssigned, MissingRequestText, MultipleClientsAssigned
from .quota import QuotaDecision, consume_request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DesignRequest:
    """A request accepted for one command invocation. Never persisted."""
    requester_id: int
    text: str
    role_id: int
    client: ClientRecord
    quota: QuotaDecision

    @property
    def remaining_display(self) -> str:
        return self.quota.display


def parse_command(content: str, command: CommandConfig) -> Optional[str]:
    """Extract the request text from a chat message.

    Returns:
        The request text with runs of whitespace collapsed, or None if the
        message is not the request command

    Raises:
        MissingRequestText: If the command has no text after it
    """
    if not content.startswith(command.prefix):
        return None

    args = content[len(command.prefix):].split()
    if not args or args[0].lower() != command.name:
        return None

    text = " ".join(args[1:])
    if not text:
        raise MissingRequestText()
    return text


def resolve_client(
    role_ids: Iterable[int],
    directory: ClientDirectory,
    on_multiple: MultipleClientPolicy = MultipleClientPolicy.LOWEST_ROLE_ID
) -> int:
    """Find the client role held by the requester.

    Returns:
        Role ID of the matched client

    Raises:
        ClientNotAssigned: If no held role is a client
        MultipleClientsAssigned: If several match and the policy is REJECT
    """
    matches = sorted({role_id for role_id in role_ids if role_id in directory.clients})
    if not matches:
        raise ClientNotAssigned()
    if len(matches) > 1:
        if on_multiple == MultipleClientPolicy.REJECT:
            raise MultipleClientsAssigned()
        logger.info("Requester holds client roles %s; using %s", matches, matches[0])
    return matches[0]


class RequestService:
    """Accepts design requests against the client file."""

    def __init__(
        self,
        repository: ClientRepository,
        policy: QuotaPolicy,
        on_multiple: MultipleClientPolicy = MultipleClientPolicy.LOWEST_ROLE_ID,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.repository = repository
        self.policy = policy
        self.on_multiple = on_multiple
        self.clock = clock

    def open_request(self, requester_id: int, role_ids: Iterable[int], text: str) -> DesignRequest:
        """Resolve the client and charge its quota in one serialized update.

        User input errors are raised before anything is written.

        Raises:
            ClientNotAssigned, MultipleClientsAssigned: Requester has no usable plan
            ConfigIntegrityError: Client file is missing or malformed
        """
        role_ids = list(role_ids)
        now = self.clock()

        def _charge(directory: ClientDirectory) -> DesignRequest:
            role_id = resolve_client(role_ids, directory, self.on_multiple)
            decision, record = consume_request(directory.get(role_id), now, self.policy)
            directory.put(role_id, record)
            return DesignRequest(
                requester_id=requester_id,
                text=text,
                role_id=role_id,
                client=record,
                quota=decision,
            )

        request = self.repository.update(_charge)
        logger.info(
            "Request %r opened for %s by %s: remaining %s (%s)",
            request.text, request.client.name, requester_id,
            request.remaining_display, request.quota.reason.value,
        )
        return request

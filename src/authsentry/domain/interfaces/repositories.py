"""Repository interfaces for abstracting data persistence in the domain layer.

This module defines the abstract base classes (interfaces) for repositories,
which act as a "port" in the context of Hexagonal Architecture. The rate
limiter and the audit log use these interfaces to interact with persistence
mechanisms without being coupled to any specific technology.

The concrete implementations of these interfaces reside in the
`infrastructure` layer, acting as "adapters" that translate the domain's
requests into specific database queries.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from authsentry.domain.entities.active_block import ActiveBlock
from authsentry.domain.entities.login_attempt import LoginAttempt
from authsentry.domain.entities.security_event import SecurityEvent
from authsentry.domain.value_objects.security_events import SecurityEventFilter


class ILoginAttemptRepository(ABC):
    """An interface defining the contract for failed-login counters.

    There is at most one counter per ``(identifier, identifier_type)``.
    """

    @abstractmethod
    async def get(self, identifier: str, identifier_type: str) -> Optional[LoginAttempt]:
        """Retrieves the counter for an identifier, stale or not.

        Args:
            identifier: The IP address or username.
            identifier_type: ``"ip"`` or ``"username"``.

        Returns:
            An optional `LoginAttempt`. Returns `None` if no counter exists.
        """
        raise NotImplementedError

    @abstractmethod
    async def record_attempt(
        self,
        identifier: str,
        identifier_type: str,
        *,
        now: datetime,
        stale_before: datetime,
        expires_at: datetime,
    ) -> LoginAttempt:
        """Counts one failed attempt in a single read-modify-write.

        A missing counter, or one whose last attempt is not after
        ``stale_before``, restarts at 1 with a new window. Otherwise the count
        is incremented. Either way ``last_attempt_at`` becomes ``now`` and
        ``expires_at`` is refreshed.

        Returns:
            The counter as stored after the update.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete_for(self, identifier: str, identifier_type: str) -> int:
        """Deletes the counter for an identifier and returns rows removed."""
        raise NotImplementedError

    @abstractmethod
    async def delete_expired(self, now: datetime) -> int:
        """Deletes counters with ``expires_at <= now`` and returns rows removed."""
        raise NotImplementedError

    @abstractmethod
    async def count_all(self) -> int:
        raise NotImplementedError

    @abstractmethod
    async def count_recent(self, since: datetime) -> int:
        """Counts counters whose last attempt is after ``since``."""
        raise NotImplementedError


class IActiveBlockRepository(ABC):
    """An interface defining the contract for block records."""

    @abstractmethod
    async def find_active(
        self, identifier: str, identifier_type: str, now: datetime
    ) -> Optional[ActiveBlock]:
        """Retrieves the active block that expires last for an identifier.

        Args:
            identifier: The IP address or username.
            identifier_type: ``"ip"`` or ``"username"``.
            now: Blocks with ``expires_at > now`` are active.

        Returns:
            An optional `ActiveBlock`. Returns `None` if none is active.
        """
        raise NotImplementedError

    @abstractmethod
    async def add(self, block: ActiveBlock) -> ActiveBlock:
        """Persists a new block and returns it with its id populated."""
        raise NotImplementedError

    @abstractmethod
    async def delete_for(self, identifier: str, identifier_type: str) -> int:
        """Deletes every block row, active or not, for an identifier."""
        raise NotImplementedError

    @abstractmethod
    async def delete_expired(self, now: datetime) -> int:
        """Deletes blocks with ``expires_at <= now`` and returns rows removed."""
        raise NotImplementedError

    @abstractmethod
    async def count_active(self, now: datetime, identifier_type: Optional[str] = None) -> int:
        """Counts active blocks, optionally of one identifier type only."""
        raise NotImplementedError


class ISecurityEventRepository(ABC):
    """An interface defining the contract for the append-only audit trail."""

    @abstractmethod
    async def add(self, event: SecurityEvent) -> SecurityEvent:
        """Persists a new event and returns it with its id populated."""
        raise NotImplementedError

    @abstractmethod
    async def list(
        self,
        filters: Optional[SecurityEventFilter] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[SecurityEvent]:
        """Lists events matching ``filters``, newest first.

        Args:
            filters: Optional constraints; unset fields are ignored.
            limit: Maximum number of events, or `None` for all.
            offset: Number of matching events to skip.
        """
        raise NotImplementedError

    @abstractmethod
    async def count_since(self, event_type: str, ip_address: str, since: datetime) -> int:
        """Counts events of a type from an IP address at or after ``since``."""
        raise NotImplementedError

    @abstractmethod
    async def has_login_success(
        self, user_id: str, ip_address: str, exclude_id: Optional[int] = None
    ) -> bool:
        """Whether a ``login_success`` exists for the user and IP address.

        Args:
            user_id: The user identifier as stored.
            ip_address: The client IP address.
            exclude_id: Event id to ignore, typically the event being checked.
        """
        raise NotImplementedError

    @abstractmethod
    async def count_by_type(self, from_date: datetime, to_date: datetime) -> List[Tuple[str, int]]:
        """Event counts per type within the period, most frequent first."""
        raise NotImplementedError

    @abstractmethod
    async def top_ip_addresses(
        self, event_type: str, from_date: datetime, to_date: datetime, limit: int
    ) -> List[Tuple[str, int]]:
        """IP addresses with the most events of a type within the period."""
        raise NotImplementedError

    @abstractmethod
    async def latest_with_severity(
        self,
        severities: Iterable[str],
        from_date: datetime,
        to_date: datetime,
        limit: int,
    ) -> List[SecurityEvent]:
        """Latest events within the period whose severity is in ``severities``."""
        raise NotImplementedError

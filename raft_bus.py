"""
Raft Message Bus Module
In-memory stand-in for the network: messages travel for a fixed number of
ticks and are dropped when either end is dead or a partition separates them.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from raft_partition import Partition, can_communicate
from raft_state import Message, MessageType, SimulationConfig

logger = logging.getLogger(__name__)


class MessageBus:
    """Owns every in-flight message until it is delivered or dropped."""

    def __init__(self, config: SimulationConfig, is_alive: Callable[[str], bool]):
        self.config = config
        self.is_alive = is_alive
        self.partition: Optional[Partition] = None
        self._in_flight: List[Message] = []
        self._next_id = 0
        self.stats: Dict[str, int] = {"sent": 0, "delivered": 0, "dropped": 0}

    @property
    def in_flight(self) -> Tuple[Message, ...]:
        return tuple(self._in_flight)

    def can_deliver(self, sender: str, target: str) -> bool:
        """Both ends alive and on the same side of any partition."""
        return (
            self.is_alive(sender)
            and self.is_alive(target)
            and can_communicate(sender, target, self.partition)
        )

    def send(
        self,
        sender: str,
        target: str,
        msg_type: MessageType,
        term: int,
        payload: Optional[dict] = None,
        tick: int = 0,
    ) -> Optional[Message]:
        """Queue a message; unreachable targets are dropped instead of queued."""
        if not self.can_deliver(sender, target):
            self.stats["dropped"] += 1
            logger.debug("dropped %s %s->%s at send", msg_type.value, sender, target)
            return None

        self._next_id += 1
        message = Message(
            msg_id=f"msg-{self._next_id}",
            sender=sender,
            target=target,
            type=msg_type,
            term=term,
            payload=payload or {},
            sent_at=tick,
        )
        self._in_flight.append(message)
        self.stats["sent"] += 1
        return message

    def advance(self) -> List[Message]:
        """Move every in-flight message one tick along.

        Returns the messages that arrived and may be delivered, in send order.
        Reachability is judged now, not when the message was sent.
        """
        travel = self.config.message_travel_ticks
        arrived: List[Message] = []
        still_in_flight: List[Message] = []

        for message in self._in_flight:
            message.ticks_travelled += 1
            message.progress = min(1.0, message.ticks_travelled / travel)
            if message.ticks_travelled < travel:
                still_in_flight.append(message)
            elif self.can_deliver(message.sender, message.target):
                arrived.append(message)
            else:
                self.stats["dropped"] += 1
                logger.debug(
                    "dropped %s %s->%s at delivery", message.type.value, message.sender, message.target
                )

        self._in_flight = still_in_flight
        self.stats["delivered"] += len(arrived)
        return arrived

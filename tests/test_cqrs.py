import unittest
import uuid
from dataclasses import dataclass
from decimal import Decimal

from reseller_billing.core.application.cqrs import (
    CommandBusImpl,
    CommandDTO,
    PagedResult,
    QueryBusImpl,
    QueryDTO,
)
from reseller_billing.core.domain.events.events import PaymentCompletedEvent
from reseller_billing.core.domain.services.event_dispatcher import EventDispatcher


@dataclass(frozen=True)
class PingCommand(CommandDTO):
    value: int


@dataclass(frozen=True, kw_only=True)
class PingQuery(QueryDTO):
    value: int


def _event():
    return PaymentCompletedEvent(transaction_id=uuid.uuid4(), user_id=uuid.uuid4(), amount=Decimal("1"))


class BusTests(unittest.IsolatedAsyncioTestCase):
    async def test_command_bus_publishes_returned_events(self):
        dispatcher = EventDispatcher()
        received = []
        dispatcher.subscribe(PaymentCompletedEvent, received.append)
        bus = CommandBusImpl(dispatcher)
        evt = _event()

        class Handler:
            async def handle(self, cmd):
                return [evt]

        bus.register(PingCommand, Handler())
        await bus.dispatch(PingCommand(value=1))
        self.assertEqual(received, [evt])

    async def test_unregistered_command_fails(self):
        with self.assertRaises(ValueError):
            await CommandBusImpl(EventDispatcher()).dispatch(PingCommand(value=1))

    async def test_query_bus_accepts_sync_handlers(self):
        bus = QueryBusImpl()

        class Handler:
            def handle(self, query):
                return query.value * 2

        bus.register(PingQuery, Handler())
        self.assertEqual(await bus.dispatch(PingQuery(value=21)), 42)

    async def test_failing_listener_does_not_stop_the_others(self):
        dispatcher = EventDispatcher()
        seen = []

        async def broken(_event):
            raise RuntimeError("listener quebrado")

        dispatcher.subscribe(PaymentCompletedEvent, broken)
        dispatcher.subscribe(PaymentCompletedEvent, seen.append)
        await dispatcher.dispatch(_event())
        self.assertEqual(len(seen), 1)

    def test_paged_result_pages(self):
        page = PagedResult(items=[1, 2], total=101, page=1, page_size=50)
        self.assertEqual(page.total_pages, 3)

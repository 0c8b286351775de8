"""Unit tests for CartConsumer."""

from __future__ import annotations

import asyncio

import pytest

from reactive_cache.cache import EventKind, ServerEvent
from reactive_cache.consumers import CartConsumer
from reactive_cache.kernel.errors import (
    FetchError,
    MutationError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)


@pytest.fixture
def seeded(backend):
    backend.add_product("p1", "Mug", 10.0)
    backend.add_product("p2", "Poster", 4.5)
    backend.add_cart_item("u1", "p1", 2, item_id="i1")
    return backend


def _quantities(consumer):
    return [(i.product_id, i.quantity) for i in consumer.items]


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoading:
    def test_requires_user(self, runtime, backend) -> None:
        with pytest.raises(UnauthenticatedError) as excinfo:
            CartConsumer(runtime, backend, None)
        assert excinfo.value.consumer == "CartConsumer"
        assert excinfo.value.message == "Sign in to use the cart"

    def test_start_loads_items(self, runtime, seeded) -> None:
        cart = CartConsumer(runtime, seeded, "u1")
        asyncio.run(cart.start())
        assert _quantities(cart) == [("p1", 2)]
        assert cart.total_items == 2
        assert cart.total_amount == 20.0
        assert cart.loading is False
        assert cart.error is None

    def test_concurrent_consumers_share_one_fetch(self, runtime, seeded) -> None:
        header, page, drawer = (CartConsumer(runtime, seeded, "u1") for _ in range(3))

        async def run():
            await asyncio.gather(header.start(), page.start(), drawer.start())

        asyncio.run(run())
        assert seeded.calls["list_cart_items"] == 1
        assert header.items == page.items == drawer.items

    def test_late_mount_starts_with_cached_data(self, runtime, seeded) -> None:
        asyncio.run(CartConsumer(runtime, seeded, "u1").start())
        late = CartConsumer(runtime, seeded, "u1")
        late.mount()
        assert late.loading is False
        assert _quantities(late) == [("p1", 2)]

    def test_first_mount_is_loading(self, runtime, seeded) -> None:
        cart = CartConsumer(runtime, seeded, "u1")
        cart.mount()
        assert cart.loading is True
        assert cart.items == ()

    def test_load_failure_is_kept_and_raised(self, runtime, seeded) -> None:
        seeded.fail_next("list_cart_items")
        cart = CartConsumer(runtime, seeded, "u1")
        with pytest.raises(FetchError):
            asyncio.run(cart.start())
        assert isinstance(cart.error, FetchError)
        assert cart.loading is False

        asyncio.run(cart.refresh())
        assert cart.error is None
        assert _quantities(cart) == [("p1", 2)]

    def test_write_landing_before_load_resumes_is_kept(self, runtime, seeded) -> None:
        cart = CartConsumer(runtime, seeded, "u1")

        async def run():
            cart.mount()
            loading = asyncio.create_task(cart.load())
            await asyncio.sleep(0)
            inflight = runtime.fetcher.in_flight(cart.key)
            inflight.task.add_done_callback(lambda _: runtime.set(cart.key, ("NEWER",)))
            return await loading

        returned = asyncio.run(run())
        assert runtime.get(cart.key) == ("NEWER",)
        assert cart.value == ("NEWER",)
        assert returned == ("NEWER",)


# ---------------------------------------------------------------------------
# Optimistic edits
# ---------------------------------------------------------------------------


class TestOptimisticEdits:
    def test_failed_quantity_update_rolls_back(self, runtime, seeded) -> None:
        seen = []
        cart = CartConsumer(runtime, seeded, "u1", on_change=lambda c: seen.append(_quantities(c)))

        async def run():
            await cart.start()
            seeded.fail_next("update_cart_item")
            with pytest.raises(MutationError) as excinfo:
                await cart.update_quantity("i1", 3)
            return excinfo.value

        error = asyncio.run(run())
        assert seen == [[("p1", 2)], [("p1", 3)], [("p1", 2)]]
        assert isinstance(error.cause, ConnectionError)
        assert seeded.cart["u1"]["i1"].quantity == 2

    def test_speculative_quantity_seen_by_every_consumer(self, runtime, seeded) -> None:
        page, header = CartConsumer(runtime, seeded, "u1"), CartConsumer(runtime, seeded, "u1")

        async def run():
            await asyncio.gather(page.start(), header.start())
            gate = seeded.hold("update_cart_item")
            task = asyncio.create_task(page.update_quantity("i1", 5))
            await asyncio.sleep(0)
            during = header.total_items
            gate.open()
            await task
            return during

        assert asyncio.run(run()) == 5
        assert header.total_items == 5
        assert seeded.cart["u1"]["i1"].quantity == 5

    def test_successful_update_reconciles(self, runtime, seeded) -> None:
        cart = CartConsumer(runtime, seeded, "u1")

        async def run():
            await cart.start()
            await cart.update_quantity("i1", 4)

        asyncio.run(run())
        assert seeded.calls["list_cart_items"] == 2
        assert _quantities(cart) == [("p1", 4)]

    def test_add_existing_product_increments(self, runtime, seeded) -> None:
        cart = CartConsumer(runtime, seeded, "u1")

        async def run():
            await cart.start()
            await cart.add_item("p1", 3)

        asyncio.run(run())
        assert _quantities(cart) == [("p1", 5)]
        assert seeded.calls["insert_cart_item"] == 0

    def test_add_new_product_shows_placeholder_then_real_row(self, runtime, seeded) -> None:
        cart = CartConsumer(runtime, seeded, "u1")

        async def run():
            await cart.start()
            gate = seeded.hold("insert_cart_item")
            task = asyncio.create_task(cart.add_item("p2"))
            await asyncio.sleep(0)
            placeholder = cart.items[-1]
            gate.open()
            await task
            return placeholder

        placeholder = asyncio.run(run())
        assert placeholder.id.startswith("pending-")
        assert placeholder.product_id == "p2"
        assert [i.product_id for i in cart.items] == ["p1", "p2"]
        assert not any(i.id.startswith("pending-") for i in cart.items)
        assert cart.total_amount == 24.5

    def test_failed_add_removes_placeholder(self, runtime, seeded) -> None:
        cart = CartConsumer(runtime, seeded, "u1")

        async def run():
            await cart.start()
            seeded.fail_next("insert_cart_item")
            with pytest.raises(MutationError):
                await cart.add_item("p2")

        asyncio.run(run())
        assert _quantities(cart) == [("p1", 2)]

    def test_remove_item(self, runtime, seeded) -> None:
        cart = CartConsumer(runtime, seeded, "u1")

        async def run():
            await cart.start()
            await cart.remove_item("i1")

        asyncio.run(run())
        assert cart.items == ()
        assert seeded.cart["u1"] == {}

    def test_clear(self, runtime, seeded) -> None:
        cart = CartConsumer(runtime, seeded, "u1")

        async def run():
            await cart.start()
            await cart.clear()

        asyncio.run(run())
        assert cart.items == ()
        assert seeded.calls["list_cart_items"] == 1

    def test_unknown_item_rejected(self, runtime, seeded) -> None:
        cart = CartConsumer(runtime, seeded, "u1")
        asyncio.run(cart.start())
        with pytest.raises(NotFoundError) as excinfo:
            asyncio.run(cart.update_quantity("nope", 1))
        assert excinfo.value.key == cart.key
        assert excinfo.value.detail["id"] == "nope"
        with pytest.raises(NotFoundError):
            asyncio.run(cart.remove_item("nope"))

    def test_quantity_must_be_positive(self, runtime, seeded) -> None:
        cart = CartConsumer(runtime, seeded, "u1")
        asyncio.run(cart.start())
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(cart.update_quantity("i1", 0))
        assert excinfo.value.field == "quantity"
        assert excinfo.value.value == 0
        with pytest.raises(ValidationError):
            asyncio.run(cart.add_item("p2", -1))


# ---------------------------------------------------------------------------
# Realtime and teardown
# ---------------------------------------------------------------------------


class TestRealtime:
    def test_row_change_triggers_one_forced_fetch(self, runtime, seeded) -> None:
        cart = CartConsumer(runtime, seeded, "u1")

        async def run():
            await cart.start()
            seeded.add_cart_item("u1", "p2", 1)
            event = ServerEvent("cart_items", EventKind.INSERT, {"user_id": "u1"})
            runtime.realtime.handle(event)
            runtime.realtime.handle(event)
            await runtime.aclose()

        asyncio.run(run())
        assert seeded.calls["list_cart_items"] == 2
        assert [i.product_id for i in cart.items] == ["p1", "p2"]

    def test_other_users_events_ignored(self, runtime, seeded) -> None:
        cart = CartConsumer(runtime, seeded, "u1")

        async def run():
            await cart.start()
            tasks = runtime.realtime.handle(ServerEvent("cart_items", EventKind.UPDATE, {"user_id": "u2"}))
            await runtime.aclose()
            return tasks

        assert asyncio.run(run()) == []
        assert seeded.calls["list_cart_items"] == 1

    def test_teardown_disposes_registrations(self, runtime, seeded) -> None:
        cart = CartConsumer(runtime, seeded, "u1")
        asyncio.run(cart.start())
        cart.teardown()
        cart.teardown()
        assert runtime.store.subscriber_count(cart.key) == 0
        assert runtime.fetcher.loader_for(cart.key) is None
        assert runtime.realtime.keys_for(ServerEvent("cart_items", EventKind.UPDATE, {"user_id": "u1"})) == []
        runtime.set(cart.key, ())
        assert _quantities(cart) == [("p1", 2)]

    def test_teardown_keeps_other_consumers_loader(self, runtime, seeded) -> None:
        first, second = CartConsumer(runtime, seeded, "u1"), CartConsumer(runtime, seeded, "u1")
        first.mount()
        second.mount()
        first.teardown()
        assert runtime.fetcher.loader_for(second.key) == second.fetch

    def test_teardown_of_latest_consumer_keeps_earlier_one_live(self, runtime, seeded) -> None:
        first, second = CartConsumer(runtime, seeded, "u1"), CartConsumer(runtime, seeded, "u1")

        async def run():
            await first.start()
            second.mount()
            second.teardown()
            seeded.add_cart_item("u1", "p2", 1)
            return await runtime.realtime.on_server_event(first.key)

        refreshed = asyncio.run(run())
        assert runtime.fetcher.loader_for(first.key) == first.fetch
        assert [i.product_id for i in refreshed] == ["p1", "p2"]
        assert [i.product_id for i in first.items] == ["p1", "p2"]
        assert seeded.calls["list_cart_items"] == 2

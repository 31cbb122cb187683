"""Tests for the signal activation store."""

import asyncio

import pytest

from signalhub.errors import PersistenceWriteError
from signalhub.services import SignalActivationStore
from helpers import FakeSignalRepository, make_signal


class TestActivation:
    """Tests for single-signal activation."""

    @pytest.fixture
    def store(self, signal_repo):
        return SignalActivationStore(signal_repo=signal_repo)

    @pytest.mark.asyncio
    async def test_first_activation(self, store, signal_repo):
        signal = make_signal("EURUSD")
        committed = await store.activate(signal)

        assert committed.id == signal.id
        assert committed.is_active
        assert store.active_signal("EURUSD") == committed
        assert store.active_count == 1
        assert [r.id for r in signal_repo.active_rows("EURUSD")] == [signal.id]

    @pytest.mark.asyncio
    async def test_replaces_previous(self, store, signal_repo):
        first = await store.activate(make_signal("EURUSD"))
        second = await store.activate(make_signal("EURUSD"))

        assert store.active_signal("EURUSD").id == second.id
        assert signal_repo.rows[first.id].is_active is False
        assert [r.id for r in signal_repo.active_rows("EURUSD")] == [second.id]
        assert store.activation_count == 2

    @pytest.mark.asyncio
    async def test_other_symbols_untouched(self, store):
        eur = await store.activate(make_signal("EURUSD"))
        await store.activate(make_signal("XAUUSD"))
        await store.activate(make_signal("XAUUSD"))

        active = store.active_signals()
        assert set(active) == {"EURUSD", "XAUUSD"}
        assert active["EURUSD"].id == eur.id

    @pytest.mark.asyncio
    async def test_failed_write_keeps_previous(self, store, signal_repo):
        first = await store.activate(make_signal("EURUSD"))

        async def fail(signal):
            raise PersistenceWriteError("insert failed")

        signal_repo.activate = fail

        with pytest.raises(PersistenceWriteError):
            await store.activate(make_signal("EURUSD"))

        assert store.active_signal("EURUSD").id == first.id
        assert store.activation_count == 1

    @pytest.mark.asyncio
    async def test_load_primes_index(self, signal_repo):
        older = make_signal("EURUSD")
        await signal_repo.activate(older)
        gold = make_signal("XAUUSD")
        await signal_repo.activate(gold)

        store = SignalActivationStore(signal_repo=signal_repo)
        await store.load()

        assert store.active_count == 2
        assert store.active_signal("XAUUSD").id == gold.id
        assert store.active_signal("GBPUSD") is None


class TestCallbacks:
    """Tests for activation callbacks."""

    @pytest.mark.asyncio
    async def test_callback_receives_previous(self, signal_repo):
        store = SignalActivationStore(signal_repo=signal_repo)
        calls = []

        async def record(new, previous):
            calls.append((new.id, previous.id if previous else None, previous.is_active if previous else None))

        store.on_activate(record)
        first = await store.activate(make_signal("EURUSD"))
        second = await store.activate(make_signal("EURUSD"))

        assert calls == [(first.id, None, None), (second.id, first.id, False)]

    @pytest.mark.asyncio
    async def test_callback_error_does_not_fail_activation(self, signal_repo):
        store = SignalActivationStore(signal_repo=signal_repo)
        seen = []

        async def broken(new, previous):
            raise RuntimeError("boom")

        async def healthy(new, previous):
            seen.append(new.id)

        store.on_activate(broken)
        store.on_activate(healthy)

        signal = await store.activate(make_signal("EURUSD"))
        assert seen == [signal.id]
        assert store.active_signal("EURUSD").id == signal.id

    def test_duplicate_registration_ignored(self, signal_repo):
        store = SignalActivationStore(signal_repo=signal_repo)

        async def cb(new, previous):
            pass

        store.on_activate(cb)
        store.on_activate(cb)
        assert store._callbacks == [cb]


class TestConcurrency:
    """One active signal per symbol under concurrent activation."""

    @pytest.mark.asyncio
    async def test_same_symbol_is_serialized(self):
        repo = FakeSignalRepository(latency=0.01)
        store = SignalActivationStore(signal_repo=repo)
        signals = [make_signal("EURUSD") for _ in range(10)]

        await asyncio.gather(*(store.activate(s) for s in signals))

        assert repo.max_in_flight["EURUSD"] == 1
        assert repo.violations == []
        active = repo.active_rows("EURUSD")
        assert len(active) == 1
        # Last committed activation wins in both the table and the index
        assert active[0].id == repo.commits[-1]
        assert store.active_signal("EURUSD").id == repo.commits[-1]

    @pytest.mark.asyncio
    async def test_readers_never_see_gap(self):
        repo = FakeSignalRepository(latency=0.005)
        store = SignalActivationStore(signal_repo=repo)
        await store.activate(make_signal("EURUSD"))
        observed = []
        done = asyncio.Event()

        async def reader():
            while not done.is_set():
                observed.append(store.active_signal("EURUSD") is not None)
                await asyncio.sleep(0)

        async def writers():
            await asyncio.gather(*(store.activate(make_signal("EURUSD")) for _ in range(5)))
            done.set()

        await asyncio.gather(reader(), writers())

        assert observed
        assert all(observed)

    @pytest.mark.asyncio
    async def test_different_symbols_run_in_parallel(self):
        repo = FakeSignalRepository(latency=0.05)
        store = SignalActivationStore(signal_repo=repo)

        async def blocked():
            # Hold the EURUSD lock while XAUUSD activates
            async with store.lock_for("EURUSD"):
                await asyncio.sleep(0.2)

        holder = asyncio.create_task(blocked())
        await asyncio.sleep(0)

        gold = await asyncio.wait_for(store.activate(make_signal("XAUUSD")), timeout=0.15)
        assert store.active_signal("XAUUSD").id == gold.id
        assert not holder.done()
        await holder

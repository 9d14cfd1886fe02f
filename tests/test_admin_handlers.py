import pytest

from app.domain.admin.handlers import handle_admin_command
from app.domain.roulette.coordinator import GameCoordinator
from app.domain.roulette.queue import PendingQueue
from app.settings import Settings

ADMIN = 42
STRANGER = 7


class FakeApp:
    def __init__(self, store, *, max_queue=100, **settings):
        settings.setdefault("ADMINS", [ADMIN])
        self.settings = Settings(**settings)
        queue = PendingQueue(max_size=max_queue)
        coordinator = GameCoordinator(store=store, queue=queue, store_retry_base_delay_ms=0)
        self.state = type("State", (), {"settings": self.settings, "store": store, "coordinator": coordinator})()

    @property
    def coordinator(self):
        return self.state.coordinator


async def send(app, text, user_id=ADMIN, username="boss"):
    return await handle_admin_command(app=app, user_id=user_id, username=username, text=text)


@pytest.mark.asyncio
async def test_non_admin_is_denied_and_audited(store):
    app = FakeApp(store)
    reply = await send(app, "spin: 17", user_id=STRANGER, username="eve")

    assert not reply.ok
    assert reply.action == "add_spin_unauthorized"
    assert "UNAUTHORIZED" in reply.text
    assert len(app.coordinator.queue) == 0
    assert len(store.audit) == 1
    assert store.audit[0].actor_id == STRANGER
    assert not store.audit[0].success


@pytest.mark.asyncio
async def test_add_spin_queues_and_starts_round(store):
    app = FakeApp(store)
    reply = await send(app, "spin: 17")

    assert reply.ok
    assert reply.action == "add_spin"
    assert "Queue Position: 1" in reply.text
    assert app.coordinator.queue.snapshot() == [17]
    assert app.coordinator.round_active
    assert store.actions() == ["add_spin"]
    assert store.audit[0].new_value == [17]
    await app.coordinator.shutdown()


@pytest.mark.asyncio
async def test_add_spin_while_paused_does_not_start_round(store):
    app = FakeApp(store)
    await send(app, "/stop")
    reply = await send(app, "spin: 4")

    assert reply.ok
    assert not app.coordinator.round_active
    assert store.actions() == ["pause_game", "add_spin"]


@pytest.mark.asyncio
async def test_add_spin_invalid_and_queue_full(store):
    app = FakeApp(store, max_queue=1)
    app.coordinator.pause()

    reply = await send(app, "spin: 40")
    assert reply.action == "add_spin_invalid"
    assert not reply.ok

    await send(app, "spin: 1")
    reply = await send(app, "spin: 2")
    assert reply.action == "add_spin_queue_full"
    assert "1/1" in reply.text
    assert store.actions() == ["add_spin_invalid", "add_spin", "add_spin_queue_full"]


@pytest.mark.asyncio
async def test_delete_value_removes_all_occurrences(store):
    app = FakeApp(store)
    for n in (3, 3, 7, 3):
        app.coordinator.queue.enqueue(n)

    reply = await send(app, "/delete 3")
    assert reply.ok
    assert "Instances Removed: 3" in reply.text
    assert app.coordinator.queue.snapshot() == [7]

    reply = await send(app, "/delete 3")
    assert reply.action == "delete_value_not_found"
    assert len(store.audit) == 2


@pytest.mark.asyncio
async def test_clear_queue_soft_deletes_when_enabled(store):
    app = FakeApp(store, SOFT_DELETE_ON_QUEUE_REMOVE=True)
    stored = store.add_result(8, "Black", "Even")
    app.coordinator.queue.enqueue(8)
    app.coordinator.queue.enqueue(9)

    reply = await send(app, "/delete_queue")
    assert reply.ok
    assert "Items Removed: 2" in reply.text
    assert stored.is_deleted
    assert len(app.coordinator.queue) == 0


@pytest.mark.asyncio
async def test_clear_queue_leaves_results_by_default(store):
    app = FakeApp(store)
    stored = store.add_result(8, "Black", "Even")
    app.coordinator.queue.enqueue(8)

    await send(app, "/clear")
    assert not stored.is_deleted


@pytest.mark.asyncio
async def test_trigger_mid_round_spins_now(store):
    app = FakeApp(store)
    await send(app, "spin: 5")
    reply = await send(app, "/trigger 0")

    assert reply.ok
    assert reply.action == "manual_spin"
    assert app.coordinator.is_spinning
    assert app.coordinator.current_result == 0
    assert app.coordinator.queue.snapshot() == [5]
    assert store.results[0].done_by == "boss"
    await app.coordinator.shutdown()


@pytest.mark.asyncio
async def test_trigger_invalid_number_fails(store):
    app = FakeApp(store)
    reply = await send(app, "/trigger 99")
    assert reply.action == "manual_spin_failed"
    assert "0-36" in reply.text


@pytest.mark.asyncio
async def test_end_round_without_round_fails(store):
    app = FakeApp(store)
    reply = await send(app, "/endround")
    assert reply.action == "end_round_failed"
    assert not reply.ok


@pytest.mark.asyncio
async def test_pause_resume_and_reset(store):
    app = FakeApp(store)
    assert (await send(app, "/stop")).action == "pause_game"
    assert (await send(app, "/stop")).action == "pause_game_failed"
    assert (await send(app, "/resume")).action == "resume_game"
    assert (await send(app, "/resume")).action == "resume_game_failed"

    app.coordinator.queue.enqueue(11)
    reply = await send(app, "/reset")
    assert reply.action == "reset_game"
    assert len(app.coordinator.queue) == 0
    assert store.audit[-1].old_value == {"queue": [11], "state": "running"}


@pytest.mark.asyncio
async def test_results_and_result_actions(store):
    app = FakeApp(store)
    first = store.add_result(1, "Red", "Odd")
    store.add_result(2, "Black", "Even")

    reply = await send(app, "/results 20")
    assert reply.action == "view_results"
    assert "RECENT SPIN RESULTS (2)" in reply.text

    reply = await send(app, f"/remove_result {first.id}")
    assert reply.action == "soft_delete_result"
    assert first.is_deleted

    reply = await send(app, f"/restore_result {first.id}")
    assert reply.ok
    assert not first.is_deleted

    reply = await send(app, "/purge_result nope")
    assert reply.action == "purge_result_failed"


@pytest.mark.asyncio
async def test_results_store_error(store):
    app = FakeApp(store)
    store.fail_reads = True
    reply = await send(app, "/results")
    assert reply.action == "view_results_error"
    assert not reply.ok


@pytest.mark.asyncio
async def test_help_status_and_unknown(store):
    app = FakeApp(store)
    assert "ROULETTE ADMIN BOT" in (await send(app, "/help")).text
    assert "ROULETTE GAME STATUS" in (await send(app, "/status")).text
    reply = await send(app, "what now")
    assert reply.action == "unknown_command"
    assert store.actions() == ["help_requested", "check_status", "unknown_command"]

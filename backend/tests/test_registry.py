"""
Group registry and session store, including claim races driven from threads.
"""
import threading
from concurrent.futures import ThreadPoolExecutor

from backend.app.game_logic import (
    GameError,
    GameManager,
    GroupRegistry,
    Participant,
    Role,
    RoleOccupied,
    RolesExhausted,
    SessionStore,
)


def test_claim_find_release():
    registry = GroupRegistry()
    assert registry.claim(1, Role.A, "s1")
    assert registry.find(1, Role.A) == "s1"
    assert registry.slot_of("s1") == (1, Role.A)
    assert not registry.claim(1, Role.A, "s2")
    # same connection re-claiming its own slot is fine
    assert registry.claim(1, Role.A, "s1")

    assert registry.release("s1") == (1, Role.A)
    assert registry.find(1, Role.A) is None
    assert registry.release("s1") is None
    assert registry.claim(1, Role.A, "s2")


def test_claim_moves_a_connection_to_its_new_slot():
    registry = GroupRegistry()
    registry.claim(1, Role.A, "s1")
    assert registry.claim(2, Role.D, "s1")
    assert registry.occupants_of(1) == set()
    assert registry.occupants_of(2) == {Role.D}


def test_members_follow_catalog_order():
    registry = GroupRegistry()
    registry.claim(1, Role.F, "f")
    registry.claim(1, Role.A, "a")
    registry.claim(1, Role.C, "c")
    registry.claim(2, Role.B, "other")
    assert registry.members(1) == ["a", "c", "f"]
    assert registry.occupants_of(1) == {Role.A, Role.C, Role.F}
    assert registry.members(3) == []


def test_session_store_basics():
    store = SessionStore()
    p = Participant("s1", "Alice", Role.A, 1)
    store.insert(p)
    assert "s1" in store
    assert len(store) == 1
    assert store.get("s1") is p
    assert store.remove("s1") is p
    assert store.remove("s1") is None
    assert store.get("s1") is None


def _race(fn, workers=16):
    barrier = threading.Barrier(workers)

    def attempt(i):
        barrier.wait()
        return fn(i)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(attempt, range(workers)))


def test_concurrent_claims_have_exactly_one_winner():
    registry = GroupRegistry()
    results = _race(lambda i: registry.claim(1, Role.A, f"sid-{i}"))
    assert results.count(True) == 1
    winner = registry.find(1, Role.A)
    assert results[int(winner.split("-")[1])] is True


def test_concurrent_reconnects_to_same_slot():
    manager = GameManager(groups=1)

    def attempt(i):
        try:
            manager.reconnect_user(f"sid-{i}", f"Player {i}", "C", 1)
            return "ok"
        except RoleOccupied:
            return "occupied"

    results = _race(attempt)
    assert results.count("ok") == 1
    assert results.count("occupied") == len(results) - 1
    assert len(manager.sessions) == 1


def test_concurrent_registrations_never_duplicate_roles():
    manager = GameManager(groups=1)

    def attempt(i):
        try:
            participant, _ = manager.register(f"sid-{i}", f"Player {i}", 1)
            return participant.role
        except RolesExhausted:
            return None

    results = _race(attempt, workers=10)
    assigned = [r for r in results if r is not None]
    assert len(assigned) == 6
    assert set(assigned) == set(Role)
    assert results.count(None) == 4


def test_errors_carry_their_code():
    err = RoleOccupied("Role is already taken")
    assert isinstance(err, GameError)
    assert err.to_ack() == {'ok': False, 'error': 'Role is already taken', 'code': 'RoleOccupied'}


def test_roster_snapshot_never_misses_a_rebinding_member():
    manager = GameManager(groups=1)
    for i in range(6):
        manager.register(f"sid-{i}", f"Player {i}", 1)
    stop = threading.Event()
    sizes = []

    def rebind():
        while not stop.is_set():
            manager.register("sid-5", "Player 5", 1)

    def read():
        for _ in range(2000):
            sizes.append(len(manager.roster(1)))
            members = {e.to for e in manager._roster_events(1)}
            sizes.append(len(members))

    writer = threading.Thread(target=rebind)
    writer.start()
    try:
        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(lambda _: read(), range(4)))
    finally:
        stop.set()
        writer.join()
    assert set(sizes) == {6}

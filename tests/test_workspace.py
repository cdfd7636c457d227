from app.schemas.users import CurrentUser
from app.services.ords import OrdsClient
from app.services.workspace import WorkspaceRegistry


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def make_registry(clock, idle_minutes=15):
    return WorkspaceRegistry(client_factory=lambda: OrdsClient(base_url="http://ords.test"), idle_minutes=idle_minutes, clock=clock)


def test_workspace_reused_and_token_refreshed(teacher):
    registry = make_registry(Clock())
    first = registry.get(teacher, "token-1")
    second = registry.get(CurrentUser(user_id=6, school_id=1, role="headteacher"), "token-2")

    assert first is second
    assert second.user.is_head_teacher
    assert second.client.token == "token-2"
    assert len(registry) == 1


def test_idle_workspaces_are_dropped(teacher, head_teacher):
    clock = Clock()
    registry = make_registry(clock)
    stale = registry.get(teacher)
    clock.now += 10 * 60
    registry.get(head_teacher)

    clock.now += 6 * 60
    assert registry.get(head_teacher) is not None
    assert len(registry) == 1

    fresh = registry.get(teacher)
    assert fresh is not stale
    assert len(registry) == 2


def test_active_workspace_survives(teacher):
    clock = Clock()
    registry = make_registry(clock)
    workspace = registry.get(teacher)
    for _ in range(4):
        clock.now += 10 * 60
        assert registry.get(teacher) is workspace


def test_discard_resets_scopes(scope, teacher):
    registry = make_registry(Clock())
    workspace = registry.get(teacher)
    workspace.guard.change_scope(scope)

    registry.discard(teacher)

    assert workspace.guard.current_key == ""
    assert len(registry) == 0


def test_zero_timeout_keeps_everything(teacher):
    clock = Clock()
    registry = make_registry(clock, idle_minutes=0)
    workspace = registry.get(teacher)
    clock.now += 24 * 3600
    assert registry.evict_idle() == 0
    assert registry.get(teacher) is workspace

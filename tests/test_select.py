from bootforge.graph.select import select_tasks

from helpers import shell_task, tasks_by_name


def _tasks():
    return tasks_by_name(
        shell_task("A", ("true",)),
        shell_task("B", ("true",)),
        shell_task("C", ("true",)),
    )


def test_no_filters_selects_everything_in_order():
    assert list(select_tasks(_tasks())) == ["A", "B", "C"]


def test_include_limits_selection():
    assert list(select_tasks(_tasks(), include=["C", "A"])) == ["A", "C"]


def test_exclude_wins_over_include():
    assert list(select_tasks(_tasks(), include=["A", "B"], exclude=["B"])) == ["A"]


def test_exclude_only():
    assert list(select_tasks(_tasks(), exclude=["A"])) == ["B", "C"]


def test_unknown_names_are_ignored(log_messages: list[str]):
    selected = select_tasks(_tasks(), include=["A", "nope"], exclude=["gone"])

    assert list(selected) == ["A"]
    assert any("'nope'" in m for m in log_messages)
    assert any("'gone'" in m for m in log_messages)


def test_include_of_only_unknown_names_selects_nothing():
    assert select_tasks(_tasks(), include=["nope"]) == {}


def test_constraints_must_match_env():
    tasks = tasks_by_name(
        shell_task("mac", ("true",), constraints={"os": "macos"}),
        shell_task("linux", ("true",), constraints={"os": "linux"}),
        shell_task("any", ("true",)),
    )

    assert list(select_tasks(tasks, env={"os": "linux"})) == ["linux", "any"]
    assert list(select_tasks(tasks)) == ["any"]


def test_explicit_include_does_not_override_constraints():
    tasks = tasks_by_name(shell_task("mac", ("true",), constraints={"os": "macos"}))
    assert select_tasks(tasks, include=["mac"], env={"os": "linux"}) == {}


def test_manual_tasks_need_to_be_named():
    tasks = tasks_by_name(
        shell_task("manual", ("true",), auto_run=False),
        shell_task("auto", ("true",)),
    )

    assert list(select_tasks(tasks)) == ["auto"]
    assert list(select_tasks(tasks, include=["manual"])) == ["manual"]
    assert select_tasks(tasks, include=["manual"], exclude=["manual"]) == {}

"""Dashboard aggregation.

Invariants:
    - Pending email invitations count toward the user's projects
    - A registered invitee is counted once in the team size
    - Upcoming deadlines hold only dated tasks due in [today, today + 14]
    - Recent tasks are those created in the last 7 days, newest first
"""

from datetime import datetime, timedelta, timezone

from app.modules.dashboard.service import (
    DashboardService, count_completed_projects, estimate_team_size, histogram,
    select_recent_tasks, select_upcoming_deadlines,
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


def test_completed_projects_end_strictly_before_today():
    projects = [
        {"end_date": "2024-06-14"},
        {"end_date": "2024-06-15"},
        {"end_date": None},
        {"end_date": "2024-06-14T23:59:59+00:00"},
    ]
    assert count_completed_projects(projects, TODAY) == 2


def test_team_size_counts_registered_invitee_once():
    projects = [{"owner_id": 1}, {"owner_id": 2}]
    members = [
        {"member_email": "U@x.com", "user_id": None},
        {"member_email": "ghost@x.com", "user_id": None},
        {"member_email": "v@x.com", "user_id": 2},
    ]
    assert estimate_team_size(projects, members, {"u@x.com": 1, "v@x.com": 2}) == 3


def test_team_size_never_shrinks_as_members_are_added():
    projects = [{"owner_id": 1}]
    registered = {"owner@x.com": 1, "bob@x.com": 2}
    steps = [
        ({"member_email": "ghost@x.com", "user_id": None}, 2),
        ({"member_email": "Owner@x.com", "user_id": None}, 2),
        ({"member_email": "bob@x.com", "user_id": 2}, 3),
        ({"member_email": "BOB@x.com ", "user_id": None}, 3),
        ({"member_email": "carol@x.com", "user_id": None}, 4),
    ]

    members, previous = [], estimate_team_size(projects, [], registered)
    assert previous == 1
    for member, expected in steps:
        members.append(member)
        size = estimate_team_size(projects, members, registered)
        assert size >= previous
        assert size == expected
        previous = size


def test_histogram_buckets_missing_values_as_null():
    rows = [{"status": "On track"}, {"status": "On track"}, {"status": None}]
    assert histogram(rows, "status") == {"On track": 2, "null": 1}


def test_upcoming_deadlines_window_and_order():
    tasks = [
        {"task_id": 1, "due_date": None},
        {"task_id": 2, "due_date": (TODAY + timedelta(days=3)).isoformat()},
        {"task_id": 3, "due_date": TODAY.isoformat()},
        {"task_id": 4, "due_date": (TODAY - timedelta(days=1)).isoformat()},
        {"task_id": 5, "due_date": (TODAY + timedelta(days=14)).isoformat()},
        {"task_id": 6, "due_date": (TODAY + timedelta(days=15)).isoformat()},
    ]
    assert [t["task_id"] for t in select_upcoming_deadlines(tasks, TODAY)] == [3, 2, 5]


def test_recent_tasks_last_week_newest_first():
    tasks = [
        {"task_id": 1, "created_at": (NOW - timedelta(days=8)).isoformat()},
        {"task_id": 2, "created_at": (NOW - timedelta(days=1)).isoformat()},
        {"task_id": 3, "created_at": "2024-06-15T08:00:00.123456Z"},
        {"task_id": 4, "created_at": None},
    ]
    assert [t["task_id"] for t in select_recent_tasks(tasks, NOW)] == [3, 2]


def test_recent_tasks_capped_at_ten():
    tasks = [{"task_id": i, "created_at": (NOW - timedelta(hours=i)).isoformat()} for i in range(15)]
    assert len(select_recent_tasks(tasks, NOW)) == 10


async def test_dashboard_includes_pending_invitation(db, make_user, make_project):
    u = make_user("U", "u@x.com")
    v = make_user("V", "v@x.com")
    p1 = make_project(u, name="P1", end_date="2024-06-01", status="Completed")
    p2 = make_project(v, name="P2", end_date="2024-12-31", members=["u@x.com"])
    db.insert_rows("tasks", [
        {"project_uuid": p1["project_uuid"], "title": "no date", "due_date": None, "created_at": NOW.isoformat()},
        {"project_uuid": p2["project_uuid"], "title": "soon", "due_date": "2024-06-20", "status": "At risk",
         "created_at": (NOW - timedelta(days=30)).isoformat()},
    ])

    data = await DashboardService(db).get_dashboard(
        {"user_id": u["user_id"], "email": u["email"]}, now=NOW,
    )

    assert data["totalProjects"] == 2
    assert data["completedProjects"] == 1
    assert data["totalTeamMembers"] == 2
    assert [t["title"] for t in data["recentTasks"]] == ["no date"]
    assert [t["title"] for t in data["upcomingDeadlines"]] == ["soon"]
    assert data["upcomingDeadlines"][0]["project"] == {
        "project_id": p2["project_id"], "project_uuid": p2["project_uuid"], "name": "P2",
    }
    assert data["stats"]["projectsByStatus"] == {"Completed": 1, "On track": 1}
    assert data["stats"]["tasksByStatus"] == {"On track": 1, "At risk": 1}


async def test_dashboard_empty_without_projects(db, make_user):
    u = make_user("U")

    data = await DashboardService(db).get_dashboard({"user_id": u["user_id"], "email": u["email"]}, now=NOW)

    assert data["totalProjects"] == 0
    assert data["recentTasks"] == []
    assert data["stats"]["projectsByStatus"] == {}


async def test_dashboard_route(client, make_user, make_project):
    u = make_user("U")
    make_project(u)

    res = await client.get("/api/dashboard", headers=u["headers"])

    assert res.status_code == 200
    assert res.json()["success"] is True
    assert res.json()["data"]["totalProjects"] == 1

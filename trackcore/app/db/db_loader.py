import uuid
from typing import Dict, List, Set

from sqlalchemy import text
from sqlalchemy.orm import Session

from trackcore.app.db.models import Milestone, Priority, TaskNode
from trackcore.app.errors import TaskNotFoundError
from trackcore.engine.progress import normalize

_TASK_COLUMNS = """
    id, project_id, subsystem_id, title, estimate_days, actual_days,
    priority, progress, completed, start_date, end_date
"""


def _row_to_task(row, members: Set[str], pre: Set[str], post: Set[str]) -> TaskNode:
    task = TaskNode(
        id=row.id,
        project_id=row.project_id,
        subsystem_id=row.subsystem_id,
        title=row.title or "",
        estimated_days=row.estimate_days,
        actual_days=row.actual_days or 0.0,
        priority=row.priority or Priority.MEDIUM,
        progress=row.progress or 0,
        completed=bool(row.completed),
        start_date=row.start_date,
        end_date=row.end_date,
        assigned_member_ids=members,
        pre_dependencies=pre,
        post_dependencies=post,
    )
    return normalize(task)


class SqlTaskStore:
    """TaskStore over the tasks / task_members / dependencies tables."""

    def __init__(self, session: Session):
        self.session = session

    def list_tasks_for_project(self, project_id: str) -> List[TaskNode]:
        task_rows = self.session.execute(text(f"""
            SELECT {_TASK_COLUMNS}
            FROM tasks WHERE project_id = :pid
        """), {"pid": str(project_id)}).fetchall()

        member_rows = self.session.execute(text("""
            SELECT m.task_id, m.member_id
            FROM task_members m
            JOIN tasks t ON t.id = m.task_id
            WHERE t.project_id = :pid
        """), {"pid": str(project_id)}).fetchall()

        dep_rows = self.session.execute(text("""
            SELECT d.task_id, d.depends_on
            FROM dependencies d
            JOIN tasks t ON t.id = d.task_id
            WHERE t.project_id = :pid
        """), {"pid": str(project_id)}).fetchall()

        members: Dict[str, Set[str]] = {}
        for m in member_rows:
            members.setdefault(m.task_id, set()).add(m.member_id)
        pre_map: Dict[str, Set[str]] = {}
        post_map: Dict[str, Set[str]] = {}
        for dep in dep_rows:
            pre_map.setdefault(dep.task_id, set()).add(dep.depends_on)
            post_map.setdefault(dep.depends_on, set()).add(dep.task_id)

        return [
            _row_to_task(row, members.get(row.id, set()), pre_map.get(row.id, set()), post_map.get(row.id, set()))
            for row in task_rows
        ]

    def get_task(self, task_id: str) -> TaskNode:
        row = self.session.execute(text(f"""
            SELECT {_TASK_COLUMNS}
            FROM tasks WHERE id = :id
        """), {"id": str(task_id)}).fetchone()
        if not row:
            raise TaskNotFoundError(str(task_id))
        members = {r.member_id for r in self.session.execute(text("""
            SELECT member_id FROM task_members WHERE task_id = :id
        """), {"id": row.id}).fetchall()}
        pre = {r.depends_on for r in self.session.execute(text("""
            SELECT depends_on FROM dependencies WHERE task_id = :id
        """), {"id": row.id}).fetchall()}
        post = {r.task_id for r in self.session.execute(text("""
            SELECT task_id FROM dependencies WHERE depends_on = :id
        """), {"id": row.id}).fetchall()}
        return _row_to_task(row, members, pre, post)

    def persist(self, task: TaskNode) -> TaskNode:
        """Upsert the task row and replace its member and prerequisite rows.
        The post set is not written: it is the mirror of other tasks' rows."""
        task = normalize(task.model_copy(deep=True))
        if not task.id:
            task.id = uuid.uuid4().hex
        try:
            self.session.execute(text("""
                INSERT INTO tasks (id, project_id, subsystem_id, title, estimate_days, actual_days,
                                   priority, progress, completed, start_date, end_date)
                VALUES (:id, :pid, :sid, :title, :est, :act, :priority, :progress, :completed, :start, :end)
                ON CONFLICT (id) DO UPDATE SET
                  project_id = EXCLUDED.project_id,
                  subsystem_id = EXCLUDED.subsystem_id,
                  title = EXCLUDED.title,
                  estimate_days = EXCLUDED.estimate_days,
                  actual_days = EXCLUDED.actual_days,
                  priority = EXCLUDED.priority,
                  progress = EXCLUDED.progress,
                  completed = EXCLUDED.completed,
                  start_date = EXCLUDED.start_date,
                  end_date = EXCLUDED.end_date
            """), {
                "id": task.id,
                "pid": task.project_id,
                "sid": task.subsystem_id,
                "title": task.title,
                "est": task.estimated_days,
                "act": task.actual_days,
                "priority": task.priority.value,
                "progress": task.progress,
                "completed": task.completed,
                "start": task.start_date.isoformat() if task.start_date else None,
                "end": task.end_date.isoformat() if task.end_date else None,
            })
            _replace_members(self.session, task.id, task.assigned_member_ids)
            _replace_dependencies(self.session, task.id, task.pre_dependencies)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return task


def _replace_members(db: Session, task_id: str, member_ids: Set[str]) -> None:
    db.execute(text("""
        DELETE FROM task_members WHERE task_id = :tid
    """), {"tid": task_id})
    for member in sorted(member_ids):
        db.execute(text("""
            INSERT INTO task_members (task_id, member_id) VALUES (:tid, :mid)
        """), {"tid": task_id, "mid": member})


def _replace_dependencies(db: Session, task_id: str, depends_on: Set[str]) -> None:
    # Clear existing, then insert
    db.execute(text("""
        DELETE FROM dependencies WHERE task_id = :tid
    """), {"tid": task_id})
    for dep in sorted(depends_on):
        if dep and dep != task_id:
            db.execute(text("""
                INSERT INTO dependencies (task_id, depends_on) VALUES (:tid, :dep)
            """), {"tid": task_id, "dep": dep})


class SqlMilestoneStore:
    def __init__(self, session: Session):
        self.session = session

    def list_milestones_for_project(self, project_id: str) -> List[Milestone]:
        rows = self.session.execute(text("""
            SELECT id, project_id, name, date, description
            FROM milestones WHERE project_id = :pid
        """), {"pid": str(project_id)}).fetchall()
        return [
            Milestone(id=r.id, project_id=r.project_id, name=r.name, date=r.date, description=r.description)
            for r in rows
        ]

    def persist(self, milestone: Milestone) -> Milestone:
        try:
            self.session.execute(text("""
                INSERT INTO milestones (id, project_id, name, date, description)
                VALUES (:id, :pid, :name, :date, :description)
                ON CONFLICT (id) DO UPDATE SET
                  project_id = EXCLUDED.project_id,
                  name = EXCLUDED.name,
                  date = EXCLUDED.date,
                  description = EXCLUDED.description
            """), {
                "id": milestone.id,
                "pid": milestone.project_id,
                "name": milestone.name,
                "date": milestone.date.isoformat(),
                "description": milestone.description,
            })
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return milestone

"""FastAPI web application for creditboard."""

import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from creditboard.database.database import get_db, init_db
from creditboard.database.repository import TaskRepository
from creditboard.database.settings_repository import SettingsRepository
from creditboard.models.task import Task, Quadrant, TaskType
from creditboard.models.settings import TargetValues
from creditboard.models.task_factory import create_task_base, normalize_task_fields
from creditboard.models.constants import TARGETS_STORAGE_KEY, MONTHLY_TARGETS_STORAGE_KEY
from creditboard.engine.errors import (
    TaskNotFoundError,
    ValidationFailure,
    InvalidTransitionError,
    TransientStoreError,
)
from creditboard.engine.lifecycle import archive_cutoff, plan_complete, plan_uncomplete, plan_delete, plan_restore
from creditboard.engine.ordering import plan_reorder_within_quadrant, sort_active_board
from creditboard.engine.ports import Clock, SystemClock
from creditboard.engine.reminders import ReminderItem, build_reminder_items, parse_date_only
from creditboard.engine.rollover import (
    OutstandingLedger,
    OutstandingSnapshot,
    TargetProgress,
    compute_target_progress,
    load_monthly_targets,
    load_targets,
)
from creditboard.engine.totals import DashboardTotals, summarize_totals

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="creditboard API",
    description="Credit-operations task board: priority matrix, outstanding ledger and reminders",
    version="0.1.0",
    lifespan=lifespan,
)


def get_clock() -> Clock:
    """Clock dependency (overridden in tests)."""
    return SystemClock()


@app.exception_handler(TransientStoreError)
async def transient_store_error_handler(request: Request, exc: TransientStoreError):
    return JSONResponse(status_code=503, content={"detail": f"Store unavailable: {exc}"})


# Request models
class TaskPayload(BaseModel):
    """Create/edit payload. Title, quadrant and type are required."""
    title: Optional[str] = None
    quadrant: Optional[Quadrant] = None
    type: Optional[TaskType] = None
    note: Optional[str] = None
    deadline: Optional[str] = Field(None, description="Date (YYYY-MM-DD); any time part is ignored")
    amount_disbursement: Optional[int] = Field(None, ge=0)
    service_fee: Optional[int] = Field(None, ge=0)
    amount_recovery: Optional[int] = Field(None, ge=0)
    amount_mobilized: Optional[int] = Field(None, ge=0)
    completed: bool = False


class TaskPatchRequest(BaseModel):
    """Completion toggle and/or quadrant move."""
    completed: Optional[bool] = None
    quadrant: Optional[Quadrant] = None


class ReorderRequest(BaseModel):
    quadrant: Optional[Quadrant] = None
    ordered_ids: Optional[List[str]] = None


class BaselineRequest(BaseModel):
    start_of_day: Optional[int] = None
    start_of_month: Optional[int] = None
    start_of_year: Optional[int] = None


class TargetsRequest(BaseModel):
    targets: Optional[TargetValues] = None
    monthly_targets: Optional[TargetValues] = None


# Response models
class TasksResponse(BaseModel):
    """Board tasks plus totals over every task (archived included)."""
    tasks: List[Task]
    totals: DashboardTotals


class DeleteResponse(BaseModel):
    success: bool
    archived: bool = Field(False, description="True if the task was archived instead of deleted")


class RemindersResponse(BaseModel):
    items: List[ReminderItem]


class TargetsResponse(BaseModel):
    targets: TargetValues
    monthly_targets: TargetValues
    progress: Dict[str, TargetProgress]


def _require_fields(payload: TaskPayload) -> None:
    if not (payload.title and payload.title.strip()) or not payload.quadrant or not payload.type:
        raise HTTPException(status_code=400, detail="Missing required fields: title, quadrant, type")


def _get_or_404(repo: TaskRepository, task_id: str) -> Task:
    task = repo.get(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    return task


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}


@app.get("/api/tasks", response_model=TasksResponse)
def list_tasks(include_archived: bool = False, db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    """List tasks; the active board (default) runs the archive sweep first."""
    repo = TaskRepository(db)
    if not include_archived:
        now = clock.now()
        repo.archive_completed_before(archive_cutoff(now), now)
        repo.clear_archived_on_open()

    all_tasks = repo.get_all()
    if include_archived:
        tasks = all_tasks
    else:
        tasks = sort_active_board([task for task in all_tasks if task.archived_at is None])
    return TasksResponse(tasks=tasks, totals=summarize_totals(all_tasks))


@app.post("/api/tasks", response_model=Task, status_code=201)
def create_task(payload: TaskPayload, db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    """Create a task at the end of its quadrant."""
    _require_fields(payload)
    repo = TaskRepository(db)
    task = create_task_base(
        title=payload.title,
        quadrant=payload.quadrant,
        task_type=payload.type,
        position=repo.next_position(payload.quadrant),
        note=payload.note,
        deadline=parse_date_only(payload.deadline),
        amount_disbursement=payload.amount_disbursement,
        service_fee=payload.service_fee,
        amount_recovery=payload.amount_recovery,
        amount_mobilized=payload.amount_mobilized,
        completed=payload.completed,
        now=clock.now(),
    )
    return repo.create(task)


@app.put("/api/tasks/{task_id}", response_model=Task)
def edit_task(task_id: str, payload: TaskPayload, db: Session = Depends(get_db)):
    """Edit a task's content; a quadrant change appends it to the new quadrant."""
    _require_fields(payload)
    repo = TaskRepository(db)
    task = _get_or_404(repo, task_id)

    fields = {
        "title": payload.title.strip(),
        "type": payload.type,
        "deadline": parse_date_only(payload.deadline),
        **normalize_task_fields(
            payload.type,
            payload.note,
            {
                "amount_disbursement": payload.amount_disbursement,
                "service_fee": payload.service_fee,
                "amount_recovery": payload.amount_recovery,
                "amount_mobilized": payload.amount_mobilized,
            },
        ),
    }
    if payload.quadrant.value != task.quadrant:
        fields["quadrant"] = payload.quadrant
        fields["position"] = repo.next_position(payload.quadrant)
    try:
        return repo.update(task_id, fields)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.patch("/api/tasks/{task_id}", response_model=Task)
def patch_task(
    task_id: str,
    payload: TaskPatchRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Toggle completion and/or move the task to the end of another quadrant."""
    repo = TaskRepository(db)
    task = _get_or_404(repo, task_id)

    try:
        if payload.completed is not None:
            if payload.completed:
                plan = plan_complete([task], task_id, clock.now())
            else:
                plan = plan_uncomplete([task], task_id)
            if plan is not None:
                task = repo.transaction(plan.operations)[0]

        if payload.quadrant is not None and payload.quadrant.value != task.quadrant:
            task = repo.update(
                task_id,
                {"quadrant": payload.quadrant, "position": repo.next_position(payload.quadrant)},
            )
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return task


@app.delete("/api/tasks/{task_id}", response_model=DeleteResponse)
def delete_task(task_id: str, db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    """Delete an open task; completed tasks are archived instead."""
    repo = TaskRepository(db)
    task = _get_or_404(repo, task_id)
    plan = plan_delete([task], task_id, clock.now())
    if plan is None:
        return DeleteResponse(success=True, archived=True)
    try:
        repo.transaction(plan.operations)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return DeleteResponse(success=True, archived=plan.action == "archive")


@app.post("/api/tasks/{task_id}/restore", response_model=Task)
def restore_task(task_id: str, db: Session = Depends(get_db)):
    """Bring an archived task back to the board (still completed)."""
    repo = TaskRepository(db)
    task = _get_or_404(repo, task_id)
    try:
        plan = plan_restore([task], task_id)
        return repo.transaction(plan.operations)[0]
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/api/tasks/reorder")
def reorder_tasks(payload: ReorderRequest, db: Session = Depends(get_db)):
    """Renumber a quadrant's active tasks in the given order, all or nothing."""
    if payload.quadrant is None or payload.ordered_ids is None:
        raise HTTPException(status_code=400, detail="Invalid payload: quadrant and ordered_ids are required")

    repo = TaskRepository(db)
    snapshot = repo.find_many({"quadrant": payload.quadrant, "archived_at": None})
    try:
        plan = plan_reorder_within_quadrant(snapshot, payload.quadrant, payload.ordered_ids)
        repo.transaction(plan.operations)
    except ValidationFailure as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True}


@app.get("/api/reminders", response_model=RemindersResponse)
def list_reminders(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    """Top attention items among open tasks."""
    repo = TaskRepository(db)
    open_tasks = repo.find_many({"completed": False, "archived_at": None})
    return RemindersResponse(items=build_reminder_items(open_tasks, clock.now().date()))


@app.get("/api/outstanding", response_model=OutstandingSnapshot)
def get_outstanding(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    """Outstanding snapshot for today, rolling the previous day's balance over if needed."""
    tasks = TaskRepository(db).get_all()
    ledger = OutstandingLedger(SettingsRepository(db), clock)
    ledger.poll(tasks)
    return ledger.snapshot(tasks)


@app.put("/api/outstanding/baseline", response_model=OutstandingSnapshot)
def set_outstanding_baseline(
    payload: BaselineRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Set any of the start-of-day / month / year seeds."""
    tasks = TaskRepository(db).get_all()
    ledger = OutstandingLedger(SettingsRepository(db), clock)
    ledger.set_baseline(
        start_of_day=payload.start_of_day,
        start_of_month=payload.start_of_month,
        start_of_year=payload.start_of_year,
    )
    ledger.poll(tasks)
    return ledger.snapshot(tasks)


def _targets_response(db: Session, clock: Clock) -> TargetsResponse:
    settings = SettingsRepository(db)
    targets = load_targets(settings)
    monthly_targets = load_monthly_targets(settings)
    ledger = OutstandingLedger(settings, clock)
    progress = compute_target_progress(
        TaskRepository(db).get_all(),
        targets,
        monthly_targets,
        ledger.extras,
        clock.now(),
    )
    return TargetsResponse(targets=targets, monthly_targets=monthly_targets, progress=progress)


@app.get("/api/targets", response_model=TargetsResponse)
def get_targets(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    """Targets and month/year progress."""
    return _targets_response(db, clock)


@app.put("/api/targets", response_model=TargetsResponse)
def set_targets(payload: TargetsRequest, db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    """Replace yearly and/or monthly targets."""
    settings = SettingsRepository(db)
    if payload.targets is not None:
        settings.set(TARGETS_STORAGE_KEY, payload.targets.model_dump())
    if payload.monthly_targets is not None:
        settings.set(MONTHLY_TARGETS_STORAGE_KEY, payload.monthly_targets.model_dump())
    return _targets_response(db, clock)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

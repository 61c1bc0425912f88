"""LLM task endpoints.

  GET  /llm/tasks   configured tasks with their provider and model
  POST /llm         {"taskType": "...", "context": {...}} → TaskResult

Task failures are reported in the result body (error.reason), not as HTTP
errors. Only an unknown task type is a 404.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from wizard_llm.llm.client import get_orchestrator
from wizard_llm.llm.orchestrator import TaskOrchestrator
from wizard_llm.schemas import TaskInfo, TaskListResponse, TaskResult, TaskRunRequest
from wizard_llm.utils.logging import log, get_logger

MODULE = "api.llm"
logger = get_logger()

router = APIRouter()


def get_task_orchestrator(request: Request) -> TaskOrchestrator:
    """The orchestrator built at startup, else the process-wide one."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    return orchestrator if orchestrator is not None else get_orchestrator()


@router.get("/tasks", response_model=TaskListResponse)
async def list_tasks(orchestrator: TaskOrchestrator = Depends(get_task_orchestrator)):
    tasks = []
    for name in orchestrator.registry.names():
        descriptor = orchestrator.registry.lookup(name)
        selection = orchestrator.policy.select(name)
        tasks.append(TaskInfo(
            task=name,
            provider=selection.provider,
            model=selection.model,
            mode=descriptor.mode,
            retries=descriptor.retries,
        ))
    return TaskListResponse(tasks=tasks)


@router.post("", response_model=TaskResult, response_model_exclude_none=True)
async def run_task(
    body: TaskRunRequest,
    orchestrator: TaskOrchestrator = Depends(get_task_orchestrator),
):
    if body.task_type not in orchestrator.registry:
        log.warning(logger, MODULE, "unknown_task", "Unknown LLM task requested",
                    task=body.task_type)
        raise HTTPException(status_code=404, detail=f"Unknown LLM task: {body.task_type}")

    log.info(logger, MODULE, "task_requested", f"LLM task {body.task_type} requested",
             task=body.task_type)
    return await orchestrator.run(body.task_type, body.context, timeout_s=body.timeout_s)

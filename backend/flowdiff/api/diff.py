"""Workflow diff API routes.

Both routes are stateless: the caller sends the workflow it fetched and gets
the mutated workflow (or the rejection) back. Nothing is persisted.
"""

import logging
from functools import lru_cache

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from flowdiff.config import get_settings
from flowdiff.models import (
    ApplyResult,
    StructuralReport,
    WorkflowDiffRequest,
    WorkflowGraph,
)
from flowdiff.services import StructuralValidator, WorkflowDiffEngine, applied_operation_types

logger = logging.getLogger(__name__)

router = APIRouter()


class DiffWorkflowRequest(BaseModel):
    """A workflow snapshot plus the batch of operations to apply to it."""

    workflow: WorkflowGraph
    request: WorkflowDiffRequest


@lru_cache(maxsize=1)
def get_engine() -> WorkflowDiffEngine:
    return WorkflowDiffEngine()


# ==================== Diff ====================


@router.post("/workflows/diff", response_model_exclude_none=True)
async def diff_workflow(body: DiffWorkflowRequest) -> ApplyResult:
    """Apply a batch of diff operations to the given workflow.

    Returns the mutated workflow on success. With ``validateOnly`` the
    workflow is omitted and only the outcome is reported.
    """
    max_operations = get_settings().max_operations
    if len(body.request.operations) > max_operations:
        raise HTTPException(
            status_code=413,
            detail=(
                f"Batch has {len(body.request.operations)} operations; "
                f"the limit is {max_operations}"
            ),
        )

    result = get_engine().apply_diff(body.workflow, body.request)
    if result.success:
        logger.info(
            f"Diff applied to workflow {body.request.id or body.workflow.id}: "
            f"{', '.join(applied_operation_types(body.request, result)) or 'no operations'}"
        )
    return result


@router.post("/workflows/validate")
async def validate_workflow(workflow: WorkflowGraph) -> StructuralReport:
    """Run the structural checks on a workflow without changing it."""
    return StructuralValidator(get_engine().classifier).validate(workflow)

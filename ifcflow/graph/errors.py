"""
Workflow errors.

Fatal errors abort the run and propagate to the caller of
``WorkflowExecutor.execute()``. Soft errors are not exceptions: a handler
returns ``{"error": "..."}`` and the value flows downstream like any other
result (see ``ifcflow.graph.node.soft_error``).
"""


class WorkflowError(Exception):
    """Base class for all workflow engine errors."""


class CyclicGraphError(WorkflowError):
    """The graph contains a directed cycle; raised before any node runs."""

    def __init__(self, cycle: list[str] | None = None):
        self.cycle = list(cycle or [])
        if self.cycle:
            message = f"Workflow contains a cycle: {' -> '.join(self.cycle)}"
        else:
            message = "Workflow contains a cycle"
        super().__init__(message)


class UnknownNodeReferenceError(WorkflowError):
    """An edge or the execution order references a node id absent from the graph."""

    def __init__(self, node_id: str, referenced_by: str | None = None):
        self.node_id = node_id
        self.referenced_by = referenced_by
        message = f"Node with id {node_id} not found"
        if referenced_by:
            message += f" (referenced by {referenced_by})"
        super().__init__(message)


class AlreadyRunningError(WorkflowError):
    """execute() was called while a run is already in flight."""

    def __init__(self, message: str = "Workflow is already running"):
        super().__init__(message)


class NodeExecutionError(WorkflowError):
    """A handler raised while executing a node. Fatal to the whole run."""

    def __init__(self, node_id: str, kind: str, original: BaseException):
        self.node_id = node_id
        self.kind = kind
        self.original = original
        super().__init__(f"Node '{node_id}' ({kind}) failed: {original}")


class ExecutionCancelledError(WorkflowError):
    """A stopped run reached a node boundary and was abandoned."""

    def __init__(self, run_id: str | None = None):
        self.run_id = run_id
        message = "Workflow execution was stopped"
        if run_id:
            message += f" (run {run_id})"
        super().__init__(message)

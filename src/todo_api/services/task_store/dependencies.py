"""FastAPI dependency exposing the application's task store."""

from fastapi import Request

from todo_api.services.task_store.store import TaskStore


def get_task_store(request: Request) -> TaskStore:
    """
    Get the task store owned by the running application.

    Raises:
        RuntimeError: If the application lifespan has not set one up
    """
    store = getattr(request.app.state, "task_store", None)
    if store is None:
        raise RuntimeError(
            "Task store not initialized. "
            "Ensure the application lifespan sets app.state.task_store."
        )
    return store

from celery import Task

from filmgraph.celery import app as filmgraph_celery_app


def get_registered_task(name: str) -> Task:
    """
    Look up a Celery task by its fully qualified name.

    Modules which dispatch jobs use this rather than importing the task
    modules, which themselves import those modules. Unlike ``app.send_task``
    the returned task honours ``CELERY_TASK_ALWAYS_EAGER``.

    Raises:
        RuntimeError: If no task with that name is registered.
    """
    try:
        return filmgraph_celery_app.tasks[name]
    except KeyError as err:
        raise RuntimeError(f"Task {name} is not registered. Did you typo it?") from err

"""
Traversal Scheduler

Breadth-first expansion of a target's callees up to a hop bound.
"""

import logging
from collections import deque

from call_tracer.shared.exceptions import InvalidRequestError, NodeNotFoundError
from call_tracer.tracer.classifier import classify
from call_tracer.tracer.database import ProgramDatabase
from call_tracer.tracer.locator import locate_function
from call_tracer.tracer.models import AnalysisTarget, Task, TraversalResult

logger = logging.getLogger("call_tracer.scheduler")


def check_depth(max_depth: int) -> int:
    """Reject a negative hop bound."""
    if max_depth < 0:
        raise InvalidRequestError(f"depth must be >= 0, got {max_depth}")
    return max_depth


class DependencyTracer:
    """
    Runs dependency traversals over one ProgramDatabase.

    The tracer itself holds no traversal state: each trace() call owns its
    queue, visited set and result maps, so one tracer can serve several
    traversals at once.
    """

    def __init__(self, db: ProgramDatabase, max_depth: int):
        self.db = db
        self.max_depth = check_depth(max_depth)

    def trace(self, initial_target: AnalysisTarget) -> TraversalResult:
        scope = self.db.project_scope
        result = TraversalResult()
        queue = deque([Task(initial_target, 0)])

        while queue:
            task = queue.popleft()
            key = task.target.qualified_name
            if key in result.visited:
                continue
            result.visited.add(key)

            found = classify(task.target, self.db, scope)

            for symbol in found.callables:
                if symbol.qualified_name in result.called_funcs:
                    continue
                result.called_funcs[symbol.qualified_name] = symbol
                # symbols found in a callee's body sit one hop further out
                if task.depth + 1 >= self.max_depth:
                    continue
                try:
                    callee = locate_function(self.db, symbol)
                except NodeNotFoundError as e:
                    logger.warning("Not expanding %s: %s", symbol.qualified_name, e.reason)
                    continue
                queue.append(Task(callee, task.depth + 1))

            for symbol in found.types:
                result.referenced_types.setdefault(symbol.qualified_name, symbol)

        logger.info(
            "Traced %s (depth=%d): %d callables, %d types, %d expanded",
            initial_target.qualified_name, self.max_depth,
            len(result.called_funcs), len(result.referenced_types), len(result.visited),
        )
        return result


def trace_dependencies(
    target: AnalysisTarget, max_depth: int, db: ProgramDatabase,
) -> TraversalResult:
    """One-shot traversal from target."""
    return DependencyTracer(db, max_depth).trace(target)

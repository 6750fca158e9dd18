"""Task dependency graph analysis.

Contains utilities for:
- building an adjacency map from a task snapshot,
- rejecting dependency edges that would close a cycle,
- computing a transitively-reduced view of the dependency edges,
- computing an earliest feasible start date per task,
- layering tasks by their longest chain of dependents,
- picking one schedule-driving task per layer (critical path).

Everything here is pure: tasks come in as plain dicts and are never mutated;
derived fields are attached to copies.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, Hashable, Iterable, List, Optional, Sequence, Set, Tuple

logger = logging.getLogger(__name__)

Graph = Dict[Hashable, List[int]]


class _CandidateKey:
    """Key for a task under validation that has not been persisted yet."""

    def __repr__(self) -> str:
        return "CANDIDATE"


CANDIDATE = _CandidateKey()


def parse_due_date(value: Any) -> Optional[date]:
    """Return a date for date-like input (date, datetime, ISO string), else None."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            try:
                return datetime.fromisoformat(value.split("T", 1)[0]).date()
            except ValueError:
                return None
    return None


def _task_key(task: Dict[str, Any]) -> Optional[Hashable]:
    """Graph key of a task: its int id, `CANDIDATE`, or None if the id is unusable."""
    tid = task.get("id")
    if tid is CANDIDATE:
        return CANDIDATE
    try:
        return int(tid)
    except (TypeError, ValueError):
        return None


def _dependency_ids(raw: Optional[Iterable[Any]]) -> List[int]:
    """Coerce a raw dependency list to ints, dropping junk and duplicates."""
    deps: List[int] = []
    for d in raw or []:
        try:
            di = int(d)
        except (TypeError, ValueError):
            continue
        if di not in deps:
            deps.append(di)
    return deps


def build_graph(tasks: Sequence[Dict[str, Any]],
                candidate: Optional[Dict[str, Any]] = None) -> Graph:
    """Build an adjacency map: task id -> list of dependency ids.

    Dependency ids that don't resolve to a task in the snapshot are dropped, so
    every computation below treats them as absent. If `candidate` is given it is
    inserted under the `CANDIDATE` key.
    """
    graph: Graph = {}
    for t in tasks:
        key = _task_key(t)
        if key is not None:
            graph[key] = _dependency_ids(t.get("dependencies"))
    if candidate is not None:
        graph[CANDIDATE] = _dependency_ids(candidate.get("dependencies"))

    for key, deps in graph.items():
        present = [d for d in deps if d in graph]
        if len(present) != len(deps):
            logger.debug("Dropping dangling dependencies %s of task %r",
                         sorted(set(deps) - set(present)), key)
            graph[key] = present
    return graph


def is_reachable(graph: Graph, source: Hashable, target: Hashable,
                 skip_edge: Optional[Tuple[Hashable, Hashable]] = None) -> bool:
    """Return True if `target` can be reached from `source` along dependency edges.

    A node always reaches itself. `skip_edge`, if given, is an edge (u, v) the
    search must not follow.
    """
    if source == target:
        return True
    visited: Set[Hashable] = {source}
    stack: List[Hashable] = [source]
    while stack:
        current = stack.pop()
        for neighbour in graph.get(current, []):
            if skip_edge is not None and (current, neighbour) == skip_edge:
                continue
            if neighbour == target:
                return True
            if neighbour not in visited:
                visited.add(neighbour)
                stack.append(neighbour)
    return False


def would_create_cycle(graph: Graph, task_key: Hashable, dependency_id: Hashable) -> bool:
    """True if making `task_key` depend on `dependency_id` would close a cycle."""
    return is_reachable(graph, dependency_id, task_key)


def find_cycle_dependencies(tasks: Sequence[Dict[str, Any]],
                            dependencies: Iterable[Any]) -> List[int]:
    """Check a not-yet-persisted task's proposed dependencies against the snapshot.

    Args:
        tasks: the full task snapshot.
        dependencies: dependency ids proposed for the new task.

    Returns:
        The dependency ids that would introduce a cycle. An empty list means the
        insertion is safe.
    """
    proposed = _dependency_ids(dependencies)
    graph = build_graph(tasks, candidate={"dependencies": proposed})
    return [d for d in proposed if would_create_cycle(graph, CANDIDATE, d)]


def _reduce_edges(graph: Graph) -> Graph:
    """Drop every edge implied by another path, judged against the unreduced graph."""
    reduced: Graph = {}
    for key, deps in graph.items():
        kept = []
        for dep in deps:
            redundant = any(
                is_reachable(graph, other, dep, skip_edge=(key, dep))
                for other in deps if other != dep
            )
            if redundant:
                logger.debug("Edge %r -> %r is implied by another path", key, dep)
            else:
                kept.append(dep)
        reduced[key] = kept
    return reduced


def reduced_graph(tasks: Sequence[Dict[str, Any]]) -> Graph:
    """Adjacency map of the transitively-reduced dependency edges."""
    return _reduce_edges(build_graph(tasks))


def transitive_reduction(tasks: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Return copies of `tasks` with a `reduced_dependencies` field attached.

    The original `dependencies` are left untouched: the reduced edge set is for
    analysis and display only.
    """
    reduced = reduced_graph(tasks)
    result = []
    for t in tasks:
        item = dict(t)
        item["reduced_dependencies"] = list(reduced.get(_task_key(t), []))
        result.append(item)
    return result


def _due_dates(tasks: Sequence[Dict[str, Any]]) -> Dict[Hashable, Optional[date]]:
    return {_task_key(t): parse_due_date(t.get("due_date")) for t in tasks
            if _task_key(t) is not None}


def project_start_date(tasks: Sequence[Dict[str, Any]],
                       graph: Optional[Graph] = None,
                       today: Optional[date] = None) -> date:
    """Earliest due date among root tasks (no dependencies), else `today`."""
    if graph is None:
        graph = build_graph(tasks)
    dues = _due_dates(tasks)
    root_dues = [d for tid, d in dues.items() if d is not None and not graph.get(tid)]
    if root_dues:
        return min(root_dues)
    return today or date.today()


def earliest_start_dates(tasks: Sequence[Dict[str, Any]],
                         project_start: date,
                         graph: Optional[Graph] = None) -> Dict[Hashable, date]:
    """Compute the earliest date each task could begin.

    A task without dependencies starts on its own due date (or `project_start`
    if it has none). A task with dependencies starts no earlier than the latest
    due date among its direct dependencies, floored at `project_start`. This is
    a one-hop lookback; dependencies' own start dates are not consulted.
    """
    if graph is None:
        graph = build_graph(tasks)
    dues = _due_dates(tasks)
    memo: Dict[Hashable, date] = {}

    def earliest(tid: Hashable) -> date:
        if tid in memo:
            return memo[tid]
        deps = graph.get(tid, [])
        if not deps:
            value = dues.get(tid) or project_start
        else:
            value = project_start
            for dep in deps:
                dep_due = dues.get(dep) or project_start
                if dep_due > value:
                    value = dep_due
        memo[tid] = value
        return value

    for tid in dues:
        earliest(tid)
    return memo


def _dependents(graph: Graph) -> Dict[Hashable, List[Hashable]]:
    children: Dict[Hashable, List[Hashable]] = {}
    for key, deps in graph.items():
        for dep in deps:
            children.setdefault(dep, []).append(key)
    return children


def compute_layers(tasks: Sequence[Dict[str, Any]],
                   graph: Optional[Graph] = None) -> Dict[Hashable, int]:
    """Longest chain of dependents beneath each task.

    A task nothing depends on sits on layer 0; any other task sits one layer
    above the highest of its dependents.
    """
    if graph is None:
        graph = build_graph(tasks)
    children = _dependents(graph)
    heights: Dict[Hashable, int] = {}
    # nodes whose dependents are still being measured; only revisited on a cycle
    pending: Set[Hashable] = set()

    for root in graph:
        if root in heights:
            continue
        stack: List[Tuple[Hashable, bool]] = [(root, False)]
        while stack:
            node, expanded = stack.pop()
            if node in heights:
                continue
            kids = children.get(node, [])
            if expanded:
                heights[node] = 1 + max(heights.get(k, 0) for k in kids) if kids else 0
                pending.discard(node)
                continue
            if node in pending:
                continue
            pending.add(node)
            stack.append((node, True))
            for k in kids:
                if k not in heights:
                    stack.append((k, False))
    return heights


def group_by_layer(tasks: Sequence[Dict[str, Any]],
                   layers: Dict[Hashable, int]) -> Dict[int, List[Dict[str, Any]]]:
    """Bucket tasks by layer, ascending; snapshot order inside each bucket."""
    groups: Dict[int, List[Dict[str, Any]]] = {}
    for t in tasks:
        groups.setdefault(layers.get(_task_key(t), 0), []).append(t)
    return dict(sorted(groups.items()))


def _latest_start(candidates: Sequence[Dict[str, Any]],
                  earliest: Dict[Hashable, date]) -> Optional[Hashable]:
    """Key of the candidate with the latest earliest-start; first one wins ties."""
    best_key = None
    best_date = None
    for t in candidates:
        key = _task_key(t)
        start = earliest.get(key)
        if start is None:
            continue
        if best_date is None or start > best_date:
            best_key, best_date = key, start
    return best_key


def critical_path(tasks: Sequence[Dict[str, Any]],
                  graph: Graph,
                  layers: Dict[Hashable, int],
                  earliest: Dict[Hashable, date]) -> Set[Hashable]:
    """Pick one schedule-driving task per layer, walking from layer 0 upward.

    On each layer above 0 the pick is restricted to direct dependencies of the
    previous pick. When none of those sit on the layer the whole layer is
    considered instead, so the result is not always a connected chain.
    """
    selected: Set[Hashable] = set()
    previous: Optional[Hashable] = None
    for level, bucket in group_by_layer(tasks, layers).items():
        candidates = bucket
        if level > 0 and previous is not None:
            linked = [t for t in bucket if _task_key(t) in graph.get(previous, [])]
            if linked:
                candidates = linked
        previous = _latest_start(candidates, earliest)
        if previous is not None:
            selected.add(previous)
    logger.debug("Critical path: %s", selected)
    return selected


def _enrich(tasks: Sequence[Dict[str, Any]], today: Optional[date]) -> List[Dict[str, Any]]:
    graph = build_graph(tasks)
    reduced = _reduce_edges(graph)
    start = project_start_date(tasks, reduced, today=today)
    earliest = earliest_start_dates(tasks, start, reduced)
    layers = compute_layers(tasks, reduced)
    critical = critical_path(tasks, reduced, layers, earliest)

    enriched = []
    for t in tasks:
        key = _task_key(t)
        item = dict(t)
        item["reduced_dependencies"] = list(reduced.get(key, []))
        item["earliest_start_date"] = earliest.get(key, start)
        item["layer"] = layers.get(key, 0)
        item["on_critical_path"] = key in critical
        enriched.append(item)
    return enriched


def analyze_tasks(tasks: Sequence[Dict[str, Any]],
                  today: Optional[date] = None) -> List[Dict[str, Any]]:
    """Run the full analysis over a snapshot and return enriched copies.

    Order: transitive reduction, project start, earliest start, layering,
    critical path. Every call recomputes from scratch.

    Args:
        tasks: task dicts with 'id', 'dependencies' and optionally 'due_date'.
        today: fallback project start when no root task has a due date.

    Returns:
        One dict per input task, in input order, carrying the original fields
        plus 'reduced_dependencies', 'earliest_start_date', 'layer' and
        'on_critical_path'.
    """
    return _enrich([t for t in tasks if _task_key(t) is not None], today)


def preview_candidate(tasks: Sequence[Dict[str, Any]],
                      candidate: Dict[str, Any],
                      today: Optional[date] = None) -> Dict[str, Any]:
    """Analyze the snapshot with `candidate` added and return the candidate's row."""
    snapshot = [t for t in tasks if _task_key(t) is not None]
    pending = dict(candidate)
    pending["id"] = CANDIDATE
    pending["dependencies"] = _dependency_ids(candidate.get("dependencies"))
    return _enrich(snapshot + [pending], today)[-1]

# views.py
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .graph import analyze_tasks, find_cycle_dependencies, preview_candidate
from .models import Task
from .serializers import AnalyzedTaskSerializer, CandidatePreviewSerializer, TaskInputSerializer

logger = logging.getLogger(__name__)

CYCLE_ERROR = "Adding this dependency introduces a circular dependency."


def load_snapshot() -> List[Dict[str, Any]]:
    """Fetch every stored task as a plain dict, newest first."""
    return [t.as_graph_node() for t in Task.objects.all()]


def resolve_duration(duration_days: Optional[int], due_date: Optional[date]) -> int:
    """A positive explicit duration wins; otherwise days until the due date (min 1)."""
    if duration_days is not None and duration_days > 0:
        return duration_days
    if due_date is not None:
        days_left = (due_date - date.today()).days
        return days_left if days_left > 0 else 1
    return getattr(settings, "TASKS_DEFAULT_DURATION_DAYS", 1)


def check_and_respond_unknown(snapshot: List[Dict[str, Any]], dependencies: List[int]):
    """Return a 400 Response if any dependency id isn't a stored task; otherwise None."""
    known = {t["id"] for t in snapshot}
    unknown = [d for d in dependencies if d not in known]
    if unknown:
        return Response({"error": "Unknown dependency ids", "dependencies": unknown},
                        status=status.HTTP_400_BAD_REQUEST)
    return None


def check_and_respond_cycles(snapshot: List[Dict[str, Any]], dependencies: List[int]):
    """Detect cycles and, if present, return a 400 Response naming the offending ids; otherwise None."""
    offending = find_cycle_dependencies(snapshot, dependencies)
    if offending:
        logger.info("Rejected task: dependencies %s would close a cycle", offending)
        return Response({"error": CYCLE_ERROR, "dependencies": offending},
                        status=status.HTTP_400_BAD_REQUEST)
    return None


def check_and_respond_due_date(snapshot: List[Dict[str, Any]], candidate: Dict[str, Any]):
    """Reject a due date that falls before the new task's earliest possible start."""
    if not candidate["dependencies"] or candidate.get("due_date") is None:
        return None
    row = preview_candidate(snapshot, candidate)
    earliest = row["earliest_start_date"]
    if candidate["due_date"] < earliest:
        logger.info("Rejected task %r: due %s before earliest start %s",
                    candidate["title"], candidate["due_date"], earliest)
        return Response({
            "error": (f"Due date {candidate['due_date'].isoformat()} is before this task's earliest "
                      f"possible start date ({earliest.isoformat()}). Please pick a later due date."),
            "earliest_start_date": earliest,
        }, status=status.HTTP_400_BAD_REQUEST)
    return None


class TaskListCreate(APIView):
    """
    GET /api/tasks/
    Returns every stored task enriched with reduced dependencies, earliest start
    date, layer and critical-path flag. The analysis is recomputed on each call.

    POST /api/tasks/
    Creates a task after rejecting unknown dependencies, cycles and due dates
    that precede the task's earliest start.
    """

    def get(self, request):
        enriched = analyze_tasks(load_snapshot())
        return Response(AnalyzedTaskSerializer(enriched, many=True).data, status=status.HTTP_200_OK)

    def post(self, request):
        serializer = TaskInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        candidate = dict(serializer.validated_data)
        candidate.setdefault("due_date", None)

        with transaction.atomic():
            snapshot = load_snapshot()

            unknown_resp = check_and_respond_unknown(snapshot, candidate["dependencies"])
            if unknown_resp:
                return unknown_resp

            # reject the whole insertion if any proposed edge closes a cycle
            cycle_resp = check_and_respond_cycles(snapshot, candidate["dependencies"])
            if cycle_resp:
                return cycle_resp

            due_resp = check_and_respond_due_date(snapshot, candidate)
            if due_resp:
                return due_resp

            task = Task.objects.create(
                title=candidate["title"],
                due_date=candidate.get("due_date"),
                duration_days=resolve_duration(candidate.get("duration_days"), candidate.get("due_date")),
                dependencies=candidate["dependencies"],
            )
        logger.info("Created task %s (%r) depending on %s", task.id, task.title, task.dependencies)
        return Response(task.as_graph_node(), status=status.HTTP_201_CREATED)


class TaskPreview(APIView):
    """
    POST /api/tasks/preview/
    Accepts the same body as task creation and returns how the task would sit in
    the graph (earliest start, layer, critical-path flag) without storing it.
    """

    def post(self, request):
        serializer = TaskInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        candidate = dict(serializer.validated_data)
        candidate.setdefault("due_date", None)

        snapshot = load_snapshot()
        unknown_resp = check_and_respond_unknown(snapshot, candidate["dependencies"])
        if unknown_resp:
            return unknown_resp

        offending = find_cycle_dependencies(snapshot, candidate["dependencies"])
        row = preview_candidate(snapshot, candidate)
        row["creates_cycle"] = bool(offending)
        row["cycle_dependencies"] = offending
        return Response(CandidatePreviewSerializer(row).data, status=status.HTTP_200_OK)


class TaskDetail(APIView):
    """
    DELETE /api/tasks/<id>/
    Removes a task and strips it from every other task's dependency list.
    """

    def delete(self, request, pk: int):
        task = get_object_or_404(Task, pk=pk)
        with transaction.atomic():
            for other in Task.objects.exclude(pk=pk):
                if pk in (other.dependencies or []):
                    other.dependencies = [d for d in other.dependencies if d != pk]
                    other.save(update_fields=["dependencies"])
            task.delete()
        logger.info("Deleted task %s", pk)
        return Response({"message": "Task deleted"}, status=status.HTTP_200_OK)

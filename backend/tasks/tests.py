from datetime import date, datetime

from django.test import SimpleTestCase

from .graph import (
    CANDIDATE,
    analyze_tasks,
    build_graph,
    compute_layers,
    critical_path,
    earliest_start_dates,
    find_cycle_dependencies,
    group_by_layer,
    is_reachable,
    parse_due_date,
    preview_candidate,
    project_start_date,
    reduced_graph,
    transitive_reduction,
    would_create_cycle,
)


def task(tid, deps=None, due=None):
    return {"id": tid, "title": f"Task {tid}", "due_date": due, "duration_days": 1, "dependencies": deps or []}


# 1 <- 2, 1 <- 3, 4 -> {2, 3, 1}, 5 -> {4, 2, 1}, 6 -> {5, 3}
DIAMOND = [
    task(1),
    task(2, [1]),
    task(3, [1]),
    task(4, [2, 3, 1]),
    task(5, [4, 2, 1]),
    task(6, [5, 3]),
]


def closure(graph):
    return {(a, b) for a in graph for b in graph if a != b and is_reachable(graph, a, b)}


class TransitiveReductionTests(SimpleTestCase):
    def test_edge_implied_by_other_dependency_is_removed(self):
        tasks = [task(1), task(2, [1]), task(3, [1, 2])]
        reduced = {t["id"]: t["reduced_dependencies"] for t in transitive_reduction(tasks)}
        self.assertEqual(reduced, {1: [], 2: [1], 3: [2]})

    def test_original_dependencies_are_untouched(self):
        tasks = [task(1), task(2, [1]), task(3, [1, 2])]
        result = transitive_reduction(tasks)
        self.assertEqual(result[2]["dependencies"], [1, 2])
        self.assertNotIn("reduced_dependencies", tasks[2])

    def test_reduces_against_unreduced_graph(self):
        reduced = reduced_graph(DIAMOND)
        self.assertEqual(reduced[4], [2, 3])
        self.assertEqual(reduced[5], [4])
        self.assertEqual(reduced[6], [5])

    def test_reachability_is_preserved(self):
        self.assertEqual(closure(build_graph(DIAMOND)), closure(reduced_graph(DIAMOND)))

    def test_reduction_is_idempotent(self):
        once = transitive_reduction(DIAMOND)
        again = transitive_reduction([dict(t, dependencies=t["reduced_dependencies"]) for t in once])
        self.assertEqual([t["reduced_dependencies"] for t in once],
                         [t["reduced_dependencies"] for t in again])

    def test_only_path_is_never_removed(self):
        tasks = [task(1), task(2), task(3, [1, 2])]
        self.assertEqual(reduced_graph(tasks)[3], [1, 2])

    def test_dangling_and_duplicate_ids_are_dropped(self):
        tasks = [task(1), task(2, [1, 99, 1, "x"])]
        self.assertEqual(reduced_graph(tasks)[2], [1])


class CycleGuardTests(SimpleTestCase):
    def setUp(self):
        self.tasks = [task(3), task(5, [3])]

    def test_new_task_depending_on_existing_chain_is_accepted(self):
        self.assertEqual(find_cycle_dependencies(self.tasks, [5]), [])

    def test_existing_task_depending_on_candidate_is_rejected(self):
        graph = build_graph(self.tasks, candidate={"dependencies": [5]})
        self.assertTrue(would_create_cycle(graph, 3, CANDIDATE))
        self.assertFalse(would_create_cycle(graph, CANDIDATE, 5))

    def test_back_edge_and_self_edge_are_cycles(self):
        graph = build_graph(self.tasks)
        self.assertTrue(would_create_cycle(graph, 3, 5))
        self.assertTrue(would_create_cycle(graph, 3, 3))

    def test_unknown_dependency_is_not_a_cycle(self):
        self.assertEqual(find_cycle_dependencies(self.tasks, [42]), [])

    def test_skip_edge_is_not_followed(self):
        graph = {1: [2], 2: []}
        self.assertTrue(is_reachable(graph, 1, 2))
        self.assertFalse(is_reachable(graph, 1, 2, skip_edge=(1, 2)))

    def test_accepted_insertions_keep_the_graph_acyclic(self):
        tasks = []
        proposals = [[], [1], [1], [2, 3], [4, 1], [5, 2]]
        for tid, deps in enumerate(proposals, start=1):
            self.assertEqual(find_cycle_dependencies(tasks, deps), [])
            tasks.append(task(tid, deps))
        graph = build_graph(tasks)
        for node, deps in graph.items():
            self.assertFalse(any(is_reachable(graph, d, node) for d in deps))


class EarliestStartTests(SimpleTestCase):
    def test_dependency_due_date_drives_start(self):
        tasks = [task(1, due=date(2024, 1, 10)), task(2, [1])]
        starts = earliest_start_dates(tasks, date(2024, 1, 1))
        self.assertEqual(starts[1], date(2024, 1, 10))
        self.assertEqual(starts[2], date(2024, 1, 10))

    def test_root_without_due_date_starts_at_project_start(self):
        starts = earliest_start_dates([task(7)], date(2024, 1, 1))
        self.assertEqual(starts[7], date(2024, 1, 1))

    def test_lookback_is_one_hop(self):
        tasks = [task(1, due=date(2024, 1, 10)), task(2, [1], due=date(2024, 1, 5)), task(3, [2])]
        starts = earliest_start_dates(tasks, date(2024, 1, 1))
        self.assertEqual(starts[2], date(2024, 1, 10))
        self.assertEqual(starts[3], date(2024, 1, 5))

    def test_project_start_is_a_floor(self):
        tasks = [task(1, due=date(2023, 6, 1)), task(2, [1])]
        starts = earliest_start_dates(tasks, date(2024, 1, 1))
        self.assertEqual(starts[2], date(2024, 1, 1))

    def test_malformed_due_date_is_treated_as_absent(self):
        tasks = [task(1, due="not-a-date"), task(2, [1])]
        starts = earliest_start_dates(tasks, date(2024, 1, 1))
        self.assertEqual(starts, {1: date(2024, 1, 1), 2: date(2024, 1, 1)})

    def test_project_start_uses_root_due_dates(self):
        tasks = [task(1, due="2024-02-01"), task(2, due=date(2024, 1, 15)), task(3, [2], due=date(2023, 1, 1))]
        self.assertEqual(project_start_date(tasks), date(2024, 1, 15))
        self.assertEqual(project_start_date([task(1)], today=date(2030, 5, 5)), date(2030, 5, 5))

    def test_parse_due_date(self):
        self.assertEqual(parse_due_date("2024-03-05"), date(2024, 3, 5))
        self.assertEqual(parse_due_date("2024-03-05T10:00:00"), date(2024, 3, 5))
        self.assertEqual(parse_due_date(datetime(2024, 3, 5, 9)), date(2024, 3, 5))
        self.assertIsNone(parse_due_date("garbage"))
        self.assertIsNone(parse_due_date(None))


class LayeringTests(SimpleTestCase):
    def test_leaf_and_its_dependency(self):
        layers = compute_layers([task(8), task(9, [8])])
        self.assertEqual(layers[9], 0)
        self.assertEqual(layers[8], 1)

    def test_layer_is_longest_chain_of_dependents(self):
        layers = compute_layers(DIAMOND)
        self.assertEqual(layers, {1: 4, 2: 3, 3: 3, 4: 2, 5: 1, 6: 0})

        graph = build_graph(DIAMOND)
        for node in graph:
            dependents = [k for k, deps in graph.items() if node in deps]
            expected = 1 + max(layers[k] for k in dependents) if dependents else 0
            self.assertEqual(layers[node], expected)

    def test_dangling_reference_does_not_lift_a_layer(self):
        layers = compute_layers([task(1), task(2, [99])])
        self.assertEqual(layers, {1: 0, 2: 0})

    def test_group_by_layer_keeps_snapshot_order(self):
        tasks = [task(3, [1]), task(1), task(2, [1])]
        groups = group_by_layer(tasks, compute_layers(tasks))
        self.assertEqual(list(groups), [0, 1])
        self.assertEqual([t["id"] for t in groups[0]], [3, 2])
        self.assertEqual([t["id"] for t in groups[1]], [1])


class CriticalPathTests(SimpleTestCase):
    def _critical(self, tasks):
        graph = reduced_graph(tasks)
        start = project_start_date(tasks, graph)
        earliest = earliest_start_dates(tasks, start, graph)
        return critical_path(tasks, graph, compute_layers(tasks, graph), earliest)

    def test_follows_dependencies_of_previous_pick(self):
        tasks = [
            task(1, due=date(2024, 1, 10)),
            task(2, [1], due=date(2024, 1, 20)),
            task(3, [2]),
            task(4, due=date(2024, 1, 5)),
        ]
        self.assertEqual(self._critical(tasks), {1, 2, 3})

    def test_falls_back_to_whole_layer_without_a_link(self):
        tasks = [
            task(1, due=date(2024, 1, 10)),
            task(2, [1]),
            task(3, due=date(2024, 2, 1)),
            task(5, due=date(2024, 1, 3)),
            task(6, [5]),
        ]
        # 3 wins layer 0 but has no dependencies, so layer 1 is picked unlinked
        self.assertEqual(self._critical(tasks), {3, 1})

    def test_first_maximum_wins_ties(self):
        tasks = [task(1, due=date(2024, 1, 5)), task(2, due=date(2024, 1, 5))]
        self.assertEqual(self._critical(tasks), {1})

    def test_task_without_start_is_never_picked(self):
        tasks = [task(1), task(2)]
        graph = build_graph(tasks)
        selected = critical_path(tasks, graph, compute_layers(tasks, graph), {2: date(2024, 1, 1)})
        self.assertEqual(selected, {2})


class AnalyzeTasksTests(SimpleTestCase):
    def test_enriches_every_task(self):
        tasks = [
            task(1, due=date(2024, 1, 10)),
            task(2, [1], due=date(2024, 1, 15)),
            task(3, [1, 2]),
        ]
        rows = {r["id"]: r for r in analyze_tasks(tasks)}

        self.assertEqual(rows[3]["dependencies"], [1, 2])
        self.assertEqual(rows[3]["reduced_dependencies"], [2])
        self.assertEqual(rows[1]["earliest_start_date"], date(2024, 1, 10))
        self.assertEqual(rows[2]["earliest_start_date"], date(2024, 1, 10))
        self.assertEqual(rows[3]["earliest_start_date"], date(2024, 1, 15))
        self.assertEqual([rows[i]["layer"] for i in (1, 2, 3)], [2, 1, 0])
        self.assertTrue(all(r["on_critical_path"] for r in rows.values()))

    def test_degrades_instead_of_raising(self):
        tasks = [task(1, due="31/12/2024"), task(2, [1, 404]), {"id": None, "dependencies": [1]}]
        rows = analyze_tasks(tasks, today=date(2024, 6, 1))
        self.assertEqual([r["id"] for r in rows], [1, 2])
        self.assertEqual(rows[0]["earliest_start_date"], date(2024, 6, 1))
        self.assertEqual(rows[1]["reduced_dependencies"], [1])

    def test_input_is_not_mutated(self):
        tasks = [task(1), task(2, [1])]
        analyze_tasks(tasks, today=date(2024, 1, 1))
        self.assertEqual(tasks, [task(1), task(2, [1])])

    def test_preview_candidate(self):
        tasks = [task(1, due=date(2024, 1, 10))]
        row = preview_candidate(tasks, {"title": "New", "due_date": None, "dependencies": [1, 1]})
        self.assertIs(row["id"], CANDIDATE)
        self.assertEqual(row["reduced_dependencies"], [1])
        self.assertEqual(row["earliest_start_date"], date(2024, 1, 10))
        self.assertEqual(row["layer"], 0)
        self.assertTrue(row["on_critical_path"])

from datetime import date, timedelta
from unittest import mock

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from .models import Task
from .views import CYCLE_ERROR


class TaskApiTests(APITestCase):
    def test_create_task_defaults_duration(self):
        resp = self.client.post(reverse('task-list'), {"title": "Write report"}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        task = Task.objects.get(pk=resp.json()["id"])
        self.assertEqual(task.title, "Write report")
        self.assertEqual(task.duration_days, 1)
        self.assertEqual(task.dependencies, [])
        self.assertIsNone(task.image_url)

    def test_duration_derived_from_due_date(self):
        due = date.today() + timedelta(days=5)
        resp = self.client.post(reverse('task-list'), {"title": "Ship", "due_date": due.isoformat()}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.json()["duration_days"], 5)

    def test_explicit_duration_wins(self):
        resp = self.client.post(reverse('task-list'), {"title": "Ship", "duration_days": 3}, format='json')
        self.assertEqual(resp.json()["duration_days"], 3)

    def test_blank_title_rejected(self):
        resp = self.client.post(reverse('task-list'), {"title": "   "}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Task.objects.count(), 0)

    def test_unknown_dependency_rejected(self):
        resp = self.client.post(reverse('task-list'), {"title": "A", "dependencies": [12345]}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.json()["dependencies"], [12345])

    def test_dependencies_are_deduplicated(self):
        base = Task.objects.create(title="Base")
        resp = self.client.post(reverse('task-list'), {"title": "A", "dependencies": [base.id, base.id]}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Task.objects.get(pk=resp.json()["id"]).dependencies, [base.id])

    def test_cycle_rejects_whole_insertion(self):
        base = Task.objects.create(title="Base")
        with mock.patch('tasks.views.find_cycle_dependencies', return_value=[base.id]):
            resp = self.client.post(reverse('task-list'), {"title": "A", "dependencies": [base.id]}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.json(), {"error": CYCLE_ERROR, "dependencies": [base.id]})
        self.assertEqual(Task.objects.count(), 1)

    def test_due_date_before_earliest_start_rejected(self):
        blocker_due = date.today() + timedelta(days=10)
        blocker = Task.objects.create(title="Blocker", due_date=blocker_due)
        resp = self.client.post(reverse('task-list'), {
            "title": "Follow-up",
            "due_date": (date.today() + timedelta(days=2)).isoformat(),
            "dependencies": [blocker.id],
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.json()["earliest_start_date"], blocker_due.isoformat())
        self.assertEqual(Task.objects.count(), 1)

    def test_list_is_enriched_and_storage_untouched(self):
        t1 = Task.objects.create(title="One", due_date=date(2024, 1, 10))
        t2 = Task.objects.create(title="Two", due_date=date(2024, 1, 15), dependencies=[t1.id])
        t3 = Task.objects.create(title="Three", dependencies=[t1.id, t2.id])

        resp = self.client.get(reverse('task-list'))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        rows = {r["id"]: r for r in resp.json()}

        self.assertEqual(rows[t3.id]["reduced_dependencies"], [t2.id])
        self.assertEqual(rows[t3.id]["dependencies"], [t1.id, t2.id])
        self.assertEqual(rows[t3.id]["earliest_start_date"], "2024-01-15")
        self.assertEqual(rows[t1.id]["layer"], 2)
        self.assertTrue(rows[t3.id]["on_critical_path"])

        t3.refresh_from_db()
        self.assertEqual(t3.dependencies, [t1.id, t2.id])

    def test_preview_does_not_store(self):
        t1 = Task.objects.create(title="One", due_date=date(2024, 1, 10))
        resp = self.client.post(reverse('task-preview'), {"title": "Next", "dependencies": [t1.id]}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        body = resp.json()
        self.assertEqual(body["earliest_start_date"], "2024-01-10")
        self.assertEqual(body["layer"], 0)
        self.assertFalse(body["creates_cycle"])
        self.assertEqual(Task.objects.count(), 1)

    def test_delete_strips_dependents(self):
        t1 = Task.objects.create(title="One")
        t2 = Task.objects.create(title="Two", dependencies=[t1.id])
        resp = self.client.delete(reverse('task-detail', args=[t1.id]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertFalse(Task.objects.filter(pk=t1.id).exists())
        t2.refresh_from_db()
        self.assertEqual(t2.dependencies, [])

    def test_delete_missing_task(self):
        resp = self.client.delete(reverse('task-detail', args=[999]))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

from django.db import models


class Task(models.Model):
    title = models.CharField(max_length=255)
    due_date = models.DateField(blank=True, null=True)
    duration_days = models.PositiveIntegerField(default=1)
    image_url = models.URLField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    dependencies = models.JSONField(default=list, blank=True)  # stores list of task IDs this task waits on

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.title

    def as_graph_node(self):
        """Plain dict in the shape the analysis functions in `graph` expect."""
        return {
            "id": self.id,
            "title": self.title,
            "due_date": self.due_date,
            "duration_days": self.duration_days,
            "image_url": self.image_url,
            "created_at": self.created_at,
            "dependencies": list(self.dependencies or []),
        }

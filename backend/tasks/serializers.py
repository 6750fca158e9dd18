from rest_framework import serializers


class TaskInputSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    due_date = serializers.DateField(required=False, allow_null=True)
    duration_days = serializers.IntegerField(required=False, allow_null=True)
    dependencies = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)

    def validate_title(self, value: str):
        # CharField trims whitespace, but be explicit about blank titles
        if not value.strip():
            raise serializers.ValidationError('Title is required')
        return value.strip()

    def validate_dependencies(self, value):
        # Duplicates carry no meaning; keep first occurrence order
        deduped = []
        for dep in value:
            if dep not in deduped:
                deduped.append(dep)
        return deduped


class AnalyzedTaskSerializer(serializers.Serializer):
    """Task row enriched with the derived graph fields. Read-only."""

    id = serializers.IntegerField()
    title = serializers.CharField()
    due_date = serializers.DateField(allow_null=True)
    duration_days = serializers.IntegerField()
    image_url = serializers.URLField(allow_null=True, required=False)
    created_at = serializers.DateTimeField(required=False)
    dependencies = serializers.ListField(child=serializers.IntegerField())
    reduced_dependencies = serializers.ListField(child=serializers.IntegerField())
    earliest_start_date = serializers.DateField()
    layer = serializers.IntegerField()
    on_critical_path = serializers.BooleanField()


class CandidatePreviewSerializer(serializers.Serializer):
    """Analysis of a task that has not been created yet."""

    title = serializers.CharField()
    due_date = serializers.DateField(allow_null=True)
    dependencies = serializers.ListField(child=serializers.IntegerField())
    reduced_dependencies = serializers.ListField(child=serializers.IntegerField())
    earliest_start_date = serializers.DateField()
    layer = serializers.IntegerField()
    on_critical_path = serializers.BooleanField()
    creates_cycle = serializers.BooleanField()
    cycle_dependencies = serializers.ListField(child=serializers.IntegerField())

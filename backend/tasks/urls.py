from django.urls import path

from .views import TaskDetail, TaskListCreate, TaskPreview

urlpatterns = [
    path('tasks/', TaskListCreate.as_view(), name='task-list'),
    path('tasks/preview/', TaskPreview.as_view(), name='task-preview'),
    path('tasks/<int:pk>/', TaskDetail.as_view(), name='task-detail'),
]

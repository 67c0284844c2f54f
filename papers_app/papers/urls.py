from django.urls import path

from papers import views_rollover

urlpatterns = [
    path("api/cron/", views_rollover.cron_rollover, name="cron-rollover"),
    path("groups/<int:group_id>/rollover/", views_rollover.group_rollover, name="group-rollover"),
]

from datetime import date, datetime

from sitesched.domain.conflict import WeatherSummary
from sitesched.domain.resource import Resource
from sitesched.services.export import ProjectInfo
from sitesched.services.scheduler import ProjectScheduler

SAMPLE_STATUS_DATE = datetime(2025, 5, 6, 9, 0)

SAMPLE_RECORDS = [
    {"id": "P1", "title": "Site & Foundation", "start_time": "2025-04-07T07:00:00",
     "end_time": "2025-04-15T16:00:00", "priority": "high"},
    {"id": "P2", "title": "Shell", "start_time": "2025-04-22T07:00:00",
     "end_time": "2025-05-09T16:00:00", "priority": "high"},
    {"id": "P3", "title": "Interior", "start_time": "2025-05-12T07:00:00",
     "end_time": "2025-05-30T16:00:00"},
    {"id": "T1", "title": "Site preparation", "event_type": "site_prep",
     "parent_id": "P1", "location": "Lot 12", "start_time": "2025-04-07T07:00:00",
     "end_time": "2025-04-09T16:00:00", "assigned_to": ["crew-site"]},
    {"id": "T2", "title": "Demolish existing shed", "event_type": "demolition",
     "parent_id": "P1", "location": "Lot 12", "start_time": "2025-04-07T07:00:00",
     "end_time": "2025-04-08T16:00:00", "inspection_completed": True},
    {"id": "T3", "title": "Pour foundation", "event_type": "foundation",
     "parent_id": "P1", "location": "Lot 12", "start_time": "2025-04-10T07:00:00",
     "end_time": "2025-04-14T16:00:00", "priority": "critical",
     "dependencies": [{"depends_on_task_id": "T1"}, {"depends_on_task_id": "T2"}]},
    {"id": "T4", "title": "Foundation inspection", "event_type": "inspection",
     "parent_id": "P1", "location": "Lot 12", "start_time": "2025-04-15T09:00:00",
     "end_time": "2025-04-15T11:00:00",
     "dependencies": [{"depends_on_task_id": "T3"}]},
    {"id": "T5", "title": "Framing", "event_type": "framing", "parent_id": "P2",
     "location": "House", "start_time": "2025-04-22T07:00:00",
     "end_time": "2025-05-02T16:00:00", "assigned_to": {"crew-frame": 1.0},
     "dependencies": [{"depends_on_task_id": "T3", "dependency_type": "FS", "lag_days": 7}]},
    {"id": "T6", "title": "Roofing", "event_type": "roofing", "parent_id": "P2",
     "location": "House", "start_time": "2025-05-05T07:00:00",
     "end_time": "2025-05-09T16:00:00", "assigned_to": {"crew-frame": 1.0},
     "dependencies": [{"depends_on_task_id": "T5"}]},
    {"id": "T7", "title": "Electrical rough-in", "event_type": "electrical",
     "parent_id": "P2", "location": "House", "start_time": "2025-05-05T07:00:00",
     "end_time": "2025-05-09T16:00:00", "assigned_to": {"crew-mep": 1.0},
     "dependencies": [{"depends_on_task_id": "T5"}]},
    {"id": "T8", "title": "Plumbing rough-in", "event_type": "plumbing",
     "parent_id": "P2", "location": "House", "start_time": "2025-05-05T07:00:00",
     "end_time": "2025-05-08T16:00:00", "assigned_to": {"crew-mep": 1.0},
     "dependencies": [{"depends_on_task_id": "T5"}]},
    {"id": "T9", "title": "Insulation", "event_type": "insulation",
     "parent_id": "P3", "location": "House", "start_time": "2025-05-12T07:00:00",
     "end_time": "2025-05-14T16:00:00",
     "dependencies": [{"depends_on_task_id": "T7"}, {"depends_on_task_id": "T8"}]},
    {"id": "T10", "title": "Drywall", "event_type": "drywall", "parent_id": "P3",
     "location": "House", "start_time": "2025-05-15T07:00:00",
     "end_time": "2025-05-21T16:00:00",
     "dependencies": [{"depends_on_task_id": "T9"}]},
    {"id": "T11", "title": "Painting", "event_type": "painting", "parent_id": "P3",
     "location": "House", "start_time": "2025-05-24T07:00:00",
     "end_time": "2025-05-29T16:00:00",
     "dependencies": [{"depends_on_task_id": "T10", "lag_days": 2}]},
    {"id": "T12", "title": "Handover", "event_type": "milestone", "parent_id": "P3",
     "start_time": "2025-05-30T12:00:00", "end_time": "2025-05-30T12:00:00",
     "dependencies": [{"depends_on_task_id": "T11"}]},
]

SAMPLE_RESOURCES = [
    Resource("crew-site", "Site crew", max_units=2.0),
    Resource("crew-frame", "Framing crew", max_units=1.0),
    Resource("crew-mep", "MEP crew", max_units=1.0),
]

SAMPLE_WEATHER = WeatherSummary(
    condition="rain",
    daily={date(2025, 4, 10): "sunny", date(2025, 4, 11): "rain"},
)


def create_sample_project(status_date=SAMPLE_STATUS_DATE, perspective="balanced"):
    """
    Build a small house-build schedule with a few deliberate conflicts.

    Returns:
        ProjectScheduler: Loaded, with hierarchy and critical path computed
    """
    scheduler = ProjectScheduler(
        perspective=perspective,
        clock=lambda: status_date,
    )
    scheduler.set_project(
        ProjectInfo(
            id="lot-12",
            name="Lot 12 Residence",
            project_code="LOT12",
            start_date=datetime(2025, 4, 7),
            end_date=datetime(2025, 5, 30),
        )
    )
    scheduler.set_resources(SAMPLE_RESOURCES)
    scheduler.load_records(SAMPLE_RECORDS)
    scheduler.build_hierarchy(assign_wbs=True)
    scheduler.calculate_critical_path()
    return scheduler

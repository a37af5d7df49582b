# Depot Scheduler: database models
# Import all models here for SQLAlchemy discovery

from app.models.depot import Depot                              # noqa
from app.models.stall import Stall                              # noqa
from app.models.vehicle import Vehicle                          # noqa
from app.models.job import Job                                  # noqa
from app.models.scheduler_event import SchedulerEvent           # noqa
from app.models.schedule_assignment import ScheduleAssignment   # noqa

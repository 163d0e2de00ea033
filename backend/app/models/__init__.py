from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.assignment import Assignment, AssignmentMethod  # noqa: F401
from app.models.department import Department, PlacementOrganization  # noqa: F401
from app.models.enrollment import Enrollment, EnrollmentStatus  # noqa: F401
from app.models.final_evaluation import FinalEvaluation  # noqa: F401
from app.models.internship_session import InternshipSession, SessionStatus  # noqa: F401
from app.models.logbook import LogbookWeek, WeeklyComment, WeekStatus  # noqa: F401
from app.models.student import Student  # noqa: F401
from app.models.supervisor import Supervisor, SupervisorLoad, SupervisorRole  # noqa: F401

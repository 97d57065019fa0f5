from .material import Material  # noqa: F401
from .movement import Movement, MovementType  # noqa: F401
from .user import User, UserRole  # noqa: F401
from .work_equipment import WorkEquipment  # noqa: F401
from .work_task import STATUS_ORDER, WorkTask, WorkTaskPriority, WorkTaskStatus, work_task_assignees  # noqa: F401
from .work_task_history import HistoryAction, WorkTaskHistoryEntry  # noqa: F401

from . import material  # noqa: F401
from . import movement  # noqa: F401
from . import user  # noqa: F401
from . import work_equipment  # noqa: F401
from . import work_task  # noqa: F401
from . import work_task_history  # noqa: F401

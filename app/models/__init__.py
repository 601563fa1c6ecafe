from app.models.base import Base
from app.models.direct_message import DirectMessage
from app.models.friendship import Friendship
from app.models.notification import Notification
from app.models.shared_plan import SharedPlan
from app.models.shared_plan_invitation import SharedPlanInvitation
from app.models.shared_plan_member import SharedPlanMember
from app.models.shared_plan_message import SharedPlanMessage
from app.models.shared_plan_task import SharedPlanTask
from app.models.user import User

__all__ = [
    "Base",
    "DirectMessage",
    "Friendship",
    "Notification",
    "SharedPlan",
    "SharedPlanInvitation",
    "SharedPlanMember",
    "SharedPlanMessage",
    "SharedPlanTask",
    "User",
]

from churchthreads.models.organization import Organization
from churchthreads.models.user import User
from churchthreads.models.feed import Feed, UserFeed
from churchthreads.models.thread import Message, Thread
from churchthreads.models.invite import Invite
from churchthreads.models.upload import Upload
from churchthreads.models.notification import Notification, ScheduledJob
from churchthreads.models.email_log import EmailLog

__all__ = [
    "Organization",
    "User",
    "Feed",
    "UserFeed",
    "Thread",
    "Message",
    "Invite",
    "Upload",
    "Notification",
    "ScheduledJob",
    "EmailLog",
]

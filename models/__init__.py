from .db import db
from .user import User, UserDetails, ROLES
from .session import Session
from .audit_log import AuditLog
from .booking import Booking
from .report import Report
from .achievement import Achievement

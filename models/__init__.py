from flask_sqlalchemy import SQLAlchemy

# Initialize SQLAlchemy
db = SQLAlchemy()

# Import models
from models.users import User

from models.categories import Category
from models.courses import Course
from models.lectures import Lecture
from models.enrolments import Enrollment
from models.lecture_progress import LectureProgress
from models.assignment import Assignment
from models.assignment_submission import AssignmentSubmission

from models.coupons import Coupon
from models.coupon_usage import CouponUsage
from models.payments import Payment

from models.messages import Message
